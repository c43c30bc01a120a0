"""Systems of linear congruences over Z/2^w.

``A·x ≡ b (mod 2^w)`` is solved by diagonalizing ``A`` with invertible row
and column operations, ``U·A·V = D``, solving the scalar congruences
``d_i·y_i ≡ (U·b)_i`` independently and mapping the solutions back with
``x = V·y``.

Z/2^w has zero divisors, so ordinary Gaussian elimination does not apply.
The pivot of every step is an entry of minimal 2-adic valuation in the whole
remaining submatrix; all other entries are then multiples of it and can be
eliminated exactly.

Example:
    >>> from mbarewrite.core.bits import BitVectorRing
    >>> ring = BitVectorRing(8)
    >>> solve_scalar_congruence(6, 18, ring)
    (3, 128)
"""

from __future__ import annotations

import dataclasses
import random
from typing import Sequence

from mbarewrite.core import getLogger
from mbarewrite.core.bits import BitVectorRing
from mbarewrite.errors import DimensionMismatch, NotInvertible, Unsolvable
from mbarewrite.mba.matrix import (
    Matrix,
    Vector,
    unit_vector,
    vector_add,
    vector_scale,
    vector_to_tex,
    vector_to_text,
)

logger = getLogger(__name__)


# =============================================================================
# Solution sets
# =============================================================================


@dataclasses.dataclass(frozen=True)
class AffineLattice:
    """The solution set ``{offset + Σ λ_j · basis_j : λ_j ∈ Z/2^w}``."""

    ring: BitVectorRing
    offset: Vector
    basis: tuple[Vector, ...] = ()

    @property
    def dimension(self) -> int:
        return len(self.offset)

    def point(self, coefficients: Sequence[int]) -> Vector:
        """The element selected by one ``λ_j`` per basis vector."""
        if len(coefficients) != len(self.basis):
            raise DimensionMismatch(
                f"Expected {len(self.basis)} lattice coefficients, got {len(coefficients)}"
            )
        result = self.offset
        for factor, vector in zip(coefficients, self.basis):
            result = vector_add(self.ring, result, vector_scale(self.ring, factor, vector))
        return result

    def sample(self, rng: random.Random) -> Vector:
        """A uniformly random element of the lattice."""
        return self.point([self.ring.random(rng) for _ in self.basis])

    def transform(self, matrix: Matrix) -> AffineLattice:
        """Image of the lattice under ``matrix``."""
        return AffineLattice(
            self.ring,
            matrix.apply(self.offset),
            tuple(matrix.apply(v) for v in self.basis),
        )

    def to_tex(self) -> str:
        text = vector_to_tex(self.ring, self.offset)
        for j, vector in enumerate(self.basis):
            text += f"+a_{{{j + 1}}}{vector_to_tex(self.ring, vector)}"
        return text

    def to_tex_brace(self) -> str:
        """:meth:`to_tex`, bracketed when it is a sum."""
        if not self.basis:
            return self.to_tex()
        return f"\\left({self.to_tex()}\\right)"

    def to_text(self) -> str:
        text = vector_to_text(self.ring, self.offset)
        for j, vector in enumerate(self.basis):
            text += f" + a{j + 1}*{vector_to_text(self.ring, vector)}"
        return text


@dataclasses.dataclass(frozen=True)
class ScalarCongruence:
    """One diagonal equation ``coefficient · y ≡ rhs``.

    Attributes:
        index: Position ``i`` of the equation in the diagonal system.
        solution: Canonical ``y_i``, None if the congruence has no solution.
        kernel: Generator of the solutions of the homogeneous equation, 0 if
            the solution is unique.
    """

    index: int
    coefficient: int
    rhs: int
    solution: int | None
    kernel: int

    @property
    def solvable(self) -> bool:
        return self.solution is not None


@dataclasses.dataclass
class SolveTrace:
    """Everything computed by one solve, for diagnostics and rendering.

    Fields after ``transformed_rhs`` are only filled in as far as the solve
    got; a trace attached to :class:`~mbarewrite.errors.Unsolvable` stops
    at the failing step.
    """

    ring: BitVectorRing
    matrix: Matrix
    rhs: Vector
    diagonal: Matrix
    row_transform: Matrix
    column_transform: Matrix
    transformed_rhs: Vector
    congruences: list[ScalarCongruence] = dataclasses.field(default_factory=list)
    # Free columns j >= rows, in order
    free_columns: list[int] = dataclasses.field(default_factory=list)
    transformed_solution: AffineLattice | None = None
    solution: AffineLattice | None = None
    failed_row: int | None = None


@dataclasses.dataclass(frozen=True)
class SolveResult:
    lattice: AffineLattice
    trace: SolveTrace


# =============================================================================
# Scalar congruences
# =============================================================================


def solve_scalar_congruence(a: int, b: int, ring: BitVectorRing) -> tuple[int, int] | None:
    """Solve ``a·y ≡ b (mod 2^w)``.

    Returns:
        ``(y, kernel)`` such that the solutions are exactly
        ``y + t·kernel``; ``kernel`` is 0 when ``y`` is unique. None if
        there is no solution.
    """
    a, b = ring.reduce(a), ring.reduce(b)
    if a == 0:
        return (0, 1) if b == 0 else None

    v = ring.valuation(a)
    if ring.valuation(b) < v:
        return None
    # y is only determined modulo 2^(w - v)
    step = 1 << (ring.width - v)
    y = ((b >> v) * ring.invert(a >> v)) % step
    return y, ring.reduce(step)


# =============================================================================
# Diagonalization
# =============================================================================


def _find_pivot(d: Matrix, start: int) -> tuple[int, int] | None:
    """Nonzero entry of minimal valuation in ``d[start:, start:]``.

    Ties go to the lowest row, then the lowest column.
    """
    ring = d.ring
    best: tuple[int, int] | None = None
    best_valuation = ring.width
    for r in range(start, d.rows):
        for c in range(start, d.cols):
            e = d[r, c]
            if e == 0:
                continue
            v = ring.valuation(e)
            if v < best_valuation:
                best, best_valuation = (r, c), v
                if v == 0:
                    return best
    return best


def _quotient(ring: BitVectorRing, entry: int, pivot: int) -> int:
    """``q`` with ``q · pivot == entry``.

    Raises:
        NotInvertible: If ``pivot`` does not divide ``entry``, which would
            need a unimodular 2x2 combination of the two lines first. The
            minimal-valuation pivot rules this out.
    """
    if ring.valuation(entry) < ring.valuation(pivot):
        raise NotInvertible(
            f"Pivot {pivot} does not divide {entry} modulo 2^{ring.width}"
        )
    return ring.divide(entry, pivot)


def diagonalize(matrix: Matrix) -> tuple[Matrix, Matrix, Matrix]:
    """Return ``(D, U, V)`` with ``D`` diagonal and ``U·matrix·V == D``.

    ``U`` and ``V`` are invertible over Z/2^w. ``matrix`` is not modified.
    """
    ring = matrix.ring
    d = matrix.copy()
    u = Matrix.identity(ring, matrix.rows)
    v = Matrix.identity(ring, matrix.cols)

    for i in range(d.min_dim):
        pivot = _find_pivot(d, i)
        if pivot is None:
            # The remaining submatrix is zero
            break
        r, c = pivot
        if r != i:
            d.swap_rows(i, r)
            u.swap_rows(i, r)
        if c != i:
            d.swap_columns(i, c)
            v.swap_columns(i, c)

        p = d[i, i]
        if logger.debug_on:
            logger.debug("Step %d: pivot %d from (%d, %d)", i, p, r, c)

        for k in range(i + 1, d.rows):
            e = d[k, i]
            if e:
                m = ring.neg(_quotient(ring, e, p))
                d.row_multiply_add(i, k, m)
                u.row_multiply_add(i, k, m)

        for k in range(i + 1, d.cols):
            e = d[i, k]
            if e:
                m = ring.neg(_quotient(ring, e, p))
                d.col_multiply_add(i, k, m)
                v.col_multiply_add(i, k, m)

    return d, u, v


# =============================================================================
# Systems
# =============================================================================


class CongruenceSolver:
    """Solves ``A·x ≡ b`` for one matrix and right-hand side.

    Args:
        matrix: The ``m × n`` system matrix.
        rhs: Right-hand side of length ``m``.

    Raises:
        DimensionMismatch: If ``len(rhs) != matrix.rows``.
    """

    def __init__(self, matrix: Matrix, rhs: Sequence[int]):
        if len(rhs) != matrix.rows:
            raise DimensionMismatch(
                f"Matrix has {matrix.rows} rows but right-hand side has {len(rhs)} entries"
            )
        self.ring = matrix.ring
        self.matrix = matrix
        self.rhs: Vector = tuple(self.ring.reduce(e) for e in rhs)

    def solve(self) -> SolveResult:
        """Compute the full solution lattice.

        Raises:
            Unsolvable: If no ``x`` satisfies the system. The exception
                carries the partial trace and the failing row of the
                diagonal system.
        """
        ring = self.ring
        d, u, v = diagonalize(self.matrix)
        transformed_rhs = u.apply(self.rhs)
        trace = SolveTrace(
            ring=ring,
            matrix=self.matrix,
            rhs=self.rhs,
            diagonal=d,
            row_transform=u,
            column_transform=v,
            transformed_rhs=transformed_rhs,
        )
        logger.debug(
            "Diagonalized %dx%d system, diagonal %s",
            d.rows,
            d.cols,
            [d[i, i] for i in range(d.min_dim)],
        )

        # Rows past the diagonal read 0 = (U·b)_i
        for i in range(d.min_dim, d.rows):
            if transformed_rhs[i] != 0:
                trace.failed_row = i
                raise Unsolvable(
                    f"Row {i + 1}: 0 = {transformed_rhs[i]} has no solution",
                    row=i,
                    trace=trace,
                )

        n = d.cols
        offset = [0] * n
        basis: list[Vector] = []
        for i in range(d.min_dim):
            solved = solve_scalar_congruence(d[i, i], transformed_rhs[i], ring)
            if solved is None:
                trace.congruences.append(
                    ScalarCongruence(i, d[i, i], transformed_rhs[i], None, 0)
                )
                trace.failed_row = i
                raise Unsolvable(
                    f"Row {i + 1}: {d[i, i]}*x = {transformed_rhs[i]} has no solution",
                    row=i,
                    trace=trace,
                )
            y, kernel = solved
            trace.congruences.append(
                ScalarCongruence(i, d[i, i], transformed_rhs[i], y, kernel)
            )
            offset[i] = y
            if kernel:
                basis.append(unit_vector(n, i, kernel))

        for j in range(d.rows, n):
            trace.free_columns.append(j)
            basis.append(unit_vector(n, j))

        transformed = AffineLattice(ring, tuple(offset), tuple(basis))
        trace.transformed_solution = transformed
        lattice = transformed.transform(v)
        trace.solution = lattice
        if logger.debug_on:
            logger.debug("Solution %s", lattice.to_text())
        return SolveResult(lattice, trace)


def solve_congruences(matrix: Matrix, rhs: Sequence[int]) -> SolveResult:
    """Shorthand for ``CongruenceSolver(matrix, rhs).solve()``."""
    return CongruenceSolver(matrix, rhs).solve()


__all__ = [
    "AffineLattice",
    "CongruenceSolver",
    "ScalarCongruence",
    "SolveResult",
    "SolveTrace",
    "diagonalize",
    "solve_congruences",
    "solve_scalar_congruence",
]
