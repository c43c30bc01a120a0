"""Dense matrices and vectors over Z/2^w.

Only the invertible elementary operations used by the congruence solver are
provided (swap, multiply-add of rows and columns); matrices are otherwise
plain row lists. Vectors are tuples of ring elements.
"""

from __future__ import annotations

from typing import Iterable, Iterator, Sequence

from mbarewrite.core.bits import BitVectorRing
from mbarewrite.errors import DimensionMismatch

Vector = tuple[int, ...]


class Matrix:
    """A ``rows × cols`` matrix with entries reduced into ``[0, 2^w)``."""

    __slots__ = ("ring", "rows", "cols", "_data")

    def __init__(self, ring: BitVectorRing, data: Iterable[Iterable[int]], cols: int | None = None):
        self.ring = ring
        self._data: list[list[int]] = [[ring.reduce(e) for e in row] for row in data]
        self.rows = len(self._data)
        if cols is None:
            cols = len(self._data[0]) if self._data else 0
        self.cols = cols
        for r, row in enumerate(self._data):
            if len(row) != cols:
                raise DimensionMismatch(
                    f"Row {r + 1} has {len(row)} entries, expected {cols}"
                )

    # Constructors -----------------------------------------------------------
    @classmethod
    def zero(cls, ring: BitVectorRing, rows: int, cols: int) -> Matrix:
        return cls(ring, ([0] * cols for _ in range(rows)), cols)

    @classmethod
    def identity(cls, ring: BitVectorRing, n: int) -> Matrix:
        return cls(ring, ([int(r == c) for c in range(n)] for r in range(n)), n)

    @classmethod
    def from_columns(cls, ring: BitVectorRing, columns: Sequence[Sequence[int]], rows: int) -> Matrix:
        """Build a matrix whose ``j``-th column is ``columns[j]``."""
        for j, column in enumerate(columns):
            if len(column) != rows:
                raise DimensionMismatch(
                    f"Column {j + 1} has {len(column)} entries, expected {rows}"
                )
        return cls(ring, ([column[r] for column in columns] for r in range(rows)), len(columns))

    def copy(self) -> Matrix:
        return Matrix(self.ring, self._data, self.cols)

    # Access -----------------------------------------------------------------
    def __getitem__(self, index: tuple[int, int]) -> int:
        r, c = index
        return self._data[r][c]

    def __setitem__(self, index: tuple[int, int], value: int) -> None:
        r, c = index
        self._data[r][c] = self.ring.reduce(value)

    def row(self, r: int) -> Vector:
        return tuple(self._data[r])

    def column(self, c: int) -> Vector:
        return tuple(row[c] for row in self._data)

    def __iter__(self) -> Iterator[Vector]:
        return (tuple(row) for row in self._data)

    @property
    def min_dim(self) -> int:
        return min(self.rows, self.cols)

    @property
    def shape(self) -> tuple[int, int]:
        return self.rows, self.cols

    # Elementary operations --------------------------------------------------
    def swap_rows(self, i: int, j: int) -> None:
        self._data[i], self._data[j] = self._data[j], self._data[i]

    def swap_columns(self, i: int, j: int) -> None:
        for row in self._data:
            row[i], row[j] = row[j], row[i]

    def row_multiply_add(self, src: int, dst: int, factor: int) -> None:
        """``row[dst] += factor * row[src]``."""
        ring = self.ring
        source, target = self._data[src], self._data[dst]
        for c in range(self.cols):
            target[c] = ring.add(target[c], ring.mul(factor, source[c]))

    def col_multiply_add(self, src: int, dst: int, factor: int) -> None:
        """``col[dst] += factor * col[src]``."""
        ring = self.ring
        for row in self._data:
            row[dst] = ring.add(row[dst], ring.mul(factor, row[src]))

    # Products ---------------------------------------------------------------
    def __matmul__(self, other: Matrix) -> Matrix:
        if not isinstance(other, Matrix):
            return NotImplemented
        if self.cols != other.rows:
            raise DimensionMismatch(
                f"Cannot multiply {self.rows}x{self.cols} by {other.rows}x{other.cols}"
            )
        columns = [other.column(c) for c in range(other.cols)]
        return Matrix(
            self.ring,
            ([dot(self.ring, row, column) for column in columns] for row in self._data),
            other.cols,
        )

    def apply(self, vector: Sequence[int]) -> Vector:
        """Matrix-vector product ``self · vector``."""
        if len(vector) != self.cols:
            raise DimensionMismatch(
                f"Cannot multiply {self.rows}x{self.cols} matrix by vector of length {len(vector)}"
            )
        return tuple(dot(self.ring, row, vector) for row in self._data)

    def is_diagonal(self) -> bool:
        return all(
            self._data[r][c] == 0
            for r in range(self.rows)
            for c in range(self.cols)
            if r != c
        )

    # Comparison / rendering -------------------------------------------------
    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Matrix):
            return NotImplemented
        return self.ring == other.ring and self.shape == other.shape and self._data == other._data

    __hash__ = None

    def __repr__(self) -> str:
        return f"Matrix({self.rows}x{self.cols}, {self._data!r})"

    def to_tex(self) -> str:
        """``\\left[\\begin{array}{}...\\end{array}\\right]`` with signed entries."""
        body = "".join(
            " & ".join(signed_text(self.ring, e) for e in row) + "\\\\"
            for row in self._data
        )
        return f"\\left[\\begin{{array}}{{}}{body}\\end{{array}}\\right]"

    def to_text(self) -> str:
        """Right-aligned plain text, one row per line."""
        cells = [[signed_text(self.ring, e) for e in row] for row in self._data]
        width = max((len(cell) for row in cells for cell in row), default=1)
        return "\n".join("[" + " ".join(cell.rjust(width) for cell in row) + "]" for row in cells)


def dot(ring: BitVectorRing, lhs: Sequence[int], rhs: Sequence[int]) -> int:
    return ring.reduce(sum(a * b for a, b in zip(lhs, rhs)))


def zero_vector(n: int) -> Vector:
    return (0,) * n


def unit_vector(n: int, i: int, value: int = 1) -> Vector:
    """The vector with ``value`` at index ``i`` and zeros elsewhere."""
    entries = [0] * n
    entries[i] = value
    return tuple(entries)


def vector_add(ring: BitVectorRing, lhs: Sequence[int], rhs: Sequence[int]) -> Vector:
    if len(lhs) != len(rhs):
        raise DimensionMismatch(f"Vector lengths differ: {len(lhs)} != {len(rhs)}")
    return tuple(ring.add(a, b) for a, b in zip(lhs, rhs))


def vector_scale(ring: BitVectorRing, factor: int, vector: Sequence[int]) -> Vector:
    return tuple(ring.mul(factor, e) for e in vector)


def is_zero_vector(vector: Sequence[int]) -> bool:
    return not any(vector)


def signed_text(ring: BitVectorRing, value: int) -> str:
    """``value`` as text, printing elements above 2^(w-1) as negatives."""
    value = ring.reduce(value)
    if ring.is_negative(value):
        return f"-{ring.neg(value)}"
    return str(value)


def vector_to_tex(ring: BitVectorRing, vector: Sequence[int]) -> str:
    body = "".join(signed_text(ring, e) + "\\\\" for e in vector)
    return f"\\left[\\begin{{array}}{{}}{body}\\end{{array}}\\right]"


def vector_to_text(ring: BitVectorRing, vector: Sequence[int]) -> str:
    return "(" + ", ".join(signed_text(ring, e) for e in vector) + ")"


__all__ = [
    "Matrix",
    "Vector",
    "dot",
    "is_zero_vector",
    "signed_text",
    "unit_vector",
    "vector_add",
    "vector_scale",
    "vector_to_tex",
    "vector_to_text",
    "zero_vector",
]
