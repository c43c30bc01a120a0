"""Rendering of linear combinations and solver traces.

Every output format is a member of :class:`Printer`, resolved once per
request with :meth:`Printer.from_name`.

Example:
    >>> from mbarewrite.mba.dsl import Var
    >>> x, y = Var("x"), Var("y")
    >>> Printer.TEXT.print_linear_combination(2 * (x & y) - (x ^ y), 8)
    '2*(x & y) - (x ^ y)'
    >>> Printer.TEX.print_sum(3 * ~(x | y), 8)
    '3\\\\cdot \\\\overline{x \\\\lor y}'
"""

from __future__ import annotations

import dataclasses
import enum
from typing import Sequence

from mbarewrite.core.bits import BitVectorRing
from mbarewrite.mba.congruence import SolveTrace
from mbarewrite.mba.dsl import BooleanTerm, LinearCombination
from mbarewrite.mba.matrix import Matrix, vector_to_tex, vector_to_text

_LOW_64 = (1 << 64) - 1


class Printer(enum.Enum):
    """Output formats."""

    C = "c"
    RUST = "rust"
    TEX = "tex"
    TEXT = "text"

    @classmethod
    def from_name(cls, name: str | Printer) -> Printer:
        """Resolve a case-insensitive format name.

        >>> Printer.from_name("Rust")
        <Printer.RUST: 'rust'>
        """
        if isinstance(name, Printer):
            return name
        try:
            return cls(name.strip().lower())
        except ValueError:
            choices = ", ".join(p.value for p in cls)
            raise ValueError(f"Unknown output format {name!r}; expected one of {choices}") from None

    # Boolean terms ----------------------------------------------------------
    def print_term(self, term: BooleanTerm, width: int = 8) -> str:
        """Render a boolean term without its coefficient."""
        if term.is_ones():
            return f"Wrapping(u{width}::MAX)" if self is Printer.RUST else "-1"
        if term.is_variable():
            return term.name
        if term.operation == "bnot":
            inner = self.print_term(term.left, width)
            match self:
                case Printer.TEX:
                    return f"\\overline{{{inner}}}"
                case Printer.RUST:
                    return f"!{inner}" if term.left.is_unary() else f"!({inner})"
                case _:
                    return f"~{inner}" if term.left.is_unary() else f"~({inner})"
        symbol = _TEX_SYMBOLS[term.operation] if self is Printer.TEX else _SYMBOLS[term.operation]
        return f"{self._safe(term.left, width)} {symbol} {self._safe(term.right, width)}"

    def _safe(self, term: BooleanTerm, width: int) -> str:
        text = self.print_term(term, width)
        return text if term.is_unary() else f"({text})"

    # Linear combinations ----------------------------------------------------
    def print_sum(self, combination: LinearCombination, width: int) -> str:
        """Render ``Σ c·term`` with coefficients reduced modulo 2^width.

        Zero coefficients are dropped and coefficients above 2^(width-1)
        become subtractions. An empty sum renders as zero of the output type.
        """
        ring = BitVectorRing(width)
        parts: list[str] = []
        for coefficient, term in combination:
            coefficient = ring.reduce(coefficient)
            if coefficient == 0:
                continue
            negative = ring.is_negative(coefficient)
            if negative:
                coefficient = ring.neg(coefficient)
            body = self._print_product(coefficient, term, width)
            if not parts:
                if negative:
                    body = f"-({body})" if body.startswith("-") else f"-{body}"
                parts.append(body)
            else:
                parts.append(f" - {body}" if negative else f" + {body}")
        if not parts:
            return f"Wrapping(0u{width})" if self is Printer.RUST else "0"
        return "".join(parts)

    def _print_product(self, coefficient: int, term: BooleanTerm, width: int) -> str:
        text = self._safe(term, width)
        if coefficient == 1:
            return text
        match self:
            case Printer.C:
                return f"{c_literal(coefficient, width)}*{text}"
            case Printer.RUST:
                return f"Wrapping({coefficient}u{width})*{text}"
            case Printer.TEX:
                return f"{coefficient}\\cdot {text}"
            case _:
                return f"{coefficient}*{text}"

    def print_linear_combination(
        self,
        combination: LinearCombination,
        width: int,
        variables: Sequence[str] | None = None,
    ) -> str:
        """Render a complete result.

        C and Rust produce a function ``f`` taking ``variables`` (default:
        the variables of ``combination``) in order; TeX and TEXT produce the
        bare expression.
        """
        width = int(width)
        body = self.print_sum(combination, width)
        if variables is None:
            variables = combination.variables()
        match self:
            case Printer.C:
                ty = f"uint{width}_t"
                params = ", ".join(f"{ty} {v}" for v in variables)
                return f"{ty} f({params}) {{\n\treturn {body};\n}}"
            case Printer.RUST:
                ty = f"Wrapping<u{width}>"
                params = ", ".join(f"{v}: {ty}" for v in variables)
                return f"fn f({params}) -> {ty} {{\n\t{body}\n}}"
            case _:
                return body


_SYMBOLS = {"and": "&", "or": "|", "xor": "^"}
_TEX_SYMBOLS = {"and": "\\land", "or": "\\lor", "xor": "\\oplus"}


def c_literal(value: int, width: int) -> str:
    """An unsigned C literal for ``value``.

    128-bit literals are cast to ``uint128_t`` so that products with them are
    computed in 128 bits; values that do not fit in 64 bits are built from
    two halves.

    >>> c_literal(3, 32), c_literal(3, 64), c_literal(3, 128)
    ('3u', '3ull', '(uint128_t)3ull')
    """
    if width <= 32:
        return f"{value}u"
    if width <= 64:
        return f"{value}ull"
    if value <= _LOW_64:
        return f"(uint128_t){value}ull"
    high, low = value >> 64, value & _LOW_64
    return f"(((uint128_t){high}ull << 64) | {low}ull)"


def print_linear_combination(
    combination: LinearCombination,
    width: int,
    variables: Sequence[str] | None = None,
    printer: Printer | str = Printer.TEXT,
) -> str:
    return Printer.from_name(printer).print_linear_combination(combination, width, variables)


# =============================================================================
# Solver traces
# =============================================================================


@dataclasses.dataclass(frozen=True)
class TraceView:
    """Rendered stages of a congruence solve.

    Stages that the solve did not reach are empty strings.
    """

    diag: str
    scalar_system: str
    linear_solutions: str
    vector_solution: str = ""
    final_solution: str = ""

    def stages(self) -> list[tuple[str, str]]:
        return [
            ("Diagonalization", self.diag),
            ("Diagonal system", self.scalar_system),
            ("Scalar congruences", self.linear_solutions),
            ("Solution of the diagonal system", self.vector_solution),
            ("Solution", self.final_solution),
        ]


def underbrace(inner: str, label: str) -> str:
    return f"\\underbrace{{{inner}}}_{{{label}}}"


def bold(inner: str) -> str:
    return f"\\mathbf{{{inner}}}"


def render_trace(trace: SolveTrace, printer: Printer | str = Printer.TEX) -> TraceView:
    """Render every stage of ``trace`` as TeX or plain text.

    Raises:
        ValueError: For printers other than TEX and TEXT.
    """
    printer = Printer.from_name(printer)
    if printer is Printer.TEX:
        return _render_tex(trace)
    if printer is Printer.TEXT:
        return _render_text(trace)
    raise ValueError(f"Solver traces cannot be rendered as {printer.value}")


def _render_tex(trace: SolveTrace) -> TraceView:
    ring = trace.ring
    d, u, a, v = trace.diagonal, trace.row_transform, trace.matrix, trace.column_transform
    diag = (
        f"{underbrace(d.to_tex(), bold('D'))}="
        f"{underbrace(u.to_tex(), bold('S'))}"
        f"{underbrace(a.to_tex(), bold('A'))}"
        f"{underbrace(v.to_tex(), bold('T'))}"
    )
    scalar_system = (
        f"{underbrace(d.to_tex(), bold('D'))}\\mathbf{{x'}}="
        f"{underbrace(u.to_tex(), bold('S'))}"
        f"{underbrace(vector_to_tex(ring, trace.rhs), bold('b'))}="
        f"{vector_to_tex(ring, trace.transformed_rhs)}"
    )

    if trace.failed_row is not None and trace.failed_row >= d.min_dim:
        i = trace.failed_row
        linear_solutions = (
            f"\\text{{Row {i + 1}: }} 0={trace.transformed_rhs[i]}"
            "\\implies \\text{No solution}"
        )
        return TraceView(diag, scalar_system, linear_solutions)

    lines = ["\\begin{align}"]
    j = 1
    for congruence in trace.congruences:
        i = congruence.index
        lines.append(
            f"{congruence.coefficient}x'_{{{i + 1}}}&={congruence.rhs} &\\implies "
        )
        if not congruence.solvable:
            lines.append("\\text{No solution!}&\\end{align}")
            return TraceView(diag, scalar_system, "".join(lines))
        if congruence.kernel == 0:
            lines.append(f"x'_{{{i + 1}}}&={congruence.solution}\\\\")
        else:
            lines.append(
                f"x'_{{{i + 1}}}&={congruence.solution}+{congruence.kernel}a_{{{j}}}\\\\"
            )
            j += 1
    for column in trace.free_columns:
        lines.append(f"&&x'_{{{column + 1}}}&=a_{{{j}}}\\\\")
        j += 1
    lines.append("\\end{align}")
    linear_solutions = "".join(lines)

    x_old = trace.transformed_solution.to_tex_brace()
    x_prime = bold("x'")
    vector_solution = f"\\mathbf{{x'}}={x_old}"
    final_solution = (
        f"\\mathbf{{x}}={underbrace(v.to_tex(), bold('T'))}"
        f"{underbrace(x_old, x_prime)}={trace.solution.to_tex()}"
    )
    return TraceView(diag, scalar_system, linear_solutions, vector_solution, final_solution)


def _labelled(name: str, matrix: Matrix) -> str:
    return f"{name} =\n{matrix.to_text()}"


def _render_text(trace: SolveTrace) -> TraceView:
    ring = trace.ring
    diag = "\n".join(
        [
            "D = S*A*T",
            _labelled("D", trace.diagonal),
            _labelled("S", trace.row_transform),
            _labelled("A", trace.matrix),
            _labelled("T", trace.column_transform),
        ]
    )
    scalar_system = (
        f"D*x' = S*b = S*{vector_to_text(ring, trace.rhs)} = "
        f"{vector_to_text(ring, trace.transformed_rhs)}"
    )

    if trace.failed_row is not None and trace.failed_row >= trace.diagonal.min_dim:
        i = trace.failed_row
        return TraceView(
            diag, scalar_system, f"Row {i + 1}: 0 = {trace.transformed_rhs[i]} => No solution"
        )

    lines = []
    j = 1
    for congruence in trace.congruences:
        i = congruence.index
        head = f"{congruence.coefficient}*x'{i + 1} = {congruence.rhs} => "
        if not congruence.solvable:
            lines.append(head + "No solution")
            return TraceView(diag, scalar_system, "\n".join(lines))
        if congruence.kernel == 0:
            lines.append(f"{head}x'{i + 1} = {congruence.solution}")
        else:
            lines.append(f"{head}x'{i + 1} = {congruence.solution} + {congruence.kernel}*a{j}")
            j += 1
    for column in trace.free_columns:
        lines.append(f"x'{column + 1} = a{j}")
        j += 1

    vector_solution = f"x' = {trace.transformed_solution.to_text()}"
    final_solution = f"x = T*x' = {trace.solution.to_text()}"
    return TraceView(diag, scalar_system, "\n".join(lines), vector_solution, final_solution)


__all__ = [
    "Printer",
    "TraceView",
    "bold",
    "c_literal",
    "print_linear_combination",
    "render_trace",
    "underbrace",
]
