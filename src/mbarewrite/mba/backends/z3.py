"""Z3 backend for equivalence checking of linear MBA expressions.

Key exports:
- Z3VerificationVisitor: Converts BooleanTerm / LinearCombination → Z3 BitVec
- prove_equivalence(): Prove two expressions are equivalent for all inputs
- Z3VerificationEngine: VerificationEngine implementation on top of both

Example:
    from mbarewrite.mba.dsl import Var
    from mbarewrite.mba.backends.z3 import prove_equivalence

    x, y = Var("x"), Var("y")
    assert prove_equivalence(x + y, 2 * (x & y) + (x ^ y))[0]
"""

from __future__ import annotations

import functools
import typing
from typing import TYPE_CHECKING, Dict

from mbarewrite.core import getLogger
from mbarewrite.errors import MBAZ3Exception
from mbarewrite.mba.dsl import BooleanTerm, LinearCombination

logger = getLogger(__name__)

if TYPE_CHECKING:
    from mbarewrite.mba.verifier import VerificationOptions

try:
    import z3

    Z3_INSTALLED = True
except ImportError:
    logger.info("Z3 features disabled. Install Z3 to enable them")
    Z3_INSTALLED = False


def requires_z3_installed(func: typing.Callable[..., typing.Any]):
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        if not Z3_INSTALLED:
            raise MBAZ3Exception("Z3 is not installed")
        return func(*args, **kwargs)

    return wrapper


# =============================================================================
# Z3VerificationEngine - Implements VerificationEngine protocol
# =============================================================================


class Z3VerificationEngine:
    """Z3 implementation of the VerificationEngine protocol.

    Usage:
        >>> from mbarewrite.mba.dsl import Var
        >>> engine = Z3VerificationEngine()
        >>> x, y = Var("x"), Var("y")
        >>> is_eq, _ = engine.prove_equivalence((x | y) - (x & y), x ^ y)
        >>> assert is_eq
    """

    def __init__(self):
        """Initialize the Z3 verification engine.

        Raises:
            MBAZ3Exception: If Z3 is not installed.
        """
        if not Z3_INSTALLED:
            raise MBAZ3Exception(
                "Z3 is not installed. Install z3-solver to use Z3VerificationEngine."
            )

    def prove_equivalence(
        self,
        lhs: BooleanTerm | LinearCombination,
        rhs: BooleanTerm | LinearCombination,
        options: "VerificationOptions | None" = None,
    ) -> tuple[bool, Dict[str, int] | None]:
        """Prove that ``lhs`` is semantically equivalent to ``rhs`` using Z3.

        Returns:
            Tuple of (is_equivalent, counterexample).

        Raises:
            MBAZ3Exception: If Z3 answers ``unknown`` (e.g. on timeout).
        """
        bit_width = options.bit_width if options else 32
        timeout_ms = options.timeout_ms if options else 0
        return prove_equivalence(lhs, rhs, bit_width=bit_width, timeout_ms=timeout_ms)


# =============================================================================
# Z3VerificationVisitor - Converts expressions to Z3
# =============================================================================


class Z3VerificationVisitor:
    """Visitor that converts boolean terms and linear combinations to Z3.

    Example:
        >>> from mbarewrite.mba.dsl import Var
        >>> x, y = Var("x"), Var("y")
        >>> visitor = Z3VerificationVisitor(bit_width=8)
        >>> z3_expr = visitor.visit(3 * (x & ~y))
    """

    def __init__(self, bit_width: int = 32, var_map: dict[str, z3.BitVecRef] | None = None):
        """Initialize the Z3 verification visitor.

        Args:
            bit_width: Bit width for Z3 BitVec variables (default 32).
            var_map: Optional pre-created Z3 variables, shared when several
                expressions must refer to the same inputs.
        """
        if not Z3_INSTALLED:
            raise MBAZ3Exception("Z3 is not installed. Install z3-solver to use Z3VerificationVisitor.")

        self.bit_width = bit_width
        self.var_map: dict[str, z3.BitVecRef] = var_map if var_map is not None else {}

    def visit(self, expr: BooleanTerm | LinearCombination) -> z3.BitVecRef:
        """Return the Z3 expression equivalent to ``expr``.

        Raises:
            ValueError: If the expression is None or invalid.
        """
        if expr is None:
            raise ValueError("Cannot visit None expression")

        if isinstance(expr, LinearCombination):
            return self._visit_combination(expr)

        if expr.is_leaf():
            return self._visit_leaf(expr)

        return self._visit_operation(expr)

    def _visit_combination(self, expr: LinearCombination) -> z3.BitVecRef:
        total = z3.BitVecVal(0, self.bit_width)
        for coefficient, term in expr:
            total = total + z3.BitVecVal(coefficient, self.bit_width) * self.visit(term)
        return total

    def _visit_leaf(self, expr: BooleanTerm) -> z3.BitVecRef:
        if expr.is_ones():
            return z3.BitVecVal(-1, self.bit_width)

        if expr.name not in self.var_map:
            self.var_map[expr.name] = z3.BitVec(expr.name, self.bit_width)

        return self.var_map[expr.name]

    def _visit_operation(self, expr: BooleanTerm) -> z3.BitVecRef:
        left = self.visit(expr.left)

        match expr.operation:
            case "bnot":
                return ~left

            case "and":
                return left & self.visit(expr.right)

            case "or":
                return left | self.visit(expr.right)

            case "xor":
                return left ^ self.visit(expr.right)

            case _:
                raise ValueError(
                    f"Unsupported operation in Z3VerificationVisitor: {expr.operation}"
                )

    def get_variables(self) -> dict[str, z3.BitVecRef]:
        """Return a copy of the variables created so far."""
        return self.var_map.copy()


# =============================================================================
# prove_equivalence - Prove two expressions are equivalent
# =============================================================================


@requires_z3_installed
def prove_equivalence(
    lhs: BooleanTerm | LinearCombination,
    rhs: BooleanTerm | LinearCombination,
    z3_vars: dict[str, z3.BitVecRef] | None = None,
    bit_width: int = 32,
    timeout_ms: int = 0,
) -> tuple[bool, dict[str, int] | None]:
    """Prove that two expressions agree for every assignment of their variables.

    Returns:
        A tuple of (is_equivalent, counterexample):
        - is_equivalent: True if proven equivalent, False otherwise.
        - counterexample: If not equivalent, a dict mapping variable names to
          values that demonstrate the difference. None if equivalent.

    Raises:
        MBAZ3Exception: If Z3 cannot decide the query.

    Example:
        >>> from mbarewrite.mba.dsl import Var
        >>> x, y = Var("x"), Var("y")
        >>> prove_equivalence(x - y, x + ~y + 1, bit_width=8)
        (True, None)
    """
    visitor = Z3VerificationVisitor(bit_width=bit_width, var_map=z3_vars)
    lhs_z3 = visitor.visit(lhs)
    rhs_z3 = visitor.visit(rhs)

    solver = z3.Solver()
    if timeout_ms > 0:
        solver.set("timeout", timeout_ms)

    # Equivalent iff lhs != rhs has no model
    solver.add(lhs_z3 != rhs_z3)
    result = solver.check()

    if result == z3.unsat:
        return True, None

    if result == z3.sat:
        model = solver.model()
        counterexample = {}
        for name, z3_var in visitor.get_variables().items():
            value = model.eval(z3_var, model_completion=True)
            counterexample[name] = value.as_long()
        logger.debug("Counterexample for %s != %s: %s", lhs, rhs, counterexample)
        return False, counterexample

    raise MBAZ3Exception(f"Z3 could not decide equivalence: {solver.reason_unknown()}")


__all__ = [
    "Z3_INSTALLED",
    "Z3VerificationEngine",
    "Z3VerificationVisitor",
    "prove_equivalence",
]
