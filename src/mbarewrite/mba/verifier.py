"""Equivalence checking of rewritten expressions.

This module defines the backend-agnostic pieces:

1. VerificationOptions - knobs shared by every backend
2. VerificationEngine protocol - interface for verification backends
3. TruthTableVerificationEngine - exhaustive check over representative rows

Backend implementations that need third-party solvers (Z3) live in
mbarewrite.mba.backends.

For linear MBA the truth-table check is complete: two linear combinations of
boolean terms agree on all w-bit inputs iff they agree on every row where
each variable is all-zeros or all-ones.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Protocol, runtime_checkable

from mbarewrite.core.bits import BitVectorRing
from mbarewrite.mba.dsl import BooleanTerm, LinearCombination
from mbarewrite.mba.truth_table import TruthTableEvaluator

Expression = BooleanTerm | LinearCombination

# =============================================================================
# Verification Options
# =============================================================================


@dataclass
class VerificationOptions:
    """Configuration options for verification engines.

    Attributes:
        bit_width: Bit width of the variables (default 32).
        timeout_ms: Solver timeout in milliseconds (0 = no timeout).
        verbose: Enable verbose output from the solver.
        extra: Additional engine-specific options.

    Example:
        >>> opts = VerificationOptions(bit_width=64, timeout_ms=5000)
        >>> opts.bit_width
        64
    """

    bit_width: int = 32
    timeout_ms: int = 0
    verbose: bool = False
    extra: Dict[str, Any] = field(default_factory=dict)


# Default options instance
DEFAULT_OPTIONS = VerificationOptions()


# =============================================================================
# Verification Engine Protocol
# =============================================================================


@runtime_checkable
class VerificationEngine(Protocol):
    """Protocol defining the interface for verification backends."""

    def prove_equivalence(
        self,
        lhs: Expression,
        rhs: Expression,
        options: VerificationOptions = DEFAULT_OPTIONS,
    ) -> tuple[bool, Dict[str, int] | None]:
        """Prove that ``lhs`` and ``rhs`` agree on all inputs.

        Returns:
            Tuple of (is_equivalent, counterexample).
            - is_equivalent: True if proven equivalent.
            - counterexample: If not equivalent, dict mapping variable names
              to values demonstrating the difference.
        """
        ...


def _as_combination(expr: Expression) -> LinearCombination:
    if isinstance(expr, BooleanTerm):
        return LinearCombination.from_term(expr)
    return expr


class TruthTableVerificationEngine:
    """Decides equivalence by comparing truth tables.

    Needs no solver and is exact for linear MBA.

    >>> from mbarewrite.mba.dsl import Var
    >>> x, y = Var("x"), Var("y")
    >>> TruthTableVerificationEngine().prove_equivalence(x + y, 2 * (x & y) + (x ^ y))
    (True, None)
    """

    def prove_equivalence(
        self,
        lhs: Expression,
        rhs: Expression,
        options: VerificationOptions = DEFAULT_OPTIONS,
    ) -> tuple[bool, Dict[str, int] | None]:
        lhs, rhs = _as_combination(lhs), _as_combination(rhs)
        ring = BitVectorRing(options.bit_width)
        variables = sorted(set(lhs.variables()) | set(rhs.variables()))
        evaluator = TruthTableEvaluator(ring, variables)
        left = evaluator.linear_truth_table(lhs)
        right = evaluator.linear_truth_table(rhs)
        for row, (a, b) in enumerate(zip(left, right)):
            if a != b:
                counterexample = {
                    name: ring.ones if (row >> j) & 1 else 0
                    for j, name in enumerate(variables)
                }
                return False, counterexample
        return True, None


def get_default_engine() -> VerificationEngine:
    """Get the default verification engine (Z3).

    Raises:
        MBAZ3Exception: If Z3 is not installed.
    """
    from mbarewrite.mba.backends.z3 import Z3VerificationEngine

    return Z3VerificationEngine()


__all__ = [
    "DEFAULT_OPTIONS",
    "TruthTableVerificationEngine",
    "VerificationEngine",
    "VerificationOptions",
    "get_default_engine",
]
