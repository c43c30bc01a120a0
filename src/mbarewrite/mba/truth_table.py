"""Bitwise truth tables of boolean terms and linear combinations.

A boolean term over ``k`` variables is fully determined by its value on the
``2^k`` rows where every variable is either all-zeros or all-ones: each bit
position of a w-bit word is evaluated independently. Row ``r`` sets variable
``j`` to all-ones when bit ``j`` of ``r`` is set.

Example:
    >>> from mbarewrite.core.bits import BitVectorRing
    >>> from mbarewrite.mba.dsl import Var
    >>> x, y = Var("x"), Var("y")
    >>> TruthTableEvaluator(BitVectorRing(8), ["x", "y"]).truth_table(x & y)
    (0, 0, 0, 255)
"""

from __future__ import annotations

from typing import Iterable, Sequence

from mbarewrite.core.bits import BitVectorRing
from mbarewrite.errors import InvalidVariable
from mbarewrite.mba.dsl import BooleanTerm, LinearCombination

TruthTable = tuple[int, ...]


class TruthTableEvaluator:
    """Evaluates terms over the declared variables of one request.

    Args:
        ring: The ring fixing the width ``w``.
        variables: Declared variables; position ``j`` is driven by bit ``j``
            of the row index.
    """

    def __init__(self, ring: BitVectorRing, variables: Sequence[str]):
        self.ring = ring
        self.variables = tuple(variables)
        if len(set(self.variables)) != len(self.variables):
            raise ValueError(f"Duplicate variable in {self.variables}")
        self._index = {name: j for j, name in enumerate(self.variables)}

    @property
    def row_count(self) -> int:
        return 1 << len(self.variables)

    def evaluate(self, term: BooleanTerm, row: int) -> int:
        """Value of ``term`` on ``row``; always ``0`` or ``ring.ones``.

        Raises:
            InvalidVariable: If ``term`` references an undeclared variable.
        """
        if term is None:
            raise ValueError("Cannot evaluate None term")
        if term.is_leaf():
            return self._evaluate_leaf(term, row)

        left = self.evaluate(term.left, row)
        match term.operation:
            case "bnot":
                return self.ring.bitnot(left)
            case "and":
                return self.ring.bitand(left, self.evaluate(term.right, row))
            case "or":
                return self.ring.bitor(left, self.evaluate(term.right, row))
            case "xor":
                return self.ring.bitxor(left, self.evaluate(term.right, row))
            case _:
                raise ValueError(f"Unsupported boolean operation: {term.operation}")

    def _evaluate_leaf(self, term: BooleanTerm, row: int) -> int:
        if term.is_ones():
            return self.ring.ones
        try:
            j = self._index[term.name]
        except KeyError:
            raise InvalidVariable(term.name, self.variables) from None
        return self.ring.ones if (row >> j) & 1 else 0

    def truth_table(self, term: BooleanTerm) -> TruthTable:
        """Values of ``term`` on every row, in row order."""
        return tuple(self.evaluate(term, r) for r in range(self.row_count))

    def linear_truth_table(self, combination: LinearCombination) -> TruthTable:
        """``Σ coefficient · truth_table(term)`` reduced modulo 2^w."""
        values = [0] * self.row_count
        for coefficient, term in combination:
            coefficient = self.ring.reduce(coefficient)
            if coefficient == 0:
                # still validate variables
                self.truth_table(term)
                continue
            for r, value in enumerate(self.truth_table(term)):
                # value is 0 or -1, so the product is 0 or -coefficient
                if value:
                    values[r] = self.ring.sub(values[r], coefficient)
        return tuple(values)


def declared_variables(names: Iterable[str], aux_count: int = 0) -> list[str]:
    """``names`` sorted and de-duplicated, then ``aux0..aux{n-1}``.

    >>> declared_variables(["y", "x", "y"], aux_count=1)
    ['x', 'y', 'aux0']
    """
    declared = sorted(set(names))
    for i in range(aux_count):
        aux = f"aux{i}"
        if aux in declared:
            raise ValueError(f"Auxiliary variable name {aux!r} is already in use")
        declared.append(aux)
    return declared


__all__ = [
    "TruthTable",
    "TruthTableEvaluator",
    "declared_variables",
]
