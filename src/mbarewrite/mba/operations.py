"""Rewrite operations: the boolean terms a target is re-expressed over."""

from __future__ import annotations

import random
from typing import Iterable, Iterator, Sequence

from mbarewrite.core import getLogger
from mbarewrite.errors import InvalidOperation, InvalidVariable, ParseError
from mbarewrite.mba.dsl import BooleanTerm, Var
from mbarewrite.mba.parser import parse_boolean_term

logger = getLogger(__name__)

# Draws allowed per requested term before generate() gives up
MAX_DRAWS_PER_TERM = 64


class RewriteOperationSet:
    """An ordered basis of boolean terms, one matrix column each.

    Nothing guarantees that a target can be expressed over the set; that is
    decided by the congruence solver.

    >>> ops = RewriteOperationSet.from_strings(["x&y", "x ^ y"])
    >>> ops.normalized()
    ['x & y', 'x ^ y']
    """

    __slots__ = ("_terms",)

    def __init__(self, terms: Iterable[BooleanTerm]):
        self._terms: tuple[BooleanTerm, ...] = tuple(terms)

    @classmethod
    def from_strings(
        cls, operations: Sequence[str], variables: Sequence[str] | None = None
    ) -> RewriteOperationSet:
        """Parse and validate operation strings.

        Args:
            operations: Boolean-only expressions, e.g. ``"x & ~y"``.
            variables: When given, every referenced variable must be one of
                these.

        Raises:
            InvalidOperation: Naming the (0-based) index of the first bad
                operation, with the :class:`ParseError` or
                :class:`InvalidVariable` as ``cause``.
        """
        declared = tuple(variables) if variables is not None else None
        terms = []
        for index, text in enumerate(operations):
            try:
                term = parse_boolean_term(text)
                if declared is not None:
                    for name in term.variables():
                        if name not in declared:
                            raise InvalidVariable(name, declared)
            except (ParseError, InvalidVariable) as e:
                raise InvalidOperation(str(e), index=index, text=text, cause=e) from e
            terms.append(term)
        return cls(terms)

    @classmethod
    def generate(
        cls,
        variables: Sequence[str],
        count: int,
        max_depth: int,
        rng: random.Random,
    ) -> RewriteOperationSet:
        """Draw ``count`` distinct random terms of depth at most ``max_depth``.

        Generated terms never contain the ONES constant.

        Raises:
            InvalidOperation: If there are no variables, or if ``count``
                distinct terms are not found within the draw budget.
        """
        if not variables:
            raise InvalidOperation(
                "No variables to build rewrite operations from; add auxiliary variables"
            )
        if count < 1:
            raise InvalidOperation(f"Rewrite operation count must be positive, got {count}")
        if max_depth < 0:
            raise InvalidOperation(f"Rewrite depth must not be negative, got {max_depth}")

        seen: dict[BooleanTerm, None] = {}
        budget = MAX_DRAWS_PER_TERM * count
        for _ in range(budget):
            seen.setdefault(random_boolean_term(variables, max_depth, rng))
            if len(seen) == count:
                break
        else:
            raise InvalidOperation(
                f"Could only generate {len(seen)} distinct operations out of {count} "
                f"over {len(variables)} variable(s) with depth {max_depth}"
            )
        logger.debug("Generated %d rewrite operations", count)
        return cls(seen)

    # Access -----------------------------------------------------------------
    @property
    def terms(self) -> tuple[BooleanTerm, ...]:
        return self._terms

    def variables(self) -> list[str]:
        names: set[str] = set()
        for term in self._terms:
            names.update(term.variables())
        return sorted(names)

    def normalized(self) -> list[str]:
        """Canonical text of every operation, in order."""
        return [str(term) for term in self._terms]

    def __iter__(self) -> Iterator[BooleanTerm]:
        return iter(self._terms)

    def __len__(self) -> int:
        return len(self._terms)

    def __getitem__(self, index: int) -> BooleanTerm:
        return self._terms[index]

    def __repr__(self) -> str:
        return f"RewriteOperationSet({self.normalized()!r})"


def random_boolean_term(
    variables: Sequence[str], max_depth: int, rng: random.Random
) -> BooleanTerm:
    """A random term: variable, NOT, AND, OR or XOR with equal probability.

    At depth 0 only variables are drawn.
    """
    if max_depth == 0:
        return Var(variables[rng.randrange(len(variables))])

    depth = max_depth - 1
    match rng.randrange(5):
        case 0:
            return Var(variables[rng.randrange(len(variables))])
        case 1:
            return ~random_boolean_term(variables, depth, rng)
        case 2:
            return random_boolean_term(variables, depth, rng) & random_boolean_term(variables, depth, rng)
        case 3:
            return random_boolean_term(variables, depth, rng) | random_boolean_term(variables, depth, rng)
        case _:
            return random_boolean_term(variables, depth, rng) ^ random_boolean_term(variables, depth, rng)


__all__ = [
    "MAX_DRAWS_PER_TERM",
    "RewriteOperationSet",
    "random_boolean_term",
]
