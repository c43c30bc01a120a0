"""A small DSL for linear MBA expressions.

Boolean terms are pure tree structures built with Python's bitwise operators;
multiplying a term by an int or adding terms together yields a
:class:`LinearCombination`.

Example:
    >>> x, y = Var("x"), Var("y")
    >>> target = x + y
    >>> rewritten = 2 * (x & y) + (x ^ y)
    >>> str(rewritten)
    '2*(x & y) + (x ^ y)'
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Iterable, Iterator

if TYPE_CHECKING:
    from mbarewrite.core.bits import BitVectorRing

BINARY_OPERATIONS = ("and", "or", "xor")
UNARY_OPERATIONS = ("bnot",)

_OPERATOR_SYMBOLS = {"and": "&", "or": "|", "xor": "^"}


class BooleanTerm:
    """A width-independent boolean term, evaluated bitwise.

    Attributes:
        operation: "and", "or", "xor", "bnot", or None for leaves.
        left: First operand (the only operand for "bnot").
        right: Second operand of binary operations.
        name: Variable name for variable leaves, None for the ONES leaf.

    Terms are immutable and compare structurally.
    """

    __slots__ = ("operation", "left", "right", "name", "_key")

    def __init__(
        self,
        operation: str | None = None,
        left: BooleanTerm | None = None,
        right: BooleanTerm | None = None,
        name: str | None = None,
    ):
        if operation is not None and operation not in BINARY_OPERATIONS + UNARY_OPERATIONS:
            raise ValueError(f"Unknown boolean operation: {operation}")
        object.__setattr__(self, "operation", operation)
        object.__setattr__(self, "left", left)
        object.__setattr__(self, "right", right)
        object.__setattr__(self, "name", name)
        object.__setattr__(self, "_key", None)

    def __setattr__(self, key, value):
        raise AttributeError("BooleanTerm is immutable")

    # Structure --------------------------------------------------------------
    def is_leaf(self) -> bool:
        return self.operation is None

    def is_variable(self) -> bool:
        return self.is_leaf() and self.name is not None

    def is_ones(self) -> bool:
        """The all-ones constant ``-1``."""
        return self.is_leaf() and self.name is None

    def is_unary(self) -> bool:
        """Is the top-most operator unary (or is this a leaf)."""
        return self.is_leaf() or self.operation == "bnot"

    def variables(self) -> list[str]:
        """Sorted, de-duplicated variable names occurring in the term."""
        names: set[str] = set()
        self._collect_variables(names)
        return sorted(names)

    def _collect_variables(self, names: set[str]) -> None:
        if self.is_variable():
            names.add(self.name)
        if self.left is not None:
            self.left._collect_variables(names)
        if self.right is not None:
            self.right._collect_variables(names)

    def depth(self) -> int:
        """Number of operators on the longest root-to-leaf path."""
        if self.is_leaf():
            return 0
        right = self.right.depth() if self.right is not None else 0
        return 1 + max(self.left.depth(), right)

    # Boolean operators ------------------------------------------------------
    def __and__(self, other: BooleanTerm) -> BooleanTerm:
        return BooleanTerm("and", self, _as_term(other))

    def __or__(self, other: BooleanTerm) -> BooleanTerm:
        return BooleanTerm("or", self, _as_term(other))

    def __xor__(self, other: BooleanTerm) -> BooleanTerm:
        return BooleanTerm("xor", self, _as_term(other))

    def __invert__(self) -> BooleanTerm:
        return BooleanTerm("bnot", self)

    # Lifting into linear combinations ---------------------------------------
    def __mul__(self, factor: int) -> LinearCombination:
        if not isinstance(factor, int):
            return NotImplemented
        return LinearCombination([(factor, self)])

    __rmul__ = __mul__

    def __add__(self, other) -> LinearCombination:
        return LinearCombination.from_term(self) + other

    __radd__ = __add__

    def __sub__(self, other) -> LinearCombination:
        return LinearCombination.from_term(self) - other

    def __rsub__(self, other) -> LinearCombination:
        return _as_combination(other) - self

    def __neg__(self) -> LinearCombination:
        return LinearCombination([(-1, self)])

    # Identity ---------------------------------------------------------------
    def key(self) -> str:
        """Canonical text, used for hashing and syntactic distinctness."""
        if self._key is None:
            object.__setattr__(self, "_key", str(self))
        return self._key

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, BooleanTerm):
            return NotImplemented
        return self.key() == other.key()

    def __hash__(self) -> int:
        return hash(self.key())

    def __str__(self) -> str:
        if self.is_ones():
            return "-1"
        if self.is_variable():
            return self.name
        if self.operation == "bnot":
            inner = str(self.left)
            return f"~{inner}" if self.left.is_unary() else f"~({inner})"
        return f"{_safe(self.left)} {_OPERATOR_SYMBOLS[self.operation]} {_safe(self.right)}"

    def __repr__(self) -> str:
        return f"BooleanTerm({str(self)!r})"


def _safe(term: BooleanTerm) -> str:
    text = str(term)
    return text if term.is_unary() else f"({text})"


def _as_term(value) -> BooleanTerm:
    if isinstance(value, BooleanTerm):
        return value
    if value == -1:
        return ONES
    raise TypeError(f"Cannot use {value!r} as a boolean term")


def Var(name: str) -> BooleanTerm:
    """Create a boolean variable.

    >>> Var("x").is_variable()
    True
    """
    return BooleanTerm(name=name)


# The all-ones constant, written "-1" in expressions
ONES = BooleanTerm()


class LinearCombination:
    """An ordered sum ``Σ coefficient_i * term_i``.

    Coefficients are plain ints. Order is preserved and duplicates are
    allowed until :meth:`collect` merges them, reducing modulo 2^w when given
    a ring.
    """

    __slots__ = ("_items",)

    def __init__(self, items: Iterable[tuple[int, BooleanTerm]] = ()):
        self._items: tuple[tuple[int, BooleanTerm], ...] = tuple(
            (int(c), t) for c, t in items
        )

    @classmethod
    def from_term(cls, term: BooleanTerm, coefficient: int = 1) -> LinearCombination:
        return cls([(coefficient, term)])

    @classmethod
    def constant(cls, value: int) -> LinearCombination:
        """The constant function ``value``; ``c == -c * (-1)``."""
        return cls([(-value, ONES)])

    # Access -----------------------------------------------------------------
    @property
    def items(self) -> tuple[tuple[int, BooleanTerm], ...]:
        return self._items

    @property
    def coefficients(self) -> list[int]:
        return [c for c, _ in self._items]

    @property
    def terms(self) -> list[BooleanTerm]:
        return [t for _, t in self._items]

    def variables(self) -> list[str]:
        names: set[str] = set()
        for _, term in self._items:
            term._collect_variables(names)
        return sorted(names)

    def __iter__(self) -> Iterator[tuple[int, BooleanTerm]]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    # Algebra ----------------------------------------------------------------
    def __add__(self, other) -> LinearCombination:
        other = _as_combination(other)
        return LinearCombination(self._items + other._items)

    __radd__ = __add__

    def __sub__(self, other) -> LinearCombination:
        return self + (-_as_combination(other))

    def __rsub__(self, other) -> LinearCombination:
        return _as_combination(other) - self

    def __neg__(self) -> LinearCombination:
        return LinearCombination((-c, t) for c, t in self._items)

    def __mul__(self, factor: int) -> LinearCombination:
        if not isinstance(factor, int):
            return NotImplemented
        return LinearCombination((factor * c, t) for c, t in self._items)

    __rmul__ = __mul__

    def collect(self, ring: BitVectorRing | None = None) -> LinearCombination:
        """Merge equal terms (first occurrence keeps its place) and drop zeros."""
        merged: dict[BooleanTerm, int] = {}
        for c, t in self._items:
            merged[t] = merged.get(t, 0) + c
        items = []
        for t, c in merged.items():
            if ring is not None:
                c = ring.reduce(c)
            if c != 0:
                items.append((c, t))
        return LinearCombination(items)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, LinearCombination):
            return NotImplemented
        return self._items == other._items

    def __hash__(self) -> int:
        return hash(self._items)

    def __str__(self) -> str:
        parts: list[str] = []
        for c, t in self._items:
            if c == 0:
                continue
            sign = "-" if c < 0 else "+"
            c = abs(c)
            body = _safe(t) if c == 1 else f"{c}*{_safe(t)}"
            if not parts:
                parts.append(body if sign == "+" else f"-{body}")
            else:
                parts.append(f" {sign} {body}")
        return "".join(parts) if parts else "0"

    def __repr__(self) -> str:
        return f"LinearCombination({str(self)!r})"


def _as_combination(value) -> LinearCombination:
    if isinstance(value, LinearCombination):
        return value
    if isinstance(value, BooleanTerm):
        return LinearCombination.from_term(value)
    if isinstance(value, int):
        return LinearCombination.constant(value)
    raise TypeError(f"Cannot use {value!r} in a linear combination")
