"""Tokenizer and parser for linear MBA expressions.

Grammar (C-like precedence, all binary operators left associative)::

    expr    := expr '|' expr            (1)
             | expr '^' expr            (2)
             | expr '&' expr            (3)
             | expr ('+' | '-') expr    (4)
             | expr '*' expr            (5)
             | ('~' | '!' | '-') expr   (unary)
             | '(' expr ')' | NUMBER | NAME

Parsing happens in two stages: text is first turned into a small syntax tree
(:class:`Node`), which is then lowered either to a
:class:`~mbarewrite.mba.dsl.LinearCombination` (targets) or to a
:class:`~mbarewrite.mba.dsl.BooleanTerm` (rewrite operations). Lowering
rejects anything that is not linear, e.g. ``x * y`` or ``(x + y) & z``.
"""

from __future__ import annotations

import dataclasses
import re
from typing import Iterator

from mbarewrite.core import getLogger
from mbarewrite.core.bits import BitVectorRing
from mbarewrite.errors import ParseError
from mbarewrite.mba.dsl import ONES, BooleanTerm, LinearCombination, Var
from mbarewrite.mba.matrix import Matrix

logger = getLogger(__name__)

_NUMBER = r"0[xX][0-9a-fA-F]+|\d+"
_ENTRY_RE = re.compile(rf"-?(?:{_NUMBER})")

_TOKEN_RE = re.compile(
    rf"""
    (?P<ws>\s+)
  | (?P<number>{_NUMBER})
  | (?P<name>[A-Za-z_][A-Za-z0-9_]*)
  | (?P<op>[-+*&|^~!()])
    """,
    re.VERBOSE,
)

# Binding power of every binary operator
_BINARY_PRECEDENCE = {
    "|": 1,
    "^": 2,
    "&": 3,
    "+": 4,
    "-": 4,
    "*": 5,
}
_UNARY_PRECEDENCE = 6

# Deeper syntax trees are rejected before they exhaust the interpreter stack
MAX_NESTING = 256


@dataclasses.dataclass(frozen=True, slots=True)
class Token:
    kind: str  # "number", "name", "op" or "end"
    text: str
    position: int


@dataclasses.dataclass(frozen=True, slots=True)
class Node:
    """Syntax tree node produced by :func:`parse_tree`.

    ``op`` is one of "num", "var", "neg", "not", "add", "sub", "mul",
    "and", "or", "xor". ``token`` is kept for error messages. ``height`` is
    the number of nodes on the longest path down to a leaf.
    """

    op: str
    token: Token
    args: tuple["Node", ...] = ()
    value: int | None = None
    name: str | None = None
    height: int = 1


_BINARY_NODES = {
    "|": "or",
    "^": "xor",
    "&": "and",
    "+": "add",
    "-": "sub",
    "*": "mul",
}


def _number_value(text: str) -> int:
    negative = text.startswith("-")
    digits = text.lstrip("-")
    value = int(digits, 16 if digits[:2] in ("0x", "0X") else 10)
    return -value if negative else value


def tokenize(text: str) -> Iterator[Token]:
    """Split ``text`` into tokens, ending with an "end" token.

    Raises:
        ParseError: On a character that starts no token.
    """
    pos = 0
    while pos < len(text):
        match = _TOKEN_RE.match(text, pos)
        if match is None:
            raise ParseError("Unrecognized character", text[pos], pos)
        kind = match.lastgroup
        if kind != "ws":
            yield Token(kind, match.group(), pos)
        pos = match.end()
    yield Token("end", "", len(text))


class _Parser:
    """Precedence-climbing parser over a token list."""

    def __init__(self, text: str):
        self.tokens = list(tokenize(text))
        self.index = 0
        self.level = 0

    def peek(self) -> Token:
        return self.tokens[self.index]

    def advance(self) -> Token:
        token = self.tokens[self.index]
        self.index += 1
        return token

    def parse(self) -> Node:
        node = self.expression(0)
        token = self.peek()
        if token.kind != "end":
            if token.text == ")":
                raise ParseError("Unbalanced closing bracket", token.text, token.position)
            raise ParseError("Unexpected token", token.text, token.position)
        return node

    def node(self, op: str, token: Token, args: tuple[Node, ...]) -> Node:
        height = 1 + max(arg.height for arg in args)
        if height > MAX_NESTING:
            raise ParseError("Expression nested too deeply", token.text, token.position)
        return Node(op, token, args, height=height)

    def expression(self, min_precedence: int) -> Node:
        self.level += 1
        try:
            if self.level > MAX_NESTING:
                token = self.peek()
                raise ParseError("Expression nested too deeply", token.text, token.position)
            return self._expression(min_precedence)
        finally:
            self.level -= 1

    def _expression(self, min_precedence: int) -> Node:
        node = self.primary()
        while True:
            token = self.peek()
            if token.kind != "op" or token.text not in _BINARY_PRECEDENCE:
                return node
            precedence = _BINARY_PRECEDENCE[token.text]
            if precedence <= min_precedence:
                return node
            self.advance()
            rhs = self.expression(precedence)
            node = self.node(_BINARY_NODES[token.text], token, (node, rhs))

    def primary(self) -> Node:
        token = self.advance()
        if token.kind == "number":
            return Node("num", token, value=_number_value(token.text))
        if token.kind == "name":
            return Node("var", token, name=token.text)
        if token.text == "(":
            node = self.expression(0)
            closing = self.advance()
            if closing.text != ")":
                raise ParseError("Closing bracket missing", closing.text, closing.position)
            return node
        if token.text in ("~", "!"):
            return self.node("not", token, (self.expression(_UNARY_PRECEDENCE - 1),))
        if token.text == "-":
            return self.node("neg", token, (self.expression(_UNARY_PRECEDENCE - 1),))
        if token.kind == "end":
            raise ParseError("Unexpected end of input", "", token.position)
        raise ParseError("Expected an operand", token.text, token.position)


def parse_tree(text: str) -> Node:
    """Parse ``text`` into a syntax tree without checking linearity.

    Raises:
        ParseError: On malformed input, or when operators and brackets nest
            deeper than :data:`MAX_NESTING`.
    """
    return _Parser(text).parse()


# =============================================================================
# Lowering
# =============================================================================


def _constant_value(node: Node) -> int | None:
    """Fold pure integer arithmetic, or return None if ``node`` has variables."""
    match node.op:
        case "num":
            return node.value
        case "neg":
            inner = _constant_value(node.args[0])
            return None if inner is None else -inner
        case "add" | "sub" | "mul":
            lhs = _constant_value(node.args[0])
            rhs = _constant_value(node.args[1])
            if lhs is None or rhs is None:
                return None
            if node.op == "add":
                return lhs + rhs
            if node.op == "sub":
                return lhs - rhs
            return lhs * rhs
        case _:
            return None


def to_boolean_term(node: Node) -> BooleanTerm:
    """Lower a syntax tree to a boolean term.

    Only variables, ``-1``, ``~``/``!``, ``&``, ``|`` and ``^`` are allowed.

    Raises:
        ParseError: If arithmetic or a constant other than -1 appears.
    """
    match node.op:
        case "var":
            return Var(node.name)
        case "not":
            return ~to_boolean_term(node.args[0])
        case "and":
            return to_boolean_term(node.args[0]) & to_boolean_term(node.args[1])
        case "or":
            return to_boolean_term(node.args[0]) | to_boolean_term(node.args[1])
        case "xor":
            return to_boolean_term(node.args[0]) ^ to_boolean_term(node.args[1])
        case _:
            if _constant_value(node) == -1:
                return ONES
            if node.op in ("num", "neg"):
                raise ParseError(
                    "Only the constant -1 may appear inside a boolean term",
                    node.token.text,
                    node.token.position,
                )
            raise ParseError(
                "Arithmetic is not allowed inside a boolean term",
                node.token.text,
                node.token.position,
            )


def to_linear_combination(node: Node) -> LinearCombination:
    """Lower a syntax tree to a linear combination of boolean terms.

    Raises:
        ParseError: If the expression is not linear in boolean terms.
    """
    constant = _constant_value(node)
    if constant is not None:
        return LinearCombination.constant(constant)

    match node.op:
        case "add":
            return to_linear_combination(node.args[0]) + to_linear_combination(node.args[1])
        case "sub":
            return to_linear_combination(node.args[0]) - to_linear_combination(node.args[1])
        case "neg":
            return -to_linear_combination(node.args[0])
        case "mul":
            lhs, rhs = node.args
            factor = _constant_value(lhs)
            if factor is not None:
                return to_linear_combination(rhs) * factor
            factor = _constant_value(rhs)
            if factor is not None:
                return to_linear_combination(lhs) * factor
            raise ParseError(
                "Product of two non-constant expressions is not linear",
                node.token.text,
                node.token.position,
            )
        case _:
            return LinearCombination.from_term(to_boolean_term(node))


def parse_linear_combination(text: str) -> LinearCombination:
    """Parse a linear MBA expression such as ``3*(x & ~y) - 2*~x + 7``.

    >>> str(parse_linear_combination("x + y"))
    'x + y'
    """
    if not text.strip():
        raise ParseError("Empty expression")
    combination = to_linear_combination(parse_tree(text))
    logger.debug("Parsed %r as %s", text, combination)
    return combination


def parse_boolean_term(text: str) -> BooleanTerm:
    """Parse a boolean-only term such as ``x & ~(y | z)``.

    >>> str(parse_boolean_term("x&y^z"))
    '(x & y) ^ z'
    """
    if not text.strip():
        raise ParseError("Empty expression")
    return to_boolean_term(parse_tree(text))


def normalize_operation(text: str) -> str:
    """Canonical text of a rewrite operation.

    Redundant brackets and whitespace are removed and ``!`` is written as
    ``~``; operand order is preserved.

    >>> normalize_operation("(( x&y ))^ !z")
    '(x & y) ^ ~z'
    """
    return str(parse_boolean_term(text))


def parse_system(text: str, ring: BitVectorRing) -> tuple[Matrix, tuple[int, ...]]:
    """Parse an augmented matrix ``[A | b]``, one equation per line.

    Every non-blank line holds the coefficients of one congruence followed
    by its right-hand side, separated by whitespace. Entries are decimal or
    ``0x`` hex and may be negative.

    >>> from mbarewrite.core.bits import BitVectorRing
    >>> a, b = parse_system("2 4 6\\n1 -1 0", BitVectorRing(8))
    >>> a.shape, b
    ((2, 2), (6, 0))
    """
    rows: list[list[int]] = []
    offset = 0
    for line in text.splitlines(keepends=True):
        entries = []
        for match in re.finditer(r"\S+", line):
            token = match.group()
            if not _ENTRY_RE.fullmatch(token):
                raise ParseError(
                    f"Failed to parse entry ({len(rows) + 1}, {len(entries) + 1}).",
                    token,
                    offset + match.start(),
                )
            entries.append(_number_value(token))
        offset += len(line)
        if not entries:
            continue
        if rows and len(entries) != len(rows[0]):
            raise ParseError(
                f"Row {len(rows) + 1} has a different number of entries than the first row."
            )
        rows.append(entries)

    if not rows:
        raise ParseError("Empty matrix.")
    if len(rows[0]) < 2:
        raise ParseError("Every row needs at least one coefficient and a right-hand side.")

    matrix = Matrix(ring, (row[:-1] for row in rows), len(rows[0]) - 1)
    rhs = tuple(ring.reduce(row[-1]) for row in rows)
    return matrix, rhs
