"""Exception hierarchy shared by every mbarewrite module.

User input problems (``ParseError``, ``InvalidVariable``, ``InvalidOperation``)
and the recoverable ``Unsolvable`` outcome derive directly from
:class:`MBAError`. Violations of engine invariants derive from
:class:`MBAInternalError` so that front ends can report them differently.
"""

from __future__ import annotations

import typing

if typing.TYPE_CHECKING:
    from mbarewrite.mba.congruence import SolveTrace


class MBAError(Exception):
    """Base class for all mbarewrite errors."""


class MBAInternalError(MBAError):
    """An engine invariant was violated. Indicates a bug, never user error."""


class ParseError(MBAError):
    """Malformed expression or operation text.

    Attributes:
        token: The offending token text (empty at end of input).
        position: Character offset of the offending token in the source.
    """

    def __init__(self, message: str, token: str = "", position: int | None = None):
        self.message = message
        self.token = token
        self.position = position
        super().__init__(self._format())

    def _format(self) -> str:
        if self.position is None:
            return self.message
        where = f"'{self.token}'" if self.token else "end of input"
        return f"{self.message} (at {where}, position {self.position})"


class InvalidVariable(MBAError):
    """A term references a variable that was not declared."""

    def __init__(self, name: str, declared: typing.Sequence[str] = ()):
        self.name = name
        self.declared = tuple(declared)
        known = ", ".join(self.declared) if self.declared else "none"
        super().__init__(f"Undeclared variable '{name}' (declared: {known})")


class InvalidOperation(MBAError):
    """A rewrite operation could not be accepted.

    ``cause`` holds the underlying :class:`ParseError` or
    :class:`InvalidVariable` when there is one.
    """

    def __init__(
        self,
        message: str,
        index: int | None = None,
        text: str | None = None,
        cause: MBAError | None = None,
    ):
        self.index = index
        self.text = text
        self.cause = cause
        if index is not None:
            message = f"Rewrite operation {index + 1} ({text!r}): {message}"
        super().__init__(message)


class Unsolvable(MBAError):
    """The linear system has no solution over Z/2^w.

    Attributes:
        row: Index of the transformed equation that failed, when known.
        trace: The partial :class:`~mbarewrite.mba.congruence.SolveTrace`
            collected up to the failure, for diagnostic rendering.
    """

    def __init__(
        self,
        message: str = "No solution",
        row: int | None = None,
        trace: SolveTrace | None = None,
    ):
        self.row = row
        self.trace = trace
        super().__init__(message)


class DimensionMismatch(MBAInternalError):
    """Matrix and vector shapes do not agree."""


class NotInvertible(MBAInternalError):
    """An even ring element was used where a unit was required."""


class MBAZ3Exception(MBAError):
    """Z3 is unavailable or could not decide a query."""
