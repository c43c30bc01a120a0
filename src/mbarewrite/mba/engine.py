"""Rewriting linear MBA expressions over a basis of boolean terms.

:class:`ObfuscationEngine` solves one rewrite; :func:`obfuscate` is the
request boundary that parses input, regenerates random bases on failure and
renders the result.

Example:
    >>> from mbarewrite.mba.dsl import Var
    >>> x, y = Var("x"), Var("y")
    >>> ops = RewriteOperationSet([x & y, x ^ y])
    >>> ObfuscationEngine(8).rewrite(x + y, ops).coefficients
    (2, 1)
"""

from __future__ import annotations

import dataclasses
import itertools
import random
from typing import Sequence

from mbarewrite.core import BitVectorRing, Width, getLogger
from mbarewrite.core.config import ObfuscationDefaults
from mbarewrite.errors import MBAInternalError, Unsolvable
from mbarewrite.mba.congruence import AffineLattice, CongruenceSolver
from mbarewrite.mba.dsl import LinearCombination
from mbarewrite.mba.matrix import Matrix
from mbarewrite.mba.operations import RewriteOperationSet
from mbarewrite.mba.parser import parse_linear_combination
from mbarewrite.mba.printer import Printer
from mbarewrite.mba.truth_table import TruthTableEvaluator, declared_variables
from mbarewrite.mba.verifier import VerificationOptions, get_default_engine

logger = getLogger(__name__)

_DEFAULTS = ObfuscationDefaults()
_request_ids = itertools.count(1)


@dataclasses.dataclass(frozen=True)
class RewriteResult:
    """A solved rewrite.

    Attributes:
        combination: ``Σ coefficient_j · operation_j`` in operation order,
            zero coefficients included.
        coefficients: The chosen solution, reduced into ``[0, 2^w)``.
        solution: The full solution lattice the coefficients were taken from.
        variables: The declared variables the truth tables were built over.
    """

    combination: LinearCombination
    coefficients: tuple[int, ...]
    solution: AffineLattice
    variables: tuple[str, ...]


class ObfuscationEngine:
    """Rewrites a target over a given set of operations at a fixed width.

    Args:
        width: Bit width of the ring, one of 8, 16, 32, 64, 128.
        rng: Random source for kernel randomization. A fresh unseeded
            :class:`random.Random` is used when omitted.
    """

    def __init__(self, width: int | Width, rng: random.Random | None = None):
        self.ring = BitVectorRing(width)
        self.rng = rng if rng is not None else random.Random()

    @property
    def width(self) -> int:
        return self.ring.width

    def build_system(
        self,
        target: LinearCombination,
        operations: RewriteOperationSet,
        variables: Sequence[str],
    ) -> tuple[Matrix, tuple[int, ...]]:
        """The matrix of operation truth tables and the target's truth table."""
        evaluator = TruthTableEvaluator(self.ring, variables)
        rhs = evaluator.linear_truth_table(target)
        columns = [evaluator.truth_table(term) for term in operations]
        return Matrix.from_columns(self.ring, columns, evaluator.row_count), rhs

    def rewrite(
        self,
        target: LinearCombination,
        operations: RewriteOperationSet,
        randomize: bool = False,
        variables: Sequence[str] | None = None,
    ) -> RewriteResult:
        """Express ``target`` as a linear combination of ``operations``.

        Args:
            target: The expression to rewrite.
            operations: One matrix column per operation.
            randomize: Add a uniformly random kernel element to the
                particular solution. Without it the result is reproducible.
            variables: Declared variables; defaults to the sorted union of
                the variables of ``target`` and ``operations``.

        Raises:
            Unsolvable: If ``target`` is not in the span of ``operations``.
            InvalidVariable: If a term uses an undeclared variable.
        """
        if variables is None:
            variables = sorted(set(target.variables()) | set(operations.variables()))
        variables = tuple(variables)

        matrix, rhs = self.build_system(target, operations, variables)
        logger.debug(
            "Solving %dx%d system over %d variable(s)", matrix.rows, matrix.cols, len(variables)
        )
        lattice = CongruenceSolver(matrix, rhs).solve().lattice

        if randomize:
            coefficients = lattice.sample(self.rng)
        else:
            coefficients = lattice.offset

        combination = LinearCombination(zip(coefficients, operations))
        return RewriteResult(combination, tuple(coefficients), lattice, variables)


# =============================================================================
# Request boundary
# =============================================================================


@dataclasses.dataclass(frozen=True)
class ObfuscationRequest:
    """One obfuscation request as received from a front end.

    When ``operations`` is empty, ``rewrite_count`` random operations of
    depth ``rewrite_depth`` are generated, up to ``max_tries`` times.
    """

    expression: str
    width: int = _DEFAULTS.width
    operations: tuple[str, ...] = ()
    randomize: bool = _DEFAULTS.randomize
    printer: str = _DEFAULTS.printer
    rewrite_count: int = _DEFAULTS.rewrite_count
    rewrite_depth: int = _DEFAULTS.rewrite_depth
    aux_vars: int = _DEFAULTS.aux_vars
    seed: int | None = None
    max_tries: int = _DEFAULTS.max_tries
    verify: bool = False

    @classmethod
    def from_defaults(
        cls, expression: str, defaults: ObfuscationDefaults, **overrides
    ) -> ObfuscationRequest:
        """Build a request from configured defaults, then ``overrides``.

        ``None`` overrides are ignored.
        """
        values = defaults.to_dict()
        values.update({k: v for k, v in overrides.items() if v is not None})
        if "operations" in values:
            values["operations"] = tuple(values["operations"])
        return cls(expression=expression, **values)


def rewrite_request(request: ObfuscationRequest) -> tuple[RewriteResult, LinearCombination]:
    """Solve ``request`` without rendering it.

    Returns:
        The rewrite result and the parsed target.

    Raises:
        Unsolvable: If explicit operations cannot express the target, or no
            generated operation set worked within ``max_tries`` attempts.
    """
    width = Width.from_value(request.width)
    rng = random.Random(request.seed)
    engine = ObfuscationEngine(width, rng)
    target = parse_linear_combination(request.expression)

    if request.operations:
        operations = RewriteOperationSet.from_strings(request.operations)
        variables = declared_variables(
            target.variables() + operations.variables(), request.aux_vars
        )
        return engine.rewrite(target, operations, request.randomize, variables), target

    variables = declared_variables(target.variables(), request.aux_vars)
    for attempt in range(1, request.max_tries + 1):
        operations = RewriteOperationSet.generate(
            variables, request.rewrite_count, request.rewrite_depth, rng
        )
        try:
            return engine.rewrite(target, operations, request.randomize, variables), target
        except Unsolvable:
            if logger.debug_on:
                logger.debug("Attempt %d: operations %s", attempt, operations.normalized())
            logger.warning(
                "Random operation set %d/%d cannot express the target, regenerating",
                attempt,
                request.max_tries,
            )
    raise Unsolvable(
        f"Failed to rewrite the expression with {request.max_tries} random operation sets"
    )


def obfuscate(request: ObfuscationRequest) -> str:
    """Rewrite and render one request.

    Raises:
        ParseError, InvalidOperation, InvalidVariable: Bad input.
        Unsolvable: See :func:`rewrite_request`.
        MBAInternalError: If ``request.verify`` is set and the result is
            not equivalent to the target.
    """
    printer = Printer.from_name(request.printer)
    width = Width.from_value(request.width)
    logger.update_request(f"req{next(_request_ids)}", int(width))
    try:
        logger.info("Obfuscating %r at %d bits", request.expression, int(width))
        result, target = rewrite_request(request)
        output = result.combination.collect(BitVectorRing(width))
        if request.verify:
            _verify(target, output, result.variables, int(width))
        return printer.print_linear_combination(output, width, result.variables)
    finally:
        logger.reset_request()


def _verify(
    target: LinearCombination,
    output: LinearCombination,
    variables: Sequence[str],
    width: int,
) -> None:
    engine = get_default_engine()
    options = VerificationOptions(bit_width=width)
    equivalent, counterexample = engine.prove_equivalence(target, output, options=options)
    if not equivalent:
        raise MBAInternalError(
            f"Rewritten expression is not equivalent to the target: {output} "
            f"(counterexample {counterexample})"
        )
    logger.info("Verified equivalence over %d variable(s)", len(variables))


__all__ = [
    "ObfuscationEngine",
    "ObfuscationRequest",
    "RewriteResult",
    "obfuscate",
    "rewrite_request",
]
