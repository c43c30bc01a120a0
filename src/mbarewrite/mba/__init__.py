"""mbarewrite.mba - Linear Mixed Boolean-Arithmetic rewriting.

This package provides:
- Expression DSL and parser for linear MBA
- Truth tables over Z/2^w
- Linear congruence solving by diagonalization
- The rewriting engine and output printers
- Equivalence verification (truth tables, Z3)
"""

from .congruence import (
    AffineLattice,
    CongruenceSolver,
    ScalarCongruence,
    SolveResult,
    SolveTrace,
    diagonalize,
    solve_congruences,
    solve_scalar_congruence,
)
from .dsl import ONES, BooleanTerm, LinearCombination, Var
from .engine import (
    ObfuscationEngine,
    ObfuscationRequest,
    RewriteResult,
    obfuscate,
    rewrite_request,
)
from .matrix import Matrix
from .operations import RewriteOperationSet
from .parser import (
    normalize_operation,
    parse_boolean_term,
    parse_linear_combination,
    parse_system,
)
from .printer import Printer, TraceView, print_linear_combination, render_trace
from .truth_table import TruthTableEvaluator, declared_variables
from .verifier import (
    DEFAULT_OPTIONS,
    TruthTableVerificationEngine,
    VerificationEngine,
    VerificationOptions,
    get_default_engine,
)

# Public API
__all__ = [
    # DSL
    "Var",
    "ONES",
    "BooleanTerm",
    "LinearCombination",
    # Parsing
    "parse_linear_combination",
    "parse_boolean_term",
    "normalize_operation",
    "parse_system",
    # Truth tables
    "TruthTableEvaluator",
    "declared_variables",
    # Linear algebra
    "Matrix",
    "AffineLattice",
    "CongruenceSolver",
    "ScalarCongruence",
    "SolveResult",
    "SolveTrace",
    "diagonalize",
    "solve_congruences",
    "solve_scalar_congruence",
    # Rewriting
    "RewriteOperationSet",
    "ObfuscationEngine",
    "ObfuscationRequest",
    "RewriteResult",
    "obfuscate",
    "rewrite_request",
    # Output
    "Printer",
    "TraceView",
    "print_linear_combination",
    "render_trace",
    # Verification engine protocol and implementations
    "VerificationOptions",
    "DEFAULT_OPTIONS",
    "VerificationEngine",
    "TruthTableVerificationEngine",
    "get_default_engine",
]
