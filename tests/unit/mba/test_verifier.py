"""Tests for truth-table and Z3 equivalence checking."""

import pytest

from mbarewrite.errors import MBAZ3Exception
from mbarewrite.mba.dsl import LinearCombination, Var
from mbarewrite.mba.verifier import (
    DEFAULT_OPTIONS,
    TruthTableVerificationEngine,
    VerificationEngine,
    VerificationOptions,
)

x, y, z = Var("x"), Var("y"), Var("z")

EQUIVALENT = [
    (x + y, 2 * (x & y) + (x ^ y)),
    (x ^ y, (x | y) - (x & y)),
    (x - y, x + ~y + 1),
    (LinearCombination.from_term(~x), -x - 1),
    (x & ~y, x - (x & y)),
]

NOT_EQUIVALENT = [
    (x + y, x | y),
    (x ^ y, (x | y) + (x & y)),
    (x - y, x + ~y),
]


class TestTruthTableVerification:
    def test_implements_protocol(self):
        assert isinstance(TruthTableVerificationEngine(), VerificationEngine)

    @pytest.mark.parametrize("lhs, rhs", EQUIVALENT)
    def test_equivalent(self, lhs, rhs):
        assert TruthTableVerificationEngine().prove_equivalence(lhs, rhs) == (True, None)

    @pytest.mark.parametrize("lhs, rhs", NOT_EQUIVALENT)
    def test_counterexample(self, lhs, rhs):
        options = VerificationOptions(bit_width=8)
        equivalent, counterexample = TruthTableVerificationEngine().prove_equivalence(
            lhs, rhs, options
        )
        assert not equivalent
        assert set(counterexample.values()) <= {0, 255}

    def test_boolean_terms_accepted(self):
        engine = TruthTableVerificationEngine()
        assert engine.prove_equivalence(~(x | y), ~x & ~y)[0]
        assert not engine.prove_equivalence(~(x | y), ~x | ~y)[0]

    def test_default_options(self):
        assert DEFAULT_OPTIONS.bit_width == 32
        assert DEFAULT_OPTIONS.timeout_ms == 0


class TestZ3Verification:
    @pytest.fixture(autouse=True)
    def _z3(self):
        pytest.importorskip("z3")

    @pytest.mark.z3
    @pytest.mark.parametrize("lhs, rhs", EQUIVALENT)
    def test_equivalent(self, lhs, rhs):
        from mbarewrite.mba.backends.z3 import prove_equivalence

        assert prove_equivalence(lhs, rhs, bit_width=8) == (True, None)

    @pytest.mark.z3
    @pytest.mark.parametrize("lhs, rhs", NOT_EQUIVALENT)
    def test_counterexample_is_real(self, lhs, rhs):
        from mbarewrite.mba.backends.z3 import prove_equivalence

        equivalent, counterexample = prove_equivalence(lhs, rhs, bit_width=16)
        assert not equivalent
        assert set(counterexample) <= {"x", "y"}

    @pytest.mark.z3
    def test_engine_uses_options_width(self):
        from mbarewrite.mba.backends.z3 import Z3VerificationEngine

        engine = Z3VerificationEngine()
        assert isinstance(engine, VerificationEngine)
        # 256*x vanishes at 8 bits only
        lhs, rhs = 128 * (x + x), LinearCombination()
        assert engine.prove_equivalence(lhs, rhs, VerificationOptions(bit_width=8))[0]
        assert not engine.prove_equivalence(lhs, rhs, VerificationOptions(bit_width=16))[0]

    @pytest.mark.z3
    def test_visitor_shares_variables(self):
        from mbarewrite.mba.backends.z3 import Z3VerificationVisitor

        visitor = Z3VerificationVisitor(bit_width=8)
        visitor.visit(3 * (x & ~y))
        visitor.visit(z | -1)
        assert sorted(visitor.get_variables()) == ["x", "y", "z"]

    @pytest.mark.z3
    def test_visitor_rejects_none(self):
        from mbarewrite.mba.backends.z3 import Z3VerificationVisitor

        with pytest.raises(ValueError):
            Z3VerificationVisitor().visit(None)


def test_z3_missing_raises(monkeypatch):
    pytest.importorskip("z3")
    from mbarewrite.mba.backends import z3 as backend

    monkeypatch.setattr(backend, "Z3_INSTALLED", False)
    with pytest.raises(MBAZ3Exception):
        backend.Z3VerificationEngine()
    with pytest.raises(MBAZ3Exception):
        backend.prove_equivalence(x, y)
