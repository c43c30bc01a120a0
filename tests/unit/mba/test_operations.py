import random

import pytest

from mbarewrite.errors import InvalidOperation, InvalidVariable, ParseError
from mbarewrite.mba.dsl import Var
from mbarewrite.mba.operations import RewriteOperationSet, random_boolean_term


class TestFromStrings:
    def test_parses_in_order(self):
        ops = RewriteOperationSet.from_strings(["x&y", "x ^ y", "~x"])
        assert len(ops) == 3
        assert ops[0] == Var("x") & Var("y")
        assert ops.normalized() == ["x & y", "x ^ y", "~x"]
        assert ops.variables() == ["x", "y"]

    def test_parse_error_is_wrapped(self):
        with pytest.raises(InvalidOperation) as excinfo:
            RewriteOperationSet.from_strings(["x & y", "x & (y"])
        error = excinfo.value
        assert error.index == 1
        assert error.text == "x & (y"
        assert isinstance(error.cause, ParseError)
        assert str(error).startswith("Rewrite operation 2 ('x & (y'): ")

    def test_arithmetic_rejected(self):
        with pytest.raises(InvalidOperation) as excinfo:
            RewriteOperationSet.from_strings(["x + y"])
        assert excinfo.value.index == 0

    def test_undeclared_variable(self):
        with pytest.raises(InvalidOperation) as excinfo:
            RewriteOperationSet.from_strings(["x", "x | z"], variables=["x", "y"])
        assert isinstance(excinfo.value.cause, InvalidVariable)
        assert excinfo.value.cause.name == "z"

    def test_no_declaration_accepts_anything(self):
        ops = RewriteOperationSet.from_strings(["a & b"])
        assert ops.variables() == ["a", "b"]


class TestGenerate:
    def test_distinct_terms(self, rng):
        ops = RewriteOperationSet.generate(["x", "y"], count=12, max_depth=3, rng=rng)
        assert len(ops) == 12
        assert len(set(ops)) == 12

    def test_depth_bound_and_no_ones(self, rng):
        ops = RewriteOperationSet.generate(["x", "y", "z"], count=20, max_depth=2, rng=rng)
        for term in ops:
            assert term.depth() <= 2
            assert "-1" not in str(term)
            assert set(term.variables()) <= {"x", "y", "z"}

    def test_seeded_generation_is_reproducible(self):
        first = RewriteOperationSet.generate(["x", "y"], 8, 3, random.Random(7))
        second = RewriteOperationSet.generate(["x", "y"], 8, 3, random.Random(7))
        assert first.normalized() == second.normalized()

    def test_depth_zero_draws_variables(self, rng):
        ops = RewriteOperationSet.generate(["x", "y"], count=2, max_depth=0, rng=rng)
        assert sorted(ops.normalized()) == ["x", "y"]

    def test_budget_exhausted(self, rng):
        with pytest.raises(InvalidOperation, match="Could only generate 1 distinct"):
            RewriteOperationSet.generate(["x"], count=2, max_depth=0, rng=rng)

    @pytest.mark.parametrize(
        "variables, count, depth",
        [([], 3, 2), (["x"], 0, 2), (["x"], 3, -1)],
    )
    def test_invalid_arguments(self, rng, variables, count, depth):
        with pytest.raises(InvalidOperation):
            RewriteOperationSet.generate(variables, count, depth, rng)


def test_random_boolean_term_depth(rng):
    for depth in range(4):
        for _ in range(20):
            assert random_boolean_term(["a", "b"], depth, rng).depth() <= depth
