"""Tests for expression, operation and system parsing."""

import pytest

from mbarewrite.core.bits import BitVectorRing
from mbarewrite.errors import ParseError
from mbarewrite.mba.dsl import ONES, Var
from mbarewrite.mba.parser import (
    MAX_NESTING,
    normalize_operation,
    parse_boolean_term,
    parse_linear_combination,
    parse_system,
    parse_tree,
    tokenize,
)


class TestTokenize:
    def test_kinds_and_positions(self):
        tokens = list(tokenize("3*(x & 0x1F)"))
        assert [t.kind for t in tokens] == [
            "number", "op", "op", "name", "op", "number", "op", "end",
        ]
        assert tokens[3].text == "x"
        assert tokens[3].position == 3
        assert tokens[-1].position == 12

    def test_unrecognized_character(self):
        with pytest.raises(ParseError) as excinfo:
            list(tokenize("x $ y"))
        assert excinfo.value.token == "$"
        assert excinfo.value.position == 2
        assert str(excinfo.value) == "Unrecognized character (at '$', position 2)"


class TestPrecedence:
    @pytest.mark.parametrize(
        "text, expected",
        [
            ("x & y ^ z", "(x & y) ^ z"),
            ("x ^ y & z", "x ^ (y & z)"),
            ("x | y ^ z", "x | (y ^ z)"),
            ("x ^ y | z", "(x ^ y) | z"),
            ("~x & y", "~x & y"),
            ("~(x & y)", "~(x & y)"),
            ("!x | !!y", "~x | ~~y"),
            ("x & -1", "x & -1"),
            ("((x))", "x"),
        ],
    )
    def test_boolean_terms(self, text, expected):
        assert str(parse_boolean_term(text)) == expected

    def test_left_associative(self):
        term = parse_boolean_term("x & y & z")
        assert term.left == (Var("x") & Var("y"))
        assert term.right == Var("z")

    def test_arithmetic_binds_tighter_than_bitwise(self):
        tree = parse_tree("x + y & z")
        assert tree.op == "and"
        assert tree.args[0].op == "add"

    def test_multiplication_binds_tighter_than_addition(self):
        tree = parse_tree("1 + 2 * x")
        assert tree.op == "add"
        assert tree.args[1].op == "mul"

    def test_unary_minus_binds_tightest(self):
        tree = parse_tree("-x * 3")
        assert tree.op == "mul"
        assert tree.args[0].op == "neg"


class TestLinearCombinations:
    def test_simple_sum(self):
        lc = parse_linear_combination("x + y")
        assert lc.items == ((1, Var("x")), (1, Var("y")))

    def test_coefficients_on_either_side(self):
        lc = parse_linear_combination("3*(x & ~y) - ~x*2")
        assert lc.coefficients == [3, -2]
        assert lc.terms == [Var("x") & ~Var("y"), ~Var("x")]

    def test_constants_fold_into_ones(self):
        lc = parse_linear_combination("x + 2*3 - 1")
        assert lc.coefficients == [1, -6, 1]
        assert lc.terms == [Var("x"), ONES, ONES]

    def test_hex_constants(self):
        lc = parse_linear_combination("0x10 * x")
        assert lc.coefficients == [16]

    def test_leading_zero_decimal(self):
        assert parse_linear_combination("007*x").coefficients == [7]

    def test_negated_group(self):
        lc = parse_linear_combination("-(x - y)")
        assert lc.coefficients == [-1, 1]

    def test_boolean_minus_one(self):
        lc = parse_linear_combination("x | -1")
        assert lc.terms == [Var("x") | ONES]

    def test_non_linear_product_rejected(self):
        with pytest.raises(ParseError) as excinfo:
            parse_linear_combination("x * y")
        assert "not linear" in excinfo.value.message
        assert excinfo.value.token == "*"
        assert excinfo.value.position == 2

    def test_arithmetic_inside_boolean_rejected(self):
        with pytest.raises(ParseError, match="Arithmetic is not allowed"):
            parse_linear_combination("(x + y) & z")

    def test_constant_inside_boolean_rejected(self):
        with pytest.raises(ParseError, match="Only the constant -1"):
            parse_linear_combination("x & 3")


class TestParseErrors:
    @pytest.mark.parametrize(
        "text, message, position",
        [
            ("(x & y", "Closing bracket missing", 6),
            ("x & y)", "Unbalanced closing bracket", 5),
            ("x &", "Unexpected end of input", 3),
            ("x & * y", "Expected an operand", 4),
            ("x y", "Unexpected token", 2),
        ],
    )
    def test_errors_carry_position(self, text, message, position):
        with pytest.raises(ParseError) as excinfo:
            parse_linear_combination(text)
        assert excinfo.value.message == message
        assert excinfo.value.position == position

    @pytest.mark.parametrize("text", ["", "   "])
    def test_empty_expression(self, text):
        with pytest.raises(ParseError, match="Empty expression"):
            parse_linear_combination(text)
        with pytest.raises(ParseError, match="Empty expression"):
            parse_boolean_term(text)

    def test_end_of_input_message(self):
        with pytest.raises(ParseError) as excinfo:
            parse_boolean_term("~")
        assert str(excinfo.value) == "Unexpected end of input (at end of input, position 1)"

    def test_arithmetic_in_operation_rejected(self):
        with pytest.raises(ParseError):
            parse_boolean_term("x + y")


class TestNesting:
    def test_deep_brackets_rejected(self):
        text = "(" * 3000 + "x" + ")" * 3000 + " + y"
        with pytest.raises(ParseError) as excinfo:
            parse_linear_combination(text)
        assert excinfo.value.message == "Expression nested too deeply"
        assert excinfo.value.position == MAX_NESTING

    def test_deep_negation_rejected(self):
        with pytest.raises(ParseError, match="nested too deeply"):
            parse_boolean_term("~" * 3000 + "x")

    def test_long_sum_rejected(self):
        with pytest.raises(ParseError, match="nested too deeply"):
            parse_linear_combination(" + ".join(["x"] * 3000))

    def test_moderate_nesting_accepted(self):
        assert str(parse_boolean_term("(" * 100 + "x" + ")" * 100)) == "x"
        assert len(parse_linear_combination(" + ".join(["x"] * 200))) == 200
        assert parse_tree("~" * 50 + "x").height == 51


class TestNormalizeOperation:
    @pytest.mark.parametrize(
        "text, expected",
        [
            ("x&y", "x & y"),
            ("(( x&y ))^ !z", "(x & y) ^ ~z"),
            ("~(~x)", "~~x"),
            ("y | x", "y | x"),
        ],
    )
    def test_normalize(self, text, expected):
        assert normalize_operation(text) == expected

    def test_idempotent(self):
        once = normalize_operation("x&(y|~z)")
        assert normalize_operation(once) == once


class TestParseSystem:
    def test_augmented_matrix(self, ring8):
        matrix, rhs = parse_system("2 4 6\n1 -1 0\n", ring8)
        assert matrix.shape == (2, 2)
        assert matrix.row(1) == (1, 255)
        assert rhs == (6, 0)

    def test_blank_lines_and_hex(self, ring8):
        matrix, rhs = parse_system("\n0x10 1\n\n3 -1\n", ring8)
        assert matrix.shape == (2, 1)
        assert matrix.column(0) == (16, 3)
        assert rhs == (1, 255)

    def test_bad_entry(self, ring8):
        with pytest.raises(ParseError) as excinfo:
            parse_system("1 2\n3 x\n", ring8)
        assert excinfo.value.message == "Failed to parse entry (2, 2)."
        assert excinfo.value.token == "x"
        assert excinfo.value.position == 6

    def test_ragged_rows(self, ring8):
        with pytest.raises(ParseError, match="Row 2 has a different number"):
            parse_system("1 2 3\n4 5\n", ring8)

    def test_empty(self, ring8):
        with pytest.raises(ParseError, match="Empty matrix"):
            parse_system("  \n\n", ring8)

    def test_rhs_only_rejected(self, ring8):
        with pytest.raises(ParseError):
            parse_system("5\n", ring8)

    @pytest.mark.parametrize("entry", ["0b1", "0o7", "1_000", "+5", "--1", "0x"])
    def test_only_decimal_and_hex_entries(self, ring8, entry):
        with pytest.raises(ParseError) as excinfo:
            parse_system(f"1 {entry}\n", ring8)
        assert excinfo.value.message == "Failed to parse entry (1, 2)."
        assert excinfo.value.token == entry

    def test_leading_zeros_are_decimal(self, ring8):
        matrix, rhs = parse_system("010 -0x0A", ring8)
        assert matrix[0, 0] == 10
        assert rhs == (246,)

    def test_reduces_into_ring(self):
        matrix, rhs = parse_system("257 -1", BitVectorRing(8))
        assert matrix[0, 0] == 1
        assert rhs == (255,)
