import pytest

from mbarewrite.errors import Unsolvable
from mbarewrite.mba.congruence import solve_congruences
from mbarewrite.mba.dsl import ONES, LinearCombination, Var
from mbarewrite.mba.engine import ObfuscationRequest, obfuscate
from mbarewrite.mba.matrix import Matrix
from mbarewrite.mba.printer import (
    Printer,
    c_literal,
    print_linear_combination,
    render_trace,
)

x, y, z = Var("x"), Var("y"), Var("z")
REWRITTEN = 2 * (x & y) + (x ^ y)


class TestPrinterNames:
    @pytest.mark.parametrize(
        "name, expected",
        [("c", Printer.C), ("Rust", Printer.RUST), (" TeX ", Printer.TEX), ("text", Printer.TEXT)],
    )
    def test_from_name(self, name, expected):
        assert Printer.from_name(name) is expected

    def test_from_name_passthrough(self):
        assert Printer.from_name(Printer.C) is Printer.C

    def test_unknown_name(self):
        with pytest.raises(ValueError, match="Unknown output format 'python'"):
            Printer.from_name("python")


class TestTerms:
    @pytest.mark.parametrize(
        "printer, term, expected",
        [
            (Printer.C, (x & y) ^ z, "(x & y) ^ z"),
            (Printer.C, ~(x | y), "~(x | y)"),
            (Printer.RUST, ~(x | y), "!(x | y)"),
            (Printer.RUST, ~x & y, "!x & y"),
            (Printer.TEX, (x & y) ^ z, "(x \\land y) \\oplus z"),
            (Printer.TEX, ~(x | y), "\\overline{x \\lor y}"),
            (Printer.TEXT, ~~x, "~~x"),
        ],
    )
    def test_print_term(self, printer, term, expected):
        assert printer.print_term(term, 8) == expected

    def test_ones(self):
        assert Printer.C.print_term(ONES, 32) == "-1"
        assert Printer.TEXT.print_term(ONES, 8) == "-1"
        assert Printer.RUST.print_term(ONES, 16) == "Wrapping(u16::MAX)"
        assert Printer.RUST.print_term(x & ONES, 64) == "x & Wrapping(u64::MAX)"


class TestSums:
    def test_text(self):
        assert Printer.TEXT.print_sum(REWRITTEN, 8) == "2*(x & y) + (x ^ y)"

    def test_coefficients_above_half_are_subtracted(self):
        lc = LinearCombination([(255, x), (254, y), (128, z)])
        assert Printer.TEXT.print_sum(lc, 8) == "-x - 2*y + 128*z"

    def test_zero_coefficients_dropped(self):
        lc = LinearCombination([(0, x), (256, y), (3, z)])
        assert Printer.TEXT.print_sum(lc, 8) == "3*z"
        assert Printer.TEXT.print_sum(LinearCombination([(0, x)]), 8) == "0"

    def test_c_literals(self):
        assert Printer.C.print_sum(3 * x, 8) == "3u*x"
        assert Printer.C.print_sum(3 * x, 64) == "3ull*x"
        assert Printer.C.print_sum(-3 * x, 16) == "-3u*x"

    def test_c_128_bit_products_are_wide(self):
        lc = x - 5 * ONES
        assert Printer.C.print_sum(lc, 128) == "x - (uint128_t)5ull*-1"
        assert Printer.C.print_sum(3 * (x & y), 128) == "(uint128_t)3ull*(x & y)"

    def test_leading_negated_ones(self):
        assert Printer.C.print_sum(-ONES, 32) == "-(-1)"
        assert Printer.TEXT.print_sum(-ONES + x, 8) == "-(-1) + x"

    def test_rust_literals(self):
        assert Printer.RUST.print_sum(3 * (x | y), 32) == "Wrapping(3u32)*(x | y)"

    def test_tex(self):
        assert Printer.TEX.print_sum(3 * ~(x | y) - x, 8) == "3\\cdot \\overline{x \\lor y} - x"


class TestCompleteOutput:
    def test_c_function(self):
        out = Printer.C.print_linear_combination(REWRITTEN, 8, ["x", "y"])
        assert out == "uint8_t f(uint8_t x, uint8_t y) {\n\treturn 2u*(x & y) + (x ^ y);\n}"

    def test_rust_function(self):
        out = Printer.RUST.print_linear_combination(REWRITTEN, 16, ["x", "y"])
        assert out == (
            "fn f(x: Wrapping<u16>, y: Wrapping<u16>) -> Wrapping<u16> {\n"
            "\tWrapping(2u16)*(x & y) + (x ^ y)\n}"
        )

    def test_declared_variables_are_all_parameters(self):
        out = Printer.C.print_linear_combination(3 * x, 32, ["aux0", "x"])
        assert out.startswith("uint32_t f(uint32_t aux0, uint32_t x) {")

    def test_default_parameters(self):
        out = Printer.C.print_linear_combination(LinearCombination(), 8)
        assert out == "uint8_t f() {\n\treturn 0;\n}"

    def test_empty_rust_function(self):
        out = Printer.RUST.print_linear_combination(LinearCombination(), 32)
        assert out == "fn f() -> Wrapping<u32> {\n\tWrapping(0u32)\n}"

    def test_c_128_bit_function_from_request(self):
        request = ObfuscationRequest(
            "x + 5", width=128, operations=("x", "-1"), randomize=False, printer="c"
        )
        assert obfuscate(request) == (
            "uint128_t f(uint128_t x) {\n\treturn x - (uint128_t)5ull*-1;\n}"
        )

    def test_text_and_tex_are_bare(self):
        assert print_linear_combination(REWRITTEN, 8) == "2*(x & y) + (x ^ y)"
        assert print_linear_combination(x + y, 8, printer="tex") == "x + y"


class TestCLiteral:
    def test_small_widths(self):
        assert c_literal(255, 8) == "255u"
        assert c_literal(7, 32) == "7u"

    def test_wide_widths(self):
        assert c_literal(7, 64) == "7ull"
        assert c_literal((1 << 64) - 1, 128) == "(uint128_t)18446744073709551615ull"

    def test_128_bit_split(self):
        assert c_literal((1 << 64) + 5, 128) == "(((uint128_t)1ull << 64) | 5ull)"


class TestRenderTrace:
    def test_text_stages(self, ring8):
        trace = solve_congruences(Matrix(ring8, [[1, 1]]), (5,)).trace
        view = render_trace(trace, "text")
        assert view.diag.startswith("D = S*A*T\nD =\n[1 0]")
        assert view.scalar_system == "D*x' = S*b = S*(5) = (5)"
        assert view.linear_solutions == "1*x'1 = 5 => x'1 = 5\nx'2 = a1"
        assert view.vector_solution == "x' = (5, 0) + a1*(0, 1)"
        assert view.final_solution == "x = T*x' = (5, 0) + a1*(-1, 1)"
        assert [title for title, _ in view.stages()] == [
            "Diagonalization",
            "Diagonal system",
            "Scalar congruences",
            "Solution of the diagonal system",
            "Solution",
        ]

    def test_tex_kernel(self, ring8):
        trace = solve_congruences(Matrix(ring8, [[2]]), (4,)).trace
        view = render_trace(trace)
        assert view.diag.startswith("\\underbrace{")
        assert "_{\\mathbf{D}}=" in view.diag
        assert view.linear_solutions == (
            "\\begin{align}2x'_{1}&=4 &\\implies x'_{1}&=2+128a_{1}\\\\\\end{align}"
        )
        assert view.final_solution.startswith("\\mathbf{x}=")
        assert "_{\\mathbf{x'}}" in view.final_solution

    def test_tex_failed_scalar_row(self, ring8):
        with pytest.raises(Unsolvable) as excinfo:
            solve_congruences(Matrix(ring8, [[2]]), (1,))
        view = render_trace(excinfo.value.trace, Printer.TEX)
        assert view.linear_solutions == (
            "\\begin{align}2x'_{1}&=1 &\\implies \\text{No solution!}&\\end{align}"
        )
        assert view.vector_solution == ""
        assert view.final_solution == ""

    def test_failed_zero_row(self, ring8):
        with pytest.raises(Unsolvable) as excinfo:
            solve_congruences(Matrix(ring8, [[1], [1]]), (1, 2))
        trace = excinfo.value.trace
        assert render_trace(trace, "text").linear_solutions == "Row 2: 0 = 1 => No solution"
        assert render_trace(trace, "tex").linear_solutions == (
            "\\text{Row 2: } 0=1\\implies \\text{No solution}"
        )

    @pytest.mark.parametrize("printer", ["c", "rust"])
    def test_program_printers_rejected(self, ring8, printer):
        trace = solve_congruences(Matrix(ring8, [[1]]), (1,)).trace
        with pytest.raises(ValueError):
            render_trace(trace, printer)
