"""Tests for the LaTeX tokenizer and parser."""

import pytest

from symrw.errors import ParseError
from symrw.nodes import (
    BinaryExpression, Fraction, FunctionCall, Identifier, Integral, Sum,
    UnaryExpression, add, call, mul, num, power, var,
)
from symrw.parser import parse, parse_latex, tokenize

x, y = var("x"), var("y")


class TestTokenize:
    """Tests for tokenize()."""

    def test_kinds(self):
        """Numbers, identifiers, commands and operators."""
        kinds = [t.kind for t in tokenize("2x + \\frac{1}{2}")]
        assert kinds == ["NUMBER", "IDENT", "OP", "COMMAND", "LBRACE", "NUMBER",
                         "RBRACE", "LBRACE", "NUMBER", "RBRACE", "EOF"]

    def test_letter_runs(self):
        """Function words are read whole, other letters one at a time."""
        tokens = tokenize("sinxy")
        assert [(t.kind, t.value) for t in tokens[:-1]] == [
            ("FUNC", "sin"), ("IDENT", "x"), ("IDENT", "y")]

    def test_spacing_commands_skipped(self):
        """\\, and friends produce no tokens."""
        assert [t.kind for t in tokenize("x \\, y")] == ["IDENT", "IDENT", "EOF"]

    def test_operator_commands(self):
        """\\cdot and \\geq map to operators."""
        tokens = tokenize("a \\cdot b \\geq c")
        assert [t.value for t in tokens if t.kind == "OP"] == ["*", ">="]

    def test_unknown_command(self):
        """Unknown commands are rejected with their position."""
        with pytest.raises(ParseError) as info:
            tokenize("x + \\foo")
        assert info.value.position == 4
        assert "\\foo" in str(info.value)


class TestParse:
    """Tests for the grammar."""

    def test_implicit_multiplication(self):
        """2x and xy are products."""
        assert parse("2x") == mul(num(2), x)
        assert parse("xy") == mul(x, y)

    def test_polynomial(self):
        """x^2 + 3x keeps precedence."""
        assert parse("x^2 + 3x") == add(power(x, num(2)), mul(num(3), x))

    def test_exponent_digits(self):
        """x^23 takes both digits; x^2y multiplies by y."""
        assert parse("x^23") == power(x, num(23))
        assert parse("x^2y") == mul(power(x, num(2)), y)

    def test_power_right_associative(self):
        """2^3^2 is 2^(3^2)."""
        assert parse("2^{3^2}") == power(num(2), power(num(3), num(2)))

    def test_unary_minus(self):
        """-x^2 negates the power."""
        assert parse("-x^2") == UnaryExpression("-", power(x, num(2)))

    def test_fraction_and_division(self):
        """\\frac and / both build Fraction nodes."""
        assert parse("\\frac{1}{x}") == Fraction(num(1), x)
        assert parse("1/x") == Fraction(num(1), x)

    def test_functions(self):
        """Functions with and without parentheses."""
        assert parse("\\sin x") == call("sin", x)
        assert parse("\\sin(x)") == call("sin", x)
        assert parse("sin(x)") == call("sin", x)
        assert parse("\\ln{x}") == call("ln", x)

    def test_function_power(self):
        """\\sin^2(x) is (sin x)^2."""
        assert parse("\\sin^2(x)") == power(call("sin", x), num(2))

    def test_user_function(self):
        """f(x) is a call, f x is a product."""
        assert parse("f(x)") == FunctionCall("f", (x,))
        assert parse("f x") == mul(var("f"), x)

    def test_absolute_value(self):
        """|x| is abs(x)."""
        assert parse("|x|") == call("abs", x)

    def test_roots(self):
        """\\sqrt{x} and \\sqrt[3]{x}."""
        assert parse("\\sqrt{x}") == call("sqrt", x)
        assert parse("\\sqrt[3]{x}") == power(x, Fraction(num(1), num(3)))

    def test_root_index_tokens(self):
        """\\sqrt is a structure command so its [n] index is read."""
        kinds = [t.kind for t in tokenize("\\sqrt[3]{x}")]
        assert kinds[:2] == ["COMMAND", "LBRACKET"]
        assert parse("\\sqrt[4]{x + 1}") == power(add(x, num(1)), Fraction(num(1), num(4)))

    def test_sqrt_without_braces(self):
        """\\sqrt(x), \\sqrt x and \\sqrt{x}^2 still parse."""
        assert parse("\\sqrt(x)") == call("sqrt", x)
        assert parse("\\sqrt x") == call("sqrt", x)
        assert parse("\\sqrt{x}^2") == power(call("sqrt", x), num(2))

    def test_log_base(self):
        """\\log_b u is log(u, b)."""
        assert parse("\\log_2(8)") == call("log", num(8), num(2))
        assert parse("\\log_{10} x") == call("log", x, num(10))
        assert parse("\\log(x)") == call("log", x)

    def test_pi(self):
        """\\pi and pi are the same constant."""
        assert parse("\\pi").name == "π"
        assert parse("pi").name == "π"

    def test_equation(self):
        """= binds loosest."""
        assert parse("x + 1 = 2") == BinaryExpression("=", add(x, num(1)), num(2))

    def test_decimal(self):
        """Decimals become floats."""
        assert parse("0.5").value == 0.5


class TestBinders:
    """Tests for integrals, sums and products."""

    def test_definite_integral(self):
        """Bounds, integrand and variable are read; x is bound."""
        node = parse("\\int_0^1 x^2 \\, dx")
        assert isinstance(node, Integral)
        assert node.variable == "x"
        assert node.lower == num(0)
        assert node.upper == num(1)
        assert node.body.left.is_bound
        assert node.unique_id == "bound_x_1_integral"

    def test_indefinite_integral(self):
        """No bounds means indefinite."""
        node = parse("\\int \\sin(x) dx")
        assert not node.is_definite
        assert node.body.name == "sin"

    def test_integral_needs_differential(self):
        """The integrand must end with d<variable>."""
        with pytest.raises(ParseError):
            parse("\\int x^2")

    def test_integral_needs_both_bounds(self):
        """A lone lower bound is an error."""
        with pytest.raises(ParseError):
            parse("\\int_0 x dx")

    def test_sum(self):
        """\\sum_{i=1}^{n} i binds i but not n."""
        node = parse("\\sum_{i=1}^{n} i")
        assert isinstance(node, Sum)
        assert node.body.is_bound
        assert node.upper == Identifier("n", "free", None, None, "free_n")


class TestErrors:
    """Tests for error reporting."""

    def test_empty(self):
        """Blank input is an error."""
        with pytest.raises(ParseError):
            parse("   ")

    def test_dangling_operator(self):
        """parse_latex reports instead of raising."""
        result = parse_latex("x +")
        assert not result.ok
        assert result.ast is None
        assert "end of input" in result.error

    def test_unbalanced(self):
        """Missing closing parenthesis."""
        with pytest.raises(ParseError):
            parse("(x + 1")

    def test_success_result(self):
        """parse_latex wraps a successful parse."""
        result = parse_latex("x")
        assert result.ok
        assert result.ast == x
