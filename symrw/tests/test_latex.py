"""Tests for LaTeX and plain-text rendering."""

from symrw.latex import format_number, to_latex, to_text
from symrw.nodes import (
    BinaryExpression, Fraction, FunctionCall, Integral, add, call, mul, neg,
    num, power, sub, var,
)
from symrw.parser import parse
from symrw.simplify import simplify
from symrw.terms import structurally_equal

x, y = var("x"), var("y")


class TestNumbers:
    """Tests for format_number."""

    def test_integral_float(self):
        """2.0 prints as 2."""
        assert format_number(2.0) == "2"

    def test_float_precision(self):
        """Other floats use 12 significant digits."""
        assert format_number(0.5) == "0.5"
        assert format_number(1 / 3) == "0.333333333333"


class TestProducts:
    """Tests for product juxtaposition."""

    def test_coefficient(self):
        """A numeric coefficient sits right against its factor."""
        assert to_latex(mul(num(2), x)) == "2x"
        assert to_text(mul(num(2), x)) == "2x"

    def test_coefficient_times_sum(self):
        """Sums are parenthesized."""
        node = mul(num(3), add(mul(num(2), x), num(3)))
        assert to_latex(node) == "3(2x + 3)"

    def test_product_of_sums(self):
        """(x - 2)(x - 3)."""
        node = mul(sub(x, num(2)), sub(x, num(3)))
        assert to_text(node) == "(x - 2)(x - 3)"
        assert to_latex(node) == "(x - 2)(x - 3)"

    def test_numbers_need_operator(self):
        """Two numbers cannot be juxtaposed."""
        assert to_latex(mul(num(2), num(3))) == "2 \\cdot 3"
        assert to_text(mul(num(2), num(3))) == "2*3"

    def test_variables(self):
        """xy juxtaposes in LaTeX."""
        assert to_latex(mul(x, y)) == "xy"

    def test_variable_times_function(self):
        """Text uses *, LaTeX a space before the command."""
        node = mul(x, call("sin", x))
        assert to_text(node) == "x*sin(x)"
        assert to_latex(node) == "x \\sin(x)"

    def test_command_before_letter(self):
        """A constant like pi is separated from the next letter."""
        pi = var("π")
        assert to_latex(mul(pi, x)) == "\\pi x"
        assert to_latex(mul(pi, var("i"))) == "\\pi i"
        assert to_latex(mul(mul(num(2), pi), x)) == "2\\pi x"
        assert to_latex(mul(pi, num(2))) == "\\pi \\cdot 2"

    def test_products_with_pi_reparse(self):
        """Rendered products with pi read back as the same expression."""
        for text in ("\\pi x", "2\\pi x", "\\pi i", "a\\pi"):
            node = simplify(parse(text))
            assert structurally_equal(parse(to_latex(node)), node)


class TestFractionsAndPowers:
    """Tests for fractions, powers and roots."""

    def test_fraction(self):
        """\\frac in LaTeX, a slash in text."""
        node = Fraction(num(1), power(x, num(2)))
        assert to_latex(node) == "\\frac{1}{x^{2}}"
        assert to_text(node) == "1/x^2"

    def test_negative_fraction(self):
        """-1/x^2 keeps its sign in the numerator."""
        assert to_text(Fraction(neg(num(1)), power(x, num(2)))) == "-1/x^2"

    def test_sum_over_sum(self):
        """Text groups compound numerators and denominators."""
        assert to_text(Fraction(add(x, num(1)), sub(x, num(1)))) == "(x + 1)/(x - 1)"

    def test_power_of_function(self):
        """Function bases need no parentheses."""
        node = sub(power(call("cos", x), num(2)), power(call("sin", x), num(2)))
        assert to_text(node) == "cos(x)^2 - sin(x)^2"

    def test_power_of_sum(self):
        """Compound bases are grouped."""
        assert to_latex(power(add(x, num(1)), num(2))) == "(x + 1)^{2}"

    def test_sqrt_and_exp(self):
        """sqrt and exp have their own LaTeX forms."""
        assert to_latex(call("sqrt", x)) == "\\sqrt{x}"
        assert to_text(call("sqrt", x)) == "sqrt(x)"
        assert to_latex(call("exp", x)) == "e^{x}"
        assert to_text(call("exp", x)) == "exp(x)"


class TestFunctions:
    """Tests for function rendering."""

    def test_ln_abs(self):
        """ln|x| drops the parentheses."""
        node = call("ln", call("abs", x))
        assert to_latex(node) == "\\ln|x|"
        assert to_text(node) == "ln|x|"

    def test_inverse_trig(self):
        """asin renders as \\arcsin."""
        assert to_latex(call("asin", x)) == "\\arcsin(x)"

    def test_log_with_base(self):
        """log(u, b) renders with a subscript base."""
        node = call("log", x, num(2))
        assert to_latex(node) == "\\log_{2}(x)"
        assert to_text(node) == "log_2(x)"
        assert to_text(call("log", x, add(y, num(1)))) == "log_(y + 1)(x)"
        assert parse(to_latex(node)) == node

    def test_user_function(self):
        """Unknown names render without a backslash."""
        assert to_latex(FunctionCall("f", (x,))) == "f(x)"

    def test_solution_set(self):
        """The set pseudo-function renders with braces."""
        node = FunctionCall("set", (num(2), num(3)))
        assert to_latex(node) == "\\{2, 3\\}"
        assert to_text(node) == "{2, 3}"


class TestSigns:
    """Tests for negation and subtraction."""

    def test_negated_sum(self):
        """-(x + 1)."""
        assert to_text(neg(add(x, num(1)))) == "-(x + 1)"

    def test_adding_negative_literal(self):
        """A negative right operand is grouped."""
        assert to_text(add(x, num(-2))) == "x + (-2)"

    def test_subtracting_sum(self):
        """x - (y + 1)."""
        assert to_text(sub(x, add(y, num(1)))) == "x - (y + 1)"


class TestMisc:
    """Tests for constants, comparisons and binders."""

    def test_pi(self):
        """pi renders as \\pi and π."""
        assert to_latex(var("π")) == "\\pi"
        assert to_text(var("pi")) == "π"

    def test_comparison(self):
        """>= becomes \\geq."""
        assert to_latex(BinaryExpression(">=", x, num(0))) == "x \\geq 0"
        assert to_text(BinaryExpression("=", x, num(2))) == "x = 2"

    def test_integral(self):
        """Definite integrals show their bounds."""
        node = Integral(power(x, num(2)), "x", num(0), num(1))
        assert to_latex(node) == "\\int_{0}^{1} x^{2} \\, dx"
        assert to_text(node) == "∫[0, 1] x^2 dx"
        assert to_text(Integral(x, "x")) == "∫ x dx"
