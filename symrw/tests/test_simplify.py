"""Tests for the canonicalizing simplifier."""

import pytest

from symrw.errors import MathArithmeticError
from symrw.latex import to_text
from symrw.nodes import add, call, mul, num, power, var
from symrw.parser import parse
from symrw.simplify import SimplifyOptions, expand, fold_function, overlap_simplify, simplify
from symrw.terms import structurally_equal


def simplified(text, **options):
    return to_text(simplify(parse(text), **options))


class TestOptions:
    """Tests for SimplifyOptions."""

    def test_defaults(self):
        """Expansion on, factoring off."""
        options = SimplifyOptions()
        assert options.expand
        assert not options.factor

    def test_override(self):
        """override returns a modified copy."""
        options = SimplifyOptions().override(factor=True)
        assert options.factor
        assert not SimplifyOptions().factor

    def test_unknown_option(self):
        """Misspelled options are rejected."""
        with pytest.raises(ValueError):
            SimplifyOptions().override(factorize=True)

    def test_max_depth_positive(self):
        """max_depth must be at least one."""
        with pytest.raises(ValueError):
            SimplifyOptions(max_depth=0)


class TestArithmetic:
    """Tests for numeric folding and like terms."""

    def test_numbers(self):
        """2 + 3 * 4 = 14."""
        assert simplify(parse("2 + 3 * 4")) == num(14)

    def test_like_terms(self):
        """x + x + 3 - 1 = 2x + 2."""
        assert simplified("x + x + 3 - 1") == "2x + 2"

    def test_cancellation(self):
        """x - x = 0."""
        assert simplify(parse("x - x")) == num(0)

    def test_halves(self):
        """x/2 + x/2 = x."""
        assert simplify(parse("\\frac{x}{2} + \\frac{x}{2}")) == var("x")

    def test_product_of_equal_bases(self):
        """x * x = x^2."""
        assert simplified("x \\cdot x") == "x^2"

    def test_division_by_zero(self):
        """A literal zero denominator raises."""
        with pytest.raises(MathArithmeticError):
            simplify(parse("\\frac{1}{0}"))

    def test_exact_root(self):
        """sqrt(4) = 2."""
        assert simplify(parse("\\sqrt{4}")) == num(2)


class TestExpansion:
    """Tests for expand on and off."""

    def test_square_of_sum(self):
        """(x + 1)^2 multiplies out."""
        assert simplified("(x+1)^2") == "x^2 + 2x + 1"

    def test_no_expansion(self):
        """With expand off the power stays."""
        assert simplified("(x+1)^2", expand=False) == "(x + 1)^2"

    def test_expand_helper(self):
        """expand() distributes products."""
        assert to_text(expand(parse("x(x + 2)"))) == "x^2 + 2x"

    def test_distribute_numeric_denominator(self):
        """(2x + 4)/2 = x + 2."""
        assert simplified("\\frac{2x + 4}{2}") == "x + 2"


class TestFractions:
    """Tests for fraction cancellation."""

    def test_cancel_common_factor(self):
        """(x^2 - 1)/(x - 1) = x + 1."""
        assert simplified("\\frac{x^2 - 1}{x - 1}") == "x + 1"

    def test_identical(self):
        """A quotient of equal expressions is 1."""
        assert simplify(parse("\\frac{x + 1}{x + 1}")) == num(1)

    def test_overlap_simplify(self):
        """overlap_simplify reaches the same cancelled form."""
        assert to_text(overlap_simplify(parse("\\frac{x^2 - 1}{x - 1}"))) == "x + 1"


class TestFactorOption:
    """Tests for factor=True."""

    def test_common_factor(self):
        """6x + 9 = 3(2x + 3)."""
        assert simplified("6x + 9", factor=True) == "3(2x + 3)"

    def test_steps_recorded(self):
        """Factoring leaves a step behind."""
        steps = []
        simplify(parse("6x + 9"), steps=steps, factor=True)
        assert any(s.startswith("Factored") for s in steps)


class TestFunctions:
    """Tests for function folding and identities."""

    def test_exact_values_fold(self):
        """sin(0) and cos(pi) fold to integers."""
        assert simplify(parse("\\sin(0)")) == num(0)
        assert simplify(parse("\\cos(\\pi)")) == num(-1)

    def test_constant_arguments_fold(self):
        """Functions of literals and multiples of pi are evaluated."""
        assert simplify(parse("\\sin(1)")).value == pytest.approx(0.8414709848078965)
        assert simplify(parse("\\sin(\\frac{\\pi}{6})")).value == pytest.approx(0.5)
        assert simplify(parse("\\sqrt{8}")).value == pytest.approx(2.8284271247461903)

    def test_exp_folds(self):
        """exp(2) is evaluated while exp(1) stays e."""
        assert simplify(call("exp", num(2))).value == pytest.approx(7.38905609893065)
        assert simplify(call("exp", num(1))) == var("e")

    def test_domain_errors_stay(self):
        """ln(-1) has no real value and is left alone."""
        assert simplify(call("ln", num(-1))) == call("ln", num(-1))

    def test_log_with_base(self):
        """A two-argument log folds to the nearest integer when close."""
        assert fold_function("log", (num(8), num(2))) == num(3)
        assert fold_function("log", (num(2), num(1))) is None

    def test_float_argument_folds(self):
        """A decimal argument is evaluated."""
        assert fold_function("sin", (num(0.5),)).value == pytest.approx(0.479425538604203)

    def test_pythagorean(self):
        """sin(x)^2 + cos(x)^2 = 1."""
        assert simplify(parse("\\sin(x)^2 + \\cos(x)^2")) == num(1)

    def test_odd_function(self):
        """sin(-x) = -sin(x)."""
        assert simplified("\\sin(-x)") == "-sin(x)"

    def test_exp_of_ln(self):
        """e^{ln x} = x."""
        assert simplify(parse("e^{\\ln(x)}")) == var("x")

    def test_ln_e(self):
        """ln(e) = 1."""
        assert simplify(parse("\\ln(e)")) == num(1)

    def test_log_base_folds(self):
        """log_2(8) = 3."""
        assert simplify(parse("\\log_2(8)")) == num(3)

    def test_log_expansion(self):
        """ln(x^3) = 3 ln(x) and ln(xy) = ln(x) + ln(y)."""
        x, y = var("x"), var("y")
        assert structurally_equal(simplify(parse("\\ln(x^3)")), mul(num(3), call("ln", x)))
        assert structurally_equal(simplify(parse("\\ln(xy)")),
                                  add(call("ln", x), call("ln", y)))

    def test_root_of_square(self):
        """(x^2)^(1/2) and sqrt(x^2) are both |x|."""
        assert simplify(parse("(x^2)^{\\frac{1}{2}}")) == call("abs", var("x"))
        assert simplify(parse("\\sqrt{x^2}")) == call("abs", var("x"))

    def test_even_root_stays_even(self):
        """(x^4)^(1/2) = x^2 needs no absolute value."""
        assert simplify(parse("(x^4)^{\\frac{1}{2}}")) == power(var("x"), num(2))

    def test_like_terms_step(self):
        """Combining like terms is reported."""
        steps = []
        simplify(parse("x + x"), steps=steps)
        assert "Combined like terms" in steps

    @pytest.mark.parametrize("text", [
        "(x + 1)(x - 1) + \\frac{x}{2}",
        "x^2 + 2x + x^2 - 3",
        "\\frac{x^2 - 1}{x - 1}",
        "\\sin(x)^2 + \\cos(x)^2 + 2x y",
        "3\\ln(x) - \\frac{x}{4} + e^{2x}",
        "(2x + 3)^3",
    ])
    def test_fixed_point(self, text):
        """Simplifying twice changes nothing."""
        once = simplify(parse(text))
        assert simplify(once) == once
