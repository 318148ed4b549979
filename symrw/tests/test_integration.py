"""Tests for the integration engine and its strategies."""

import pytest

from symrw.errors import IntegrationError
from symrw.evaluator import evaluate
from symrw.integration import (
    IntegrationContext, IntegrationEngine, integrate, integrate_integral,
    integrate_with_fallback, legacy_integrate,
)
from symrw.latex import to_text
from symrw.nodes import power, num, var
from symrw.parser import parse
from symrw.strategies import BasicStrategy, TrigonometricStrategy

POINTS = (0.7, 1.3)


def assert_antiderivative(antiderivative, integrand_text, h=1e-5):
    """The central difference of the result matches the integrand."""
    integrand = parse(integrand_text)
    for point in POINTS:
        slope = (evaluate(antiderivative, {"x": point + h}) -
                 evaluate(antiderivative, {"x": point - h})) / (2 * h)
        assert slope == pytest.approx(evaluate(integrand, {"x": point}), rel=1e-5, abs=1e-6)


class TestIntegrate:
    """Antiderivatives found by the default engine."""

    def setup_method(self):
        self.steps = []

    def check(self, text):
        result = integrate(parse(text), "x", self.steps)
        assert_antiderivative(result, text)
        return result

    def test_power_rule(self):
        """∫x^2 dx = x^3/3."""
        assert to_text(self.check("x^2")) == "x^3/3"

    def test_reciprocal(self):
        """∫1/x dx = ln|x|."""
        assert to_text(self.check("\\frac{1}{x}")) == "ln|x|"

    def test_polynomial(self):
        """Linearity over a sum."""
        self.check("3x^2 - 2x + 5")
        assert self.steps[0].startswith("Linearity")

    def test_sin_cos(self):
        """∫sin(x)cos(x) dx."""
        self.check("\\sin(x)\\cos(x)")

    def test_exponential(self):
        """∫e^{2x} dx."""
        self.check("e^{2x}")

    def test_parts(self):
        """∫x e^x dx needs integration by parts."""
        self.check("x e^{x}")

    def test_logarithm(self):
        """∫ln(x) dx = x ln(x) - x."""
        self.check("\\ln(x)")

    def test_arctan(self):
        """∫1/(x^2 + 1) dx = atan(x)."""
        assert to_text(self.check("\\frac{1}{x^2 + 1}")) == "atan(x)"

    def test_tan_squared(self):
        """∫tan^2(x) dx = tan(x) - x."""
        self.check("\\tan^2(x)")

    def test_sin_squared(self):
        """Power reduction for sin^2."""
        self.check("\\sin^2(x)")

    def test_linear_argument(self):
        """∫cos(2x + 1) dx."""
        self.check("\\cos(2x + 1)")

    def test_reverse_chain_rule(self):
        """∫2x cos(x^2) dx by substitution."""
        self.check("2x \\cos(x^2)")

    def test_no_antiderivative(self):
        """e^{x^2} has no elementary antiderivative here."""
        with pytest.raises(IntegrationError):
            integrate_with_fallback(parse("e^{x^2}"), "x")


class TestEngine:
    """Tests for strategy arbitration."""

    def test_basic_wins(self):
        """The power rule belongs to the basic strategy."""
        result = IntegrationEngine().integrate(power(var("x"), num(2)), IntegrationContext("x"))
        assert result.success
        assert result.strategy == "basic"

    def test_restricted_strategies(self):
        """Without the trigonometric strategy sin*cos is out of reach."""
        engine = IntegrationEngine([BasicStrategy()])
        result = engine.integrate(parse("\\sin(x)\\cos(x)"), IntegrationContext("x"))
        assert not result.success
        assert result.steps[-1] == "No suitable integration strategy found"

    def test_strategies_sorted(self):
        """Strategies run in priority order."""
        engine = IntegrationEngine([TrigonometricStrategy(), BasicStrategy()])
        assert [s.name for s in engine.strategies] == ["basic", "trigonometric"]

    def test_depth_limit(self):
        """A context past max_depth fails at once."""
        result = IntegrationEngine().integrate(var("x"), IntegrationContext("x", depth=5, max_depth=4))
        assert not result.success
        assert "Maximum integration depth" in result.steps[0]

    def test_child_context(self):
        """child() goes one level deeper with a clean slate."""
        context = IntegrationContext("x", attempted_strategies={"basic"})
        child = context.child("u")
        assert child.variable == "u"
        assert child.depth == 1
        assert child.attempted_strategies == set()


class TestIntegralNodes:
    """Tests for integrate_integral and the legacy integrator."""

    def test_definite(self):
        """∫_0^1 x^2 dx = 1/3."""
        steps = []
        result = integrate_integral(parse("\\int_0^1 x^2 \\, dx"), steps)
        assert to_text(result) == "1/3"
        assert any(s.startswith("Antiderivative") for s in steps)

    def test_indefinite(self):
        """Indefinite integrals return the antiderivative."""
        result = integrate_integral(parse("\\int \\cos(x) dx"))
        assert to_text(result) == "sin(x)"

    def test_legacy(self):
        """The table integrator handles polynomials and linear trig arguments."""
        steps = []
        result = legacy_integrate(parse("3x^2 + \\cos(2x)"), "x", steps)
        assert_antiderivative(result, "3x^2 + \\cos(2x)")
        assert steps == ["Integrated term by term using the basic table"]

    def test_legacy_failure(self):
        """Products are beyond the table."""
        with pytest.raises(IntegrationError):
            legacy_integrate(parse("x \\sin(x)"), "x")
