"""Tests for the public analyze() entry points."""

import pytest

from symrw import api
from symrw.api import AnalyzeResult, analyze
from symrw.nodes import FunctionCall, num, var


class TestDifferentiate:
    """Tests for the differentiate task."""

    def test_auto_detected_variable(self):
        """The single free variable is used and reported."""
        result = api.differentiate("x^2 + 3x")
        assert result.ok
        assert result.value == "2x + 3"
        assert result.value_type == "symbolic"
        assert result.steps[0] == "Auto-detected variable: x"

    def test_product(self):
        """Value is LaTeX."""
        result = analyze("\\sin(x) \\cdot \\cos(x)", "differentiate")
        assert result.value == "\\cos(x)^{2} - \\sin(x)^{2}"

    def test_multiple_variables(self):
        """x is preferred and the choice is explained."""
        result = api.differentiate("xy")
        assert result.steps[0] == "Multiple variables found: {x, y}. Using 'x' for differentiation."
        assert result.value == "y"
        assert result.ast == var("y")

    def test_explicit_variable(self):
        """A given variable is not announced."""
        result = api.differentiate("xy", "y")
        assert result.value == "x"
        assert result.steps[0] == "Differentiating with respect to y"


class TestEvaluate:
    """Tests for the evaluate task."""

    def test_integer(self):
        """2 + 3 * 4 is exactly 14."""
        result = analyze("2 + 3 * 4")
        assert result.value == "14"
        assert result.value_type == "exact"
        assert result.ast == num(14)

    def test_rational(self):
        """1/3 stays a fraction."""
        result = api.evaluate("\\frac{1}{3}")
        assert result.value == "\\frac{1}{3}"
        assert result.value_type == "exact"

    def test_approximate(self):
        """sin(1) is evaluated numerically."""
        result = api.evaluate("\\sin(1)")
        assert result.value == "0.841470984808"
        assert result.value_type == "approximate"

    def test_decimals(self):
        """Decimal input gives an approximate value."""
        result = api.evaluate("0.5 + 0.25")
        assert result.value == "0.75"
        assert result.value_type == "approximate"

    def test_values(self):
        """Assigned values are substituted."""
        result = api.evaluate("x^2 + 1", {"x": 3})
        assert result.value == "10"
        assert result.steps[1] == ["Substituted x = 3", "Result: 10"]

    def test_symbolic(self):
        """Unassigned variables give a symbolic result."""
        result = api.evaluate("x + y")
        assert result.value == "x + y"
        assert result.value_type == "symbolic"

    def test_division_by_zero(self):
        """Errors come back in the result."""
        result = api.evaluate("\\frac{1}{0}")
        assert not result.ok
        assert result.error == "Division by zero"
        assert result.value is None
        assert result.ast is None


class TestSolve:
    """Tests for the solve task."""

    def test_roots(self):
        """Roots are listed in order."""
        result = api.solve_equation("x^2 - 5x + 6")
        assert result.value == "2, 3"
        assert result.ast == FunctionCall("set", (num(2), num(3)))

    def test_no_real_roots(self):
        """An empty set, not an error."""
        result = api.solve_equation("x^2 + 1 = 0")
        assert result.ok
        assert result.value == "No real solutions"
        assert result.ast == FunctionCall("set", ())

    def test_unsupported(self):
        """Transcendental equations are errors."""
        result = api.solve_equation("\\sin(x) = 0")
        assert not result.ok
        assert "not a polynomial" in result.error


class TestIntegrate:
    """Tests for the integrate task."""

    def test_indefinite(self):
        """Indefinite integrals carry + C."""
        result = api.integrate("\\frac{1}{x}")
        assert result.value == "\\ln|x| + C"
        assert result.value_type == "symbolic"

    def test_integral_node(self):
        """An \\int without bounds is also indefinite."""
        assert api.integrate("\\int x \\, dx").value.endswith(" + C")

    def test_definite(self):
        """Definite integrals have an exact value."""
        result = api.integrate("\\int_0^1 x^2 \\, dx")
        assert result.value == "\\frac{1}{3}"
        assert result.value_type == "exact"


class TestSimplifyAndFactor:
    """Tests for the simplify and factor tasks."""

    def test_simplify_with_factor(self):
        """Simplify options pass through."""
        result = analyze("6x + 9", "simplify", factor=True)
        assert result.value == "3(2x + 3)"

    def test_factor(self):
        """Quadratics split into linear factors."""
        result = analyze("x^2 - 5x + 6", "factor")
        assert result.value == "(x - 2)(x - 3)"

    def test_unknown_option(self):
        """Misspelled options raise."""
        with pytest.raises(ValueError):
            api.simplify_expression("x", factorize=True)


class TestResult:
    """Tests for AnalyzeResult and analyze()."""

    def test_unsupported_task(self):
        """Unknown tasks are reported."""
        result = analyze("x", "graph")
        assert result.error.startswith("Unsupported task: graph")

    def test_parse_error(self):
        """Parse errors are results, not exceptions."""
        result = analyze("x +", "evaluate")
        assert not result.ok
        assert "end of input" in result.error

    def test_value_type_checked(self):
        """Only the three value types are accepted."""
        with pytest.raises(ValueError):
            AnalyzeResult([], "1", "numeric", num(1))

    def test_error_excludes_value(self):
        """An error result cannot carry a value."""
        with pytest.raises(ValueError):
            AnalyzeResult([], "1", "exact", num(1), "boom")

    def test_success_needs_ast(self):
        """A value without an ast is rejected."""
        with pytest.raises(ValueError):
            AnalyzeResult([], "1", "exact", None)

    def test_to_dict(self):
        """Serialized keys use valueType."""
        data = analyze("2 + 3").to_dict()
        assert set(data) == {"steps", "value", "valueType", "ast", "error"}
        assert data["value"] == "5"
        assert data["error"] is None
