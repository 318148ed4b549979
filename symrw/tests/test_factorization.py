"""Tests for polynomial factorization."""

import pytest

from symrw.errors import FactorizationSetupError
from symrw.factorization import (
    CommonFactorStrategy, FactorizationEngine, PerfectPowerStrategy, factor,
)
from symrw.latex import to_text
from symrw.nodes import add, mul, num, power, sub, var
from symrw.parser import parse
from symrw.simplify import expand, simplify
from symrw.terms import structurally_equal

x = var("x")


def expanded(text):
    return simplify(parse(text))


class TestStrategies:
    """Each strategy on a polynomial it owns."""

    def test_quadratic(self):
        """x^2 - 5x + 6 = (x - 2)(x - 3)."""
        assert to_text(factor(expanded("x^2 - 5x + 6"))) == "(x - 2)(x - 3)"

    def test_common_factor(self):
        """6x + 9 = 3(2x + 3)."""
        result = FactorizationEngine().run(expanded("6x + 9"))
        assert to_text(result.node) == "3(2x + 3)"
        assert result.success
        assert result.strategy == "common factor"

    def test_difference_of_squares(self):
        """x^2 - 4 = (x + 2)(x - 2)."""
        assert to_text(factor(expanded("x^2 - 4"))) == "(x + 2)(x - 2)"

    def test_repeated_root(self):
        """x^2 + 2x + 1 = (x + 1)^2."""
        assert to_text(factor(expanded("x^2 + 2x + 1"))) == "(x + 1)^2"

    def test_difference_of_cubes(self):
        """x^3 - 8 = (x - 2)(x^2 + 2x + 4)."""
        expected = mul(sub(x, num(2)),
                       add(add(power(x, num(2)), mul(num(2), x)), num(4)))
        assert structurally_equal(factor(expanded("x^3 - 8")), expected)

    def test_grouping(self):
        """x^3 + x^2 + x + 1 = (x^2 + 1)(x + 1)."""
        expected = mul(add(power(x, num(2)), num(1)), add(x, num(1)))
        assert structurally_equal(factor(expanded("x^3 + x^2 + x + 1")), expected)

    def test_substitution(self):
        """x^4 - 5x^2 + 4 splits completely through u = x^2."""
        expected = mul(mul(mul(add(x, num(1)), add(x, num(2))), sub(x, num(1))),
                       sub(x, num(2)))
        assert structurally_equal(factor(expanded("x^4 - 5x^2 + 4")), expected)

    def test_perfect_power(self):
        """x^3 + 3x^2 + 3x + 1 = (x + 1)^3."""
        engine = FactorizationEngine([PerfectPowerStrategy()])
        assert to_text(engine.factor(expanded("x^3 + 3x^2 + 3x + 1"))) == "(x + 1)^3"

    def test_cyclotomic(self):
        """x^5 - 1 and x^5 + 1 split off their linear factor."""
        expected = mul(sub(x, num(1)), expanded("x^4 + x^3 + x^2 + x + 1"))
        assert structurally_equal(factor(expanded("x^5 - 1")), expected)
        expected = mul(add(x, num(1)), expanded("x^4 - x^3 + x^2 - x + 1"))
        assert structurally_equal(factor(expanded("x^5 + 1")), expected)

    def test_cyclotomic_even_plus(self):
        """x^4 + 1 has no rational linear factor."""
        node = expanded("x^4 + 1")
        assert factor(node) == node

    def test_rational_roots_above_cubic(self):
        """A quartic with four rational roots splits completely."""
        expected = mul(mul(mul(sub(x, num(1)), sub(x, num(2))), sub(x, num(3))), sub(x, num(4)))
        result = factor(expanded("x^4 - 10x^3 + 35x^2 - 50x + 24"))
        assert structurally_equal(result, expected)


class TestEngine:
    """Tests for FactorizationEngine."""

    def test_irreducible(self):
        """x^2 + 1 is returned unchanged."""
        node = expanded("x^2 + 1")
        result = FactorizationEngine().run(node)
        assert not result.success
        assert result.node == node
        assert result.strategy is None

    def test_steps(self):
        """A successful strategy leaves a step."""
        steps = []
        factor(expanded("x^2 - 4"), "x", steps)
        assert steps == ["Factored x^2 - 4 by difference of squares: (x + 2)(x - 2)"]

    def test_restricted_strategies(self):
        """Only the listed strategies run."""
        engine = FactorizationEngine([CommonFactorStrategy()])
        node = expanded("x^2 - 4")
        assert engine.factor(node) == node

    def test_empty_strategy_list(self):
        """At least one strategy is required."""
        with pytest.raises(FactorizationSetupError):
            FactorizationEngine([])

    def test_duplicate_strategy(self):
        """Strategy names must be unique."""
        with pytest.raises(FactorizationSetupError):
            FactorizationEngine([CommonFactorStrategy(), CommonFactorStrategy()])

    def test_not_a_strategy(self):
        """Arbitrary objects are rejected."""
        with pytest.raises(FactorizationSetupError):
            FactorizationEngine([CommonFactorStrategy(), "quadratic"])


class TestRoundTrip:
    """Expanding a factorization gives back the polynomial."""

    @pytest.mark.parametrize("text", [
        "x^2 - 5x + 6",
        "x^2 + 3x - 4",
        "2x^2 + 5x - 3",
        "3x^2 - 17x + 10",
        "6x^2 + x - 1",
        "4x^2 - 9",
        "x^2 - 6x + 9",
    ])
    def test_quadratics(self, text):
        """expand(factor(q)) == q for quadratics with rational roots."""
        q = expanded(text)
        factored = factor(q)
        assert not structurally_equal(factored, q)
        assert structurally_equal(expand(factored), q)
