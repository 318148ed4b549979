"""Tests for expression tree nodes and builders."""

import pytest

from symrw.nodes import (
    BinaryExpression, FunctionCall, Identifier, Integral, NumberLiteral,
    UnaryExpression, add, call, children, div, is_function, is_integer_literal,
    is_number, is_sum, map_children, mul, neg, num, power, var, walk,
)


class TestBuilders:
    """Tests for the node builder helpers."""

    def test_num_normalizes_integral_floats(self):
        """2.0 is stored as the int 2."""
        assert num(2.0) == NumberLiteral(2)
        assert isinstance(num(2.0).value, int)
        assert num(2.5).value == 2.5

    def test_var_is_annotated_free(self):
        """var() builds an already-resolved free identifier."""
        x = var("x")
        assert x.scope == "free"
        assert x.unique_id == "free_x"
        assert not x.is_bound

    def test_function_args_become_tuple(self):
        """Arguments passed as a list are stored as a tuple."""
        node = FunctionCall("sin", [var("x")])
        assert node.args == (var("x"),)
        assert node.arg == var("x")
        assert call("sin", var("x")) == node

    def test_nodes_are_hashable(self):
        """Frozen nodes can live in sets."""
        assert len({add(var("x"), num(1)), add(var("x"), num(1))}) == 1

    def test_unknown_operator_rejected(self):
        """Binary and unary operators come from a closed set."""
        with pytest.raises(ValueError):
            BinaryExpression("%", num(1), num(2))
        with pytest.raises(ValueError):
            UnaryExpression("!", num(1))


class TestPredicates:
    """Tests for the shape predicates."""

    def test_is_number(self):
        """is_number optionally checks the value."""
        assert is_number(num(0))
        assert is_number(num(0), 0)
        assert not is_number(num(1), 0)
        assert not is_number(var("x"))

    def test_is_integer_literal(self):
        """Only whole-number literals qualify."""
        assert is_integer_literal(num(3))
        assert not is_integer_literal(num(0.5))

    def test_is_sum_and_function(self):
        """Sums cover + and -, functions may be filtered by name."""
        assert is_sum(BinaryExpression("-", var("x"), num(1)))
        assert not is_sum(mul(var("x"), num(1)))
        assert is_function(call("sin", var("x")), "sin", "cos")
        assert not is_function(call("ln", var("x")), "sin")


class TestTraversal:
    """Tests for children, walk and map_children."""

    def setup_method(self):
        self.tree = add(mul(num(2), var("x")), call("sin", var("y")))

    def test_children(self):
        """Direct children come back in source order."""
        assert children(self.tree) == (mul(num(2), var("x")), call("sin", var("y")))
        assert children(var("x")) == ()

    def test_walk_visits_everything(self):
        """walk yields parents before children."""
        nodes = list(walk(self.tree))
        assert nodes[0] == self.tree
        assert len(nodes) == 6

    def test_map_children(self):
        """map_children rebuilds one level."""
        doubled = map_children(self.tree, lambda n: mul(num(2), n))
        assert doubled.left == mul(num(2), mul(num(2), var("x")))

    def test_integral_children_include_bounds(self):
        """Bounds are sub-expressions of a definite integral."""
        integral = Integral(var("x"), "x", num(0), num(1))
        assert integral.is_definite
        assert children(integral) == (var("x"), num(0), num(1))
        assert integral.integrand == var("x")


class TestSerialization:
    """Tests for to_dict."""

    def test_binary_to_dict(self):
        """Nested nodes serialize recursively."""
        data = add(var("x"), num(1)).to_dict()
        assert data["type"] == "BinaryExpression"
        assert data["operator"] == "+"
        assert data["right"] == {"type": "NumberLiteral", "value": 1}
        assert data["left"]["name"] == "x"

    def test_bare_identifier(self):
        """Unresolved identifiers carry only their name."""
        assert Identifier("x").to_dict() == {"type": "Identifier", "name": "x"}

    def test_integral_to_dict(self):
        """Integral bounds use lowerBound and upperBound keys."""
        data = Integral(power(var("x"), num(2)), "x", num(0), num(1)).to_dict()
        assert data["type"] == "Integral"
        assert data["variable"] == "x"
        assert data["lowerBound"] == {"type": "NumberLiteral", "value": 0}

    def test_fraction_and_unary(self):
        """Fractions and negation serialize with their parts."""
        assert div(num(1), var("x")).to_dict()["type"] == "Fraction"
        assert neg(num(1)).to_dict()["operand"] == {"type": "NumberLiteral", "value": 1}
