"""
Symbolic differentiation.

    differentiate(parse("x^3 + \\sin(x)"), "x")   # 3x^2 + cos(x)

Rules are applied recursively; every compound sub-result goes through the
simplifier with expansion off so derivatives keep a factored look. Only free
occurrences of the variable count: the x bound by an enclosing integral is a
different variable.
"""

import logging
from typing import List, Optional

from .errors import UnsupportedConstructError
from .nodes import (
    ASTNode, BinaryExpression, BINDER_TYPES, COMPARISON_OPERATORS, Fraction,
    FunctionCall, Identifier, NumberLiteral, UnaryExpression, ONE, TWO, ZERO,
    add, call, div, is_number, mul, neg, num, power, sub,
)
from .scope import contains_free, is_free_occurrence
from .simplify import SimplifyOptions, simplify

logger = logging.getLogger(__name__)

DERIVATIVE_OPTIONS = SimplifyOptions(expand=False)


def _outer_derivative(name: str, u: ASTNode) -> Optional[ASTNode]:
    """f'(u) for the built-in functions."""
    if name == "sin":
        return call("cos", u)
    if name == "cos":
        return neg(call("sin", u))
    if name == "tan":
        return div(ONE, power(call("cos", u), TWO))
    if name == "exp":
        return call("exp", u)
    if name == "ln":
        return div(ONE, u)
    if name == "log":
        return div(ONE, mul(u, call("ln", num(10))))
    if name == "sqrt":
        return div(ONE, mul(TWO, call("sqrt", u)))
    if name == "asin":
        return div(ONE, call("sqrt", sub(ONE, power(u, TWO))))
    if name == "acos":
        return neg(div(ONE, call("sqrt", sub(ONE, power(u, TWO)))))
    if name == "atan":
        return div(ONE, add(ONE, power(u, TWO)))
    if name == "sinh":
        return call("cosh", u)
    if name == "cosh":
        return call("sinh", u)
    if name == "tanh":
        return div(ONE, power(call("cosh", u), TWO))
    if name == "abs":
        return div(u, call("abs", u))
    return None


class Differentiator:
    """Differentiates with respect to one variable, recording steps."""

    def __init__(self, variable: str, steps: Optional[List[str]] = None):
        self.variable = variable
        self.steps = [] if steps is None else steps

    def note(self, message: str):
        self.steps.append(message)

    def simplified(self, node: ASTNode) -> ASTNode:
        return simplify(node, DERIVATIVE_OPTIONS)

    def d(self, node: ASTNode) -> ASTNode:
        v = self.variable
        if isinstance(node, NumberLiteral):
            return ZERO
        if isinstance(node, Identifier):
            return ONE if is_free_occurrence(node, v) else ZERO
        if isinstance(node, BINDER_TYPES):
            if node.lower is not None and node.upper is not None and not contains_free(node, v):
                return ZERO
            raise UnsupportedConstructError(
                f"Differentiation of {type(node).__name__} is not yet implemented")
        if isinstance(node, UnaryExpression):
            inner = self.d(node.operand)
            return self.simplified(neg(inner)) if node.operator == "-" else inner
        if isinstance(node, Fraction):
            return self.quotient(node.numerator, node.denominator)
        if isinstance(node, FunctionCall):
            return self.function(node)
        if isinstance(node, BinaryExpression):
            op = node.operator
            if op in COMPARISON_OPERATORS:
                return BinaryExpression(op, self.d(node.left), self.d(node.right))
            if op in ("+", "-"):
                self.note(f"{'Sum' if op == '+' else 'Difference'} rule: "
                          f"d/d{v}(u {op} v) = u' {op} v'")
                return self.simplified(BinaryExpression(op, self.d(node.left), self.d(node.right)))
            if op == "*":
                return self.product(node.left, node.right)
            if op == "/":
                return self.quotient(node.left, node.right)
            return self.power(node.left, node.right)
        raise TypeError(f"Not an expression node: {node!r}")

    def product(self, u: ASTNode, w: ASTNode) -> ASTNode:
        du, dw = self.d(u), self.d(w)
        if is_number(du, 0):
            return self.simplified(mul(u, dw))
        if is_number(dw, 0):
            return self.simplified(mul(du, w))
        self.note(f"Product rule: d/d{self.variable}(uv) = u'v + uv'")
        return self.simplified(add(mul(du, w), mul(u, dw)))

    def quotient(self, u: ASTNode, w: ASTNode) -> ASTNode:
        du, dw = self.d(u), self.d(w)
        if is_number(dw, 0):
            return self.simplified(div(du, w))
        if is_number(du, 0):
            self.note(f"Reciprocal rule: d/d{self.variable}(u/v) = -uv'/v^2")
            return self.simplified(neg(div(mul(u, dw), power(w, TWO))))
        self.note(f"Quotient rule: d/d{self.variable}(u/v) = (u'v - uv')/v^2")
        return self.simplified(div(sub(mul(du, w), mul(u, dw)), power(w, TWO)))

    def power(self, base: ASTNode, exponent: ASTNode) -> ASTNode:
        v = self.variable
        constant_base = not contains_free(base, v)
        constant_exponent = not contains_free(exponent, v)
        if constant_base and constant_exponent:
            return ZERO
        if constant_exponent:
            self.note(f"Power rule: d/d{v}(u^n) = n*u^(n-1)*u'")
            du = self.d(base)
            return self.simplified(mul(mul(exponent, power(base, sub(exponent, ONE))), du))
        dx = self.d(exponent)
        if constant_base:
            self.note(f"Exponential rule: d/d{v}(a^u) = a^u*ln(a)*u'")
            if isinstance(base, Identifier) and base.name == "e":
                return self.simplified(mul(call("exp", exponent), dx))
            return self.simplified(mul(mul(power(base, exponent), call("ln", base)), dx))
        self.note(f"General power rule: d/d{v}(u^w) = u^w*(w'*ln(u) + w*u'/u)")
        du = self.d(base)
        inner = add(mul(dx, call("ln", base)), div(mul(exponent, du), base))
        return self.simplified(mul(power(base, exponent), inner))

    def function(self, node: FunctionCall) -> ASTNode:
        if not contains_free(node, self.variable):
            return ZERO
        if node.name == "log" and len(node.args) == 2:
            return self.log_base(*node.args)
        if len(node.args) != 1:
            raise UnsupportedConstructError(
                f"Differentiation of {node.name} is not yet implemented")
        u = node.arg
        outer = _outer_derivative(node.name, u)
        if outer is None:
            raise UnsupportedConstructError(
                f"Differentiation of {node.name} is not yet implemented")
        du = self.d(u)
        if is_number(du, 0):
            return ZERO
        if is_number(du, 1):
            self.note(f"Derivative of {node.name}")
            return self.simplified(outer)
        self.note(f"Chain rule: d/d{self.variable} {node.name}(u) = {node.name}'(u)*u'")
        return self.simplified(mul(outer, du))

    def log_base(self, u: ASTNode, base: ASTNode) -> ASTNode:
        """log_b(u) = ln(u)/ln(b); only a constant base is supported."""
        if contains_free(base, self.variable):
            raise UnsupportedConstructError(
                "Differentiation of log with a variable base is not yet implemented")
        self.note(f"Logarithm rule: d/d{self.variable} log_b(u) = u'/(u*ln(b))")
        return self.simplified(div(self.d(u), mul(u, call("ln", base))))


def differentiate(node: ASTNode, variable: str, steps: Optional[List[str]] = None) -> ASTNode:
    """
    Derivative of node with respect to variable.

    Raises:
        UnsupportedConstructError: for integrals, sums, products and
            unknown functions of the variable
    """
    logger.debug("Differentiating with respect to %s", variable)
    return Differentiator(variable, steps).d(node)
