"""
Numeric evaluation of expression trees.

    evaluate(parse("2 + 3 * 4"))                  # 14.0
    evaluate(parse("x^2 + 1"), {"x": 3})          # 10.0
    evaluate(parse("\\sum_{i=1}^{4} i"))          # 10.0
"""

import math
from typing import Dict, Mapping, Optional

from .errors import EvaluationError, MathArithmeticError, UnsupportedConstructError
from .nodes import (
    ASTNode, BinaryExpression, Fraction, FunctionCall, Identifier, Integral,
    NumberLiteral, Product, Sum, UnaryExpression,
)

CONSTANTS = {"π": math.pi, "pi": math.pi, "e": math.e}


def _positive(name: str, fn):
    def checked(x: float) -> float:
        if x <= 0:
            raise EvaluationError(f"{name} is undefined for {x:g}")
        return fn(x)
    return checked


def _sqrt(x: float) -> float:
    if x < 0:
        raise EvaluationError(f"sqrt of negative number {x:g}")
    return math.sqrt(x)


def _unit_interval(name: str, fn):
    def checked(x: float) -> float:
        if not -1 <= x <= 1:
            raise EvaluationError(f"{name} is undefined for {x:g}")
        return fn(x)
    return checked


FUNCTIONS = {
    "sin": math.sin, "cos": math.cos, "tan": math.tan,
    "asin": _unit_interval("asin", math.asin),
    "acos": _unit_interval("acos", math.acos),
    "atan": math.atan,
    "sinh": math.sinh, "cosh": math.cosh, "tanh": math.tanh,
    "exp": math.exp,
    "ln": _positive("ln", math.log),
    "log": _positive("log", math.log10),
    "sqrt": _sqrt,
    "abs": abs,
}


class Evaluator:
    """Evaluates a tree with fixed values for its free variables."""

    def __init__(self, values: Optional[Mapping[str, float]] = None):
        self.values: Dict[str, float] = dict(values or {})

    def __call__(self, node: ASTNode) -> float:
        try:
            result = self.evaluate(node)
        except OverflowError:
            raise EvaluationError("Numeric overflow") from None
        if not math.isfinite(result):
            raise EvaluationError(f"Result is not finite: {result}")
        return result

    def evaluate(self, node: ASTNode) -> float:
        if isinstance(node, NumberLiteral):
            return float(node.value)

        if isinstance(node, Identifier):
            if node.name in self.values:
                return float(self.values[node.name])
            if node.name in CONSTANTS:
                return CONSTANTS[node.name]
            if node.name == "i":
                raise EvaluationError("Cannot evaluate the imaginary unit i numerically")
            raise EvaluationError(f"Undefined variable: {node.name}")

        if isinstance(node, UnaryExpression):
            value = self.evaluate(node.operand)
            return -value if node.operator == "-" else value

        if isinstance(node, Fraction):
            return self.divide(self.evaluate(node.numerator), self.evaluate(node.denominator))

        if isinstance(node, BinaryExpression):
            return self.binary(node)

        if isinstance(node, FunctionCall):
            if node.name not in FUNCTIONS:
                raise EvaluationError(f"Unknown function: {node.name}")
            if node.name == "log" and len(node.args) == 2:
                return self.log_base(*node.args)
            if len(node.args) != 1:
                raise EvaluationError(f"{node.name} expects 1 argument, got {len(node.args)}")
            return float(FUNCTIONS[node.name](self.evaluate(node.arg)))

        if isinstance(node, Integral):
            raise UnsupportedConstructError("Numeric evaluation of integrals is not supported")

        if isinstance(node, (Sum, Product)):
            return self.big_operator(node)

        raise TypeError(f"Not an expression node: {node!r}")

    @staticmethod
    def divide(top: float, bottom: float) -> float:
        if bottom == 0:
            raise MathArithmeticError("Division by zero")
        return top / bottom

    def log_base(self, u: ASTNode, base: ASTNode) -> float:
        value = self.evaluate(u)
        b = self.evaluate(base)
        if value <= 0:
            raise EvaluationError(f"log is undefined for {value:g}")
        if b <= 0 or b == 1:
            raise EvaluationError(f"Invalid logarithm base {b:g}")
        return math.log(value) / math.log(b)

    def binary(self, node: BinaryExpression) -> float:
        op = node.operator
        left = self.evaluate(node.left)
        right = self.evaluate(node.right)
        if op == "+":
            return left + right
        if op == "-":
            return left - right
        if op == "*":
            return left * right
        if op == "/":
            return self.divide(left, right)
        if op == "^":
            if left == 0 and right < 0:
                raise MathArithmeticError("Division by zero")
            if left < 0 and not float(right).is_integer():
                raise EvaluationError(f"Negative base {left:g} with fractional exponent {right:g}")
            return float(left ** right)
        raise UnsupportedConstructError(f"Cannot evaluate comparison '{op}' to a number")

    def big_operator(self, node) -> float:
        if node.lower is None or node.upper is None:
            raise EvaluationError(f"{type(node).__name__} needs both bounds to be evaluated")
        lower = self.evaluate(node.lower)
        upper = self.evaluate(node.upper)
        if not (lower.is_integer() and upper.is_integer()):
            raise EvaluationError(f"{type(node).__name__} bounds must be integers")
        total = 1.0 if isinstance(node, Product) else 0.0
        inner = Evaluator(self.values)
        for i in range(int(lower), int(upper) + 1):
            inner.values[node.variable] = float(i)
            value = inner.evaluate(node.body)
            total = total * value if isinstance(node, Product) else total + value
        return total


def evaluate(node: ASTNode, values: Optional[Mapping[str, float]] = None) -> float:
    """
    Numeric value of node.

    Args:
        node: Expression tree
        values: Values for free variables

    Raises:
        EvaluationError: undefined variable, domain error or non-finite result
        MathArithmeticError: division by zero
        UnsupportedConstructError: integrals and comparisons
    """
    return Evaluator(values)(node)
