"""
Expression tree for symrw.

Every expression is one of a closed set of immutable node classes:

    NumberLiteral(3)
    Identifier("x", scope="free", unique_id="free_x")
    BinaryExpression("+", left, right)
    UnaryExpression("-", operand)
    FunctionCall("sin", (arg,))
    Fraction(numerator, denominator)
    Integral(integrand, "x", lower, upper)
    Sum(body, "i", lower, upper)
    Product(body, "i", lower, upper)

Nodes are frozen dataclasses. Rewrites always build new nodes, so a tree can
be shared freely between callers.

Builders:
    num(2), var("x"), add(a, b), sub(a, b), mul(a, b), div(a, b),
    power(a, b), neg(a), call("sin", a)
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple, Union

Number = Union[int, float]

BINARY_OPERATORS = frozenset(["+", "-", "*", "/", "^", "=", ">", "<", ">=", "<="])
COMPARISON_OPERATORS = frozenset(["=", ">", "<", ">=", "<="])
UNARY_OPERATORS = frozenset(["+", "-"])


@dataclass(frozen=True)
class NumberLiteral:
    value: Number

    def to_dict(self) -> Dict[str, Any]:
        return {"type": "NumberLiteral", "value": self.value}


@dataclass(frozen=True)
class Identifier:
    """A variable or named constant.

    scope is None until the tree has been through scope.resolve(), then
    'free' or 'bound'. Bound identifiers carry the unique_id of the binder
    that owns them.
    """

    name: str
    scope: Optional[str] = None
    binding_depth: Optional[int] = None
    binding_context: Optional[str] = None
    unique_id: Optional[str] = None

    @property
    def is_bound(self) -> bool:
        return self.scope == "bound"

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"type": "Identifier", "name": self.name}
        if self.scope is not None:
            data["scope"] = self.scope
        if self.binding_depth is not None:
            data["bindingDepth"] = self.binding_depth
            data["bindingContext"] = self.binding_context
        if self.unique_id is not None:
            data["uniqueId"] = self.unique_id
        return data


@dataclass(frozen=True)
class BinaryExpression:
    operator: str
    left: "ASTNode"
    right: "ASTNode"

    def __post_init__(self):
        if self.operator not in BINARY_OPERATORS:
            raise ValueError(f"Unknown binary operator: {self.operator}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": "BinaryExpression",
            "operator": self.operator,
            "left": self.left.to_dict(),
            "right": self.right.to_dict(),
        }


@dataclass(frozen=True)
class UnaryExpression:
    operator: str
    operand: "ASTNode"

    def __post_init__(self):
        if self.operator not in UNARY_OPERATORS:
            raise ValueError(f"Unknown unary operator: {self.operator}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": "UnaryExpression",
            "operator": self.operator,
            "operand": self.operand.to_dict(),
        }


@dataclass(frozen=True)
class FunctionCall:
    name: str
    args: Tuple["ASTNode", ...] = field(default_factory=tuple)

    def __post_init__(self):
        if not isinstance(self.args, tuple):
            object.__setattr__(self, "args", tuple(self.args))

    @property
    def arg(self) -> "ASTNode":
        """The sole argument of a unary function."""
        return self.args[0]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": "FunctionCall",
            "name": self.name,
            "args": [a.to_dict() for a in self.args],
        }


@dataclass(frozen=True)
class Fraction:
    numerator: "ASTNode"
    denominator: "ASTNode"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": "Fraction",
            "numerator": self.numerator.to_dict(),
            "denominator": self.denominator.to_dict(),
        }


@dataclass(frozen=True)
class _Binder:
    body: "ASTNode"
    variable: str
    lower: Optional["ASTNode"] = None
    upper: Optional["ASTNode"] = None
    unique_id: Optional[str] = None

    kind = "binder"

    @property
    def is_definite(self) -> bool:
        return self.lower is not None and self.upper is not None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "type": type(self).__name__,
            "variable": self.variable,
            "body": self.body.to_dict(),
        }
        if self.lower is not None:
            data["lowerBound"] = self.lower.to_dict()
        if self.upper is not None:
            data["upperBound"] = self.upper.to_dict()
        if self.unique_id is not None:
            data["uniqueId"] = self.unique_id
        return data


@dataclass(frozen=True)
class Integral(_Binder):
    kind = "integral"

    @property
    def integrand(self) -> "ASTNode":
        return self.body


@dataclass(frozen=True)
class Sum(_Binder):
    kind = "sum"


@dataclass(frozen=True)
class Product(_Binder):
    kind = "product"


ASTNode = Union[
    NumberLiteral, Identifier, BinaryExpression, UnaryExpression,
    FunctionCall, Fraction, Integral, Sum, Product,
]

BINDER_TYPES = (Integral, Sum, Product)


# ============================================================
# Builders
# ============================================================

def normalize_number(value: Number) -> Number:
    """Store integral floats as int so 2.0 prints and hashes like 2."""
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, float) and value.is_integer() and abs(value) < 1e15:
        return int(value)
    return value


def num(value: Number) -> NumberLiteral:
    return NumberLiteral(normalize_number(value))


def var(name: str) -> Identifier:
    """A free identifier, already annotated."""
    return Identifier(name, scope="free", unique_id=f"free_{name}")


def add(left: ASTNode, right: ASTNode) -> BinaryExpression:
    return BinaryExpression("+", left, right)


def sub(left: ASTNode, right: ASTNode) -> BinaryExpression:
    return BinaryExpression("-", left, right)


def mul(left: ASTNode, right: ASTNode) -> BinaryExpression:
    return BinaryExpression("*", left, right)


def div(numerator: ASTNode, denominator: ASTNode) -> Fraction:
    return Fraction(numerator, denominator)


def power(base: ASTNode, exponent: ASTNode) -> BinaryExpression:
    return BinaryExpression("^", base, exponent)


def neg(operand: ASTNode) -> UnaryExpression:
    return UnaryExpression("-", operand)


def call(name: str, *args: ASTNode) -> FunctionCall:
    return FunctionCall(name, tuple(args))


ZERO = NumberLiteral(0)
ONE = NumberLiteral(1)
TWO = NumberLiteral(2)


# ============================================================
# Predicates
# ============================================================

def is_number(node: ASTNode, value: Optional[Number] = None) -> bool:
    """True for a NumberLiteral, optionally with the given value."""
    if not isinstance(node, NumberLiteral):
        return False
    return value is None or node.value == value


def is_integer_literal(node: ASTNode) -> bool:
    return isinstance(node, NumberLiteral) and float(node.value).is_integer()


def is_sum(node: ASTNode) -> bool:
    return isinstance(node, BinaryExpression) and node.operator in ("+", "-")


def is_power(node: ASTNode) -> bool:
    return isinstance(node, BinaryExpression) and node.operator == "^"


def is_function(node: ASTNode, *names: str) -> bool:
    if not isinstance(node, FunctionCall):
        return False
    return not names or node.name in names


def children(node: ASTNode) -> Tuple[ASTNode, ...]:
    """Direct sub-expressions of a node, in source order."""
    if isinstance(node, BinaryExpression):
        return (node.left, node.right)
    if isinstance(node, UnaryExpression):
        return (node.operand,)
    if isinstance(node, FunctionCall):
        return node.args
    if isinstance(node, Fraction):
        return (node.numerator, node.denominator)
    if isinstance(node, BINDER_TYPES):
        parts = [node.body]
        if node.lower is not None:
            parts.append(node.lower)
        if node.upper is not None:
            parts.append(node.upper)
        return tuple(parts)
    return ()


def walk(node: ASTNode):
    """Yield every node of a tree, parents before children."""
    yield node
    for child in children(node):
        yield from walk(child)


def map_children(node: ASTNode, fn) -> ASTNode:
    """Rebuild node with fn applied to each direct sub-expression."""
    if isinstance(node, BinaryExpression):
        return BinaryExpression(node.operator, fn(node.left), fn(node.right))
    if isinstance(node, UnaryExpression):
        return UnaryExpression(node.operator, fn(node.operand))
    if isinstance(node, FunctionCall):
        return FunctionCall(node.name, tuple(fn(a) for a in node.args))
    if isinstance(node, Fraction):
        return Fraction(fn(node.numerator), fn(node.denominator))
    if isinstance(node, BINDER_TYPES):
        return type(node)(
            fn(node.body), node.variable,
            fn(node.lower) if node.lower is not None else None,
            fn(node.upper) if node.upper is not None else None,
            node.unique_id,
        )
    return node
