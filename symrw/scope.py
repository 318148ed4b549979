"""
Scope resolution for symrw expression trees.

An identifier is bound when an enclosing Integral, Sum or Product declares a
variable of the same name; the innermost binder wins. Resolution runs top
down and hands each subtree its own tuple of active binders, so bounds and
bodies of one binder never see each other's scope.

    resolve(tree)                 # stamp every Identifier free/bound
    free_variables(tree)          # ['x', 'y']
    infer_variable(tree)          # 'x'
    substitute(tree, 'x', num(2)) # replace free x
"""

from dataclasses import replace
from typing import List, Optional, Tuple

from .config import RESERVED_CONSTANTS, VARIABLE_PRIORITY
from .nodes import (
    ASTNode, BinaryExpression, BINDER_TYPES, Fraction, FunctionCall,
    Identifier, NumberLiteral, UnaryExpression,
)

# (name, depth, kind, unique_id)
Binder = Tuple[str, int, str, str]


def bound_id(name: str, depth: int, kind: str) -> str:
    return f"bound_{name}_{depth}_{kind}"


def free_id(name: str) -> str:
    return f"free_{name}"


def resolve(root: ASTNode, binders: Tuple[Binder, ...] = ()) -> ASTNode:
    """Annotate every Identifier in a tree as free or bound.

    Args:
        root: Tree to annotate (annotations already present are recomputed)
        binders: Binders active around root, innermost last

    Returns:
        A new tree with scope, binding depth and unique ids filled in
    """
    if isinstance(root, Identifier):
        for name, depth, kind, uid in reversed(binders):
            if name == root.name:
                return Identifier(root.name, "bound", depth, kind, uid)
        return Identifier(root.name, "free", None, None, free_id(root.name))

    if isinstance(root, NumberLiteral):
        return root

    if isinstance(root, BinaryExpression):
        return BinaryExpression(root.operator, resolve(root.left, binders),
                                resolve(root.right, binders))

    if isinstance(root, UnaryExpression):
        return UnaryExpression(root.operator, resolve(root.operand, binders))

    if isinstance(root, FunctionCall):
        return FunctionCall(root.name, tuple(resolve(a, binders) for a in root.args))

    if isinstance(root, Fraction):
        return Fraction(resolve(root.numerator, binders),
                        resolve(root.denominator, binders))

    if isinstance(root, BINDER_TYPES):
        depth = len(binders) + 1
        uid = bound_id(root.variable, depth, root.kind)
        inner = binders + ((root.variable, depth, root.kind, uid),)
        # Bounds live in the enclosing scope
        lower = resolve(root.lower, binders) if root.lower is not None else None
        upper = resolve(root.upper, binders) if root.upper is not None else None
        return type(root)(resolve(root.body, inner), root.variable, lower, upper, uid)

    raise TypeError(f"Not an expression node: {root!r}")


def map_identifiers(node: ASTNode, fn) -> ASTNode:
    """Rebuild a tree, replacing each Identifier with fn(identifier)."""
    if isinstance(node, Identifier):
        return fn(node)
    if isinstance(node, NumberLiteral):
        return node
    if isinstance(node, BinaryExpression):
        return BinaryExpression(node.operator, map_identifiers(node.left, fn),
                                map_identifiers(node.right, fn))
    if isinstance(node, UnaryExpression):
        return UnaryExpression(node.operator, map_identifiers(node.operand, fn))
    if isinstance(node, FunctionCall):
        return FunctionCall(node.name, tuple(map_identifiers(a, fn) for a in node.args))
    if isinstance(node, Fraction):
        return Fraction(map_identifiers(node.numerator, fn),
                        map_identifiers(node.denominator, fn))
    if isinstance(node, BINDER_TYPES):
        return replace(
            node,
            body=map_identifiers(node.body, fn),
            lower=map_identifiers(node.lower, fn) if node.lower is not None else None,
            upper=map_identifiers(node.upper, fn) if node.upper is not None else None,
        )
    raise TypeError(f"Not an expression node: {node!r}")


def is_free_occurrence(node: ASTNode, name: str) -> bool:
    """True if node is an identifier called name that no binder owns."""
    return isinstance(node, Identifier) and node.name == name and not node.is_bound


def contains_free(node: ASTNode, name: str) -> bool:
    """True if name occurs free anywhere in node."""
    if isinstance(node, Identifier):
        return is_free_occurrence(node, name)
    if isinstance(node, NumberLiteral):
        return False
    if isinstance(node, BINDER_TYPES):
        parts = [node.body, node.lower, node.upper]
        return any(contains_free(p, name) for p in parts if p is not None)
    if isinstance(node, BinaryExpression):
        return contains_free(node.left, name) or contains_free(node.right, name)
    if isinstance(node, UnaryExpression):
        return contains_free(node.operand, name)
    if isinstance(node, FunctionCall):
        return any(contains_free(a, name) for a in node.args)
    if isinstance(node, Fraction):
        return (contains_free(node.numerator, name)
                or contains_free(node.denominator, name))
    return False


def free_variables(node: ASTNode) -> List[str]:
    """Names of free identifiers in first-appearance order, constants excluded."""
    names: List[str] = []

    def visit(n: ASTNode):
        if isinstance(n, Identifier):
            if not n.is_bound and n.name not in RESERVED_CONSTANTS and n.name not in names:
                names.append(n.name)
            return
        if isinstance(n, BINDER_TYPES):
            for part in (n.lower, n.upper, n.body):
                if part is not None:
                    visit(part)
            return
        if isinstance(n, BinaryExpression):
            visit(n.left)
            visit(n.right)
        elif isinstance(n, UnaryExpression):
            visit(n.operand)
        elif isinstance(n, FunctionCall):
            for a in n.args:
                visit(a)
        elif isinstance(n, Fraction):
            visit(n.numerator)
            visit(n.denominator)

    visit(node)
    return names


def infer_variable(node: ASTNode, default: str = "x") -> str:
    """Pick the variable an operation most likely refers to."""
    names = free_variables(node)
    for candidate in VARIABLE_PRIORITY:
        if candidate in names:
            return candidate
    return names[0] if names else default


def unbind(node: ASTNode, unique_id: Optional[str]) -> ASTNode:
    """Turn identifiers owned by the binder unique_id into free identifiers."""
    def fn(ident: Identifier) -> ASTNode:
        if ident.is_bound and ident.unique_id == unique_id:
            return Identifier(ident.name, "free", None, None, free_id(ident.name))
        return ident
    return map_identifiers(node, fn)


def substitute(node: ASTNode, name: str, replacement: ASTNode) -> ASTNode:
    """Replace the free occurrences of name with replacement."""
    def fn(ident: Identifier) -> ASTNode:
        return replacement if is_free_occurrence(ident, name) else ident
    return map_identifiers(node, fn)
