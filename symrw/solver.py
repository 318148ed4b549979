"""
Polynomial equation solver.

    solve(parse("x^2 - 5x + 6"), "x")     # [2, 3]
    solve(parse("2x + 1 = 7"), "x")       # [3]

An equation a = b is solved as a - b = 0. Linear and quadratic equations are
solved directly; higher degrees are factored first and every factor of
degree at most two is solved in turn.
"""

import logging
from typing import Dict, List, Optional

from .errors import SymrwError, SolverError, UnsupportedConstructError
from .evaluator import evaluate
from .factorization import factor
from .latex import to_text
from .nodes import (
    ASTNode, BinaryExpression, FunctionCall, TWO, ZERO, call, div, is_number,
    mul, neg, num, power, sub,
)
from .polynomial import coefficients, degree
from .scope import contains_free
from .simplify import simplify
from .terms import canonical_key, decompose, numeric_value

logger = logging.getLogger(__name__)

DEGREE_NAMES = {0: "constant", 1: "linear", 2: "quadratic", 3: "cubic"}


def equation_to_zero(node: ASTNode) -> ASTNode:
    """a = b becomes a - b; other expressions are taken as expr = 0."""
    if isinstance(node, BinaryExpression) and node.operator == "=":
        return sub(node.left, node.right)
    if isinstance(node, BinaryExpression) and node.operator in (">", "<", ">=", "<="):
        raise UnsupportedConstructError("Inequalities cannot be solved")
    return node


def _polynomial(node: ASTNode, variable: str) -> Dict[int, ASTNode]:
    poly = coefficients(node, variable)
    if poly is None:
        raise UnsupportedConstructError(
            f"Cannot solve {to_text(node)} = 0 for {variable}: not a polynomial equation")
    return {k: c for k, c in poly.items() if not is_number(c, 0)}


def _linear(poly: Dict[int, ASTNode], steps: List[str]) -> List[ASTNode]:
    a, b = poly[1], poly.get(0, ZERO)
    root = simplify(neg(div(b, a)))
    steps.append(f"Linear equation: root -b/a = {to_text(root)}")
    return [root]


def _quadratic(poly: Dict[int, ASTNode], steps: List[str]) -> List[ASTNode]:
    a, b, c = poly[2], poly.get(1, ZERO), poly.get(0, ZERO)
    discriminant = simplify(sub(power(b, TWO), mul(mul(num(4), a), c)))
    steps.append(f"Discriminant: D = b^2 - 4ac = {to_text(discriminant)}")
    value = numeric_value(discriminant)
    denominator = mul(TWO, a)
    if value is not None and value < 0:
        steps.append("D < 0: no real solutions")
        return []
    if value is not None and value == 0:
        root = simplify(div(neg(b), denominator))
        steps.append(f"D = 0: one repeated root {to_text(root)}")
        return [root]
    root_d = call("sqrt", discriminant)
    roots = [simplify(div(sub(neg(b), root_d), denominator)),
             simplify(div(BinaryExpression("+", neg(b), root_d), denominator))]
    steps.append("Quadratic formula: x = (-b ± sqrt(D))/(2a)")
    return roots


def _solve_polynomial(node: ASTNode, variable: str, steps: List[str]) -> List[ASTNode]:
    poly = _polynomial(node, variable)
    n = degree(poly)
    steps.append(f"Detected {DEGREE_NAMES.get(n, f'degree {n}')} equation")
    if n <= 0:
        if not poly:
            raise SolverError("The equation holds for every value: infinitely many solutions")
        raise SolverError("No solution: the equation reduces to a nonzero constant")
    if n == 1:
        return _linear(poly, steps)
    if n == 2:
        return _quadratic(poly, steps)
    return _solve_by_factoring(node, variable, n, steps)


def _solve_by_factoring(node: ASTNode, variable: str, n: int, steps: List[str]) -> List[ASTNode]:
    factored = factor(node, variable, steps)
    _, factors = decompose(factored)
    pieces = [(b, e) for b, e in factors if contains_free(b, variable)]
    if len(pieces) == 1 and pieces[0][1] == 1:
        raise UnsupportedConstructError(
            f"Cannot solve degree {n} equation {to_text(node)} = 0: no factorization found")
    steps.append(f"Factored: {to_text(factored)} = 0")
    roots: List[ASTNode] = []
    for base, _ in pieces:
        piece = simplify(base)
        d = degree(_polynomial(piece, variable))
        if d > 2:
            raise UnsupportedConstructError(
                f"Cannot solve factor {to_text(piece)} = 0 of degree {d}")
        roots.extend(_solve_polynomial(piece, variable, steps))
    return roots


def _sort_key(root: ASTNode):
    try:
        return (0, evaluate(root))
    except (SymrwError, ArithmeticError):
        return (1, 0.0)


def solve(node: ASTNode, variable: str, steps: Optional[List[str]] = None) -> List[ASTNode]:
    """
    Real solutions of a polynomial equation in variable.

    Numeric roots are sorted ascending and duplicates are removed; an empty
    list means there is no real solution.

    Raises:
        SolverError: when the equation has no variable left to solve for
        UnsupportedConstructError: for non-polynomial equations and
            unfactorable polynomials above degree two
    """
    steps = [] if steps is None else steps
    expression = simplify(equation_to_zero(node))
    steps.append(f"Rearranged: {to_text(expression)} = 0")
    roots = _solve_polynomial(expression, variable, steps)

    unique: List[ASTNode] = []
    seen = set()
    for root in sorted(roots, key=_sort_key):
        key = canonical_key(root)
        if key not in seen:
            seen.add(key)
            unique.append(root)
    logger.debug("Solved for %s: %s", variable, ", ".join(to_text(r) for r in unique))
    return unique


def solution_set(roots: List[ASTNode]) -> FunctionCall:
    return FunctionCall("set", tuple(roots))
