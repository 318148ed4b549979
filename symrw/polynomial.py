"""
Univariate polynomial helpers.

A polynomial is held as {degree: coefficient}. Coefficients are exact
rationals where possible; symbolic coefficients (a*x^2 + b*x + c) are kept
as expression nodes by coefficients().
"""

import math
from fractions import Fraction as Rational
from typing import Dict, List, Optional, Tuple

from .nodes import ASTNode, Identifier
from .scope import contains_free
from .terms import (
    Coefficient, Term, build_product, build_sum, is_integer_value, is_zero,
    make_sum, normalize_coefficient, order_terms, terms_of,
)

Polynomial = Dict[int, Coefficient]


def _variable_degree(term: Term, variable: str) -> Optional[Tuple[int, list]]:
    """Degree of variable in a term plus the remaining factors, or None."""
    degree = 0
    rest = []
    for base, e in term.factors:
        if isinstance(base, Identifier) and base.name == variable and not base.is_bound:
            if not isinstance(e, (Rational, float)) or not is_integer_value(e) or e < 0:
                return None
            degree += int(e)
        elif contains_free(base, variable) or (
                not isinstance(e, (Rational, float)) and contains_free(e, variable)):
            return None
        else:
            rest.append((base, e))
    return degree, rest


def coefficients(node: ASTNode, variable: str) -> Optional[Dict[int, ASTNode]]:
    """Symbolic coefficients of node as a polynomial in variable.

    The node should already be expanded. Returns None when variable appears
    anywhere other than as a non-negative integer power.
    """
    collected: Dict[int, List[ASTNode]] = {}
    for term in terms_of(node):
        found = _variable_degree(term, variable)
        if found is None:
            return None
        degree, rest = found
        collected.setdefault(degree, []).append(build_product(term.coefficient, rest))
    return {k: make_sum(v) for k, v in collected.items()}


def numeric_coefficients(node: ASTNode, variable: str) -> Optional[Polynomial]:
    """Numeric coefficients of node, or None if any coefficient is symbolic."""
    poly: Polynomial = {}
    for term in terms_of(node):
        found = _variable_degree(term, variable)
        if found is None:
            return None
        degree, rest = found
        if rest:
            return None
        poly[degree] = normalize_coefficient(poly.get(degree, Rational(0)) + term.coefficient)
    return {k: v for k, v in poly.items() if not is_zero(v)}


def degree(poly: Dict[int, object]) -> int:
    """Degree of a polynomial; the zero polynomial has degree -1."""
    return max(poly) if poly else -1


def from_coefficients(poly: Polynomial, x: ASTNode) -> ASTNode:
    """Canonical sum for a coefficient dict in the variable node x."""
    terms = []
    for k, c in poly.items():
        if is_zero(c):
            continue
        terms.append(Term(c, [(x, Rational(k))] if k else []))
    return build_sum(order_terms(terms))


def is_integer_polynomial(poly: Polynomial) -> bool:
    return all(isinstance(c, Rational) and c.denominator == 1 for c in poly.values())


def content(poly: Polynomial) -> int:
    """gcd of integer coefficients."""
    g = 0
    for c in poly.values():
        g = math.gcd(g, abs(int(c)))
    return g or 1


def to_dense(poly: Polynomial) -> List[Coefficient]:
    """Coefficient list, highest degree first."""
    n = degree(poly)
    return [poly.get(k, Rational(0)) for k in range(n, -1, -1)]


def divide(dividend: Polynomial, divisor: Polynomial) -> Tuple[Polynomial, Polynomial]:
    """Polynomial long division returning (quotient, remainder)."""
    if not divisor:
        raise ZeroDivisionError("polynomial division by zero")
    remainder = dict(dividend)
    quotient: Polynomial = {}
    d = degree(divisor)
    lead = divisor[d]
    while remainder and degree(remainder) >= d:
        r = degree(remainder)
        factor = normalize_coefficient(remainder[r] / lead)
        quotient[r - d] = factor
        for k, c in divisor.items():
            value = normalize_coefficient(remainder.get(k + r - d, Rational(0)) - factor * c)
            if is_zero(value):
                remainder.pop(k + r - d, None)
            else:
                remainder[k + r - d] = value
    return quotient, remainder


def evaluate_at(poly: Polynomial, value: Coefficient) -> Coefficient:
    return sum((c * value ** k for k, c in poly.items()), Rational(0))


def _divisors(n: int) -> List[int]:
    n = abs(n)
    if not n:
        return [0]
    small = [d for d in range(1, math.isqrt(n) + 1) if n % d == 0]
    return sorted(set(small + [n // d for d in small]))


def rational_roots(poly: Polynomial) -> List[Rational]:
    """Rational roots of an integer polynomial (rational root theorem)."""
    if not poly or not is_integer_polynomial(poly):
        return []
    roots: List[Rational] = []
    low = min(poly)
    if low > 0:
        roots.append(Rational(0))
        poly = {k - low: c for k, c in poly.items()}
    leading = int(poly[degree(poly)])
    constant = int(poly.get(0, 0))
    if constant == 0:
        return roots
    for p in _divisors(constant):
        for q in _divisors(leading):
            for candidate in (Rational(p, q), Rational(-p, q)):
                if candidate not in roots and evaluate_at(poly, candidate) == 0:
                    roots.append(candidate)
    return sorted(roots)
