"""
Polynomial factorization.

Factorization is an ordered list of strategies; the first strategy whose
precondition holds and which produces a result wins:

    common factor        6x^2 + 9x        -> 3x(2x + 3)
    difference of squares  x^2 - 4        -> (x + 2)(x - 2)
    quadratic            x^2 - 5x + 6     -> (x - 2)(x - 3)
    grouping             x^3 + x^2 + x + 1 -> (x^2 + 1)(x + 1)
    cubic                x^3 - 8          -> (x - 2)(x^2 + 2x + 4)
    substitution         x^4 - 5x^2 + 4   -> via u = x^2
    perfect power        x^4 + 4x^3 + ... -> (x + 1)^4
    cyclotomic           x^5 - 1          -> (x - 1)(x^4 + x^3 + x^2 + x + 1)
    rational root        x^4 - 10x^3 + ... -> (x - 1)(x - 2)(x - 3)(x - 4)

Input is expected in expanded canonical form (what the simplifier produces).
This module never calls the simplifier; it rebuilds results with the
structural helpers in symrw.terms.
"""

import logging
import math
from dataclasses import dataclass, field
from fractions import Fraction as Rational
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from .errors import FactorizationSetupError
from .latex import to_text
from .nodes import (
    ASTNode, FunctionCall, Identifier, UnaryExpression, is_power, is_sum, var, walk,
)
from .polynomial import (
    degree, divide, from_coefficients, is_integer_polynomial, numeric_coefficients,
    rational_roots,
)
from .scope import contains_free, free_variables, infer_variable, substitute
from .terms import (
    Factor, Term, build_product, build_sum, canonical_key, coefficient_node,
    combine_like_terms, decompose, exact_power, integer_content, integer_root,
    is_integer_value, make_product, make_sum, order_terms, terms_of,
)

logger = logging.getLogger(__name__)

Recurse = Callable[[ASTNode, str], ASTNode]


@dataclass
class FactorizationResult:
    node: ASTNode
    success: bool
    steps: List[str] = field(default_factory=list)
    strategy: Optional[str] = None


# ============================================================
# Helpers
# ============================================================

def _terms(node: ASTNode) -> List[Term]:
    return combine_like_terms(terms_of(node))


def _sum(terms: List[Term]) -> ASTNode:
    return build_sum(order_terms(combine_like_terms(terms)))


def _variable_node(node: ASTNode, variable: str) -> ASTNode:
    for n in walk(node):
        if isinstance(n, Identifier) and n.name == variable and not n.is_bound:
            return n
    return var(variable)


def _renormalize(node: ASTNode) -> ASTNode:
    """Canonical product of canonical sums, after a substitution."""
    if is_sum(node) or isinstance(node, UnaryExpression):
        return make_sum([node])
    c, factors = decompose(node)
    return build_product(c, [(_renormalize(b) if is_sum(b) else b, e) for b, e in factors])


def _monomial_split(terms: List[Term]) -> Tuple[Rational, List[Factor]]:
    """Integer gcd of the coefficients and the common monomial factors."""
    g = Rational(integer_content(terms))
    common: List[Factor] = []
    first = terms[0]
    for base, e in first.factors:
        if not isinstance(e, Rational) or e <= 0:
            continue
        key = canonical_key(base)
        smallest = e
        for other in terms[1:]:
            match = [x for b, x in other.factors if canonical_key(b) == key]
            if not match or not isinstance(match[0], Rational) or match[0] <= 0:
                smallest = None
                break
            smallest = min(smallest, match[0])
        if smallest is not None:
            common.append((base, smallest))
    return g, common


def _divide_terms(terms: List[Term], g: Rational, common: List[Factor]) -> List[Term]:
    inverse = [(b, -e) for b, e in common]
    return [Term(t.coefficient / g, t.factors + inverse) for t in terms]


def _poly(node: ASTNode, variable: str) -> Optional[Dict[int, Rational]]:
    poly = numeric_coefficients(node, variable)
    if poly is None or not is_integer_polynomial(poly):
        return None
    return poly


def _linear(root: Rational, x: ASTNode) -> ASTNode:
    """q*x - p for the root p/q."""
    return from_coefficients({1: Rational(root.denominator), 0: Rational(-root.numerator)}, x)


# ============================================================
# Strategies
# ============================================================

class FactorizationStrategy:
    """Base class: applies() is the cheap precondition, factor() does the work.

    factor() returns None when the strategy does not produce a factorization.
    recurse(node, variable) factors sub-results with the whole engine.
    """

    name = "strategy"

    def applies(self, terms: List[Term], variable: str) -> bool:
        return len(terms) >= 2

    def factor(self, node: ASTNode, terms: List[Term], variable: str,
               recurse: Recurse) -> Optional[ASTNode]:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class CommonFactorStrategy(FactorizationStrategy):
    name = "common factor"

    def factor(self, node, terms, variable, recurse):
        g, common = _monomial_split(terms)
        if g == 1 and not common:
            return None
        cofactor = recurse(_sum(_divide_terms(terms, g, common)), variable)
        return make_product([build_product(g, common), cofactor])


def _square_root_term(term: Term) -> Optional[Term]:
    root = exact_power(abs(term.coefficient), Rational(1, 2))
    if root is None or isinstance(root, float) and not root.is_integer():
        return None
    factors = []
    for base, e in term.factors:
        if not isinstance(e, Rational) or e.denominator != 1 or e.numerator % 2:
            return None
        factors.append((base, e / 2))
    return Term(root, factors)


class DifferenceOfSquaresStrategy(FactorizationStrategy):
    name = "difference of squares"

    def applies(self, terms, variable):
        return len(terms) == 2 and terms[0].sign != terms[1].sign

    def factor(self, node, terms, variable, recurse):
        positive, negative = sorted(terms, key=lambda t: -t.sign)
        a, b = _square_root_term(positive), _square_root_term(negative)
        if a is None or b is None:
            return None
        minus = recurse(_sum([a, Term(-b.coefficient, b.factors)]), variable)
        plus = recurse(_sum([a, b]), variable)
        return make_product([minus, plus])


class QuadraticStrategy(FactorizationStrategy):
    name = "quadratic"

    def applies(self, terms, variable):
        return 2 <= len(terms) <= 3

    def factor(self, node, terms, variable, recurse):
        poly = _poly(node, variable)
        if poly is None or degree(poly) != 2:
            return None
        a, b, c = (poly.get(k, Rational(0)) for k in (2, 1, 0))
        discriminant = b * b - 4 * a * c
        if discriminant < 0:
            return None
        root = integer_root(int(discriminant), 2)
        if root is None:
            return None
        r1, r2 = sorted([(-b - root) / (2 * a), (-b + root) / (2 * a)])
        k = a / (r1.denominator * r2.denominator)
        x = _variable_node(node, variable)
        return make_product([coefficient_node(k), _linear(r1, x), _linear(r2, x)])


class GroupingStrategy(FactorizationStrategy):
    name = "grouping"
    PAIRINGS = (((0, 1), (2, 3)), ((0, 2), (1, 3)), ((0, 3), (1, 2)))

    def applies(self, terms, variable):
        return len(terms) == 4

    @staticmethod
    def _split_pair(pair: List[Term]) -> Tuple[ASTNode, ASTNode]:
        g, common = _monomial_split(pair)
        rest = _divide_terms(pair, g, common)
        if rest[0].coefficient < 0:
            g = -g
            rest = [Term(-t.coefficient, t.factors) for t in rest]
        return build_product(g, common), _sum(rest)

    def factor(self, node, terms, variable, recurse):
        ordered = order_terms(terms)
        for first, second in self.PAIRINGS:
            m1, b1 = self._split_pair([ordered[i] for i in first])
            m2, b2 = self._split_pair([ordered[i] for i in second])
            if not is_sum(b1) or canonical_key(b1) != canonical_key(b2):
                continue
            outer = recurse(make_sum([m1, m2]), variable)
            return make_product([outer, recurse(b1, variable)])
        return None


class CyclotomicStrategy(FactorizationStrategy):
    """x^n - 1 = (x - 1)(x^(n-1) + ... + x + 1), and x^n + 1 for odd n with alternating signs."""

    name = "cyclotomic"

    def applies(self, terms, variable):
        return len(terms) == 2

    def factor(self, node, terms, variable, recurse):
        poly = _poly(node, variable)
        if poly is None:
            return None
        n = degree(poly)
        if n < 3 or set(poly) != {0, n} or poly[n] != 1 or abs(poly[0]) != 1:
            return None
        root = -int(poly[0])
        if root == -1 and n % 2 == 0:
            return None
        x = _variable_node(node, variable)
        quotient = {k: Rational(root ** (n - 1 - k)) for k in range(n)}
        rest = recurse(from_coefficients(quotient, x), variable)
        return make_product([_linear(Rational(root), x), rest])


def _split_rational_root(poly, x, variable, recurse) -> Optional[ASTNode]:
    """(qx - p) times the factored quotient, for the smallest rational root p/q."""
    for root in rational_roots(poly):
        divisor = {1: Rational(root.denominator), 0: Rational(-root.numerator)}
        quotient, remainder = divide(poly, divisor)
        if remainder:
            continue
        rest = recurse(from_coefficients(quotient, x), variable)
        return make_product([_linear(root, x), rest])
    return None


class CubicStrategy(FactorizationStrategy):
    name = "cubic"

    def factor(self, node, terms, variable, recurse):
        poly = _poly(node, variable)
        if poly is None or degree(poly) != 3:
            return None
        x = _variable_node(node, variable)
        if set(poly) == {0, 3}:
            cubes = self._cubes(poly, x)
            if cubes is not None:
                return cubes
        return _split_rational_root(poly, x, variable, recurse)

    @staticmethod
    def _cubes(poly, x) -> Optional[ASTNode]:
        """a^3 x^3 + b^3 = (ax + b)(a^2 x^2 - ab x + b^2)."""
        lead, const = poly[3], poly[0]
        p = integer_root(abs(int(lead)), 3)
        q = integer_root(abs(int(const)), 3)
        if p is None or q is None:
            return None
        p = p if lead > 0 else -p
        q = q if const > 0 else -q
        linear = from_coefficients({1: Rational(p), 0: Rational(q)}, x)
        quadratic = from_coefficients({2: Rational(p * p), 1: Rational(-p * q),
                                       0: Rational(q * q)}, x)
        return make_product([linear, quadratic])


_FRESH_NAMES = ("u", "v", "w", "s", "t", "z")


class SubstitutionStrategy(FactorizationStrategy):
    name = "substitution"

    def factor(self, node, terms, variable, recurse):
        fresh = next((n for n in _FRESH_NAMES if n not in free_variables(node)), None)
        if fresh is None:
            return None
        return self._power_gcd(node, variable, fresh, recurse) or \
            self._repeated_base(node, terms, variable, fresh, recurse)

    @staticmethod
    def _power_gcd(node, variable, fresh, recurse) -> Optional[ASTNode]:
        poly = numeric_coefficients(node, variable)
        if poly is None or len(poly) < 2:
            return None
        k = 0
        for d in poly:
            k = math.gcd(k, d)
        if k < 2:
            return None
        u = var(fresh)
        reduced = from_coefficients({d // k: c for d, c in poly.items()}, u)
        factored = recurse(reduced, fresh)
        if canonical_key(factored) == canonical_key(reduced):
            return None
        x = _variable_node(node, variable)
        restored = substitute(factored, fresh, build_product(1, [(x, Rational(k))]))
        return recurse(_renormalize(restored), variable)

    @staticmethod
    def _repeated_base(node, terms, variable, fresh, recurse) -> Optional[ASTNode]:
        candidates: Dict[str, ASTNode] = {}
        for t in terms:
            for base, e in t.factors:
                if not isinstance(base, Identifier) and contains_free(base, variable):
                    candidates.setdefault(canonical_key(base), base)
        u = var(fresh)
        for key, base in candidates.items():
            replaced = []
            for t in terms:
                factors = []
                for b, e in t.factors:
                    if canonical_key(b) == key and is_integer_value(e):
                        factors.append((u, e))
                    elif contains_free(b, variable):
                        break
                    else:
                        factors.append((b, e))
                else:
                    replaced.append(Term(t.coefficient, factors))
                    continue
                break
            else:
                if not all(t.is_constant or any(b == u for b, _ in t.factors) for t in replaced):
                    continue
                reduced = _sum(replaced)
                factored = recurse(reduced, fresh)
                if canonical_key(factored) == canonical_key(reduced):
                    continue
                return recurse(_renormalize(substitute(factored, fresh, base)), variable)
        return None


class PerfectPowerStrategy(FactorizationStrategy):
    name = "perfect power"

    def factor(self, node, terms, variable, recurse):
        poly = _poly(node, variable)
        if poly is None:
            return None
        n = degree(poly)
        if n < 2 or 0 not in poly:
            return None
        lead, const = int(poly[n]), int(poly[0])
        p = integer_root(abs(lead), n)
        q = integer_root(abs(const), n)
        if p is None or q is None:
            return None
        for sp in ((1, -1) if n % 2 else (1,)):
            for sq in (1, -1):
                a, b = sp * p, sq * q
                if a ** n != lead or b ** n != const:
                    continue
                if all(poly.get(k, 0) == math.comb(n, k) * a ** k * b ** (n - k)
                       for k in range(n + 1)):
                    x = _variable_node(node, variable)
                    base = from_coefficients({1: Rational(a), 0: Rational(b)}, x)
                    return build_product(1, [(base, Rational(n))])
        return None


class RationalRootStrategy(FactorizationStrategy):
    """Splits off linear factors of integer polynomials of degree four and up."""

    name = "rational root"

    def factor(self, node, terms, variable, recurse):
        poly = _poly(node, variable)
        if poly is None or degree(poly) < 4:
            return None
        return _split_rational_root(poly, _variable_node(node, variable), variable, recurse)


def default_strategies() -> List[FactorizationStrategy]:
    return [
        CommonFactorStrategy(),
        DifferenceOfSquaresStrategy(),
        QuadraticStrategy(),
        GroupingStrategy(),
        CubicStrategy(),
        SubstitutionStrategy(),
        PerfectPowerStrategy(),
        CyclotomicStrategy(),
        RationalRootStrategy(),
    ]


# ============================================================
# Engine
# ============================================================

class FactorizationEngine:
    """
    Runs factorization strategies in order.

    Example:
        engine = FactorizationEngine()
        engine.factor(expr, "x")
        engine.run(expr).steps
    """

    def __init__(self, strategies: Optional[Iterable[FactorizationStrategy]] = None,
                 max_depth: int = 8):
        strategies = default_strategies() if strategies is None else list(strategies)
        if not strategies:
            raise FactorizationSetupError("At least one factorization strategy is required")
        seen = set()
        for s in strategies:
            if not isinstance(s, FactorizationStrategy):
                raise FactorizationSetupError(f"Not a factorization strategy: {s!r}")
            if s.name in seen:
                raise FactorizationSetupError(f"Duplicate factorization strategy: {s.name}")
            seen.add(s.name)
        self.strategies = strategies
        self.max_depth = max_depth

    def factor(self, node: ASTNode, variable: Optional[str] = None) -> ASTNode:
        return self.run(node, variable).node

    def run(self, node: ASTNode, variable: Optional[str] = None,
            steps: Optional[List[str]] = None, _depth: int = 0) -> FactorizationResult:
        variable = variable or infer_variable(node)
        steps = [] if steps is None else steps
        if _depth > self.max_depth:
            return FactorizationResult(node, False, steps)

        def recurse(sub: ASTNode, v: str) -> ASTNode:
            return self.run(sub, v, steps, _depth + 1).node

        if not is_sum(node):
            return self._factor_parts(node, variable, recurse, steps)

        terms = _terms(node)
        for strategy in self.strategies:
            if not strategy.applies(terms, variable):
                continue
            result = strategy.factor(node, terms, variable, recurse)
            if result is None:
                continue
            logger.debug("Factorization strategy %s matched %s", strategy.name, to_text(node))
            steps.append(f"Factored {to_text(node)} by {strategy.name}: {to_text(result)}")
            return FactorizationResult(result, True, steps, strategy.name)
        return FactorizationResult(node, False, steps)

    @staticmethod
    def _factor_parts(node, variable, recurse, steps) -> FactorizationResult:
        """Factor the sums inside a product, fraction or power."""
        if isinstance(node, FunctionCall) or not (is_power(node) or _has_sum_factor(node)):
            return FactorizationResult(node, False, steps)
        c, factors = decompose(node)
        parts = [build_product(1, [(recurse(b, variable) if is_sum(b) else b, e)])
                 for b, e in factors]
        result = make_product([coefficient_node(c)] + parts)
        changed = canonical_key(result) != canonical_key(node)
        return FactorizationResult(result, changed, steps, "parts" if changed else None)


def _has_sum_factor(node: ASTNode) -> bool:
    try:
        _, factors = decompose(node)
    except ArithmeticError:
        return False
    return any(is_sum(b) for b, _ in factors)


_DEFAULT_ENGINE = FactorizationEngine()


def factor(node: ASTNode, variable: Optional[str] = None,
           steps: Optional[List[str]] = None) -> ASTNode:
    """Factor node with the default strategy list (identity when nothing applies)."""
    return _DEFAULT_ENGINE.run(node, variable, steps).node
