"""
Symbolic integration.

The IntegrationEngine tries a list of strategies ordered by priority:

    1 basic           constants, power rule, table, linearity
    2 trigonometric   powers and products of sin/cos, tan^2
    3 substitution    f(ax+b), g(u)*u', f'/f
    4 rational        1/(x^2 +- a^2), (ax+b)/(x^2+c), polynomial division
    5 parts           ln, inverse trig, LIATE products

A successful strategy with priority <= 2 wins immediately. Otherwise the
successful result with the lowest complexity wins. Strategies recurse into
the engine with context.child(), so depth is bounded by max_depth.

legacy_integrate() is a single-pass table integrator kept as the fallback
for integrate_with_fallback().
"""

import logging
import math
from dataclasses import dataclass, field
from fractions import Fraction as Rational
from typing import List, Optional, Set

from .config import DEFAULT_INTEGRATION_DEPTH
from .errors import IntegrationError, SymrwError
from .latex import to_text
from .nodes import (
    ASTNode, FunctionCall, Identifier, Integral, call, div, mul, neg, sub, var,
)
from .polynomial import numeric_coefficients
from .scope import contains_free, substitute, unbind
from .simplify import SimplifyOptions, simplify
from .terms import (
    E_CONSTANT, build_product, coefficient_node, combine_factors, complexity,
    decompose, extract_terms, make_sum,
)

logger = logging.getLogger(__name__)

RESULT_OPTIONS = SimplifyOptions(expand=False)


@dataclass
class IntegrationContext:
    """Where an integration attempt sits in the recursion."""

    variable: str
    depth: int = 0
    max_depth: int = DEFAULT_INTEGRATION_DEPTH
    attempted_strategies: Set[str] = field(default_factory=set)

    def child(self, variable: Optional[str] = None) -> "IntegrationContext":
        """Context for a sub-problem: one level deeper, nothing attempted yet."""
        return IntegrationContext(variable or self.variable, self.depth + 1, self.max_depth)


@dataclass
class IntegrationResult:
    result: Optional[ASTNode]
    success: bool
    steps: List[str] = field(default_factory=list)
    complexity: float = math.inf
    strategy: Optional[str] = None

    @classmethod
    def found(cls, node: ASTNode, steps: List[str], strategy: str) -> "IntegrationResult":
        node = simplify(node, RESULT_OPTIONS)
        return cls(node, True, steps, complexity(node), strategy)

    @classmethod
    def failure(cls, message: str, strategy: Optional[str] = None) -> "IntegrationResult":
        return cls(None, False, [message], math.inf, strategy)


class IntegrationStrategy:
    """Base class for integration strategies.

    try_apply() returns a failed IntegrationResult when the technique does
    not apply; exceptions are reserved for real errors.
    """

    name = "strategy"
    priority = 100

    def can_handle(self, node: ASTNode, context: IntegrationContext) -> bool:
        return True

    def try_apply(self, node: ASTNode, context: IntegrationContext,
                  engine: "IntegrationEngine") -> IntegrationResult:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{type(self).__name__}(priority={self.priority})"


class IntegrationEngine:
    """
    Arbitrates between integration strategies.

    Example:
        engine = IntegrationEngine()
        result = engine.integrate(expr, IntegrationContext("x"))
        if result.success:
            print(result.result, result.strategy)
    """

    def __init__(self, strategies: Optional[List[IntegrationStrategy]] = None):
        if strategies is None:
            # strategies.py builds on the types defined above
            from .strategies import default_strategies
            strategies = default_strategies()
        self.strategies = sorted(strategies, key=lambda s: s.priority)

    def integrate(self, node: ASTNode, context: IntegrationContext) -> IntegrationResult:
        if context.depth > context.max_depth:
            return IntegrationResult.failure(
                f"Maximum integration depth {context.max_depth} exceeded")

        best: Optional[IntegrationResult] = None
        failures: List[str] = []
        for strategy in self.strategies:
            if strategy.name in context.attempted_strategies:
                continue
            if not strategy.can_handle(node, context):
                continue
            logger.debug("Trying %s on %s (depth %d)", strategy.name, to_text(node), context.depth)
            try:
                result = strategy.try_apply(node, context, self)
            except Exception as exc:  # recorded, the next strategy still runs
                logger.debug("Strategy %s raised", strategy.name, exc_info=True)
                result = IntegrationResult.failure(f"{strategy.name} failed: {exc}", strategy.name)
            context.attempted_strategies.add(strategy.name)

            if not result.success:
                failures.extend(result.steps)
                continue
            if strategy.priority <= 2:
                return result
            if best is None or result.complexity < best.complexity:
                best = result
            if best.complexity <= 1:
                break

        if best is not None:
            return best
        return IntegrationResult(None, False, failures + ["No suitable integration strategy found"])


def integrate(node: ASTNode, variable: str, steps: Optional[List[str]] = None,
              max_depth: int = DEFAULT_INTEGRATION_DEPTH) -> ASTNode:
    """
    Antiderivative of node with respect to variable (without the constant).

    Args:
        node: Integrand
        variable: Integration variable
        steps: Optional list that receives the derivation
        max_depth: Recursion limit for strategies calling back into the engine

    Raises:
        IntegrationError: when no strategy succeeds
    """
    steps = [] if steps is None else steps
    integrand = simplify(node)
    result = IntegrationEngine().integrate(integrand, IntegrationContext(variable, max_depth=max_depth))
    if not result.success:
        raise IntegrationError(result.steps[-1])
    steps.extend(result.steps)
    return result.result


# ============================================================
# Legacy integrator
# ============================================================

_LEGACY_TABLE = {
    "sin": lambda u: neg(call("cos", u)),
    "cos": lambda u: call("sin", u),
    "tan": lambda u: neg(call("ln", call("abs", call("cos", u)))),
    "sinh": lambda u: call("cosh", u),
    "cosh": lambda u: call("sinh", u),
}


def _legacy_term(node: ASTNode, variable: str) -> ASTNode:
    x = var(variable)
    if not contains_free(node, variable):
        return mul(node, x)
    c, factors = decompose(node)
    constant = [(b, e) for b, e in factors if not contains_free(b, variable)
                and (isinstance(e, (Rational, float)) or not contains_free(e, variable))]
    factors = combine_factors([f for f in factors if f not in constant])
    scale = build_product(c, constant)
    if len(factors) != 1:
        raise IntegrationError(f"Cannot integrate {to_text(node)}")

    base, e = factors[0]
    numeric = isinstance(e, (Rational, float))
    if isinstance(base, Identifier) and base.name == variable and numeric:
        if e == -1:
            return mul(scale, call("ln", call("abs", x)))
        return mul(scale, build_product(1 / (e + 1), [(x, e + 1)]))

    if base == E_CONSTANT and not numeric:
        poly = numeric_coefficients(simplify(e), variable)
        if poly and set(poly) == {1}:
            return mul(scale, div(call("exp", e), coefficient_node(poly[1])))

    if numeric and e == -1:
        poly = numeric_coefficients(simplify(base), variable)
        if poly and set(poly) == {0, 2} and poly[0] / poly[2] > 0:
            root = call("sqrt", coefficient_node(poly[0] / poly[2]))
            return mul(div(scale, coefficient_node(poly[2])),
                       div(call("atan", div(x, root)), root))

    if (numeric and e == 1 and isinstance(base, FunctionCall) and len(base.args) == 1
            and base.name in _LEGACY_TABLE):
        poly = numeric_coefficients(simplify(base.arg), variable)
        if poly and set(poly) <= {0, 1} and 1 in poly:
            return mul(div(scale, coefficient_node(poly[1])), _LEGACY_TABLE[base.name](base.arg))

    raise IntegrationError(f"Cannot integrate {to_text(node)}")


def legacy_integrate(node: ASTNode, variable: str, steps: Optional[List[str]] = None) -> ASTNode:
    """
    Single-pass table integrator: linearity, power rule, 1/x, exp(ax),
    sin/cos/tan/sinh/cosh of ax+b and 1/(ax^2 + b).

    Raises:
        IntegrationError: when a term matches none of the table entries
    """
    steps = [] if steps is None else steps
    parts = []
    for sign, term in extract_terms(simplify(node)):
        part = _legacy_term(term, variable)
        parts.append(neg(part) if sign < 0 else part)
    steps.append("Integrated term by term using the basic table")
    return simplify(make_sum(parts), RESULT_OPTIONS)


def integrate_with_fallback(node: ASTNode, variable: str,
                            steps: Optional[List[str]] = None) -> ASTNode:
    """Strategy engine first; the legacy integrator if the engine raises."""
    steps = [] if steps is None else steps
    try:
        return integrate(node, variable, steps)
    except (SymrwError, ArithmeticError) as exc:
        logger.debug("Strategy engine failed (%s), falling back to legacy integrator", exc)
        return legacy_integrate(node, variable, steps)


def integrate_integral(node: Integral, steps: Optional[List[str]] = None) -> ASTNode:
    """
    Evaluate an Integral node: the antiderivative of its body, or F(b) - F(a)
    when it carries bounds.
    """
    steps = [] if steps is None else steps
    body = unbind(node.body, node.unique_id)
    antiderivative = integrate_with_fallback(body, node.variable, steps)
    if not node.is_definite:
        return antiderivative
    steps.append(f"Antiderivative: {to_text(antiderivative)}")
    upper = substitute(antiderivative, node.variable, node.upper)
    lower = substitute(antiderivative, node.variable, node.lower)
    steps.append(f"Evaluated at the bounds: F({to_text(node.upper)}) - F({to_text(node.lower)})")
    return simplify(sub(upper, lower))
