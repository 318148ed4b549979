"""
Canonicalizing simplifier.

simplify() runs one bottom-up pass over the tree, then the identity rules,
and repeats until the tree stops changing (or max_depth rounds):

    simplify(parse("x + x + 3 - 1"))         # 2x + 2
    simplify(parse("(x+1)^2"))               # x^2 + 2x + 1
    simplify(parse("(x^2-1)/(x-1)"))         # x + 1
    simplify(parse("6x+9"), factor=True)     # 3(2x + 3)

Each pass normalizes sums through the additive view (terms.Term) and
products, fractions and powers through the multiplicative view
(terms.decompose / terms.build_product).
"""

import logging
import math
from dataclasses import dataclass, fields, replace
from fractions import Fraction as Rational
from typing import List, Optional, Tuple

from .config import (
    DEFAULT_MAX_DEPTH, DEFAULT_OVERLAP_ITERATIONS, MATH_CONSTANTS,
    MAX_EXPANSION_POWER, SNAP_TOLERANCE, ZERO_TOLERANCE,
)
from .errors import MathArithmeticError
from .factorization import factor as factor_polynomial
from .identities import apply_identities
from .latex import to_text
from .nodes import (
    ASTNode, BinaryExpression, BINDER_TYPES, COMPARISON_OPERATORS, Fraction,
    FunctionCall, Identifier, NumberLiteral, UnaryExpression, ONE,
    call, is_power, is_sum, map_children, mul, num,
)
from .scope import free_variables, infer_variable
from .terms import (
    Coefficient, Term, build_product, build_sum, canonical_key, coefficient_node,
    combine_like_terms, decompose, extract_terms, integer_content, is_integer_value,
    is_zero, negate_exponent, normalize_coefficient, numeric_value,
    order_terms, split_term, terms_of,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SimplifyOptions:
    """Switches for simplify(); override() returns a modified copy."""

    combine_like_terms: bool = True
    expand: bool = True
    simplify_fractions: bool = True
    apply_identities: bool = True
    factor: bool = False
    max_depth: int = DEFAULT_MAX_DEPTH

    def __post_init__(self):
        if self.max_depth < 1:
            raise ValueError(f"max_depth must be positive, got {self.max_depth}")

    def override(self, **changes) -> "SimplifyOptions":
        known = {f.name for f in fields(self)}
        unknown = set(changes) - known
        if unknown:
            raise ValueError(f"Unknown simplify option(s): {', '.join(sorted(unknown))}. "
                             f"Valid options: {', '.join(sorted(known))}")
        return replace(self, **changes)


# ============================================================
# Numeric function folding
# ============================================================

_FOLDABLE = {
    "sin": math.sin, "cos": math.cos, "tan": math.tan,
    "asin": math.asin, "acos": math.acos, "atan": math.atan,
    "sinh": math.sinh, "cosh": math.cosh, "tanh": math.tanh,
    "ln": math.log, "log": math.log10, "sqrt": math.sqrt, "exp": math.exp,
}

# Largest folded magnitude kept as a literal
_FOLD_LIMIT = 1e15


def _snap(value: float) -> float:
    for target in (0.0, 1.0, -1.0):
        if abs(value - target) < SNAP_TOLERANCE:
            return target
    return value


def _constant_argument(arg: ASTNode) -> Optional[float]:
    """Value of a literal or a rational multiple of π or e, else None."""
    value = numeric_value(arg)
    if value is not None:
        return float(value)
    c, factors = decompose(arg)
    if len(factors) == 1:
        base, e = factors[0]
        if isinstance(base, Identifier) and base.name in MATH_CONSTANTS and e == 1:
            constant = math.e if base.name == "e" else math.pi
            return float(c) * constant
    return None


def _log_base(u: float, b: float) -> float:
    result = math.log(u) / math.log(b)
    nearest = round(result)
    return float(nearest) if abs(result - nearest) < ZERO_TOLERANCE else result


def fold_function(name: str, args: Tuple[ASTNode, ...]) -> Optional[ASTNode]:
    """Evaluate a function of constant arguments numerically.

    Results within SNAP_TOLERANCE of 0 or ±1 snap to the exact value;
    non-finite results and domain errors leave the call alone.
    """
    if name == "abs" and len(args) == 1:
        value = numeric_value(args[0])
        return coefficient_node(abs(value)) if value is not None else None
    if name == "log" and len(args) == 2:
        function = _log_base
    elif name in _FOLDABLE and len(args) == 1:
        function = _FOLDABLE[name]
    else:
        return None
    values = [_constant_argument(a) for a in args]
    if any(v is None for v in values):
        return None
    try:
        result = _snap(function(*values))
    except (ValueError, OverflowError, ZeroDivisionError):
        return None
    if not math.isfinite(result) or abs(result) >= _FOLD_LIMIT:
        return None
    return num(result)


# ============================================================
# Node handlers
# ============================================================

class _Pass:
    """One bottom-up simplification pass."""

    def __init__(self, options: SimplifyOptions, steps: List[str]):
        self.options = options
        self.steps = steps

    def note(self, message: str):
        if message not in self.steps:
            self.steps.append(message)

    def run(self, node: ASTNode) -> ASTNode:
        if isinstance(node, (NumberLiteral, Identifier)):
            return node
        if isinstance(node, BINDER_TYPES):
            return map_children(node, lambda child: simplify(child, self.options, self.steps))

        node = map_children(node, self.run)

        if isinstance(node, BinaryExpression):
            op = node.operator
            if op in COMPARISON_OPERATORS:
                return node
            if op in ("+", "-"):
                return self.sum(node)
            if op == "*":
                return self.product(node.left, node.right)
            if op == "/":
                return self.fraction(node.left, node.right)
            return self.power(node.left, node.right)
        if isinstance(node, UnaryExpression):
            if node.operator == "+":
                return node.operand
            return self.sum(node)
        if isinstance(node, Fraction):
            return self.fraction(node.numerator, node.denominator)
        if isinstance(node, FunctionCall):
            return self.function(node)
        return node

    # ------------------------------------------------------------
    # Sums
    # ------------------------------------------------------------

    def sum(self, node: ASTNode) -> ASTNode:
        terms = terms_of(node)
        if self.options.combine_like_terms:
            combined = combine_like_terms(terms)
            if len(combined) < len(terms):
                self.note("Combined like terms")
            terms = self.pythagorean(combined)
        else:
            constant = sum((t.coefficient for t in terms if t.is_constant), Rational(0))
            terms = [t for t in terms if not t.is_constant]
            if not is_zero(constant):
                terms.append(Term(constant, []))
        return build_sum(order_terms(terms))

    @staticmethod
    def _squared_argument(term: Term, name: str) -> Optional[ASTNode]:
        if len(term.factors) != 1:
            return None
        base, e = term.factors[0]
        if isinstance(base, FunctionCall) and base.name == name and len(base.args) == 1 and e == 2:
            return base.arg
        return None

    def pythagorean(self, terms: List[Term]) -> List[Term]:
        """a*sin(u)^2 + a*cos(u)^2 -> a."""
        for i, t in enumerate(terms):
            u = self._squared_argument(t, "sin")
            if u is None:
                continue
            for j, s in enumerate(terms):
                v = self._squared_argument(s, "cos")
                if v is None or s.coefficient != t.coefficient:
                    continue
                if canonical_key(u) != canonical_key(v):
                    continue
                self.note("Pythagorean identity: sin(u)^2 + cos(u)^2 = 1")
                rest = [x for k, x in enumerate(terms) if k not in (i, j)]
                return self.pythagorean(combine_like_terms(rest + [Term(t.coefficient, [])]))
        return terms

    # ------------------------------------------------------------
    # Products
    # ------------------------------------------------------------

    def product(self, left: ASTNode, right: ASTNode) -> ASTNode:
        if self.options.expand:
            expanded = self.distribute(left, right)
            if expanded is not None:
                return expanded
        c, factors = decompose(mul(left, right))
        return build_product(c, factors)

    def distribute(self, left: ASTNode, right: ASTNode) -> Optional[ASTNode]:
        """Multiply out when either side is a sum."""
        lt = extract_terms(left)
        rt = extract_terms(right)
        if len(lt) == 1 and len(rt) == 1:
            return None
        self.note("Expanded product")
        terms = []
        for ls, a in lt:
            for rs, b in rt:
                terms.append(split_term(ls * rs, mul(a, b)))
        return build_sum(order_terms(combine_like_terms(terms)))

    # ------------------------------------------------------------
    # Powers
    # ------------------------------------------------------------

    def power(self, base: ASTNode, exponent: ASTNode) -> ASTNode:
        n = numeric_value(exponent)
        if (self.options.expand and n is not None and is_integer_value(n)
                and 2 <= n <= MAX_EXPANSION_POWER and len(extract_terms(base)) > 1):
            result = base
            for _ in range(int(n) - 1):
                result = self.distribute(result, base)
            self.note("Expanded power of a sum")
            return result
        c, factors = decompose(BinaryExpression("^", base, exponent))
        return build_product(c, factors)

    # ------------------------------------------------------------
    # Fractions
    # ------------------------------------------------------------

    def fraction(self, top: ASTNode, bottom: ASTNode) -> ASTNode:
        denominator = numeric_value(bottom)
        if denominator is not None and is_zero(denominator):
            raise MathArithmeticError("Division by zero")
        if canonical_key(top) == canonical_key(bottom):
            self.note("Cancelled identical numerator and denominator")
            return ONE

        if self.options.expand and denominator is not None and is_sum(top):
            self.note("Distributed division over the numerator")
            terms = [Term(t.coefficient / denominator, t.factors) for t in terms_of(top)]
            return build_sum(order_terms(combine_like_terms(terms)))

        if self.options.simplify_fractions:
            top_c, top = self.pull_content(top)
            bottom_c, bottom = self.pull_content(bottom)
            if (is_sum(top) or is_sum(bottom)) and free_variables(top) and free_variables(bottom):
                cancelled = cancel_common_factors(top, bottom)
                if cancelled is not None:
                    self.note("Cancelled common polynomial factor")
                    c, factors = decompose(cancelled)
                    return build_product(c * top_c / bottom_c, factors)
            c, factors = decompose(Fraction(top, bottom))
            return build_product(c * top_c / bottom_c, factors)

        c, factors = decompose(Fraction(top, bottom))
        return build_product(c, factors)

    @staticmethod
    def pull_content(node: ASTNode) -> Tuple[Coefficient, ASTNode]:
        """Split the integer content off a sum: 2x + 4 -> (2, x + 2)."""
        if not is_sum(node):
            return Rational(1), node
        terms = terms_of(node)
        g = integer_content(terms)
        if g == 1:
            return Rational(1), node
        return Rational(g), build_sum([Term(t.coefficient / g, t.factors) for t in terms])

    # ------------------------------------------------------------
    # Functions
    # ------------------------------------------------------------

    def function(self, node: FunctionCall) -> ASTNode:
        if node.name == "sqrt" and len(node.args) == 1:
            arg = node.arg
            if is_power(arg) and numeric_value(arg.right) == 2:
                self.note("sqrt(u^2) = |u|")
                return call("abs", arg.left)
        if node.name in ("sqrt", "exp") and len(node.args) == 1:
            rebuilt = build_product(*decompose(node))
            if not isinstance(rebuilt, FunctionCall):
                return rebuilt
            node = rebuilt
        folded = fold_function(node.name, node.args)
        if folded is not None:
            return folded
        return node


def cancel_common_factors(top: ASTNode, bottom: ASTNode) -> Optional[ASTNode]:
    """Factor both sides of a fraction and cancel shared factors, or None."""
    variable = infer_variable(Fraction(top, bottom))
    top_c, top_factors = decompose(factor_polynomial(top, variable))
    bottom_c, bottom_factors = decompose(factor_polynomial(bottom, variable))
    top_keys = {canonical_key(b) for b, _ in top_factors}
    if not any(canonical_key(b) in top_keys for b, _ in bottom_factors):
        return None
    inverted = [(b, negate_exponent(e)) for b, e in bottom_factors]
    return build_product(normalize_coefficient(top_c / bottom_c), top_factors + inverted)


# ============================================================
# Entry points
# ============================================================

def simplify(node: ASTNode, options: Optional[SimplifyOptions] = None,
             steps: Optional[List[str]] = None, **overrides) -> ASTNode:
    """
    Simplify an expression to canonical form.

    Args:
        node: Expression to simplify
        options: SimplifyOptions (defaults if None)
        steps: Optional list that receives human-readable step descriptions
        **overrides: Field overrides applied on top of options

    Returns:
        The simplified expression (a fixed point of simplify())

    Raises:
        MathArithmeticError: on division by a literal zero
    """
    options = options or SimplifyOptions()
    if overrides:
        options = options.override(**overrides)
    steps = [] if steps is None else steps

    current = node
    for round_number in range(options.max_depth):
        result = _Pass(options, steps).run(current)
        if options.apply_identities:
            result, fired = apply_identities(result)
            if fired:
                steps.append("Applied identities: " + ", ".join(fired))
        if result == current:
            break
        logger.debug("Simplify round %d: %s", round_number + 1, to_text(result))
        current = result
    else:
        logger.warning("Simplification stopped after %d rounds without reaching a fixed point",
                       options.max_depth)

    if options.factor:
        factored = factor_polynomial(current, steps=steps)
        if factored != current:
            steps.append(f"Factored: {to_text(factored)}")
        current = simplify(factored, options.override(expand=False, factor=False), steps)
    return current


def expand(node: ASTNode, steps: Optional[List[str]] = None) -> ASTNode:
    """Simplify with products and powers of sums multiplied out."""
    return simplify(node, SimplifyOptions(expand=True), steps)


def _cancel_fractions(node: ASTNode) -> ASTNode:
    node = map_children(node, _cancel_fractions)
    if isinstance(node, Fraction) and (is_sum(node.numerator) or is_sum(node.denominator)):
        cancelled = cancel_common_factors(node.numerator, node.denominator)
        if cancelled is not None:
            return cancelled
    return node


def overlap_simplify(node: ASTNode, max_iterations: int = DEFAULT_OVERLAP_ITERATIONS,
                     options: Optional[SimplifyOptions] = None,
                     steps: Optional[List[str]] = None) -> ASTNode:
    """Alternate fraction cancellation and full simplification until stable."""
    current = node
    for _ in range(max_iterations):
        result = simplify(_cancel_fractions(current), options, steps)
        if result.to_dict() == current.to_dict():
            break
        current = result
    return current
