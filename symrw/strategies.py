"""
Integration strategies used by IntegrationEngine.

Each strategy inspects the multiplicative view of the integrand,

    c * (constant factors) * (factors depending on the variable)

and either returns IntegrationResult.found(...) or a failed result naming
why it does not apply. Sub-problems go back through the engine with
context.child(), so strategies combine freely (linearity of a sum whose
terms need substitution, parts whose remaining integral needs parts again).
"""

import logging
from math import comb
from fractions import Fraction as Rational
from typing import List, Optional, Tuple

from .differentiation import differentiate
from .integration import IntegrationResult, IntegrationStrategy
from .latex import to_text
from .nodes import (
    ASTNode, FunctionCall, Identifier, ONE, TWO,
    add, call, div, is_function, is_number, is_power, is_sum, map_children,
    mul, neg, power, sub, var, walk,
)
from .polynomial import degree, divide, from_coefficients, numeric_coefficients
from .scope import contains_free, free_variables, is_free_occurrence, substitute
from .simplify import SimplifyOptions, simplify
from .terms import (
    HALF, Coefficient, Factor, build_product, canonical_key, coefficient_node,
    combine_factors, decompose, exponent_sign, extract_terms, make_sum,
    negate_exponent, power_node,
)

logger = logging.getLogger(__name__)

RESULT_OPTIONS = SimplifyOptions(expand=False)

FRESH_NAMES = ("u", "v", "w", "t", "s", "z")


# ============================================================
# Helpers
# ============================================================

def _is_e(node: ASTNode) -> bool:
    return isinstance(node, Identifier) and node.name == "e" and not node.is_bound


def split_constant(node: ASTNode, variable: str) -> Tuple[Coefficient, List[Factor], List[Factor]]:
    """(coefficient, constant factors, factors depending on variable)."""
    c, factors = decompose(node)
    constant, dependent = [], []
    for base, e in factors:
        symbolic = not isinstance(e, (Rational, float))
        if contains_free(base, variable) or (symbolic and contains_free(e, variable)):
            dependent.append((base, e))
        else:
            constant.append((base, e))
    return c, constant, combine_factors(dependent)


def linear_coefficients(node: ASTNode, variable: str) -> Optional[Tuple[Coefficient, Coefficient]]:
    """(a, b) when node is a*variable + b with numeric a != 0."""
    poly = numeric_coefficients(simplify(node), variable)
    if not poly or 1 not in poly or set(poly) - {0, 1}:
        return None
    return poly[1], poly.get(0, Rational(0))


def fresh_variable(node: ASTNode, variable: str) -> str:
    taken = set(free_variables(node)) | {variable}
    for name in FRESH_NAMES:
        if name not in taken:
            return name
    return variable + "_sub"


def replace_subtree(node: ASTNode, key: str, replacement: ASTNode) -> ASTNode:
    """Replace every subtree whose canonical key is key."""
    if canonical_key(node) == key:
        return replacement
    return map_children(node, lambda child: replace_subtree(child, key, replacement))


def ln_abs(node: ASTNode) -> ASTNode:
    return call("ln", call("abs", node))


def scaled(c: Coefficient, node: ASTNode) -> ASTNode:
    if c == 1:
        return node
    return mul(coefficient_node(c), node)


# ============================================================
# Basic
# ============================================================

BASIC_TABLE = {
    "sin": lambda u: neg(call("cos", u)),
    "cos": lambda u: call("sin", u),
    "tan": lambda u: neg(ln_abs(call("cos", u))),
    "sinh": lambda u: call("cosh", u),
    "cosh": lambda u: call("sinh", u),
    "tanh": lambda u: call("ln", call("cosh", u)),
}


class BasicStrategy(IntegrationStrategy):
    """Constants, linearity, constant multiples, power rule and the table."""

    name = "basic"
    priority = 1

    def try_apply(self, node, context, engine):
        x = context.variable
        if not contains_free(node, x):
            return IntegrationResult.found(
                mul(node, var(x)), [f"Constant rule: ∫a d{x} = a{x}"], self.name)
        if is_sum(node):
            return self.linearity(node, context, engine)

        c, constant, factors = split_constant(node, x)
        if c != 1 or constant:
            multiple = build_product(c, constant)
            inner = build_product(Rational(1), factors)
            part = engine.integrate(inner, context.child())
            if not part.success:
                return IntegrationResult.failure(f"Could not integrate {to_text(inner)}", self.name)
            steps = [f"Constant multiple rule: factor out {to_text(multiple)}"] + part.steps
            return IntegrationResult.found(mul(multiple, part.result), steps, self.name)

        if len(factors) != 1:
            return IntegrationResult.failure("Basic rules do not apply to products", self.name)
        return self.single(factors[0], x)

    def linearity(self, node, context, engine):
        steps = [f"Linearity: integrate each term of {to_text(node)}"]
        parts = []
        for sign, term in extract_terms(node):
            part = engine.integrate(term, context.child())
            if not part.success:
                return IntegrationResult.failure(f"Could not integrate term {to_text(term)}", self.name)
            steps.extend(part.steps)
            parts.append(neg(part.result) if sign < 0 else part.result)
        return IntegrationResult.found(make_sum(parts), steps, self.name)

    def single(self, factor: Factor, x: str) -> IntegrationResult:
        base, e = factor
        X = var(x)
        numeric = isinstance(e, (Rational, float))

        if is_free_occurrence(base, x) and numeric:
            if e == -1:
                return IntegrationResult.found(ln_abs(X), [f"∫1/{x} d{x} = ln|{x}|"], self.name)
            n = e + 1
            return IntegrationResult.found(
                build_product(1 / n, [(X, n)]),
                [f"Power rule: ∫{x}^n d{x} = {x}^(n+1)/(n+1) with n = {to_text(coefficient_node(e))}"],
                self.name)

        if _is_e(base) and is_free_occurrence(e, x):
            return IntegrationResult.found(call("exp", X), [f"∫e^{x} d{x} = e^{x}"], self.name)

        if not numeric and is_free_occurrence(e, x) and not contains_free(base, x):
            result = div(power(base, X), call("ln", base))
            return IntegrationResult.found(
                result, [f"Exponential rule: ∫a^{x} d{x} = a^{x}/ln(a)"], self.name)

        if (numeric and e == 1 and isinstance(base, FunctionCall) and len(base.args) == 1
                and base.name in BASIC_TABLE and is_free_occurrence(base.arg, x)):
            result = BASIC_TABLE[base.name](X)
            return IntegrationResult.found(
                result, [f"Table: ∫{to_text(base)} d{x} = {to_text(result)}"], self.name)

        return IntegrationResult.failure(
            f"No basic rule for {to_text(power_node(base, e))}", self.name)


# ============================================================
# Trigonometric
# ============================================================

TRIG_FUNCTIONS = ("sin", "cos", "tan")


class TrigonometricStrategy(IntegrationStrategy):
    """Powers of sin, cos and tan of a linear argument, and sin^m*cos^n
    with m or n equal to one."""

    name = "trigonometric"
    priority = 2

    def can_handle(self, node, context):
        return any(is_function(n, *TRIG_FUNCTIONS) and contains_free(n, context.variable)
                   for n in walk(node))

    def try_apply(self, node, context, engine):
        x = context.variable
        c, constant, factors = split_constant(node, x)
        powers = {}
        argument = None
        for base, e in factors:
            if not (is_function(base, *TRIG_FUNCTIONS) and len(base.args) == 1
                    and isinstance(e, Rational) and e.denominator == 1 and e > 0):
                return IntegrationResult.failure(
                    "Not a product of powers of sin, cos and tan", self.name)
            if argument is not None and canonical_key(base.arg) != canonical_key(argument):
                return IntegrationResult.failure(
                    "Trigonometric factors have different arguments", self.name)
            argument = base.arg
            powers[base.name] = int(e)

        linear = linear_coefficients(argument, x)
        if linear is None:
            return IntegrationResult.failure(
                f"Argument {to_text(argument)} is not linear in {x}", self.name)

        found = self.antiderivative(powers, argument, linear[0], x, context, engine)
        if found is None:
            return IntegrationResult.failure("No trigonometric reduction applies", self.name)
        result, steps = found
        return IntegrationResult.found(mul(build_product(c, constant), result), steps, self.name)

    def antiderivative(self, powers, u, a, x, context, engine):
        X = var(x)
        if len(powers) == 2 and set(powers) == {"sin", "cos"}:
            m, n = powers["sin"], powers["cos"]
            if m == 1:
                return (scaled(Rational(-1) / ((n + 1) * a), power(call("cos", u), num_node(n + 1))),
                        [f"sin(u)*cos(u)^{n}: substitute w = cos(u)"])
            if n == 1:
                return (scaled(Rational(1) / ((m + 1) * a), power(call("sin", u), num_node(m + 1))),
                        [f"sin(u)^{m}*cos(u): substitute w = sin(u)"])
            return None
        if len(powers) != 1:
            return None

        name, n = next(iter(powers.items()))
        if name == "tan":
            if n == 1:
                return scaled(Rational(-1) / a, ln_abs(call("cos", u))), ["∫tan(u) du = -ln|cos(u)|"]
            if n == 2:
                return (sub(scaled(1 / a, call("tan", u)), X),
                        ["Identity: tan(u)^2 = sec(u)^2 - 1"])
            return None

        other = "cos" if name == "sin" else "sin"
        sign = -1 if name == "sin" else 1
        if n == 1:
            return scaled(sign / a, call(other, u)), [f"Table: ∫{name}(u) du with u = {to_text(u)}"]
        if n == 2:
            half_angle = scaled(Rational(1) / (4 * a), call("sin", mul(TWO, u)))
            combine = add if name == "cos" else sub
            return (combine(div(X, TWO), half_angle),
                    [f"Power reduction: {name}(u)^2 = (1 {'+' if name == 'cos' else '-'} cos(2u))/2"])
        if n % 2 == 1:
            k = (n - 1) // 2
            terms = [scaled(Rational(comb(k, j) * (-1) ** j, 2 * j + 1),
                            power(call(other, u), num_node(2 * j + 1)))
                     for j in range(k + 1)]
            return (scaled(sign / a, make_sum(terms)),
                    [f"Odd power: {name}(u)^{n} = {name}(u)*(1 - {other}(u)^2)^{k}, substitute w = {other}(u)"])

        # even n >= 4
        rest = engine.integrate(power(call(name, u), num_node(n - 2)), context.child())
        if not rest.success:
            return None
        # sin: -sin^(n-1)*cos/n, cos: cos^(n-1)*sin/n
        head = scaled(Rational(sign, n) / a,
                      mul(power(call(name, u), num_node(n - 1)), call(other, u)))
        step = f"Reduction formula for {name}(u)^{n} in terms of {name}(u)^{n - 2}"
        return add(head, scaled(Rational(n - 1, n), rest.result)), [step] + rest.steps


def num_node(n: int) -> ASTNode:
    return coefficient_node(Rational(n))


# ============================================================
# Substitution
# ============================================================

class SubstitutionStrategy(IntegrationStrategy):
    """u-substitution: f(ax+b), and g(u)*u' for inner expressions u."""

    name = "substitution"
    priority = 3

    max_candidates = 4

    def can_handle(self, node, context):
        return contains_free(node, context.variable)

    def try_apply(self, node, context, engine):
        found = self.linear_inner(node, context, engine)
        if found is not None:
            return found
        for u in self.candidates(node, context.variable):
            found = self.reverse_chain(node, u, context, engine)
            if found is not None:
                return found
        return IntegrationResult.failure("No substitution found", self.name)

    def linear_inner(self, node, context, engine) -> Optional[IntegrationResult]:
        x = context.variable
        c, constant, factors = split_constant(node, x)
        if len(factors) != 1:
            return None
        base, e = factors[0]
        numeric = isinstance(e, (Rational, float))
        fresh = fresh_variable(node, x)
        T = var(fresh)

        if isinstance(base, FunctionCall) and len(base.args) == 1 and numeric:
            u, shape = base.arg, power_node(FunctionCall(base.name, (T,)), e)
        elif _is_e(base) and not numeric:
            u, shape = e, call("exp", T)
        elif numeric and is_sum(base):
            u, shape = base, power_node(T, e)
        else:
            return None
        if is_free_occurrence(u, x):
            return None
        linear = linear_coefficients(u, x)
        if linear is None:
            return None

        inner = engine.integrate(shape, context.child(fresh))
        if not inner.success:
            return None
        a = linear[0]
        result = mul(build_product(c / a, constant), substitute(inner.result, fresh, u))
        steps = [f"Substitution: {fresh} = {to_text(u)}, d{fresh} = {to_text(coefficient_node(a))} d{x}"]
        return IntegrationResult.found(result, steps + inner.steps, self.name)

    def candidates(self, node, x: str) -> List[ASTNode]:
        """Inner expressions worth trying as u, outermost first."""
        found: List[ASTNode] = []
        keys = set()
        for n in walk(node):
            if n is node or not contains_free(n, x) or is_free_occurrence(n, x):
                continue
            if not (isinstance(n, FunctionCall) or is_sum(n) or is_power(n)):
                continue
            key = canonical_key(n)
            if key not in keys:
                keys.add(key)
                found.append(n)
        return found[:self.max_candidates]

    def reverse_chain(self, node, u, context, engine) -> Optional[IntegrationResult]:
        x = context.variable
        du = differentiate(u, x)
        if is_number(du, 0):
            return None
        ratio = simplify(div(node, du), RESULT_OPTIONS)
        fresh = fresh_variable(node, x)
        replaced = replace_subtree(ratio, canonical_key(u), var(fresh))
        if contains_free(replaced, x):
            logger.debug("u = %s leaves %s in terms of %s", to_text(u), to_text(replaced), x)
            return None
        inner = engine.integrate(replaced, context.child(fresh))
        if not inner.success:
            return None
        steps = [f"Substitution: {fresh} = {to_text(u)}, d{fresh} = {to_text(du)} d{x}"]
        return IntegrationResult.found(substitute(inner.result, fresh, u), steps + inner.steps, self.name)


# ============================================================
# Rational functions
# ============================================================

class RationalStrategy(IntegrationStrategy):
    """Quotients of polynomials with a known closed form."""

    name = "rational"
    priority = 4

    def can_handle(self, node, context):
        _, _, factors = split_constant(node, context.variable)
        return any(exponent_sign(e) < 0 for _, e in factors)

    def try_apply(self, node, context, engine):
        x = context.variable
        X = var(x)
        c, constant, factors = split_constant(node, x)
        multiple = build_product(c, constant)
        top = [(b, e) for b, e in factors if exponent_sign(e) > 0]
        bottom = [(b, negate_exponent(e)) for b, e in factors if exponent_sign(e) < 0]

        if not top and len(bottom) == 1 and bottom[0][1] == HALF:
            result = self.arcsine(bottom[0][0], X)
            if result is not None:
                return IntegrationResult.found(
                    mul(multiple, result), ["Recognized 1/sqrt(a^2 - x^2): arcsine"], self.name)

        numerator = simplify(build_product(Rational(1), top))
        denominator = simplify(build_product(Rational(1), bottom))
        P = numeric_coefficients(numerator, x)
        Q = numeric_coefficients(denominator, x)
        if P is None or Q is None or degree(Q) < 1:
            return IntegrationResult.failure("Not a quotient of polynomials", self.name)

        if degree(P) >= degree(Q):
            return self.long_division(P, Q, denominator, multiple, context, engine)

        if degree(Q) == 1 and degree(P) <= 0:
            result = scaled(P.get(0, Rational(0)) / Q[1], ln_abs(denominator))
            return IntegrationResult.found(
                mul(multiple, result), ["Recognized c/(ax + b): logarithm"], self.name)

        if degree(Q) == 2 and 1 not in Q and Q.get(0) and degree(P) <= 1:
            result, step = self.quadratic(P, Q, denominator, X)
            return IntegrationResult.found(mul(multiple, result), [step], self.name)

        return IntegrationResult.failure("Partial fraction decomposition is not implemented", self.name)

    @staticmethod
    def arcsine(base: ASTNode, X: ASTNode) -> Optional[ASTNode]:
        poly = numeric_coefficients(simplify(base), X.name)
        if not poly or set(poly) != {0, 2} or poly[0] <= 0 or poly[2] >= 0:
            return None
        k, m = poly[0], -poly[2]
        inner = mul(X, call("sqrt", coefficient_node(m / k)))
        return div(call("asin", inner), call("sqrt", coefficient_node(m)))

    @staticmethod
    def quadratic(P, Q, denominator, X) -> Tuple[ASTNode, str]:
        """(ax + b)/(q2 x^2 + q0) as a logarithm plus arctan or log-ratio part."""
        q2, q0 = Q[2], Q[0]
        a, b = P.get(1, Rational(0)), P.get(0, Rational(0))
        parts = []
        if a:
            parts.append(scaled(a / (2 * q2), ln_abs(denominator)))
        r = q0 / q2
        if b and r > 0:
            root = call("sqrt", coefficient_node(r))
            parts.append(scaled(b / q2, div(call("atan", div(X, root)), root)))
            step = "Recognized (ax + b)/(x^2 + c^2): logarithm and arctan"
        elif b:
            root = call("sqrt", coefficient_node(-r))
            ratio = div(sub(X, root), add(X, root))
            parts.append(scaled(b / q2, div(ln_abs(ratio), mul(TWO, root))))
            step = "Recognized (ax + b)/(x^2 - c^2): logarithms"
        else:
            step = "Recognized f'/f: logarithm"
        return make_sum(parts), step

    def long_division(self, P, Q, denominator, multiple, context, engine):
        X = var(context.variable)
        quotient, remainder = divide(P, Q)
        steps = [f"Polynomial division: quotient {to_text(from_coefficients(quotient, X))}"]
        part = engine.integrate(from_coefficients(quotient, X), context.child())
        if not part.success:
            return IntegrationResult.failure("Could not integrate the quotient", self.name)
        steps.extend(part.steps)
        result = part.result
        if remainder:
            proper = div(from_coefficients(remainder, X), denominator)
            rest = engine.integrate(proper, context.child())
            if not rest.success:
                return IntegrationResult.failure(
                    f"Could not integrate the remainder {to_text(proper)}", self.name)
            steps.extend(rest.steps)
            result = add(result, rest.result)
        return IntegrationResult.found(mul(multiple, result), steps, self.name)


# ============================================================
# Integration by parts
# ============================================================

def _liate_rank(factor: Factor) -> int:
    """Logarithmic, Inverse trig, Algebraic, Trigonometric, Exponential."""
    base, _ = factor
    if is_function(base, "ln", "log"):
        return 0
    if is_function(base, "asin", "acos", "atan"):
        return 1
    if is_function(base, "sin", "cos", "tan", "sinh", "cosh"):
        return 3
    if _is_e(base):
        return 4
    return 2


def _parts_table(name: str, X: ASTNode) -> Optional[ASTNode]:
    root = call("sqrt", sub(ONE, power(X, TWO)))
    if name == "ln":
        return sub(mul(X, call("ln", X)), X)
    if name == "log":
        return sub(mul(X, call("log", X)), div(X, call("ln", coefficient_node(Rational(10)))))
    if name == "asin":
        return add(mul(X, call("asin", X)), root)
    if name == "acos":
        return sub(mul(X, call("acos", X)), root)
    if name == "atan":
        return sub(mul(X, call("atan", X)), div(call("ln", add(ONE, power(X, TWO))), TWO))
    return None


class IntegrationByPartsStrategy(IntegrationStrategy):
    """∫u dv = uv - ∫v du, choosing u by LIATE order."""

    name = "parts"
    priority = 5

    def can_handle(self, node, context):
        return contains_free(node, context.variable)

    def try_apply(self, node, context, engine):
        x = context.variable
        X = var(x)
        c, constant, factors = split_constant(node, x)
        multiple = build_product(c, constant)

        if len(factors) == 1:
            base, e = factors[0]
            if (e == 1 and isinstance(base, FunctionCall) and len(base.args) == 1
                    and is_free_occurrence(base.arg, x)):
                result = _parts_table(base.name, X)
                if result is not None:
                    steps = [f"Integration by parts: u = {to_text(base)}, dv = d{x}"]
                    return IntegrationResult.found(mul(multiple, result), steps, self.name)
            return IntegrationResult.failure("Integration by parts needs a product", self.name)

        if len(factors) != 2:
            return IntegrationResult.failure(
                "Integration by parts handles products of two factors", self.name)

        u_factor, dv_factor = sorted(factors, key=_liate_rank)
        u, dv = power_node(*u_factor), power_node(*dv_factor)
        v = engine.integrate(dv, context.child())
        if not v.success:
            return IntegrationResult.failure(f"Could not integrate dv = {to_text(dv)}", self.name)
        du = differentiate(u, x)
        remaining = simplify(mul(v.result, du), RESULT_OPTIONS)
        rest = engine.integrate(remaining, context.child())
        if not rest.success:
            return IntegrationResult.failure(
                f"Could not integrate v du = {to_text(remaining)}", self.name)

        steps = [
            f"Integration by parts: u = {to_text(u)}, dv = {to_text(dv)} d{x}",
            f"v = {to_text(v.result)}, du = {to_text(du)} d{x}",
        ] + rest.steps
        result = sub(mul(u, v.result), rest.result)
        return IntegrationResult.found(mul(multiple, result), steps, self.name)


def default_strategies() -> List[IntegrationStrategy]:
    return [
        BasicStrategy(),
        TrigonometricStrategy(),
        SubstitutionStrategy(),
        RationalStrategy(),
        IntegrationByPartsStrategy(),
    ]
