"""
Structural utilities shared by the simplifier and the factorization engine.

Two views of an expression are used throughout:

    additive        extract_terms(3x - 2y)  -> [(+1, 3x), (-1, 2y)]
    multiplicative  decompose(3x^2 / y)     -> (3, [(x, 2), (y, -1)])

Coefficients are exact rationals (fractions.Fraction) while the input is
exact, and floats once an inexact literal is involved. Exponents are either
such numbers or expression nodes for symbolic powers like x^n.

Canonical keys identify expressions up to reordering of + and * and ignore
scope annotations, so like terms and equal bases can be grouped by key.
"""

import math
from fractions import Fraction as Rational
from typing import Dict, List, Optional, Tuple, Union

from .config import MAX_RATIONAL_DENOMINATOR, ZERO_TOLERANCE
from .errors import MathArithmeticError
from .nodes import (
    ASTNode, BinaryExpression, BINDER_TYPES, Fraction, FunctionCall,
    Identifier, NumberLiteral, UnaryExpression, ONE,
    add, call, mul, neg, num, power, sub,
)

Coefficient = Union[Rational, float]
Exponent = Union[Rational, float, ASTNode]
Factor = Tuple[ASTNode, Exponent]

HALF = Rational(1, 2)


# ============================================================
# Numbers
# ============================================================

def to_coefficient(value) -> Coefficient:
    """Exact rational for ints and integral floats, float otherwise."""
    if isinstance(value, Rational):
        return value
    if isinstance(value, int):
        return Rational(value)
    if isinstance(value, float) and value.is_integer() and abs(value) < 1e15:
        return Rational(int(value))
    return float(value)


def normalize_coefficient(c: Coefficient) -> Coefficient:
    if isinstance(c, float):
        if abs(c) < ZERO_TOLERANCE:
            return Rational(0)
        return to_coefficient(c)
    return c


def is_zero(c: Coefficient) -> bool:
    return c == 0 or (isinstance(c, float) and abs(c) < ZERO_TOLERANCE)


def is_integer_value(c) -> bool:
    if isinstance(c, Rational):
        return c.denominator == 1
    if isinstance(c, float):
        return c.is_integer()
    return isinstance(c, int)


def coefficient_node(c: Coefficient) -> ASTNode:
    """Literal for a coefficient: an integer, a float or a numeric Fraction."""
    c = normalize_coefficient(c)
    if isinstance(c, Rational):
        if c.denominator == 1:
            return num(c.numerator)
        return Fraction(num(c.numerator), num(c.denominator))
    return num(c)


def numeric_value(node: ASTNode) -> Optional[Coefficient]:
    """The value of a purely numeric node (literal, -literal, p/q), else None."""
    if isinstance(node, NumberLiteral):
        return to_coefficient(node.value)
    if isinstance(node, UnaryExpression):
        inner = numeric_value(node.operand)
        if inner is None:
            return None
        return -inner if node.operator == "-" else inner
    if isinstance(node, Fraction) or (isinstance(node, BinaryExpression) and node.operator == "/"):
        top = numeric_value(node.numerator if isinstance(node, Fraction) else node.left)
        bottom = numeric_value(node.denominator if isinstance(node, Fraction) else node.right)
        if top is None or bottom is None:
            return None
        if bottom == 0:
            raise MathArithmeticError("Division by zero")
        return normalize_coefficient(top / bottom)
    return None


def as_rational(value, max_denominator: int = MAX_RATIONAL_DENOMINATOR) -> Optional[Rational]:
    """Read a float as a small-denominator rational when that is exact."""
    if isinstance(value, Rational):
        return value
    if isinstance(value, int):
        return Rational(value)
    candidate = Rational(value).limit_denominator(max_denominator)
    if abs(float(candidate) - value) <= 1e-12 * max(1.0, abs(value)):
        return candidate
    return None


def integer_root(n: int, k: int) -> Optional[int]:
    """Exact k-th root of a non-negative integer, or None."""
    if n < 0:
        return None
    if n in (0, 1):
        return n
    guess = int(round(n ** (1.0 / k)))
    for candidate in (guess - 1, guess, guess + 1):
        if candidate >= 0 and candidate ** k == n:
            return candidate
    return None


def exact_power(base: Coefficient, exponent: Coefficient) -> Optional[Coefficient]:
    """base ** exponent when the result is exact (or the base is inexact)."""
    if is_integer_value(exponent):
        k = int(exponent)
        if base == 0 and k < 0:
            raise MathArithmeticError("Division by zero")
        if isinstance(base, float):
            return normalize_coefficient(base ** k)
        return base ** k
    if isinstance(base, float) or isinstance(exponent, float):
        if base < 0:
            return None
        return normalize_coefficient(float(base) ** float(exponent))
    # Rational base with rational exponent m/n
    m, n = exponent.numerator, exponent.denominator
    sign = 1
    if base < 0:
        if n % 2 == 0:
            return None
        sign = -1
    top = integer_root(abs(base.numerator), n)
    bottom = integer_root(base.denominator, n)
    if top is None or bottom is None:
        return None
    if base == 0 and m < 0:
        raise MathArithmeticError("Division by zero")
    return (sign * Rational(top, bottom)) ** m


# ============================================================
# Canonical keys
# ============================================================

def extract_terms(node: ASTNode, sign: int = 1) -> List[Tuple[int, ASTNode]]:
    """Flatten nested +, - and unary signs into signed addends."""
    if isinstance(node, BinaryExpression) and node.operator == "+":
        return extract_terms(node.left, sign) + extract_terms(node.right, sign)
    if isinstance(node, BinaryExpression) and node.operator == "-":
        return extract_terms(node.left, sign) + extract_terms(node.right, -sign)
    if isinstance(node, UnaryExpression):
        return extract_terms(node.operand, -sign if node.operator == "-" else sign)
    return [(sign, node)]


def extract_factors(node: ASTNode) -> List[ASTNode]:
    """Flatten a chain of binary * into its factors."""
    if isinstance(node, BinaryExpression) and node.operator == "*":
        return extract_factors(node.left) + extract_factors(node.right)
    return [node]


def _number_key(value) -> str:
    c = to_coefficient(value)
    if isinstance(c, Rational):
        return str(c)
    return repr(c)


def canonical_key(node: ASTNode) -> str:
    """Order-insensitive, annotation-free identity of an expression."""
    if isinstance(node, NumberLiteral):
        return _number_key(node.value)
    if isinstance(node, Identifier):
        return node.name
    if isinstance(node, UnaryExpression) or (
            isinstance(node, BinaryExpression) and node.operator in ("+", "-")):
        terms = extract_terms(node)
        if len(terms) == 1 and terms[0][0] == 1:
            return canonical_key(terms[0][1])
        keys = sorted(("+" if s > 0 else "-") + canonical_key(t) for s, t in terms)
        return "sum(" + ",".join(keys) + ")"
    if isinstance(node, BinaryExpression) and node.operator == "*":
        keys = sorted(canonical_key(f) for f in extract_factors(node))
        return "prod(" + ",".join(keys) + ")"
    if isinstance(node, BinaryExpression):
        return f"{node.operator}({canonical_key(node.left)},{canonical_key(node.right)})"
    if isinstance(node, Fraction):
        return f"/({canonical_key(node.numerator)},{canonical_key(node.denominator)})"
    if isinstance(node, FunctionCall):
        return f"{node.name}(" + ",".join(canonical_key(a) for a in node.args) + ")"
    if isinstance(node, BINDER_TYPES):
        lower = canonical_key(node.lower) if node.lower is not None else ""
        upper = canonical_key(node.upper) if node.upper is not None else ""
        return f"{node.kind}[{node.variable}]({canonical_key(node.body)};{lower};{upper})"
    raise TypeError(f"Not an expression node: {node!r}")


def structurally_equal(a: ASTNode, b: ASTNode) -> bool:
    """Equality up to commutativity and scope annotations."""
    return canonical_key(a) == canonical_key(b)


# ============================================================
# Multiplicative view
# ============================================================

def negate_exponent(e: Exponent) -> Exponent:
    if isinstance(e, (Rational, float)):
        return -e
    if isinstance(e, UnaryExpression) and e.operator == "-":
        return e.operand
    return neg(e)


def _scale_exponent(e: Exponent, k: Exponent) -> Exponent:
    if isinstance(e, (Rational, float)) and isinstance(k, (Rational, float)):
        return normalize_coefficient(e * k)
    left = coefficient_node(e) if isinstance(e, (Rational, float)) else e
    right = coefficient_node(k) if isinstance(k, (Rational, float)) else k
    if left == ONE:
        return right
    if right == ONE:
        return left
    return mul(left, right)


def exponent_sign(e: Exponent) -> int:
    """Sign used to place a factor above or below the fraction bar."""
    if isinstance(e, (Rational, float)):
        return -1 if e < 0 else 1
    value = numeric_value(e)
    if value is not None:
        return -1 if value < 0 else 1
    if isinstance(e, UnaryExpression) and e.operator == "-":
        return -1
    return 1


E_CONSTANT = Identifier("e", scope="free", unique_id="free_e")


def _is_e(node: ASTNode) -> bool:
    return isinstance(node, Identifier) and node.name == "e" and not node.is_bound


def _is_even(e: Exponent) -> bool:
    return isinstance(e, (Rational, float)) and is_integer_value(e) and int(e) % 2 == 0


def _is_nonnegative(node: ASTNode) -> bool:
    if isinstance(node, Identifier):
        return node.name in ("e", "π", "pi") and not node.is_bound
    return isinstance(node, FunctionCall) and node.name in ("abs", "exp", "sqrt")


def _root_factor(base: ASTNode, e: Exponent, k: Exponent) -> Factor:
    """(base^e)^k for a fractional k; an even e that stops being even leaves |base|."""
    scaled = _scale_exponent(e, k)
    if _is_even(e) and not _is_even(scaled) and not _is_nonnegative(base):
        return call("abs", base), scaled
    return base, scaled


def _raise(decomposed: Tuple[Coefficient, List[Factor]], base: ASTNode,
           exponent: Exponent) -> Tuple[Coefficient, List[Factor]]:
    """Decomposition of base ** exponent given the decomposition of base."""
    c, factors = decomposed
    if isinstance(exponent, (Rational, float)):
        if is_integer_value(exponent):
            k = int(exponent)
            if c == 0 and k < 0:
                raise MathArithmeticError("Division by zero")
            return (normalize_coefficient(c ** k),
                    [(b, _scale_exponent(e, exponent)) for b, e in factors])
        if c == 1:
            return Rational(1), [_root_factor(b, e, exponent) for b, e in factors]
        if c > 0 or not factors:
            folded = exact_power(c, exponent)
            if folded is not None:
                return folded, [_root_factor(b, e, exponent) for b, e in factors]
        return Rational(1), [(base, exponent)]
    # Symbolic exponent
    if c == 1 and len(factors) == 1:
        b, e = factors[0]
        return Rational(1), [(b, _scale_exponent(e, exponent))]
    if c == 1 and not factors:
        return Rational(1), []
    return Rational(1), [(base, exponent)]


def decompose(node: ASTNode) -> Tuple[Coefficient, List[Factor]]:
    """Split a node into a numeric coefficient and (base, exponent) factors.

    Factors are not merged; see combine_factors().

    Raises:
        MathArithmeticError: on a literal division by zero
    """
    if isinstance(node, NumberLiteral):
        return to_coefficient(node.value), []

    if isinstance(node, UnaryExpression):
        c, factors = decompose(node.operand)
        return (-c if node.operator == "-" else c), factors

    if isinstance(node, BinaryExpression) and node.operator == "*":
        c1, f1 = decompose(node.left)
        c2, f2 = decompose(node.right)
        return normalize_coefficient(c1 * c2), f1 + f2

    if isinstance(node, Fraction) or (isinstance(node, BinaryExpression) and node.operator == "/"):
        top, bottom = ((node.numerator, node.denominator) if isinstance(node, Fraction)
                       else (node.left, node.right))
        cn, fn = decompose(top)
        cd, fd = decompose(bottom)
        if is_zero(cd):
            raise MathArithmeticError("Division by zero")
        inverted = [(b, negate_exponent(e)) for b, e in fd]
        return normalize_coefficient(cn / cd), fn + inverted

    if isinstance(node, BinaryExpression) and node.operator == "^":
        exponent = numeric_value(node.right)
        if _is_e(node.left):
            return Rational(1), [(E_CONSTANT, exponent if exponent is not None else node.right)]
        if exponent is None:
            return _raise(decompose(node.left), node.left, node.right)
        if exponent == 0:
            return Rational(1), []
        return _raise(decompose(node.left), node.left, exponent)

    if isinstance(node, FunctionCall) and node.name == "sqrt" and len(node.args) == 1:
        return _raise(decompose(node.arg), node.arg, HALF)

    if isinstance(node, FunctionCall) and node.name == "exp" and len(node.args) == 1:
        exponent = numeric_value(node.arg)
        if exponent == 0:
            return Rational(1), []
        return Rational(1), [(E_CONSTANT, exponent if exponent is not None else node.arg)]

    if _is_e(node):
        return Rational(1), [(E_CONSTANT, Rational(1))]

    return Rational(1), [(node, Rational(1))]


def _sum_exponents(exponents: List[Exponent]) -> Exponent:
    numeric = Rational(0)
    symbolic: List[ASTNode] = []
    for e in exponents:
        if isinstance(e, (Rational, float)):
            numeric = normalize_coefficient(numeric + e)
        else:
            symbolic.append(e)
    if not symbolic:
        return numeric
    result = symbolic[0]
    for e in symbolic[1:]:
        result = add(result, e)
    if not is_zero(numeric):
        result = add(result, coefficient_node(numeric)) if numeric > 0 else \
            sub(result, coefficient_node(-numeric))
    return result


def combine_factors(factors: List[Factor]) -> List[Factor]:
    """Merge factors with equal bases by adding their exponents."""
    order: List[str] = []
    bases: Dict[str, ASTNode] = {}
    exponents: Dict[str, List[Exponent]] = {}
    for base, e in factors:
        key = canonical_key(base)
        if key not in bases:
            order.append(key)
            bases[key] = base
            exponents[key] = []
        exponents[key].append(e)
    combined = []
    for key in order:
        e = _sum_exponents(exponents[key])
        if isinstance(e, (Rational, float)) and is_zero(e):
            continue
        combined.append((bases[key], e))
    return combined


def _rank(base: ASTNode, exponent: Exponent) -> int:
    if isinstance(base, NumberLiteral):
        return 0
    if isinstance(base, Identifier):
        return 1 if base.name in ("π", "pi", "e") else 2
    if isinstance(base, FunctionCall):
        return 3
    return 4


def sort_factors(factors: List[Factor]) -> List[Factor]:
    return sorted(factors, key=lambda f: (_rank(*f), canonical_key(f[0])))


def power_node(base: ASTNode, exponent: Exponent) -> ASTNode:
    """Emit base ** exponent using sqrt/exp forms where they apply."""
    if _is_e(base):
        if isinstance(exponent, (Rational, float)) and exponent == 1:
            return base
        e_node = coefficient_node(exponent) if isinstance(exponent, (Rational, float)) else exponent
        return call("exp", e_node)
    if isinstance(exponent, (Rational, float)):
        if exponent == 1:
            return base
        if exponent == HALF:
            return call("sqrt", base)
        return power(base, coefficient_node(exponent))
    return power(base, exponent)


def _chain(nodes: List[ASTNode]) -> ASTNode:
    result = nodes[0]
    for n in nodes[1:]:
        result = mul(result, n)
    return result


def _signed_product(c: Coefficient, nodes: List[ASTNode]) -> ASTNode:
    if not nodes:
        return coefficient_node(c)
    chain = _chain(nodes)
    if c == 1:
        return chain
    if c == -1:
        return neg(chain)
    if c < 0:
        return neg(mul(coefficient_node(-c), chain))
    return mul(coefficient_node(c), chain)


def build_product(coefficient: Coefficient, factors: List[Factor]) -> ASTNode:
    """Rebuild a canonical product or fraction from its multiplicative view.

    Factors with negative exponent go below the fraction bar; a rational
    coefficient p/q puts p above and q below. The sign always sits in the
    numerator.
    """
    coefficient = normalize_coefficient(coefficient)
    if is_zero(coefficient):
        return num(0)
    factors = sort_factors(combine_factors(factors))
    above = [power_node(b, e) for b, e in factors if exponent_sign(e) > 0]
    below = [power_node(b, negate_exponent(e)) for b, e in factors if exponent_sign(e) < 0]

    if isinstance(coefficient, Rational):
        top_c, bottom_c = Rational(coefficient.numerator), Rational(coefficient.denominator)
    else:
        top_c, bottom_c = coefficient, Rational(1)

    numerator = _signed_product(top_c, above)
    if not below and bottom_c == 1:
        return numerator
    denominator = _signed_product(bottom_c, below)
    return Fraction(numerator, denominator)


# ============================================================
# Additive view
# ============================================================

class Term:
    """One addend: coefficient * form, with the form's merged factors.

    form is None for a purely numeric addend.
    """

    __slots__ = ("coefficient", "factors", "form", "key")

    def __init__(self, coefficient: Coefficient, factors: List[Factor]):
        self.coefficient = normalize_coefficient(coefficient)
        self.factors = combine_factors(factors)
        self.form = build_product(Rational(1), self.factors) if self.factors else None
        self.key = canonical_key(self.form) if self.form is not None else ""

    @property
    def sign(self) -> int:
        return -1 if self.coefficient < 0 else 1

    @property
    def is_constant(self) -> bool:
        return self.form is None

    def to_node(self, coefficient: Optional[Coefficient] = None) -> ASTNode:
        c = self.coefficient if coefficient is None else coefficient
        return build_product(c, self.factors)

    def degree(self) -> Coefficient:
        """Total numeric degree in non-constant identifiers."""
        total = Rational(0)
        for base, e in self.factors:
            if (isinstance(base, Identifier) and base.name not in ("e", "π", "pi", "i")
                    and isinstance(e, (Rational, float))):
                total += e
        return total

    def __repr__(self) -> str:
        return f"Term({self.coefficient}, {self.key or '1'})"


def split_term(sign: int, node: ASTNode) -> Term:
    c, factors = decompose(node)
    return Term(sign * c, factors)


def terms_of(node: ASTNode) -> List[Term]:
    """The addends of node as Terms (not yet combined)."""
    return [split_term(sign, t) for sign, t in extract_terms(node)]


def combine_like_terms(terms: List[Term]) -> List[Term]:
    """Group terms by key, summing coefficients and dropping zeros."""
    order: List[str] = []
    groups: Dict[str, Term] = {}
    for term in terms:
        if term.key in groups:
            existing = groups[term.key]
            groups[term.key] = Term(existing.coefficient + term.coefficient, existing.factors)
        else:
            order.append(term.key)
            groups[term.key] = term
    return [groups[k] for k in order if not is_zero(groups[k].coefficient)]


def order_terms(terms: List[Term]) -> List[Term]:
    """Descending degree, first appearance among equals, constants last."""
    variable_terms = [t for t in terms if not t.is_constant]
    constants = [t for t in terms if t.is_constant]
    variable_terms = sorted(variable_terms, key=lambda t: -float(t.degree()))
    return variable_terms + constants


def build_sum(terms: List[Term]) -> ASTNode:
    """Left-associated sum; later negative terms use binary minus."""
    result: Optional[ASTNode] = None
    for term in terms:
        if result is None:
            result = term.to_node()
        elif term.coefficient < 0:
            result = sub(result, term.to_node(-term.coefficient))
        else:
            result = add(result, term.to_node())
    return result if result is not None else num(0)


def make_sum(nodes: List[ASTNode]) -> ASTNode:
    """Combine arbitrary addends into one canonical sum."""
    terms: List[Term] = []
    for n in nodes:
        terms.extend(terms_of(n))
    return build_sum(order_terms(combine_like_terms(terms)))


def make_product(nodes: List[ASTNode]) -> ASTNode:
    """Combine arbitrary factors into one canonical product."""
    coefficient: Coefficient = Rational(1)
    factors: List[Factor] = []
    for n in nodes:
        c, f = decompose(n)
        coefficient = normalize_coefficient(coefficient * c)
        factors.extend(f)
    return build_product(coefficient, factors)


def integer_content(terms: List[Term]) -> int:
    """gcd of the integer coefficients, 1 when any coefficient is not an integer."""
    g = 0
    for t in terms:
        if not is_integer_value(t.coefficient):
            return 1
        g = math.gcd(g, abs(int(t.coefficient)))
    return g or 1


# ============================================================
# Complexity
# ============================================================

def complexity(node: ASTNode) -> float:
    """Structural size used to rank competing results."""
    if isinstance(node, NumberLiteral):
        return 0
    if isinstance(node, Identifier):
        return 0.5
    if isinstance(node, BinaryExpression):
        return 1 + complexity(node.left) + complexity(node.right)
    if isinstance(node, UnaryExpression):
        return 0.5 + complexity(node.operand)
    if isinstance(node, FunctionCall):
        return 1 + sum(complexity(a) for a in node.args)
    if isinstance(node, Fraction):
        return 1.5 + complexity(node.numerator) + complexity(node.denominator)
    return 2 + sum(complexity(c) for c in (node.body, node.lower, node.upper) if c is not None)
