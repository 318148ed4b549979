"""
Algebraic identities applied by the simplifier.

The identities are plain rewrite rules in the rule DSL, run by a RuleEngine
over an s-expression view of the expression tree:

    sin(-x) + 0      ->  ["+", ["sin", ["neg", "x"]], 0]

Free identifiers become their names, bound identifiers their unique ids so a
rule can never confuse an integration variable with a free one. Binder nodes
are carried through as opaque tokens; the simplifier recurses into their
bodies itself.
"""

import logging
from typing import Dict, List, Tuple

from .engine import RuleEngine
from .nodes import (
    ASTNode, BinaryExpression, BINARY_OPERATORS, BINDER_TYPES, Fraction,
    FunctionCall, Identifier, NumberLiteral, UnaryExpression, num, var,
)
from .rewriter import ExprType, FULL_PRELUDE

logger = logging.getLogger(__name__)

IDENTITY_RULES = """
[additive]
@add-zero: (+ ?x 0) => :x
@zero-add: (+ 0 ?x) => :x
@sub-zero: (- ?x 0) => :x
@zero-sub: (- 0 ?x) => (neg :x)
@sub-self "x - x = 0": (- ?x ?x) => 0

[multiplicative]
@mul-one: (* ?x 1) => :x
@one-mul: (* 1 ?x) => :x
@mul-zero: (* ?x 0) => 0
@zero-mul: (* 0 ?x) => 0
@div-one: (/ ?x 1) => :x
@div-self "x / x = 1": (/ ?x ?x) => 1

[powers]
@pow-zero: (^ ?x 0) => 1
@pow-one: (^ ?x 1) => :x
@one-pow: (^ 1 ?x) => 1
@zero-pow: (^ 0 ?n:const) => 0 when (! positive? :n)
@pow-pow "Nested integer powers multiply": (^ (^ ?x ?a:const) ?b:const) => (^ :x (! * :a :b)) when (! integer? :b)

[signs]
@neg-neg "Double negation": (neg (neg ?x)) => :x
@neg-zero: (neg 0) => 0
@pos: (pos ?x) => :x

[log-exp]
@exp-ln "exp and ln are inverse": (exp (ln ?u)) => :u
@ln-exp "ln and exp are inverse": (ln (exp ?u)) => :u
@ln-one: (ln 1) => 0
@ln-e: (ln e) => 1
@log-one: (log 1) => 0
@log-ten: (log 10) => 1
@exp-zero: (exp 0) => 1
@ln-product "ln(ab) = ln(a) + ln(b)": (ln (* ?a ?b)) => (+ (ln :a) (ln :b))
@ln-power "ln(a^n) = n ln(a)": (ln (^ ?a ?n)) => (* :n (ln :a))
@log-product: (log (* ?a ?b)) => (+ (log :a) (log :b))
@log-power: (log (^ ?a ?n)) => (* :n (log :a))
@log-base-product: (log (* ?a ?b) ?c) => (+ (log :a :c) (log :b :c))
@log-base-power "log_b(a^n) = n log_b(a)": (log (^ ?a ?n) ?c) => (* :n (log :a :c))
@log-base-self "log_b(b) = 1": (log ?b ?b) => 1
@log-base-one: (log 1 ?b) => 0
@log-base-e: (log ?u e) => (ln :u)
@pow-log "b^(log_b(u)) = u": (^ ?b (log ?u ?b)) => :u

[roots]
@sqrt-square "sqrt(u^2) = |u|": (sqrt (^ ?u 2)) => (abs :u)
@square-sqrt: (^ (sqrt ?u) 2) => :u

[trig]
@sin-zero: (sin 0) => 0
@cos-zero: (cos 0) => 1
@tan-zero: (tan 0) => 0
@sin-odd "sin is odd": (sin (neg ?u)) => (neg (sin :u))
@cos-even "cos is even": (cos (neg ?u)) => (cos :u)
@tan-odd "tan is odd": (tan (neg ?u)) => (neg (tan :u))
@pythagorean "sin^2 + cos^2 = 1": (+ (^ (sin ?u) 2) (^ (cos ?u) 2)) => 1
@pythagorean-swapped: (+ (^ (cos ?u) 2) (^ (sin ?u) 2)) => 1
@hyperbolic "cosh^2 - sinh^2 = 1": (- (^ (cosh ?u) 2) (^ (sinh ?u) 2)) => 1

[abs]
@abs-neg: (abs (neg ?u)) => (abs :u)
@abs-abs: (abs (abs ?u)) => (abs :u)
"""

_ENGINE = RuleEngine.from_dsl(IDENTITY_RULES, fold_funcs=FULL_PRELUDE)
logger.debug("Loaded %d identity rules in groups %s", len(_ENGINE), sorted(_ENGINE.groups()))


def identity_engine() -> RuleEngine:
    """The shared identity rule engine."""
    return _ENGINE


# ============================================================
# AST <-> s-expression bridge
# ============================================================

def to_sexpr(node: ASTNode, table: Dict[str, ASTNode]) -> ExprType:
    """Encode node as an s-expression, recording identifiers and binders in table."""
    if isinstance(node, NumberLiteral):
        return node.value
    if isinstance(node, Identifier):
        key = node.unique_id if node.is_bound and node.unique_id else node.name
        table.setdefault(key, node)
        return key
    if isinstance(node, BinaryExpression):
        return [node.operator, to_sexpr(node.left, table), to_sexpr(node.right, table)]
    if isinstance(node, UnaryExpression):
        return ["neg" if node.operator == "-" else "pos", to_sexpr(node.operand, table)]
    if isinstance(node, Fraction):
        return ["/", to_sexpr(node.numerator, table), to_sexpr(node.denominator, table)]
    if isinstance(node, FunctionCall):
        return [node.name] + [to_sexpr(a, table) for a in node.args]
    if isinstance(node, BINDER_TYPES):
        token = f"#{len(table)}"
        table[token] = node
        return token
    raise TypeError(f"Not an expression node: {node!r}")


def from_sexpr(expr: ExprType, table: Dict[str, ASTNode]) -> ASTNode:
    """Decode an s-expression produced by to_sexpr (or a rewrite of one)."""
    if isinstance(expr, bool):
        return num(int(expr))
    if isinstance(expr, (int, float)):
        return num(expr)
    if isinstance(expr, str):
        return table[expr] if expr in table else var(expr)
    head, args = expr[0], [from_sexpr(a, table) for a in expr[1:]]
    if head == "neg" and len(args) == 1:
        return UnaryExpression("-", args[0])
    if head == "pos" and len(args) == 1:
        return UnaryExpression("+", args[0])
    if head == "/" and len(args) == 2:
        return Fraction(args[0], args[1])
    if head in BINARY_OPERATORS and len(args) == 2:
        return BinaryExpression(head, args[0], args[1])
    return FunctionCall(head, tuple(args))


def apply_identities(node: ASTNode) -> Tuple[ASTNode, List[str]]:
    """Rewrite node with the identity rules.

    Returns:
        (rewritten node, names of the rules that fired in order)
    """
    table: Dict[str, ASTNode] = {}
    expr = to_sexpr(node, table)
    result, trace = identity_engine().simplify(expr, trace=True)
    if not trace:
        return node, []
    fired = trace.rules_applied()
    logger.debug("Identities fired: %s", trace.format("rules"))
    return from_sexpr(result, table), fired
