"""
Pattern matching and instantiation over s-expressions.

The simplifier's identity rules are written against an s-expression view of
the expression tree (see symrw.identities):

    x + 0        ->  ["+", "x", 0]
    -sin(x)      ->  ["neg", ["sin", "x"]]
    e^(ln x)     ->  ["^", "e", ["ln", "x"]]

Numbers are ints/floats, identifiers are strings and compound expressions are
lists whose head names the operator or function.

Pattern syntax (list form, as produced by symrw.engine.parse_sexpr):
    ["?", "name"]            - match any expression
    ["?c", "name"]           - match numeric constants only
    ["?v", "name"]           - match identifiers only
    ["?free", "name", "v"]   - match an expression not containing v
    literal                  - match exactly

Skeleton syntax:
    [":", "name"]            - substitute the bound value
    ["!", "op", args...]     - compute op(args) with the fold prelude
    literal                  - keep as-is
"""

from typing import Any, Callable, Dict, List, Optional, Union

ExprType = Union[int, float, str, List]
NumericType = Union[int, float]
# [name, value] pairs, or FAILED
BindingsType = Union[List[List], str]

FAILED = "failed"


# Receives the numeric arguments; None means "leave the form unfolded"
FoldHandler = Callable[[List[NumericType]], Optional[NumericType]]
FoldFuncsType = Dict[str, FoldHandler]


# ============================================================
# Fold Operation Builders
# ============================================================

def nary_fold(identity: NumericType,
              binary_op: Callable[[NumericType, NumericType], NumericType]) -> FoldHandler:
    """Fold any number of arguments with binary_op, starting from identity."""
    def handler(args: List[NumericType]) -> NumericType:
        result = identity
        for a in args:
            result = binary_op(result, a)
        return result
    return handler


def unary_only(f: Callable[[NumericType], NumericType]) -> FoldHandler:
    def handler(args: List[NumericType]) -> Optional[NumericType]:
        if len(args) != 1:
            return None
        return f(args[0])
    return handler


def binary_only(f: Callable[[NumericType, NumericType], NumericType]) -> FoldHandler:
    def handler(args: List[NumericType]) -> Optional[NumericType]:
        if len(args) != 2:
            return None
        return f(args[0], args[1])
    return handler


def integer_power() -> FoldHandler:
    """a ^ n for a non-negative integer n; other exponents are not folded."""
    def handler(args: List[NumericType]) -> Optional[NumericType]:
        if len(args) != 2:
            return None
        base, exponent = args
        if not float(exponent).is_integer() or exponent < 0:
            return None
        return base ** int(exponent)
    return handler


# ============================================================
# Standard Preludes
# ============================================================

# Exact arithmetic only: no division, so folding never leaves the rationals
EXACT_PRELUDE: FoldFuncsType = {
    "+": nary_fold(0, lambda a, b: a + b),
    "*": nary_fold(1, lambda a, b: a * b),
    "-": binary_only(lambda a, b: a - b),
    "neg": unary_only(lambda a: -a),
    "^": integer_power(),
}

# Guards for conditional rules; a guard that does not fold counts as false
PREDICATE_PRELUDE: FoldFuncsType = {
    ">": binary_only(lambda a, b: a > b),
    "<": binary_only(lambda a, b: a < b),
    "integer?": unary_only(lambda x: float(x).is_integer()),
    "positive?": unary_only(lambda x: x > 0),
    "not": unary_only(lambda x: not x),
}

FULL_PRELUDE: FoldFuncsType = {**EXACT_PRELUDE, **PREDICATE_PRELUDE}


# ============================================================
# Expression predicates
# ============================================================

def constant(exp: ExprType) -> bool:
    return isinstance(exp, (int, float)) and not isinstance(exp, bool)


def variable(exp: ExprType) -> bool:
    return isinstance(exp, str)


def compound(exp: ExprType) -> bool:
    return isinstance(exp, list)


def free_in(var: str, expr: ExprType) -> bool:
    """True if var occurs anywhere in expr."""
    if isinstance(expr, str):
        return expr == var
    if isinstance(expr, list):
        return any(free_in(var, sub) for sub in expr)
    return False


def _is_pattern(pat: ExprType, tag: str) -> bool:
    return isinstance(pat, list) and len(pat) >= 2 and pat[0] == tag


def extend_bindings(name: str, dat: ExprType, bindings: BindingsType) -> BindingsType:
    """Add name -> dat, failing on a conflicting earlier binding."""
    if bindings == FAILED:
        return FAILED
    for entry in bindings:
        if entry[0] == name:
            return bindings if entry[1] == dat else FAILED
    return bindings + [[name, dat]]


def lookup(name: str, bindings: BindingsType) -> Any:
    if bindings == FAILED:
        return name
    for entry in bindings:
        if entry[0] == name:
            return entry[1]
    return name


# ============================================================
# Pattern Matching
# ============================================================

def match(pat: ExprType, exp: ExprType, bindings: BindingsType) -> BindingsType:
    """
    Match a pattern against an expression.

    Args:
        pat: The pattern to match
        exp: The expression to match against
        bindings: Bindings accumulated so far ([] to start)

    Returns:
        Updated bindings on success, "failed" on failure
    """
    if bindings == FAILED:
        return FAILED

    if _is_pattern(pat, "?"):
        return extend_bindings(pat[1], exp, bindings)
    if _is_pattern(pat, "?c"):
        return extend_bindings(pat[1], exp, bindings) if constant(exp) else FAILED
    if _is_pattern(pat, "?v"):
        return extend_bindings(pat[1], exp, bindings) if variable(exp) else FAILED
    if _is_pattern(pat, "?free") and len(pat) == 3:
        excluded = lookup(pat[2], bindings)
        if isinstance(excluded, str) and not free_in(excluded, exp):
            return extend_bindings(pat[1], exp, bindings)
        return FAILED

    if not isinstance(pat, list):
        if isinstance(exp, list):
            return FAILED
        if constant(pat) and constant(exp):
            return bindings if pat == exp else FAILED
        return bindings if type(pat) is type(exp) and pat == exp else FAILED

    if not isinstance(exp, list) or len(pat) != len(exp):
        return FAILED

    for sub_pat, sub_exp in zip(pat, exp):
        bindings = match(sub_pat, sub_exp, bindings)
        if bindings == FAILED:
            return FAILED
    return bindings


# ============================================================
# Instantiation
# ============================================================

def _fold(op: str, args: List[ExprType], fold_funcs: Optional[FoldFuncsType]) -> ExprType:
    if fold_funcs and op in fold_funcs and all(constant(a) for a in args):
        try:
            result = fold_funcs[op](args)
        except (ArithmeticError, ValueError, TypeError):
            result = None
        if result is not None:
            if isinstance(result, float) and result.is_integer():
                return int(result)
            return result
    return [op] + args


def instantiate(skeleton: ExprType, bindings: BindingsType,
                fold_funcs: Optional[FoldFuncsType] = None) -> ExprType:
    """
    Fill a skeleton from bindings.

    Args:
        skeleton: The skeleton to instantiate
        bindings: The bindings from a successful match
        fold_funcs: Fold functions used by compute (!) forms

    Returns:
        The instantiated expression
    """
    if not isinstance(skeleton, list):
        return skeleton
    if not skeleton:
        return []
    if _is_pattern(skeleton, ":"):
        return lookup(skeleton[1], bindings)
    if _is_pattern(skeleton, "!"):
        args = [instantiate(a, bindings, fold_funcs) for a in skeleton[2:]]
        return _fold(skeleton[1], args, fold_funcs)
    return [instantiate(s, bindings, fold_funcs) for s in skeleton]
