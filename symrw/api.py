"""
Public entry points.

Every function accepts a LaTeX string or an expression tree and returns an
AnalyzeResult instead of raising for engine errors:

    differentiate("x^2 + 3x")              # value '2x + 3'
    integrate("\\frac{1}{x}")              # value '\\ln|x| + C'
    evaluate("2 + 3 * 4")                  # value '14', value_type 'exact'
    solve_equation("x^2 - 5x + 6")         # value '2, 3'
    simplify_expression("6x + 9", factor=True)   # value '3(2x + 3)'

Values are LaTeX. A result carries either value and ast, or error, never
both. Steps form a tree: strings, with nested lists for sub-derivations.
"""

import logging
from dataclasses import dataclass, field
from fractions import Fraction as Rational
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from . import differentiation, factorization, integration, solver
from .errors import SymrwError
from .evaluator import evaluate as evaluate_numeric
from .latex import format_number, to_latex
from .nodes import ASTNode, Identifier, Integral, num, walk
from .parser import parse
from .scope import free_variables, infer_variable, substitute
from .simplify import SimplifyOptions, simplify
from .terms import numeric_value

logger = logging.getLogger(__name__)

Expression = Union[str, ASTNode]
StepTree = List[Any]

VALUE_TYPES = ("exact", "approximate", "symbolic")


@dataclass
class AnalyzeResult:
    steps: StepTree = field(default_factory=list)
    value: Optional[str] = None
    value_type: str = "exact"
    ast: Optional[ASTNode] = None
    error: Optional[str] = None

    def __post_init__(self):
        if self.value_type not in VALUE_TYPES:
            raise ValueError(f"Unknown value type: {self.value_type}")
        if self.error is not None and (self.value is not None or self.ast is not None):
            raise ValueError("An error result cannot carry a value")
        if self.error is None and (self.value is None or self.ast is None):
            raise ValueError("A successful result needs both value and ast")

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "steps": self.steps,
            "value": self.value,
            "valueType": self.value_type,
            "ast": self.ast.to_dict() if self.ast is not None else None,
            "error": self.error,
        }


def _guarded(value_type: str, body: Callable[[StepTree], AnalyzeResult]) -> AnalyzeResult:
    steps: StepTree = []
    try:
        return body(steps)
    except (SymrwError, ArithmeticError) as exc:
        logger.debug("Analysis failed: %s", exc)
        return AnalyzeResult(steps, None, value_type, None, str(exc) or type(exc).__name__)


def _node(expr: Expression) -> ASTNode:
    return parse(expr) if isinstance(expr, str) else expr


def _variable(node: ASTNode, variable: Optional[str], steps: StepTree, purpose: str) -> str:
    if variable:
        return variable
    names = free_variables(node)
    chosen = infer_variable(node)
    if len(names) > 1:
        steps.append(f"Multiple variables found: {{{', '.join(names)}}}. "
                     f"Using '{chosen}' for {purpose}.")
    elif names:
        steps.append(f"Auto-detected variable: {chosen}")
    return chosen


def _kind(node: ASTNode) -> str:
    value = numeric_value(node)
    if isinstance(value, Rational):
        return "exact"
    if value is not None:
        return "approximate"
    return "symbolic"


# ============================================================
# Tasks
# ============================================================

def differentiate(expr: Expression, variable: Optional[str] = None) -> AnalyzeResult:
    def body(steps: StepTree) -> AnalyzeResult:
        node = _node(expr)
        x = _variable(node, variable, steps, "differentiation")
        steps.append(f"Differentiating with respect to {x}")
        steps.append(f"Expression: {to_latex(node)}")
        rules: List[str] = []
        derivative = differentiation.differentiate(node, x, rules)
        if rules:
            steps.append(rules)
        steps.append(f"Derivative: {to_latex(derivative)}")
        return AnalyzeResult(steps, to_latex(derivative), "symbolic", derivative)
    return _guarded("symbolic", body)


def integrate(expr: Expression, variable: Optional[str] = None) -> AnalyzeResult:
    def body(steps: StepTree) -> AnalyzeResult:
        node = _node(expr)
        inner: List[str] = []
        if isinstance(node, Integral):
            steps.append(f"Integral over {node.variable}: {to_latex(node)}")
            result = integration.integrate_integral(node, inner)
            steps.append(inner)
            if node.is_definite:
                steps.append(f"Value: {to_latex(result)}")
                return AnalyzeResult(steps, to_latex(result), _kind(result), result)
        else:
            x = _variable(node, variable, steps, "integration")
            steps.append(f"Integrating with respect to {x}")
            steps.append(f"Expression: {to_latex(node)}")
            result = integration.integrate_with_fallback(node, x, inner)
            steps.append(inner)
        value = f"{to_latex(result)} + C"
        steps.append(f"Integral: {value}")
        return AnalyzeResult(steps, value, "symbolic", result)
    return _guarded("symbolic", body)


def evaluate(expr: Expression, values: Optional[Mapping[str, float]] = None) -> AnalyzeResult:
    """Exact value when the arithmetic stays rational, a float otherwise.

    Expressions with unassigned variables (or i) come back simplified and
    symbolic.
    """
    values = dict(values or {})

    def body(steps: StepTree) -> AnalyzeResult:
        node = _node(expr)
        steps.append(f"Original expression: {to_latex(node)}")
        for name, value in values.items():
            node = substitute(node, name, num(value))
        substeps: List[str] = []
        if values:
            substeps.append("Substituted " + ", ".join(f"{k} = {format_number(v)}"
                                                       for k, v in values.items()))
        steps.append(substeps)

        unassigned = free_variables(node)
        imaginary = any(isinstance(n, Identifier) and n.name == "i" and not n.is_bound
                        for n in walk(node))
        if unassigned or imaginary:
            simplified = simplify(node, SimplifyOptions(expand=False, factor=True))
            if unassigned:
                substeps.append(f"Expression contains undefined variables: {', '.join(unassigned)}")
            if imaginary:
                substeps.append("Expression contains imaginary unit: cannot evaluate numerically")
            substeps.append(f"Simplified result: {to_latex(simplified)}")
            return AnalyzeResult(steps, to_latex(simplified), "symbolic", simplified)

        simplified = simplify(node)
        if _kind(simplified) == "exact":
            substeps.append(f"Result: {to_latex(simplified)}")
            return AnalyzeResult(steps, to_latex(simplified), "exact", simplified)

        value = evaluate_numeric(node)
        substeps.append(f"Numeric value: {format_number(value)}")
        kind = "exact" if value.is_integer() else "approximate"
        return AnalyzeResult(steps, format_number(value), kind, num(value))
    return _guarded("exact", body)


def solve_equation(expr: Expression, variable: Optional[str] = None) -> AnalyzeResult:
    def body(steps: StepTree) -> AnalyzeResult:
        node = _node(expr)
        x = _variable(node, variable, steps, "solving")
        steps.append(f"Solving equation for {x}")
        inner: List[str] = []
        roots = solver.solve(node, x, inner)
        steps.append(inner)
        if not roots:
            steps.append("No real solutions found")
            return AnalyzeResult(steps, "No real solutions", "symbolic", solver.solution_set([]))
        value = ", ".join(to_latex(r) for r in roots)
        steps.append(f"Solutions: {x} = {value}")
        return AnalyzeResult(steps, value, "symbolic", solver.solution_set(roots))
    return _guarded("symbolic", body)


def simplify_expression(expr: Expression, **options) -> AnalyzeResult:
    """Simplify with SimplifyOptions fields given as keywords (factor=True, ...)."""
    settings = SimplifyOptions().override(**options)

    def body(steps: StepTree) -> AnalyzeResult:
        node = _node(expr)
        steps.append(f"Expression: {to_latex(node)}")
        inner: List[str] = []
        result = simplify(node, settings, inner)
        if inner:
            steps.append(inner)
        steps.append(f"Simplified: {to_latex(result)}")
        return AnalyzeResult(steps, to_latex(result), _kind(result), result)
    return _guarded("symbolic", body)


def factor_expression(expr: Expression, variable: Optional[str] = None) -> AnalyzeResult:
    def body(steps: StepTree) -> AnalyzeResult:
        node = _node(expr)
        x = _variable(node, variable, steps, "factoring")
        steps.append(f"Expression: {to_latex(node)}")
        inner: List[str] = []
        result = factorization.factor(simplify(node), x, inner)
        if inner:
            steps.append(inner)
        steps.append(f"Factored: {to_latex(result)}")
        return AnalyzeResult(steps, to_latex(result), _kind(result), result)
    return _guarded("symbolic", body)


TASKS = {
    "differentiate": differentiate,
    "integrate": integrate,
    "evaluate": evaluate,
    "solve": solve_equation,
    "simplify": simplify_expression,
    "factor": factor_expression,
}


def analyze(expr: Expression, task: str = "evaluate", **kwargs) -> AnalyzeResult:
    """
    Run one task by name.

    Args:
        expr: LaTeX string or expression tree
        task: One of differentiate, integrate, evaluate, solve, simplify, factor
        **kwargs: Passed to the task (variable=, values=, simplify options)
    """
    if task not in TASKS:
        return AnalyzeResult([], None, "exact", None,
                             f"Unsupported task: {task}. Valid tasks: {', '.join(TASKS)}")
    return TASKS[task](expr, **kwargs)
