"""
symrw - Symbolic Rewriting for LaTeX mathematics

A computer-algebra engine that reads LaTeX and differentiates, integrates,
evaluates, solves, simplifies and factors it, with a derivation trail.

Quick Start:
    from symrw import analyze

    result = analyze("x^2 + 3x", "differentiate")
    result.value        # => "2x + 3"

    analyze("\\int_0^1 x^2 \\, dx", "integrate").value     # => "\\frac{1}{3}"
    analyze("x^2 - 5x + 6 = 0", "solve").value             # => "2, 3"

Lower-level pieces work on expression trees:
    from symrw import parse, simplify, differentiate, to_text

    tree = parse("\\sin(x) \\cdot \\cos(x)")
    to_text(differentiate(tree, "x"))   # => "cos(x)^2 - sin(x)^2"

Results:
    AnalyzeResult.value       LaTeX string (integrals end in " + C")
    AnalyzeResult.value_type  "exact", "approximate" or "symbolic"
    AnalyzeResult.steps       Nested list of derivation steps
    AnalyzeResult.error       Message when the task failed
"""

__version__ = "0.1.0"

# Expression trees
from .nodes import (
    ASTNode,
    NumberLiteral,
    Identifier,
    BinaryExpression,
    UnaryExpression,
    FunctionCall,
    Fraction,
    Integral,
    Sum,
    Product,
)

# Errors
from .errors import (
    SymrwError,
    ParseError,
    UnsupportedConstructError,
    MathArithmeticError,
    EvaluationError,
    IntegrationError,
    SolverError,
    FactorizationSetupError,
)

# Parsing and rendering
from .parser import parse, parse_latex, ParseResult
from .latex import to_latex, to_text

# Algebra
from .simplify import simplify, expand, overlap_simplify, SimplifyOptions
from .factorization import factor
from .differentiation import differentiate
from .integration import integrate, IntegrationEngine, IntegrationStrategy
from .evaluator import evaluate
from .solver import solve

# Entry points
from .api import (
    analyze,
    AnalyzeResult,
    simplify_expression,
    factor_expression,
    solve_equation,
)

# Public API
__all__ = [
    # Version
    "__version__",
    # Nodes
    "ASTNode",
    "NumberLiteral",
    "Identifier",
    "BinaryExpression",
    "UnaryExpression",
    "FunctionCall",
    "Fraction",
    "Integral",
    "Sum",
    "Product",
    # Errors
    "SymrwError",
    "ParseError",
    "UnsupportedConstructError",
    "MathArithmeticError",
    "EvaluationError",
    "IntegrationError",
    "SolverError",
    "FactorizationSetupError",
    # Parsing and rendering
    "parse",
    "parse_latex",
    "ParseResult",
    "to_latex",
    "to_text",
    # Algebra
    "simplify",
    "expand",
    "overlap_simplify",
    "SimplifyOptions",
    "factor",
    "differentiate",
    "integrate",
    "IntegrationEngine",
    "IntegrationStrategy",
    "evaluate",
    "solve",
    # Entry points
    "analyze",
    "AnalyzeResult",
    "simplify_expression",
    "factor_expression",
    "solve_equation",
]
