"""
Exception types for symrw.

Every error raised on purpose by the engine derives from SymrwError, so the
public entry points in symrw.api can turn it into an error result.
"""

from typing import Optional


class SymrwError(Exception):
    """Base class for all engine errors."""


class ParseError(SymrwError):
    """Raised when LaTeX input cannot be tokenized or parsed."""

    def __init__(self, message: str, position: Optional[int] = None):
        self.position = position
        if position is not None:
            message = f"{message} (at position {position})"
        super().__init__(message)


class UnsupportedConstructError(SymrwError):
    """Raised for input the engine deliberately does not handle."""


class MathArithmeticError(SymrwError, ArithmeticError):
    """Raised for division by zero during folding or evaluation."""


class EvaluationError(SymrwError):
    """Raised when an expression has no numeric value."""


class IntegrationError(SymrwError):
    """Raised when no integration technique produced an antiderivative."""


class SolverError(SymrwError):
    """Raised when an equation cannot be solved in closed form."""


class FactorizationSetupError(SymrwError):
    """Raised when a factorization engine is built with a bad strategy list."""
