"""
Rendering expression trees as LaTeX or plain text.

    to_latex(tree)   # '\\frac{1}{x^{2}}'
    to_text(tree)    # '1/x^2'

Both renderers are total over every node kind. Products juxtapose where
that reads naturally ('2x', '3(2x + 3)', '(x - 2)(x - 3)') and fall back
to an explicit operator otherwise ('x*sin(x)' / 'x \\cdot y').
"""

import re
from typing import List

from .config import RESERVED_FUNCTIONS
from .nodes import (
    ASTNode, BinaryExpression, BINDER_TYPES, COMPARISON_OPERATORS, Fraction,
    FunctionCall, Identifier, Integral, NumberLiteral, Product, UnaryExpression,
)

LATEX_COMPARISONS = {"=": "=", ">": ">", "<": "<", ">=": "\\geq", "<=": "\\leq"}
LATEX_CONSTANTS = {"π": "\\pi", "pi": "\\pi"}
LATEX_FUNCTIONS = {"asin": "\\arcsin", "acos": "\\arccos", "atan": "\\arctan"}

# A trailing command word such as \pi must not run into a following letter
_COMMAND_END = re.compile(r"\\[A-Za-z]+$")


def format_number(value) -> str:
    """Integers without '.0', other floats with 12 significant digits."""
    if isinstance(value, float):
        if value.is_integer() and abs(value) < 1e15:
            return str(int(value))
        return "%.12g" % value
    return str(value)


class _Renderer:
    def __init__(self, latex: bool):
        self.latex = latex

    # ------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------

    def group(self, text: str) -> str:
        return "(" + text + ")"

    def is_negative(self, node: ASTNode) -> bool:
        if isinstance(node, NumberLiteral):
            return node.value < 0
        if isinstance(node, UnaryExpression):
            return node.operator == "-"
        if isinstance(node, BinaryExpression) and node.operator in ("*", "/"):
            return self.is_negative(node.left)
        if isinstance(node, Fraction):
            return self.is_negative(node.numerator)
        return False

    def is_atom(self, node: ASTNode) -> bool:
        if isinstance(node, NumberLiteral):
            return node.value >= 0
        return isinstance(node, (Identifier, FunctionCall))

    # ------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------

    def render(self, node: ASTNode) -> str:
        if isinstance(node, NumberLiteral):
            return format_number(node.value)
        if isinstance(node, Identifier):
            if self.latex:
                return LATEX_CONSTANTS.get(node.name, node.name)
            return "π" if node.name == "pi" else node.name
        if isinstance(node, BinaryExpression):
            return self.binary(node)
        if isinstance(node, UnaryExpression):
            return self.unary(node)
        if isinstance(node, Fraction):
            return self.fraction(node.numerator, node.denominator)
        if isinstance(node, FunctionCall):
            return self.function(node)
        if isinstance(node, BINDER_TYPES):
            return self.binder(node)
        raise TypeError(f"Not an expression node: {node!r}")

    def binary(self, node: BinaryExpression) -> str:
        op = node.operator
        if op in COMPARISON_OPERATORS:
            symbol = LATEX_COMPARISONS[op] if self.latex else op
            return f"{self.render(node.left)} {symbol} {self.render(node.right)}"
        if op in ("+", "-"):
            left = self.render(node.left)
            right = node.right
            text = self.render(right)
            if self.is_negative(right) or (op == "-" and isinstance(right, BinaryExpression)
                                           and right.operator in ("+", "-")):
                text = self.group(text)
            elif isinstance(right, BinaryExpression) and right.operator in COMPARISON_OPERATORS:
                text = self.group(text)
            return f"{left} {op} {text}"
        if op == "*":
            return self.product(node.left, node.right)
        if op == "/":
            return self.fraction(node.left, node.right)
        return self.power(node.left, node.right)

    def unary(self, node: UnaryExpression) -> str:
        operand = node.operand
        text = self.render(operand)
        if isinstance(operand, BinaryExpression) and operand.operator in ("+", "-") \
                or isinstance(operand, BinaryExpression) and operand.operator in COMPARISON_OPERATORS \
                or self.is_negative(operand):
            text = self.group(text)
        return node.operator + text if node.operator == "-" else "+" + text

    def factor_text(self, node: ASTNode, leading: bool) -> str:
        text = self.render(node)
        if isinstance(node, BinaryExpression) and node.operator in ("+", "-"):
            return self.group(text)
        if isinstance(node, BinaryExpression) and node.operator in COMPARISON_OPERATORS:
            return self.group(text)
        if not leading and self.is_negative(node):
            return self.group(text)
        if not self.latex and isinstance(node, Fraction):
            return self.group(text)
        return text

    def product(self, left: ASTNode, right: ASTNode) -> str:
        lt = self.factor_text(left, leading=True)
        rt = self.factor_text(right, leading=False)
        if rt.startswith("("):
            return lt + rt
        if isinstance(left, NumberLiteral) and not rt[0].isdigit() and not rt.startswith("-"):
            return lt + rt
        if self.latex:
            if rt[0].isalpha() and _COMMAND_END.search(lt):
                return f"{lt} {rt}"
            if rt[0].isdigit() or lt[-1].isdigit() or rt.startswith("\\frac"):
                return f"{lt} \\cdot {rt}"
            if rt.startswith("\\") or lt[-1].isalpha() and rt[0].isalpha() and \
                    not isinstance(left, Identifier):
                return f"{lt} {rt}"
            return lt + rt
        return f"{lt}*{rt}"

    def fraction(self, top: ASTNode, bottom: ASTNode) -> str:
        if self.latex:
            return f"\\frac{{{self.render(top)}}}{{{self.render(bottom)}}}"
        tt = self.render(top)
        bt = self.render(bottom)
        if isinstance(top, (BinaryExpression, Fraction)) and not (
                isinstance(top, BinaryExpression) and top.operator in ("*", "^")):
            tt = self.group(tt)
        if not self.is_atom(bottom) and not (isinstance(bottom, BinaryExpression)
                                             and bottom.operator == "^"):
            bt = self.group(bt)
        return f"{tt}/{bt}"

    def power(self, base: ASTNode, exponent: ASTNode) -> str:
        bt = self.render(base)
        if not self.is_atom(base):
            bt = self.group(bt)
        et = self.render(exponent)
        if self.latex:
            return f"{bt}^{{{et}}}"
        if not self.is_atom(exponent):
            et = self.group(et)
        return f"{bt}^{et}"

    def function(self, node: FunctionCall) -> str:
        name = node.name
        args: List[str] = [self.render(a) for a in node.args]
        if name == "set":
            inner = ", ".join(args)
            return f"\\{{{inner}\\}}" if self.latex else f"{{{inner}}}"
        if name == "abs" and len(args) == 1:
            return f"|{args[0]}|"
        if self.latex and name == "sqrt" and len(args) == 1:
            return f"\\sqrt{{{args[0]}}}"
        if self.latex and name == "exp" and len(args) == 1:
            return f"e^{{{args[0]}}}"
        if name == "log" and len(args) == 2:
            if self.latex:
                return f"\\log_{{{args[1]}}}({args[0]})"
            base = args[1] if self.is_atom(node.args[1]) else self.group(args[1])
            return f"log_{base}({args[0]})"
        head = name
        if self.latex and name in RESERVED_FUNCTIONS:
            head = LATEX_FUNCTIONS.get(name, "\\" + name)
        if len(node.args) == 1 and isinstance(node.arg, FunctionCall) and node.arg.name == "abs":
            return head + args[0]
        return f"{head}({', '.join(args)})"

    def binder(self, node) -> str:
        body = self.render(node.body)
        if isinstance(node, Integral):
            if self.latex:
                bounds = ""
                if node.is_definite:
                    bounds = f"_{{{self.render(node.lower)}}}^{{{self.render(node.upper)}}}"
                return f"\\int{bounds} {body} \\, d{node.variable}"
            if node.is_definite:
                return (f"∫[{self.render(node.lower)}, {self.render(node.upper)}] "
                        f"{body} d{node.variable}")
            return f"∫ {body} d{node.variable}"
        symbol = "prod" if isinstance(node, Product) else "sum"
        if self.latex:
            bounds = ""
            if node.lower is not None:
                bounds += f"_{{{node.variable}={self.render(node.lower)}}}"
            if node.upper is not None:
                bounds += f"^{{{self.render(node.upper)}}}"
            return f"\\{symbol}{bounds} {body}"
        lower = self.render(node.lower) if node.lower is not None else "?"
        upper = self.render(node.upper) if node.upper is not None else "?"
        return f"{symbol}({body}, {node.variable} = {lower}..{upper})"


_LATEX = _Renderer(latex=True)
_TEXT = _Renderer(latex=False)


def to_latex(node: ASTNode) -> str:
    return _LATEX.render(node)


def to_text(node: ASTNode) -> str:
    return _TEXT.render(node)
