"""
LaTeX tokenizer and recursive-descent parser.

    parse("\\frac{1}{x} + 2x")          # Fraction(1, x) + 2*x, scope-resolved
    parse("\\int_0^1 x^2 \\, dx")       # Integral with bounds
    parse_latex("x +")                  # ParseResult(ast=None, error="...")

Precedence, lowest first:

    comparison   = > < >= <=
    additive     + -
    term         * / \\cdot \\times \\div and implicit multiplication (2x, xy)
    unary        + -
    power        ^ (right associative)
    primary      numbers, identifiers, (...), {...}, |...|, \\frac, \\sqrt,
                 functions, \\int, \\sum, \\prod

Letters are single-letter identifiers, so "xy" reads as x*y. Runs of letters
that spell a known function name (sin, sqrt, ...) or pi are read as that name.
"""

import re
from dataclasses import dataclass
from typing import List, Optional

from .config import COMMON_FUNCTION_NAMES, RESERVED_FUNCTIONS
from .errors import ParseError, SymrwError
from .nodes import (
    ASTNode, BinaryExpression, Fraction, FunctionCall, Identifier, Integral,
    NumberLiteral, Product, Sum, UnaryExpression, div, num, power,
)
from .scope import resolve

_NUMBER = re.compile(r"\d+(?:\.\d+)?|\.\d+")
_LETTERS = re.compile(r"[A-Za-z]+")

# Plain-text words read as a single name, longest first
_WORDS = sorted(RESERVED_FUNCTIONS | {"pi"}, key=len, reverse=True)

_OPERATOR_COMMANDS = {
    "cdot": "*", "times": "*", "ast": "*", "div": "/",
    "geq": ">=", "ge": ">=", "leq": "<=", "le": "<=",
}
_FUNCTION_COMMANDS = {name: name for name in RESERVED_FUNCTIONS}
_FUNCTION_COMMANDS.update({"arcsin": "asin", "arccos": "acos", "arctan": "atan"})
_STRUCTURE_COMMANDS = frozenset(["frac", "dfrac", "tfrac", "sqrt", "int", "sum", "prod"])
_IGNORED_COMMANDS = frozenset(["left", "right", "mathrm", "displaystyle"])

_SINGLE = {
    "(": "LPAREN", ")": "RPAREN", "{": "LBRACE", "}": "RBRACE",
    "[": "LBRACKET", "]": "RBRACKET", "^": "CARET", "_": "UNDERSCORE",
    ",": "COMMA", "|": "BAR",
}


@dataclass(frozen=True)
class Token:
    kind: str
    value: str
    position: int


def tokenize(text: str) -> List[Token]:
    """
    Split LaTeX input into tokens.

    Kinds: NUMBER, IDENT, FUNC, COMMAND, OP, LPAREN, RPAREN, LBRACE, RBRACE,
    LBRACKET, RBRACKET, CARET, UNDERSCORE, COMMA, BAR, EOF.

    Raises:
        ParseError: on an unknown character or command
    """
    tokens: List[Token] = []
    i = 0
    while i < len(text):
        c = text[i]
        if c.isspace():
            i += 1
            continue

        m = _NUMBER.match(text, i)
        if m:
            tokens.append(Token("NUMBER", m.group(), i))
            i = m.end()
            continue

        if c == "\\":
            m = _LETTERS.match(text, i + 1)
            if not m:
                # \, \; \! and escaped spaces
                if i + 1 < len(text) and text[i + 1] in ",;:! ":
                    i += 2
                    continue
                raise ParseError(f"Unexpected character '{text[i + 1:i + 2] or c}'", i)
            name = m.group()
            if name in _IGNORED_COMMANDS:
                pass
            elif name in _OPERATOR_COMMANDS:
                tokens.append(Token("OP", _OPERATOR_COMMANDS[name], i))
            elif name in _STRUCTURE_COMMANDS:
                tokens.append(Token("COMMAND", name, i))
            elif name in _FUNCTION_COMMANDS:
                tokens.append(Token("FUNC", _FUNCTION_COMMANDS[name], i))
            elif name == "pi":
                tokens.append(Token("IDENT", "π", i))
            elif name in ("quad", "qquad"):
                pass
            else:
                raise ParseError(f"Unsupported LaTeX command: \\{name}", i)
            i = m.end()
            continue

        m = _LETTERS.match(text, i)
        if m:
            tokens.extend(_split_letters(m.group(), i))
            i = m.end()
            continue

        if c == "π":
            tokens.append(Token("IDENT", "π", i))
            i += 1
            continue

        if c in _SINGLE:
            tokens.append(Token(_SINGLE[c], c, i))
            i += 1
            continue

        if c in "<>" and text[i + 1:i + 2] == "=":
            tokens.append(Token("OP", c + "=", i))
            i += 2
            continue

        if c in "+-*/=<>":
            tokens.append(Token("OP", c, i))
            i += 1
            continue

        raise ParseError(f"Unexpected character '{c}'", i)

    tokens.append(Token("EOF", "", len(text)))
    return tokens


def _split_letters(run: str, start: int) -> List[Token]:
    """Read function names and pi out of a run of letters, single letters otherwise."""
    tokens = []
    i = 0
    while i < len(run):
        for word in _WORDS:
            if run.startswith(word, i):
                if word == "pi":
                    tokens.append(Token("IDENT", "π", start + i))
                else:
                    tokens.append(Token("FUNC", word, start + i))
                i += len(word)
                break
        else:
            tokens.append(Token("IDENT", run[i], start + i))
            i += 1
    return tokens


class Parser:
    """Recursive-descent parser over a token list.

    end marks a temporary right boundary: tokens at or past it read as EOF.
    The integral parser uses it to stop the integrand before its dx.
    """

    def __init__(self, tokens: List[Token]):
        self.tokens = tokens
        self.index = 0
        self.end = len(tokens) - 1
        self.abs_depth = 0

    # ------------------------------------------------------------
    # Token access
    # ------------------------------------------------------------

    def peek(self, offset: int = 0) -> Token:
        i = self.index + offset
        if i >= self.end:
            return Token("EOF", "", self.tokens[min(i, len(self.tokens) - 1)].position)
        return self.tokens[i]

    def at(self, kind: str, value: Optional[str] = None) -> bool:
        token = self.peek()
        return token.kind == kind and (value is None or token.value == value)

    def advance(self) -> Token:
        token = self.peek()
        if token.kind != "EOF":
            self.index += 1
        return token

    def expect(self, kind: str, what: str) -> Token:
        token = self.peek()
        if token.kind != kind:
            found = token.value or "end of input"
            raise ParseError(f"Expected {what} but found '{found}'", token.position)
        return self.advance()

    # ------------------------------------------------------------
    # Grammar
    # ------------------------------------------------------------

    def parse(self) -> ASTNode:
        node = self.expression()
        token = self.peek()
        if token.kind != "EOF":
            raise ParseError(f"Unexpected token '{token.value}'", token.position)
        return node

    def expression(self) -> ASTNode:
        left = self.additive()
        while self.at("OP") and self.peek().value in ("=", ">", "<", ">=", "<="):
            op = self.advance().value
            left = BinaryExpression(op, left, self.additive())
        return left

    def additive(self) -> ASTNode:
        left = self.term()
        while self.at("OP") and self.peek().value in ("+", "-"):
            op = self.advance().value
            left = BinaryExpression(op, left, self.term())
        return left

    def term(self) -> ASTNode:
        left = self.unary()
        while True:
            if self.at("OP") and self.peek().value in ("*", "/"):
                op = self.advance().value
                right = self.unary()
                left = Fraction(left, right) if op == "/" else BinaryExpression("*", left, right)
            elif self.implicit_multiplication():
                left = BinaryExpression("*", left, self.unary())
            else:
                return left

    def implicit_multiplication(self) -> bool:
        token = self.peek()
        if token.kind in ("NUMBER", "IDENT", "FUNC", "COMMAND", "LPAREN"):
            return True
        return token.kind == "BAR" and self.abs_depth == 0

    def unary(self) -> ASTNode:
        if self.at("OP") and self.peek().value in ("+", "-"):
            op = self.advance().value
            return UnaryExpression(op, self.unary())
        return self.power()

    def power(self) -> ASTNode:
        base = self.primary()
        if self.at("CARET"):
            self.advance()
            return BinaryExpression("^", base, self.exponent())
        return base

    def exponent(self) -> ASTNode:
        if self.at("LBRACE"):
            return self.braced()
        if self.at("NUMBER"):
            # x^23 is x^(23) but x^2y is x^2 * y
            node = self.number(self.advance())
            if self.at("CARET"):
                self.advance()
                return BinaryExpression("^", node, self.exponent())
            return node
        return self.unary()

    def braced(self) -> ASTNode:
        self.expect("LBRACE", "'{'")
        node = self.expression()
        self.expect("RBRACE", "'}'")
        return node

    def number(self, token: Token) -> NumberLiteral:
        text = token.value
        return num(float(text) if "." in text else int(text))

    def primary(self) -> ASTNode:
        token = self.peek()
        kind = token.kind

        if kind == "NUMBER":
            return self.number(self.advance())

        if kind == "IDENT":
            self.advance()
            if token.value in COMMON_FUNCTION_NAMES and self.at("LPAREN"):
                return FunctionCall(token.value, tuple(self.arguments()))
            return Identifier(token.value)

        if kind == "FUNC":
            return self.function(self.advance())

        if kind == "LPAREN":
            self.advance()
            node = self.expression()
            self.expect("RPAREN", "')'")
            return node

        if kind == "LBRACE":
            return self.braced()

        if kind == "BAR":
            self.advance()
            self.abs_depth += 1
            inner = self.expression()
            self.abs_depth -= 1
            self.expect("BAR", "closing '|'")
            return FunctionCall("abs", (inner,))

        if kind == "COMMAND":
            return self.command(self.advance())

        found = token.value or "end of input"
        raise ParseError(f"Unexpected token '{found}'", token.position)

    # ------------------------------------------------------------
    # Functions
    # ------------------------------------------------------------

    def arguments(self) -> List[ASTNode]:
        self.expect("LPAREN", "'('")
        args = [self.expression()]
        while self.at("COMMA"):
            self.advance()
            args.append(self.expression())
        self.expect("RPAREN", "')'")
        return args

    def function(self, head: Token) -> ASTNode:
        """name(args), name{arg}, name x and name^k(arg) for (name arg)^k.

        \\log_b u reads as log(u, b).
        """
        base = None
        if head.value == "log" and self.at("UNDERSCORE"):
            self.advance()
            base = self.bound()
        exponent = None
        if self.at("CARET"):
            self.advance()
            exponent = self.exponent()

        if self.at("LPAREN"):
            args = self.arguments()
        elif self.at("LBRACE"):
            args = [self.braced()]
        else:
            args = [self.bare_argument(head)]

        if len(args) != 1:
            raise ParseError(f"Function {head.value} expects 1 argument, got {len(args)}",
                             head.position)
        if base is not None:
            args.append(base)
        node: ASTNode = FunctionCall(head.value, tuple(args))
        if exponent is not None:
            node = power(node, exponent)
        elif self.at("CARET"):
            self.advance()
            node = power(node, self.exponent())
        return node

    def bare_argument(self, head: Token) -> ASTNode:
        """Argument without parentheses: \\sin x, \\sin 2x, \\ln x^2."""
        if self.at("EOF"):
            raise ParseError(f"Missing argument for {head.value}", head.position)
        node = self.unary()
        while self.at("NUMBER") or self.at("IDENT"):
            node = BinaryExpression("*", node, self.power())
        return node

    # ------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------

    def command(self, token: Token) -> ASTNode:
        name = token.value
        if name in ("frac", "dfrac", "tfrac"):
            top = self.braced()
            return Fraction(top, self.braced())
        if name == "sqrt":
            if self.at("LBRACKET"):
                self.advance()
                index = self.expression()
                self.expect("RBRACKET", "']'")
                return power(self.braced(), div(num(1), index))
            if self.at("LBRACE"):
                return FunctionCall("sqrt", (self.braced(),))
            return self.function(Token("FUNC", "sqrt", token.position))
        if name == "int":
            return self.integral(token)
        return self.big_operator(token)

    def bound(self) -> ASTNode:
        if self.at("LBRACE"):
            return self.braced()
        if self.at("OP", "-"):
            self.advance()
            return UnaryExpression("-", self.primary())
        return self.primary()

    def integral(self, token: Token) -> Integral:
        lower = upper = None
        if self.at("UNDERSCORE"):
            self.advance()
            lower = self.bound()
        if self.at("CARET"):
            self.advance()
            upper = self.bound()
        if (lower is None) != (upper is None):
            raise ParseError("Definite integral needs both bounds", token.position)

        stop = self.differential()
        if stop is None:
            raise ParseError("Expected d<variable> after the integrand", token.position)
        if stop == self.index:
            raise ParseError("Missing integrand", token.position)

        saved = self.end
        self.end = stop
        integrand = self.expression()
        leftover = self.peek()
        self.end = saved
        if self.index != stop:
            raise ParseError(f"Unexpected token '{leftover.value}' in integrand", leftover.position)

        self.advance()  # d
        variable = self.advance().value
        return Integral(integrand, variable, lower, upper)

    def differential(self) -> Optional[int]:
        """Index of the 'd' of the closing dx at the current nesting level."""
        depth = 0
        for i in range(self.index, self.end):
            token = self.tokens[i]
            if token.kind in ("LPAREN", "LBRACE", "LBRACKET"):
                depth += 1
            elif token.kind in ("RPAREN", "RBRACE", "RBRACKET"):
                depth -= 1
                if depth < 0:
                    return None
            elif (depth == 0 and token.kind == "IDENT" and token.value == "d"
                  and i + 1 < self.end and self.tokens[i + 1].kind == "IDENT"
                  and len(self.tokens[i + 1].value) == 1 and self.tokens[i + 1].value != "π"):
                return i
        return None

    def big_operator(self, token: Token) -> ASTNode:
        """\\sum_{i=a}^{b} body and \\prod_{i=a}^{b} body."""
        symbol = token.value
        if not self.at("UNDERSCORE"):
            raise ParseError(f"\\{symbol} needs a lower bound like _{{i=1}}", token.position)
        self.advance()
        self.expect("LBRACE", "'{'")
        variable = self.expect("IDENT", "an index variable").value
        if not (self.at("OP", "=")):
            raise ParseError("Expected '=' in the lower bound", self.peek().position)
        self.advance()
        lower = self.expression()
        self.expect("RBRACE", "'}'")
        upper = None
        if self.at("CARET"):
            self.advance()
            upper = self.bound()
        body = self.term()
        binder = Sum if symbol == "sum" else Product
        return binder(body, variable, lower, upper)


# ============================================================
# Entry points
# ============================================================

@dataclass(frozen=True)
class ParseResult:
    ast: Optional[ASTNode]
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def parse(text: str) -> ASTNode:
    """
    Parse LaTeX into a scope-resolved expression tree.

    Raises:
        ParseError: with the position of the offending token
    """
    if not text or not text.strip():
        raise ParseError("Empty expression", 0)
    return resolve(Parser(tokenize(text)).parse())


def parse_latex(text: str) -> ParseResult:
    """Like parse(), reporting errors in the result instead of raising."""
    try:
        return ParseResult(parse(text))
    except SymrwError as exc:
        return ParseResult(None, str(exc))
