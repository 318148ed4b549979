"""
Rule engine and DSL loader for the identity rules.

DSL format:
    # Comment
    [group]
    @rule-name: (pattern) => (skeleton)
    @rule-name "Description text": (pattern) => (skeleton)
    @rule-name[priority]: (pattern) => (skeleton) when (condition)

    Examples:
    @add-zero: (+ ?x 0) => :x
    @pow-pow "Nested constant powers": (^ (^ ?x ?a:const) ?b:const) => (^ :x (! * :a :b))

Pattern syntax:
    ?x or ?x:expr      - match any expression, bind to x
    ?x:const           - match constant only, bind to x
    ?x:var             - match identifier only, bind to x
    ?x:free(v)         - match expression not containing the binding of v

Skeleton syntax:
    :x      - substitute bound value of x
    (! op …) - fold with the engine's prelude
    literal - use as-is

Rules are applied bottom-up to a fixed point; RuleEngine.simplify(expr,
trace=True) also returns the RewriteTrace of rules fired.
"""

import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set, Tuple

from .rewriter import ExprType, FAILED, FoldFuncsType, instantiate, match


_SEXPR_TOKEN = re.compile(r"\?[\w-]+:free\([^)]*\)|[()]|[^\s()]+")

_PATTERN_KINDS = {"const": "?c", "var": "?v", "expr": "?"}

_PATTERN_FORMS = {"?": "?{}", ":": ":{}", "?c": "?{}:const", "?v": "?{}:var"}


def _atom(token: str) -> ExprType:
    for convert in (int, float):
        try:
            return convert(token)
        except ValueError:
            pass
    if token.startswith("?"):
        name, _, kind = token[1:].partition(":")
        name = name or "x"
        if kind.startswith("free(") and kind.endswith(")"):
            return ["?free", name, kind[5:-1].strip()]
        return [_PATTERN_KINDS.get(kind, "?"), name]
    if token.startswith(":") and len(token) > 1:
        return [":", token[1:]]
    return token


def _read(tokens: List[str], i: int) -> Tuple[ExprType, int]:
    if tokens[i] != "(":
        return _atom(tokens[i]), i + 1
    items = []
    i += 1
    while i < len(tokens) and tokens[i] != ")":
        item, i = _read(tokens, i)
        items.append(item)
    return items, i + 1


def parse_sexpr(s: str) -> ExprType:
    """
    Parse an s-expression string into a nested list.

    Examples:
        "(+ x 1)" -> ["+", "x", 1]
        "(exp (ln ?u))" -> ["exp", ["ln", ["?", "u"]]]
    """
    tokens = _SEXPR_TOKEN.findall(s)
    if not tokens:
        return None
    return _read(tokens, 0)[0]


def format_sexpr(expr: ExprType, dsl_syntax: bool = True) -> str:
    """
    Inverse of parse_sexpr. With dsl_syntax, pattern variables are written
    back as ?n:const and friends instead of raw lists.
    """
    if not isinstance(expr, list):
        return str(expr)
    head = expr[0] if expr else None
    if dsl_syntax and isinstance(head, str):
        if len(expr) == 2 and head in _PATTERN_FORMS:
            return _PATTERN_FORMS[head].format(expr[1])
        if len(expr) == 3 and head == "?free":
            return f"?{expr[1]}:free({expr[2]})"
    return "(" + " ".join(format_sexpr(e, dsl_syntax) for e in expr) + ")"


@dataclass
class RuleMetadata:
    """Name, description, group tags, guard and priority of one rule.

    Higher priorities are tried first.
    """

    name: Optional[str] = None
    description: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    condition: Optional[ExprType] = None
    priority: int = 0

    def header(self) -> str:
        """The @name[priority] "description" prefix of the DSL line."""
        if not self.name:
            return ""
        text = f"@{self.name}[{self.priority}]" if self.priority else f"@{self.name}"
        if self.description:
            text += f' "{self.description}"'
        return text



_HEADER = re.compile(r'@([\w-]+)(?:\[(\d+)\])?(?:\s+"([^"]+)")?:\s*(.+)')


def _split_when(rest: str) -> Tuple[str, Optional[str]]:
    """Split 'skeleton when condition' at a top-level 'when'."""
    depth = 0
    for i, c in enumerate(rest):
        if c == '(':
            depth += 1
        elif c == ')':
            depth -= 1
        elif (depth == 0 and rest.startswith('when', i)
              and (i == 0 or rest[i - 1].isspace())
              and (i + 4 >= len(rest) or rest[i + 4].isspace())):
            return rest[:i].strip(), rest[i + 4:].strip()
    return rest, None


def parse_rule_line(line: str) -> Optional[Tuple[RuleMetadata, ExprType, ExprType]]:
    """
    Parse a single rule line.

    Formats:
        @name: pattern => skeleton
        @name[priority] "description": pattern => skeleton when condition
        pattern => skeleton

    Returns: (metadata, pattern, skeleton) or None if not a rule
    """
    line = line.strip()
    if not line or line.startswith('#'):
        return None

    metadata = RuleMetadata()
    if line.startswith('@'):
        header = _HEADER.match(line)
        if header:
            metadata.name = header.group(1)
            metadata.priority = int(header.group(2) or 0)
            metadata.description = header.group(3)
            line = header.group(4)

    if '=>' not in line:
        return None

    pattern_str, rest = (part.strip() for part in line.split('=>', 1))
    skeleton_str, condition_str = _split_when(rest)
    if condition_str:
        metadata.condition = parse_sexpr(condition_str)

    pattern = parse_sexpr(pattern_str)
    skeleton = parse_sexpr(skeleton_str)
    if pattern is None or skeleton is None:
        return None
    return metadata, pattern, skeleton


def load_rules_from_dsl(text: str) -> List[Tuple[RuleMetadata, List]]:
    """
    Load rules from DSL text. A [group] line tags the rules after it.

    Returns:
        List of (metadata, [pattern, skeleton]) tuples
    """
    rules = []
    current_group = None
    for line in text.split('\n'):
        stripped = line.strip()
        if stripped.startswith('[') and stripped.endswith(']'):
            current_group = stripped[1:-1].strip()
            continue
        parsed = parse_rule_line(line)
        if parsed:
            metadata, pattern, skeleton = parsed
            if current_group and current_group not in metadata.tags:
                metadata.tags.append(current_group)
            rules.append((metadata, [pattern, skeleton]))
    return rules


@dataclass
class RewriteStep:
    """One rule firing: which rule, and the subexpression before and after."""

    rule_index: int
    metadata: RuleMetadata
    before: ExprType
    after: ExprType

    @property
    def name(self) -> str:
        return self.metadata.name or f"rule[{self.rule_index}]"

    def __str__(self) -> str:
        return f"{self.name}: {format_sexpr(self.before)} -> {format_sexpr(self.after)}"


@dataclass
class RewriteTrace:
    """
    Every rule firing of one simplify() call.

        format("rules")   - rule names joined by arrows
        format("verbose") - numbered before/after listing (default)

    An empty trace is falsy.
    """

    initial: ExprType = None
    final: ExprType = None
    steps: List[RewriteStep] = field(default_factory=list)

    def add_step(self, step: RewriteStep):
        self.steps.append(step)

    def rules_applied(self) -> List[str]:
        return [s.name for s in self.steps]

    def format(self, style: str = "verbose") -> str:
        if style == "rules":
            return " -> ".join(self.rules_applied()) or "(no rules applied)"
        numbered = [f"  {i}. {step}" for i, step in enumerate(self.steps, 1)]
        return "\n".join([f"Initial: {format_sexpr(self.initial)}"] + numbered +
                         [f"Final: {format_sexpr(self.final)}"])

    def __len__(self) -> int:
        return len(self.steps)

    def __bool__(self) -> bool:
        return bool(self.steps)


class RuleEngine:
    """
    A rule engine that loads and applies rewriting rules.

    By default this is a pure rule rewriter with no evaluation; pass a
    prelude via fold_funcs to let (! op ...) skeletons compute.

    Example:
        engine = RuleEngine.from_dsl('''
            [additive]
            @add-zero "Adding zero has no effect": (+ ?x 0) => :x
        ''', fold_funcs=EXACT_PRELUDE)
        result, trace = engine.simplify(expr, trace=True)
    """

    def __init__(self, fold_funcs: Optional[FoldFuncsType] = None):
        self._fold_funcs = fold_funcs
        self._rules: List[List] = []
        self._metadata: List[RuleMetadata] = []
        self._names: Dict[str, int] = {}

    def load_dsl(self, text: str) -> 'RuleEngine':
        """Add the rules in text, keeping the list ordered by priority."""
        loaded = [(m, r) for m, r in zip(self._metadata, self._rules)]
        loaded.extend(load_rules_from_dsl(text))
        # stable: equal priorities keep file order
        loaded.sort(key=lambda pair: -pair[0].priority)
        self._metadata = [m for m, _ in loaded]
        self._rules = [r for _, r in loaded]
        self._names = {m.name: i for i, m in enumerate(self._metadata) if m.name}
        return self

    def groups(self) -> Set[str]:
        return {tag for meta in self._metadata for tag in meta.tags}

    def _check_condition(self, condition: Optional[ExprType], bindings) -> bool:
        if condition is None:
            return True
        result = instantiate(condition, bindings, self._fold_funcs)
        if isinstance(result, bool):
            return result
        if isinstance(result, (int, float)):
            return result != 0
        # An unfolded guard did not evaluate
        return False

    def _fire(self, expr: ExprType) -> Optional[Tuple[int, RuleMetadata, ExprType]]:
        """The first rule whose pattern and guard accept expr and change it."""
        for index, (pattern, skeleton) in enumerate(self._rules):
            metadata = self._metadata[index]
            bindings = match(pattern, expr, [])
            if bindings == FAILED or not self._check_condition(metadata.condition, bindings):
                continue
            result = instantiate(skeleton, bindings, self._fold_funcs)
            if result == expr:
                continue
            return index, metadata, result
        return None

    def simplify(self, expr: ExprType, trace: bool = False, max_steps: int = 1000):
        """
        Rewrite an expression bottom-up (children first, then the parent),
        repeating whole passes until nothing changes.

        Returns:
            Simplified expression, or (expression, trace) if trace=True
        """
        trace_obj = RewriteTrace(initial=expr) if trace else None
        for _ in range(max_steps):
            result = self._bottomup_pass(expr, trace_obj)
            if result == expr:
                break
            expr = result
        if trace_obj is None:
            return expr
        trace_obj.final = expr
        return expr, trace_obj

    def _rewrite_here(self, expr: ExprType, trace_obj: Optional[RewriteTrace]) -> ExprType:
        fired = self._fire(expr)
        if fired is None:
            return expr
        index, metadata, result = fired
        if trace_obj is not None:
            trace_obj.add_step(RewriteStep(index, metadata, expr, result))
        return result

    def _bottomup_pass(self, expr: ExprType, trace_obj: Optional[RewriteTrace]) -> ExprType:
        if not isinstance(expr, list) or not expr:
            return expr
        current = [expr[0]] + [self._bottomup_pass(child, trace_obj) for child in expr[1:]]
        return self._rewrite_here(current, trace_obj)

    def list_rules(self, group: Optional[str] = None) -> List[str]:
        """Every rule (or every rule tagged group) as a DSL line, in the order they are tried."""
        lines = []
        for (pattern, skeleton), meta in zip(self._rules, self._metadata):
            if group is not None and group not in meta.tags:
                continue
            head = meta.header()
            line = f"{format_sexpr(pattern)} => {format_sexpr(skeleton)}"
            if head:
                line = f"{head}: {line}"
            if meta.condition:
                line += f" when {format_sexpr(meta.condition)}"
            lines.append(line)
        return lines

    def __len__(self) -> int:
        return len(self._rules)

    def __repr__(self) -> str:
        return f"RuleEngine({len(self)} rules, groups={sorted(self.groups())})"

    def __contains__(self, name: str) -> bool:
        return name in self._names

    @classmethod
    def from_dsl(cls, text: str, fold_funcs: Optional[FoldFuncsType] = None) -> 'RuleEngine':
        return cls(fold_funcs=fold_funcs).load_dsl(text)
