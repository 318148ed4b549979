"""Tests for the rule DSL and RuleEngine."""

from symrw.engine import (
    RuleEngine, format_sexpr, load_rules_from_dsl, parse_rule_line, parse_sexpr,
)
from symrw.rewriter import EXACT_PRELUDE, FULL_PRELUDE


class TestSexpr:
    """Tests for s-expression parsing and formatting."""

    def test_parse_atoms(self):
        """Numbers and names parse to Python values."""
        assert parse_sexpr("42") == 42
        assert parse_sexpr("2.5") == 2.5
        assert parse_sexpr("x") == "x"

    def test_parse_nested(self):
        """Nested lists keep their structure."""
        assert parse_sexpr("(+ (* 2 x) 1)") == ["+", ["*", 2, "x"], 1]

    def test_parse_pattern_variables(self):
        """?x, ?x:const, ?x:var, ?x:free(v) and :x forms."""
        assert parse_sexpr("?x") == ["?", "x"]
        assert parse_sexpr("?n:const") == ["?c", "n"]
        assert parse_sexpr("?v:var") == ["?v", "v"]
        assert parse_sexpr("?c:free(v)") == ["?free", "c", "v"]
        assert parse_sexpr(":x") == [":", "x"]

    def test_format_roundtrips_dsl_syntax(self):
        """format_sexpr writes pattern variables back in DSL form."""
        text = "(^ (^ ?x ?a:const) ?b:const)"
        assert format_sexpr(parse_sexpr(text)) == text


class TestRuleLines:
    """Tests for parsing single DSL lines."""

    def test_named_rule(self):
        """Name, pattern and skeleton are read."""
        metadata, pattern, skeleton = parse_rule_line("@add-zero: (+ ?x 0) => :x")
        assert metadata.name == "add-zero"
        assert pattern == ["+", ["?", "x"], 0]
        assert skeleton == [":", "x"]

    def test_description_priority_and_guard(self):
        """Optional description, priority and when-clause."""
        line = '@zero-pow[5] "Zero to a positive power": (^ 0 ?n:const) => 0 when (! positive? :n)'
        metadata, _, skeleton = parse_rule_line(line)
        assert metadata.priority == 5
        assert metadata.description == "Zero to a positive power"
        assert metadata.condition == ["!", "positive?", [":", "n"]]
        assert skeleton == 0

    def test_comment_is_not_a_rule(self):
        """Comments and blank lines yield None."""
        assert parse_rule_line("# nothing here") is None
        assert parse_rule_line("   ") is None

    def test_groups_tag_rules(self):
        """A [group] line tags every rule after it."""
        rules = load_rules_from_dsl("""
            [first]
            @a: (f ?x) => :x
            [second]
            @b: (g ?x) => :x
        """)
        assert [m.tags for m, _ in rules] == [["first"], ["second"]]


class TestRuleEngine:
    """Tests for RuleEngine."""

    def setup_method(self):
        self.engine = RuleEngine.from_dsl("""
            [additive]
            @add-zero: (+ ?x 0) => :x
            [multiplicative]
            @mul-one: (* ?x 1) => :x
            @pow-pow: (^ (^ ?x ?a:const) ?b:const) => (^ :x (! * :a :b))
        """, fold_funcs=EXACT_PRELUDE)

    def test_len_and_contains(self):
        """Rules are counted and addressable by name."""
        assert len(self.engine) == 3
        assert "add-zero" in self.engine
        assert "missing" not in self.engine

    def test_simplify(self):
        """Rules apply anywhere in the expression."""
        assert self.engine.simplify(["sin", ["+", ["*", "x", 1], 0]]) == ["sin", "x"]

    def test_compute_in_skeleton(self):
        """(! * a b) folds through the prelude."""
        assert self.engine.simplify(["^", ["^", "x", 2], 3]) == ["^", "x", 6]

    def test_trace_bottomup(self):
        """Bottom-up tracing reports the rules that fired in order."""
        result, trace = self.engine.simplify(["+", ["*", "y", 1], 0], trace=True)
        assert result == "y"
        assert trace.rules_applied() == ["mul-one", "add-zero"]
        assert bool(trace)

    def test_empty_trace_is_falsy(self):
        """A trace with no steps is falsy."""
        _, trace = self.engine.simplify(["f", "x"], trace=True)
        assert not trace
        assert trace.format("rules") == "(no rules applied)"

    def test_groups(self):
        """groups() lists every tag."""
        assert self.engine.groups() == {"additive", "multiplicative"}

    def test_repeats_until_fixed_point(self):
        """A rewrite in a child can enable a rule at its parent."""
        engine = RuleEngine.from_dsl("""
            @unwrap: (g ?x) => :x
            @collapse: (f (h ?x)) => :x
        """)
        assert engine.simplify(["f", ["g", ["h", "y"]]]) == "y"

    def test_same_result_is_not_a_step(self):
        """Rules that rewrite a node to itself are skipped."""
        engine = RuleEngine.from_dsl("@same: (f ?x) => (f :x)")
        _, trace = engine.simplify(["f", "x"], trace=True)
        assert not trace

    def test_list_rules(self):
        """list_rules renders rules back into the DSL."""
        assert "@add-zero: (+ ?x 0) => :x" in self.engine.list_rules()


class TestGuards:
    """Tests for when-clauses."""

    def test_guard_blocks_rule(self):
        """A false guard leaves the expression alone."""
        engine = RuleEngine.from_dsl(
            "@zero-pow: (^ 0 ?n:const) => 0 when (! positive? :n)", fold_funcs=FULL_PRELUDE)
        assert engine.simplify(["^", 0, 3]) == 0
        assert engine.simplify(["^", 0, -1]) == ["^", 0, -1]

    def test_guard_without_prelude_never_fires(self):
        """An unfolded guard counts as false."""
        engine = RuleEngine.from_dsl("@r: (f ?n) => 0 when (! positive? :n)")
        assert engine.simplify(["f", 3]) == ["f", 3]

    def test_priority_order(self):
        """Higher priority rules are tried first."""
        engine = RuleEngine.from_dsl("""
            @low: (f ?x) => low
            @high[10]: (f ?x) => high
        """)
        assert engine.simplify(["f", "x"]) == "high"
