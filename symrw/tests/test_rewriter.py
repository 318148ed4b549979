"""Tests for s-expression matching and instantiation."""

from symrw.rewriter import (
    EXACT_PRELUDE, FAILED, FULL_PRELUDE,
    compound, constant, extend_bindings, free_in, instantiate, lookup,
    match, variable,
)


class TestPredicates:
    """Tests for the expression predicates."""

    def test_constant(self):
        """Numbers are constants, booleans and names are not."""
        assert constant(3)
        assert constant(2.5)
        assert not constant(True)
        assert not constant("x")

    def test_variable_and_compound(self):
        """Strings are variables, lists are compound."""
        assert variable("x")
        assert not variable(1)
        assert compound(["sin", "x"])
        assert not compound("x")

    def test_free_in(self):
        """free_in looks through nested lists."""
        assert free_in("x", ["+", ["*", 2, "x"], 1])
        assert not free_in("y", ["+", ["*", 2, "x"], 1])
        assert not free_in("x", 42)


class TestBindings:
    """Tests for binding helpers."""

    def test_extend_empty(self):
        """Extending empty bindings adds the pair."""
        assert extend_bindings("x", 42, []) == [["x", 42]]

    def test_extend_consistent(self):
        """Rebinding to the same value keeps the bindings."""
        assert extend_bindings("x", 5, [["x", 5]]) == [["x", 5]]

    def test_extend_conflict(self):
        """Rebinding to a different value fails."""
        assert extend_bindings("x", 6, [["x", 5]]) == FAILED

    def test_lookup(self):
        """lookup returns the bound value or the name itself."""
        assert lookup("x", [["x", 5]]) == 5
        assert lookup("y", [["x", 5]]) == "y"


class TestMatch:
    """Tests for pattern matching."""

    def test_match_any(self):
        """?x binds any expression."""
        assert match(["?", "x"], ["sin", "y"], []) == [["x", ["sin", "y"]]]

    def test_match_constant_only(self):
        """?c only binds numbers."""
        assert match(["?c", "n"], 3, []) == [["n", 3]]
        assert match(["?c", "n"], "x", []) == FAILED

    def test_match_variable_only(self):
        """?v only binds names."""
        assert match(["?v", "v"], "x", []) == [["v", "x"]]
        assert match(["?v", "v"], ["+", "x", 1], []) == FAILED

    def test_match_repeated_name(self):
        """A name used twice must bind equal subtrees."""
        pattern = ["-", ["?", "x"], ["?", "x"]]
        assert match(pattern, ["-", "y", "y"], []) == [["x", "y"]]
        assert match(pattern, ["-", "y", "z"], []) == FAILED

    def test_match_free(self):
        """?free matches expressions not containing the bound variable."""
        pattern = ["dd", ["?v", "v"], ["?free", "c", "v"]]
        assert match(pattern, ["dd", "x", 3], []) == [["v", "x"], ["c", 3]]
        assert match(pattern, ["dd", "x", ["*", 2, "x"]], []) == FAILED

    def test_match_length_mismatch(self):
        """Compound patterns need the same arity."""
        assert match(["+", ["?", "a"], ["?", "b"]], ["+", 1, 2, 3], []) == FAILED


class TestInstantiate:
    """Tests for skeleton instantiation."""

    def test_substitution(self):
        """:x is replaced by its binding."""
        assert instantiate(["neg", [":", "x"]], [["x", "y"]]) == ["neg", "y"]

    def test_compute_folds(self):
        """(! op ...) folds with the prelude."""
        skeleton = ["^", [":", "x"], ["!", "*", [":", "a"], [":", "b"]]]
        result = instantiate(skeleton, [["x", "y"], ["a", 2], ["b", 3]], EXACT_PRELUDE)
        assert result == ["^", "y", 6]

    def test_compute_without_prelude(self):
        """Without a prelude the computation stays symbolic."""
        result = instantiate(["!", "+", 1, 2], [], None)
        assert result == ["+", 1, 2]


class TestPreludes:
    """Tests for the fold preludes used by compute forms."""

    def test_nested_compute(self):
        """Inner computations fold before outer ones."""
        skeleton = ["!", "+", 1, ["!", "*", 2, 3]]
        assert instantiate(skeleton, [], FULL_PRELUDE) == 7

    def test_exact_prelude_has_no_division(self):
        """Folding never leaves the rationals."""
        assert instantiate(["!", "/", 1, 3], [], FULL_PRELUDE) == ["/", 1, 3]

    def test_integer_power_only(self):
        """Powers fold only for non-negative integer exponents."""
        assert instantiate(["!", "^", 2, 10], [], EXACT_PRELUDE) == 1024
        assert instantiate(["!", "^", 2, -1], [], EXACT_PRELUDE) == ["^", 2, -1]

    def test_predicates(self):
        """Guards fold to booleans."""
        assert instantiate(["!", "positive?", 3], [], FULL_PRELUDE) is True
        assert instantiate(["!", "integer?", 2.5], [], FULL_PRELUDE) is False
