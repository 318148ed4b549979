#!/usr/bin/env python3
"""
symrw Feature Demonstration

This script walks through the six tasks and the lower-level tree API.
"""

from symrw import (
    analyze, parse, simplify, differentiate, factor, to_text, to_latex,
    SimplifyOptions,
)
from symrw.cli import format_steps
from symrw.identities import identity_engine


def section(title: str):
    """Print a section header."""
    print(f"\n{'='*60}")
    print(f" {title}")
    print('='*60)


def show(task: str, expr: str, **kwargs):
    result = analyze(expr, task, **kwargs)
    shown = result.value if result.ok else f"Error: {result.error}"
    print(f"  {expr:32} => {shown}")
    return result


def demo_differentiate():
    section("Differentiation")
    for expr in ["x^2 + 3x", "\\sin(x) \\cdot \\cos(x)", "e^{2x}", "\\sqrt{x}", "xy"]:
        show("differentiate", expr)


def demo_integrate():
    section("Integration")
    for expr in ["x^2", "\\frac{1}{x}", "x e^{x}", "\\ln(x)",
                 "\\frac{1}{x^2 + 1}", "\\int_0^1 x^2 \\, dx", "e^{x^2}"]:
        show("integrate", expr)


def demo_evaluate():
    section("Evaluation")
    show("evaluate", "2 + 3 * 4")
    show("evaluate", "\\frac{1}{3} + \\frac{1}{6}")
    show("evaluate", "\\sin(1)")
    show("evaluate", "x^2 + 1", values={"x": 3})
    show("evaluate", "\\sum_{i=1}^{10} i^2")
    show("evaluate", "\\frac{1}{0}")


def demo_solve():
    section("Solving Equations")
    for expr in ["x^2 - 5x + 6 = 0", "2x + 1 = 7", "x^2 + 1 = 0",
                 "x^3 - 6x^2 + 11x - 6 = 0", "x^2 = 2"]:
        show("solve", expr)


def demo_simplify_and_factor():
    section("Simplification and Factoring")
    show("simplify", "(x + 1)^2")
    show("simplify", "\\frac{x^2 - 1}{x - 1}")
    show("simplify", "\\sin(x)^2 + \\cos(x)^2")
    show("simplify", "6x + 9", factor=True)
    for expr in ["x^2 - 4", "x^3 - 8", "x^4 - 5x^2 + 4"]:
        show("factor", expr)


def demo_steps():
    section("Derivation Steps")
    result = analyze("\\int x \\cos(x^2) \\, dx", "integrate")
    for line in format_steps(result.steps):
        print(f"  {line}")


def demo_trees():
    section("Working with Trees")
    tree = parse("(x + 1)(x - 1)")
    expanded = simplify(tree)
    print(f"  expanded:   {to_text(expanded)}")
    print(f"  unexpanded: {to_text(simplify(tree, SimplifyOptions(expand=False)))}")
    print(f"  factored:   {to_text(factor(expanded, 'x'))}")
    derivative = differentiate(parse("\\tan(x)"), "x")
    print(f"  d/dx tan(x) = {to_latex(derivative)}")

    engine = identity_engine()
    print(f"\n  {len(engine)} identity rules in groups {sorted(engine.groups())}")


def main():
    """Run all demonstrations."""
    print("symrw - Symbolic Rewriting for LaTeX mathematics")
    print("Feature Demonstration")

    demo_differentiate()
    demo_integrate()
    demo_evaluate()
    demo_solve()
    demo_simplify_and_factor()
    demo_steps()
    demo_trees()

    print("\n" + "="*60)
    print(" Demo complete!")
    print("="*60)


if __name__ == "__main__":
    main()
