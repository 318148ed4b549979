#!/usr/bin/env python3
"""
symrw Command-Line Interface

Provides interactive REPL, script execution, and pipe/filter modes.

Usage:
    symrw                                   # Start REPL
    symrw script.symrw                      # Run script
    symrw -e "x^2 + 3x" -t differentiate    # One-shot
    symrw -e "x^2 - 5x + 6" -t solve --json # JSON result
    echo "2 + 3 * 4" | symrw                # Filter mode

Script Format (.symrw files):
    #!/usr/bin/env symrw
    :task differentiate
    x^2 + 3x
    \\sin(x) \\cdot \\cos(x)

    :task evaluate
    :let x = 2
    x^2 + 1

    solve: x^2 - 5x + 6 = 0

REPL Commands:
    :help              Show help
    :task NAME         Set the task (differentiate, integrate, evaluate, solve, simplify, factor)
    :var NAME          Fix the variable (or :var auto)
    :let NAME = VALUE  Assign a value used by evaluate
    :clear             Clear assigned values
    :trace on|off      Toggle step display
    :factor on|off     Factor results of simplify
    :json on|off       Toggle JSON output
    :rules [GROUP]     List identity rules
    :quit              Exit
"""

import argparse
import json
import logging
import re
import sys
from pathlib import Path
from typing import Dict, List, Optional

from . import __version__
from .api import TASKS, AnalyzeResult, analyze
from .identities import identity_engine

# Try to import readline for better REPL experience
try:
    import readline
    HAS_READLINE = True
except ImportError:
    HAS_READLINE = False

TASK_PREFIX = re.compile(r"^([a-z]+):\s*(.*)$")
LET_COMMAND = re.compile(r"^([A-Za-z]\w*)\s*=\s*(\S+)$")


class SymrwCompleter:
    """Tab completer for the symrw REPL."""

    COMMANDS = [
        ":help", ":quit", ":exit", ":q",
        ":task", ":var", ":let", ":clear",
        ":trace", ":factor", ":json", ":rules",
    ]

    SWITCH_OPTIONS = ["on", "off"]

    def __init__(self, repl: 'SymrwREPL'):
        self.repl = repl
        self.matches: List[str] = []

    def complete(self, text: str, state: int) -> Optional[str]:
        """Return the next possible completion for 'text'."""
        if state == 0:
            line = readline.get_line_buffer() if HAS_READLINE else ""
            self.matches = self._get_matches(text, line)

        try:
            return self.matches[state]
        except IndexError:
            return None

    def _get_matches(self, text: str, line: str) -> list:
        line = line.lstrip()

        if line.startswith(":task "):
            return [t for t in TASKS if t.startswith(text)]

        if line.startswith((":trace ", ":factor ", ":json ")):
            return [s for s in self.SWITCH_OPTIONS if s.startswith(text)]

        if line.startswith(":rules "):
            return sorted(g for g in identity_engine().groups() if g.startswith(text))

        if text.startswith(":") or (line.startswith(":") and " " not in line):
            return [c for c in self.COMMANDS if c.startswith(text)]

        # LaTeX commands
        if text.startswith("\\"):
            names = ["\\frac", "\\sqrt", "\\int", "\\sum", "\\prod", "\\cdot", "\\pi",
                     "\\sin", "\\cos", "\\tan", "\\ln", "\\log", "\\exp"]
            return [n for n in names if n.startswith(text)]

        return []


def count_brackets(text: str) -> int:
    """Count unbalanced ( and {. Returns >0 if more open than close."""
    depth = 0
    escape = False

    for c in text:
        if escape:
            escape = False
            continue
        if c == '\\':
            escape = True
            continue
        if c in "({":
            depth += 1
        elif c in ")}":
            depth -= 1

    return depth


def format_steps(steps: list, indent: int = 0) -> List[str]:
    """Flatten a step tree into indented lines."""
    lines: List[str] = []
    for step in steps:
        if isinstance(step, list):
            lines.extend(format_steps(step, indent + 1))
        else:
            lines.append("  " * indent + str(step))
    return lines


class SymrwREPL:
    """Interactive REPL for symrw."""

    def __init__(self):
        self.task = "evaluate"
        self.variable: Optional[str] = None
        self.values: Dict[str, float] = {}
        self.trace = False
        self.json_output = False
        self.factor = False
        self.running = True
        self.multi_line_buffer = ""

        if HAS_READLINE:
            self.history_file = Path.home() / ".symrw_history"
            try:
                readline.read_history_file(self.history_file)
            except (FileNotFoundError, OSError):
                pass
            readline.set_history_length(1000)

            self.completer = SymrwCompleter(self)
            readline.set_completer(self.completer.complete)
            readline.parse_and_bind("tab: complete")
            readline.set_completer_delims(" \t\n")

    def save_history(self):
        """Save readline history."""
        if HAS_READLINE:
            try:
                readline.write_history_file(self.history_file)
            except OSError:
                pass

    @staticmethod
    def _switch(current: bool, arg: str) -> bool:
        if arg.lower() in ("on", "true", "1"):
            return True
        if arg.lower() in ("off", "false", "0"):
            return False
        return not current

    def handle_command(self, line: str) -> Optional[str]:
        """
        Handle a REPL command (starts with :).

        Returns a message to print, or None.
        """
        parts = line[1:].split(None, 1)
        if not parts:
            return "Unknown command. Type :help for help."

        cmd = parts[0].lower()
        arg = parts[1].strip() if len(parts) > 1 else ""

        if cmd == "help":
            return self.help_text()

        elif cmd in ("quit", "exit", "q"):
            self.running = False
            return None

        elif cmd == "task":
            if not arg:
                return f"Task: {self.task}\nAvailable: {', '.join(TASKS)}"
            if arg.lower() not in TASKS:
                return f"Unknown task: {arg}. Options: {', '.join(TASKS)}"
            self.task = arg.lower()
            return f"Task set to: {self.task}"

        elif cmd == "var":
            if not arg or arg == "auto":
                self.variable = None
                return "Variable: auto-detect"
            self.variable = arg
            return f"Variable set to: {arg}"

        elif cmd == "let":
            m = LET_COMMAND.match(arg)
            if not m:
                return "Usage: :let NAME = VALUE"
            try:
                self.values[m.group(1)] = float(m.group(2))
            except ValueError:
                return f"Error: not a number: {m.group(2)}"
            return f"{m.group(1)} = {m.group(2)}"

        elif cmd == "clear":
            self.values.clear()
            return "Cleared all values"

        elif cmd == "trace":
            self.trace = self._switch(self.trace, arg)
            return f"Tracing {'enabled' if self.trace else 'disabled'}"

        elif cmd == "factor":
            self.factor = self._switch(self.factor, arg)
            return f"Factoring {'enabled' if self.factor else 'disabled'}"

        elif cmd == "json":
            self.json_output = self._switch(self.json_output, arg)
            return f"JSON output {'enabled' if self.json_output else 'disabled'}"

        elif cmd == "rules":
            engine = identity_engine()
            if arg and arg not in engine.groups():
                return f"Unknown group: {arg}. Groups: {', '.join(sorted(engine.groups()))}"
            return "\n".join(engine.list_rules(arg or None))

        else:
            return f"Unknown command: {cmd}. Type :help for help."

    def help_text(self) -> str:
        """Return help text."""
        return """symrw REPL Commands:
  :help              Show this help
  :task NAME         Set task (differentiate, integrate, evaluate, solve, simplify, factor)
  :var NAME          Fix the variable, or :var auto to detect it
  :let NAME = VALUE  Assign a value for evaluate
  :clear             Clear assigned values
  :trace on|off      Show derivation steps
  :factor on|off     Factor results of simplify
  :json on|off       Print results as JSON
  :rules [GROUP]     List the identity rules used by simplify
  :quit              Exit

Input:
  LaTeX expression               Run the current task
  TASK: expression               Run another task once (e.g. solve: x^2 = 4)
"""

    def run_task(self, task: str, text: str) -> AnalyzeResult:
        if task == "evaluate":
            return analyze(text, task, values=self.values)
        if task == "simplify":
            return analyze(text, task, factor=self.factor)
        return analyze(text, task, variable=self.variable)

    def format_result(self, result: AnalyzeResult) -> str:
        if self.json_output:
            return json.dumps(result.to_dict())
        output = f"Error: {result.error}" if result.error else result.value
        if self.trace and result.steps:
            return "\n".join(format_steps(result.steps) + [output])
        return output

    def process_line(self, line: str) -> Optional[str]:
        """
        Process a single line of input.

        Returns the result to print, or None.
        """
        line = line.strip()

        if not line or line.startswith("#") or line.startswith("%"):
            return None

        if line.startswith(":"):
            return self.handle_command(line)

        task = self.task
        m = TASK_PREFIX.match(line)
        if m and m.group(1) in TASKS:
            task, line = m.group(1), m.group(2)

        return self.format_result(self.run_task(task, line))

    def run(self):
        """Run the REPL loop."""
        print(f"symrw {__version__} - LaTeX computer algebra")
        print("Type :help for help, :quit to exit")
        print()

        while self.running:
            try:
                prompt = "...... " if self.multi_line_buffer else f"{self.task}> "
                line = input(prompt)

                if self.multi_line_buffer:
                    self.multi_line_buffer += " " + line
                else:
                    self.multi_line_buffer = line

                depth = count_brackets(self.multi_line_buffer)
                if depth > 0:
                    continue
                elif depth < 0:
                    print("Error: Unbalanced brackets (too many closing)")
                    self.multi_line_buffer = ""
                    continue

                complete_input = self.multi_line_buffer
                self.multi_line_buffer = ""

                result = self.process_line(complete_input)
                if result:
                    print(result)

            except EOFError:
                print()
                break
            except KeyboardInterrupt:
                if self.multi_line_buffer:
                    print("\nInput cancelled")
                    self.multi_line_buffer = ""
                else:
                    print()
                continue

        self.save_history()


class ScriptRunner:
    """Runs symrw scripts."""

    def __init__(self):
        self.repl = SymrwREPL()

    @staticmethod
    def _failed(output: Optional[str]) -> bool:
        return bool(output) and (output.startswith("Error") or output.startswith("Unknown")
                                 or '"error": "' in output)

    def run_script(self, path: Path, quiet: bool = False) -> int:
        """
        Run a script file.

        Args:
            path: Path to the script
            quiet: If True, don't print expression results

        Returns:
            Exit code (0 for success)
        """
        try:
            lines = path.read_text().splitlines()
        except OSError as e:
            print(f"Error reading {path}: {e}", file=sys.stderr)
            return 1

        for lineno, line in enumerate(lines, 1):
            line = line.strip()

            if not line or line.startswith("#"):
                continue

            if line.startswith(":"):
                result = self.repl.handle_command(line)
                if result and self._failed(result):
                    print(f"{path}:{lineno}: {result}", file=sys.stderr)
                    return 1
                continue

            result = self.repl.process_line(line)
            if self._failed(result):
                print(f"{path}:{lineno}: {result}", file=sys.stderr)
                return 1
            if result and not quiet:
                print(result)

        return 0

    def run_expression(self, expr_str: str) -> int:
        """
        Run the current task on a single expression.

        Returns:
            Exit code (0 for success)
        """
        result = self.repl.process_line(expr_str)
        if result:
            print(result)
            if self._failed(result):
                return 1
        return 0

    def run_stdin(self) -> int:
        """
        Read expressions from stdin, one per line.

        Returns:
            Exit code (0 for success)
        """
        for line in sys.stdin:
            line = line.strip()
            if not line or line.startswith("#"):
                continue

            result = self.repl.process_line(line)
            if result:
                print(result)
                if self._failed(result):
                    return 1

        return 0


def parse_assignment(text: str):
    m = LET_COMMAND.match(text.strip())
    if not m:
        raise argparse.ArgumentTypeError(f"expected NAME=VALUE, got {text!r}")
    try:
        return m.group(1), float(m.group(2))
    except ValueError:
        raise argparse.ArgumentTypeError(f"not a number: {m.group(2)!r}") from None


def main(argv: Optional[List[str]] = None):
    """Main entry point."""
    parser = argparse.ArgumentParser(
        prog="symrw",
        description="symrw - LaTeX computer algebra",
        epilog="Examples:\n"
               "  symrw                                 Start REPL\n"
               "  symrw script.symrw                    Run script\n"
               "  symrw -e 'x^2 + 3x' -t differentiate  One-shot\n"
               "  symrw -e 'x^2 + 1' --let x=2          Evaluate with values\n"
               "  echo '2 + 3 * 4' | symrw              Filter mode\n",
        formatter_class=argparse.RawDescriptionHelpFormatter
    )

    parser.add_argument(
        "script",
        nargs="?",
        help="Script file to run (.symrw)"
    )

    parser.add_argument(
        "-e", "--expr",
        help="Run the task on a single expression"
    )

    parser.add_argument(
        "-t", "--task",
        default="evaluate",
        choices=list(TASKS),
        help="Task to run"
    )

    parser.add_argument(
        "-x", "--var",
        help="Variable for differentiate, integrate, solve and factor"
    )

    parser.add_argument(
        "--let",
        action="append",
        default=[],
        type=parse_assignment,
        metavar="NAME=VALUE",
        help="Assign a variable for evaluate (can be specified multiple times)"
    )

    parser.add_argument(
        "-s", "--steps",
        action="store_true",
        help="Show derivation steps"
    )

    parser.add_argument(
        "--json",
        action="store_true",
        help="Print results as JSON"
    )

    parser.add_argument(
        "-q", "--quiet",
        action="store_true",
        help="Quiet mode (suppress non-essential output)"
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Log engine decisions to stderr"
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}"
    )

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(name)s: %(message)s",
    )

    runner = ScriptRunner()
    runner.repl.task = args.task
    runner.repl.variable = args.var
    runner.repl.values.update(dict(args.let))
    runner.repl.trace = args.steps
    runner.repl.json_output = args.json

    if args.script:
        sys.exit(runner.run_script(Path(args.script), quiet=args.quiet))

    elif args.expr:
        sys.exit(runner.run_expression(args.expr))

    elif not sys.stdin.isatty():
        sys.exit(runner.run_stdin())

    else:
        runner.repl.run()


if __name__ == "__main__":
    main()
