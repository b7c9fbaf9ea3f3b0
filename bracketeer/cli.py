#!/usr/bin/env python3
"""
bracketeer Command-Line Interface

Provides interactive REPL, script execution, pipe/filter and search modes.

Usage:
    bracketeer                           # Start REPL (bundled rules)
    bracketeer script.brk                # Run script
    bracketeer -e "[E(1), E(1)]"         # Evaluate expression
    bracketeer -r my.rules               # Use another rule set
    bracketeer --search 1 --steps 6      # Symbolic counterexample search
    bracketeer --search all --fast       # Chain-sum search for all b
    echo "[H(1), E(2)]" | bracketeer     # Filter mode

Script Format (.brk files):
    #!/usr/bin/env bracketeer
    :load extra.rules
    @my-rule: [E(a), E(a)] = 0

    [E(1), E(1)]
    [[E(1), E(2)], F(1)]

REPL Commands:
    :help              Show help
    :load FILE         Load rules from file
    :rules             List loaded rules
    :clear             Clear all rules
    :trace on|off      Toggle tracing
    :raw on|off        Toggle term collection
    :zero EXPR         Check whether EXPR vanishes
    :quit              Exit
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional

from . import __version__
from .chains import chain_search
from .engine import DEFAULT_RULES, RuleEngine, load_rules_from_text
from .errors import BracketError
from .rewriter import DEFAULT_MAX_STEPS
from .search import GENERATOR_INDICES, first_common_zero, search

# Try to import readline for better REPL experience
try:
    import readline
    HAS_READLINE = True
except ImportError:
    HAS_READLINE = False


class BracketCompleter:
    """Tab completer for the REPL."""

    # Commands that can be completed
    COMMANDS = [
        ":help", ":quit", ":exit", ":q",
        ":load", ":rules", ":clear",
        ":trace", ":raw", ":zero",
    ]

    TOGGLE_OPTIONS = ["on", "off"]

    def __init__(self, repl: 'BracketREPL'):
        self.repl = repl
        self.matches = []

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
        """Get list of matches for the current input."""
        line = line.lstrip()

        if line.startswith(":trace ") or line.startswith(":raw "):
            return [t for t in self.TOGGLE_OPTIONS if t.startswith(text)]

        if line.startswith(":load "):
            return self._complete_path(text)

        if text.startswith(":") or (line.startswith(":") and " " not in line):
            return [c for c in self.COMMANDS if c.startswith(text)]

        return []

    def _complete_path(self, text: str) -> list:
        """Complete file paths."""
        import glob

        if not text:
            text = "./"

        matches = []
        for path in glob.glob(text + "*"):
            if Path(path).is_dir():
                matches.append(path + "/")
            else:
                matches.append(path)
        return matches


def count_brackets(text: str) -> int:
    """Count unbalanced brackets and parentheses. Returns >0 if more open than close."""
    depth = 0
    for c in text:
        if c in "([":
            depth += 1
        elif c in ")]":
            depth -= 1
    return depth


def _toggle(arg: str, current: bool) -> bool:
    if arg.lower() in ("on", "true", "1"):
        return True
    if arg.lower() in ("off", "false", "0"):
        return False
    return not current


class BracketREPL:
    """Interactive REPL for bracketeer."""

    def __init__(self, engine: Optional[RuleEngine] = None):
        self.engine = engine if engine is not None else RuleEngine()
        self.trace = False
        self.raw = False
        self.running = True
        self.multi_line_buffer = ""

        # Set up readline history and completion
        if HAS_READLINE:
            self.history_file = Path.home() / ".bracketeer_history"
            try:
                readline.read_history_file(self.history_file)
            except (FileNotFoundError, OSError):
                pass
            readline.set_history_length(1000)

            self.completer = BracketCompleter(self)
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

    def handle_command(self, line: str) -> Optional[str]:
        """
        Handle a REPL command (starts with :).

        Returns a message to print, or None.
        """
        parts = line[1:].split(None, 1)
        if not parts:
            return "Unknown command. Type :help for help."

        cmd = parts[0].lower()
        arg = parts[1] if len(parts) > 1 else ""

        if cmd == "help":
            return self.help_text()

        elif cmd == "quit" or cmd == "exit" or cmd == "q":
            self.running = False
            return None

        elif cmd == "load":
            if not arg:
                return "Usage: :load FILENAME"
            try:
                before = len(self.engine)
                self.engine.load_file(arg)
                return f"Loaded {len(self.engine) - before} rules from {arg}"
            except (BracketError, OSError) as e:
                return f"Error loading {arg}: {e}"

        elif cmd == "rules":
            rules = self.engine.list_rules()
            if not rules:
                return "No rules loaded"
            return "\n".join(rules)

        elif cmd == "clear":
            self.engine.clear()
            return "Cleared all rules"

        elif cmd == "trace":
            self.trace = _toggle(arg, self.trace)
            return f"Tracing {'enabled' if self.trace else 'disabled'}"

        elif cmd == "raw":
            self.raw = _toggle(arg, self.raw)
            return f"Term collection {'disabled' if self.raw else 'enabled'}"

        elif cmd == "zero":
            if not arg:
                return "Usage: :zero EXPR"
            try:
                return "Is zero!" if self.engine.is_zero(arg) else "Not zero"
            except BracketError as e:
                return f"Error: {e}"

        else:
            return f"Unknown command: {cmd}. Type :help for help."

    def help_text(self) -> str:
        """Return help text."""
        return """bracketeer REPL Commands:
  :help              Show this help
  :load FILE         Load rules from file (.rules, or a rule set name)
  :rules             List all loaded rules
  :clear             Clear all rules
  :trace on|off      Toggle tracing
  :raw on|off        Toggle term collection (raw shows the rewritten form)
  :zero EXPR         Check whether an expression vanishes
  :quit              Exit

Syntax:
  pattern = replacement                    Define a rule
  @name: pattern = replacement             Named rule
  [E(1), F(1)] + 2 * H(3)                  Evaluate an expression
"""

    def process_line(self, line: str) -> Optional[str]:
        """
        Process a single line of input.

        Returns the result to print, or None.
        """
        line = line.strip()

        # Empty line or comment
        if not line or line.startswith("#"):
            return None

        # Command
        if line.startswith(":"):
            return self.handle_command(line)

        # Rule definition (has =)
        if "=" in line:
            try:
                parsed = load_rules_from_text(line)
            except BracketError as e:
                return f"Error: {e}"
            self.engine.load_rules(parsed)
            return f"Added {len(parsed)} rule(s)"

        # Expression to evaluate
        try:
            if self.trace:
                result, trace = self.engine.rewrite(line, trace=True)
                if not self.raw:
                    result = self.engine.collect(result)
                if trace.steps:
                    return f"{result}\n{trace.format('rules')}"
                return str(result)
            if self.raw:
                return str(self.engine.rewrite(line))
            return str(self.engine.collect(line))

        except BracketError as e:
            return f"Error: {e}"

    def run(self):
        """Run the REPL loop."""
        print(f"bracketeer {__version__} - bracket algebra rewriting")
        print("Type :help for help, :quit to exit")
        print("Multi-line input: expressions with unbalanced brackets continue on next line")
        print()

        while self.running:
            try:
                if self.multi_line_buffer:
                    prompt = "...... "
                else:
                    prompt = "brk> "

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


# Commands whose output is only a confirmation, not printed in scripts
SILENT_COMMANDS = (":load", ":clear", ":trace", ":raw")


def _is_confirmation(line: str) -> bool:
    if line.startswith(":"):
        return line.split()[0] in SILENT_COMMANDS
    return "=" in line


class ScriptRunner:
    """Runs bracketeer scripts."""

    def __init__(self, engine: Optional[RuleEngine] = None):
        self.repl = BracketREPL(engine)

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
            lines = path.read_text(encoding="utf-8").splitlines()
        except OSError as e:
            print(f"Error reading {path}: {e}", file=sys.stderr)
            return 1

        for lineno, line in enumerate(lines, 1):
            line = line.strip()

            # Skip empty lines, comments, and shebang
            if not line or line.startswith("#"):
                continue

            result = self.repl.process_line(line)
            if not self.repl.running:
                break
            if result is None:
                continue
            if result.startswith("Error") or result.startswith("Unknown"):
                print(f"{path}:{lineno}: {result}", file=sys.stderr)
                return 1
            if _is_confirmation(line):
                continue
            if not quiet:
                print(result)

        return 0

    def run_expression(self, expr_str: str) -> int:
        """
        Evaluate a single expression.

        Returns:
            Exit code (0 for success)
        """
        result = self.repl.process_line(expr_str)
        if result:
            if result.startswith("Error"):
                print(result, file=sys.stderr)
                return 1
            print(result)
        return 0

    def run_stdin(self) -> int:
        """
        Read expressions from stdin and evaluate them.

        Returns:
            Exit code (0 for success)
        """
        for line in sys.stdin:
            line = line.strip()
            if not line or line.startswith("#"):
                continue

            result = self.repl.process_line(line)
            if result:
                if result.startswith("Error"):
                    print(result, file=sys.stderr)
                    return 1
                print(result)

        return 0


def run_search(target: str, steps: int, fast: bool, engine: RuleEngine, quiet: bool) -> int:
    """Run the counterexample search and print what was found."""
    if fast:
        if target != "all":
            print("Error: --fast searches every b at once, use --search all", file=sys.stderr)
            return 1
        found = chain_search(steps)
        if found is None:
            print(f"No zero found in {steps} steps")
        else:
            print(f"Found zero @ {found}!!")
        return 0

    if target == "all":
        indices = GENERATOR_INDICES
    else:
        try:
            indices = (int(target),)
        except ValueError:
            print(f"Error: --search expects 1, 2, 3 or all, got {target}", file=sys.stderr)
            return 1
        if indices[0] not in GENERATOR_INDICES:
            print(f"Error: --search expects 1, 2, 3 or all, got {target}", file=sys.stderr)
            return 1

    results = {}
    for b in indices:
        result = search(b, steps, engine, stop_on_zero=len(indices) == 1)
        results[b] = result
        if not quiet:
            for state in result.history:
                print(f">> b={b} n={state.n}")
                print(f"nx   = {state.x}")
                print(f"nx_f = {state.xf}")
                print(f"nx_h = {state.xh}")
        print(result.summary())

    if len(results) > 1:
        common = first_common_zero(results)
        if common is not None:
            print(f"All [X(n), F(b)] vanish at n={common}")
    return 0


def main(argv=None):
    """Main entry point."""
    parser = argparse.ArgumentParser(
        prog="bracketeer",
        description="bracketeer - rule-based rewriting for bracket algebras",
        epilog="Examples:\n"
               "  bracketeer                           Start REPL\n"
               "  bracketeer script.brk                Run script\n"
               "  bracketeer -e '[E(1), E(1)]'         Evaluate expression\n"
               "  bracketeer -r my.rules               REPL with other rules\n"
               "  bracketeer --search all --steps 6    Symbolic search\n"
               "  bracketeer --search all --fast       Chain-sum search\n",
        formatter_class=argparse.RawDescriptionHelpFormatter
    )

    parser.add_argument(
        "script",
        nargs="?",
        help="Script file to run (.brk)"
    )

    parser.add_argument(
        "-r", "--rules",
        action="append",
        default=[],
        help=f"Load rules from file or by name (default: {DEFAULT_RULES}; can be repeated)"
    )

    parser.add_argument(
        "--no-default-rules",
        action="store_true",
        help="Start with an empty rule set"
    )

    parser.add_argument(
        "-e", "--expr",
        help="Evaluate a single expression"
    )

    parser.add_argument(
        "-t", "--trace",
        action="store_true",
        help="Enable tracing"
    )

    parser.add_argument(
        "--raw",
        action="store_true",
        help="Print rewritten results without collecting terms"
    )

    parser.add_argument(
        "--max-steps",
        type=int,
        default=DEFAULT_MAX_STEPS,
        help="Rule applications allowed per rewrite"
    )

    parser.add_argument(
        "--search",
        metavar="B",
        help="Search for a vanishing [X(n), F(B)], B in 1, 2, 3 or all"
    )

    parser.add_argument(
        "--steps",
        type=int,
        default=6,
        help="Search steps (default: 6)"
    )

    parser.add_argument(
        "--fast",
        action="store_true",
        help="Use the chain-sum search (all B at once)"
    )

    parser.add_argument(
        "-q", "--quiet",
        action="store_true",
        help="Quiet mode (suppress non-essential output)"
    )

    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Log progress (-vv for debug output)"
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}"
    )

    args = parser.parse_args(argv)

    if args.verbose:
        logging.basicConfig(
            level=logging.DEBUG if args.verbose > 1 else logging.INFO,
            format="%(levelname)s %(name)s: %(message)s",
        )

    engine = RuleEngine(max_steps=args.max_steps)
    rule_files = list(args.rules)
    if not rule_files and not args.no_default_rules:
        rule_files = [DEFAULT_RULES]

    for rules_file in rule_files:
        try:
            engine.load_file(rules_file)
            if args.verbose:
                print(f"Loaded rules from {rules_file}", file=sys.stderr)
        except (BracketError, OSError) as e:
            print(f"Error loading {rules_file}: {e}", file=sys.stderr)
            return 1

    if args.fast and not args.search:
        print("Error: --fast requires --search all", file=sys.stderr)
        return 1

    if args.search:
        try:
            return run_search(args.search, args.steps, args.fast, engine, args.quiet)
        except BracketError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1

    runner = ScriptRunner(engine)
    runner.repl.trace = args.trace
    runner.repl.raw = args.raw

    if args.script:
        return runner.run_script(Path(args.script), quiet=args.quiet)

    elif args.expr:
        return runner.run_expression(args.expr)

    elif not sys.stdin.isatty():
        return runner.run_stdin()

    else:
        runner.repl.run()
        return 0


if __name__ == "__main__":
    sys.exit(main())
