"""Tests for CLI module."""

import subprocess
import sys
import pytest

from bracketeer import RuleEngine
from bracketeer.cli import BracketREPL, ScriptRunner, count_brackets, main


class TestREPLCommands:
    """Tests for REPL command handling."""

    def test_help_command(self):
        """Help command returns help text."""
        repl = BracketREPL()
        result = repl.handle_command(":help")
        assert "help" in result.lower()
        assert "load" in result.lower()

    def test_trace_command(self):
        """Trace command toggles tracing."""
        repl = BracketREPL()
        assert repl.trace == False

        result = repl.handle_command(":trace on")
        assert repl.trace == True
        assert "enabled" in result.lower()

        result = repl.handle_command(":trace off")
        assert repl.trace == False
        assert "disabled" in result.lower()

    def test_trace_toggle(self):
        """Trace command without arg toggles."""
        repl = BracketREPL()
        repl.handle_command(":trace")
        assert repl.trace == True
        repl.handle_command(":trace")
        assert repl.trace == False

    def test_raw_command(self):
        repl = BracketREPL()
        result = repl.handle_command(":raw on")
        assert repl.raw == True
        assert "disabled" in result.lower()

    def test_clear_command(self):
        """Clear command removes all rules."""
        repl = BracketREPL()
        repl.process_line("@ee: [E(a), E(a)] = 0")
        assert len(repl.engine) == 1
        repl.handle_command(":clear")
        assert len(repl.engine) == 0

    def test_rules_command(self):
        repl = BracketREPL()
        assert repl.handle_command(":rules") == "No rules loaded"
        repl.process_line("@ee: [E(a), E(a)] = 0")
        assert repl.handle_command(":rules") == "[0] @ee: [E(a), E(a)] = 0"

    def test_load_command(self):
        repl = BracketREPL()
        result = repl.handle_command(":load chevalley")
        assert result.startswith("Loaded 22 rules")
        assert "jacobi-f" in repl.engine

    def test_load_missing(self):
        repl = BracketREPL()
        result = repl.handle_command(":load /nonexistent/path.rules")
        assert result.startswith("Error loading")

    def test_load_usage(self):
        assert "Usage" in BracketREPL().handle_command(":load")

    def test_zero_command(self):
        repl = BracketREPL(RuleEngine.bundled())
        assert repl.handle_command(":zero [E(1), E(1)]") == "Is zero!"
        assert repl.handle_command(":zero [E(1), F(1)]") == "Not zero"
        assert repl.handle_command(":zero [E(1)").startswith("Error")

    def test_unknown_command(self):
        result = BracketREPL().handle_command(":frobnicate")
        assert "Unknown command" in result

    def test_quit_command(self):
        """Quit command sets running to False."""
        repl = BracketREPL()
        assert repl.running == True
        repl.handle_command(":quit")
        assert repl.running == False


class TestREPLProcessLine:
    """Tests for REPL line processing."""

    def test_empty_line(self):
        """Empty line returns None."""
        repl = BracketREPL()
        assert repl.process_line("") is None
        assert repl.process_line("   ") is None

    def test_comment_line(self):
        """Comment line returns None."""
        repl = BracketREPL()
        assert repl.process_line("# comment") is None

    def test_rule_definition(self):
        """Rule definition adds rule."""
        repl = BracketREPL()
        result = repl.process_line("@ee: [E(a), E(a)] = 0")
        assert result == "Added 1 rule(s)"
        assert len(repl.engine) == 1

    def test_bad_rule(self):
        repl = BracketREPL()
        assert repl.process_line("[C(a, b), E(a)] = 0").startswith("Error")
        assert repl.process_line("E(1) = = E(2)").startswith("Error")
        assert len(repl.engine) == 0

    def test_expression_evaluation(self):
        """Expression is rewritten and collected."""
        repl = BracketREPL()
        repl.process_line("@ee: [E(a), E(a)] = 0")
        assert repl.process_line("[E(1), E(1)]") == "0"

    def test_expression_unchanged(self):
        """Expression that doesn't match returns unchanged."""
        repl = BracketREPL()
        assert repl.process_line("[E(2), E(1)]") == "[E(2), E(1)]"

    def test_collection(self):
        repl = BracketREPL(RuleEngine.bundled())
        assert repl.process_line("[E(1), E(2)] + [E(2), E(1)]") == "0"

    def test_raw_mode(self):
        repl = BracketREPL(RuleEngine.bundled())
        repl.raw = True
        assert repl.process_line("[E(1), E(2)] + [E(2), E(1)]") == "[E(1), E(2)] + [E(2), E(1)]"

    def test_trace_mode(self):
        repl = BracketREPL()
        repl.process_line("[E(a), E(a)] = 0")
        repl.trace = True
        assert repl.process_line("[E(3), E(3)]") == "0\nrule[0]"

    def test_expression_error(self):
        repl = BracketREPL()
        assert repl.process_line("[x, E(1)]").startswith("Error")


class TestMultiLineInput:
    """Tests for bracket counting."""

    def test_balanced(self):
        assert count_brackets("[E(1), F(1)]") == 0

    def test_open(self):
        assert count_brackets("[[E(1), E(2)],") == 1

    def test_too_many_closing(self):
        assert count_brackets("E(1))") == -1


class TestScriptRunner:
    """Tests for script execution."""

    def test_run_expression(self, capsys):
        runner = ScriptRunner(RuleEngine.bundled())
        assert runner.run_expression("[E(1), F(1)]") == 0
        assert capsys.readouterr().out == "H(1)\n"

    def test_run_expression_error(self, capsys):
        runner = ScriptRunner()
        assert runner.run_expression("[E(1)") == 1
        assert "Error" in capsys.readouterr().err

    def test_run_script(self, tmp_path, capsys):
        script = tmp_path / "check.brk"
        script.write_text(
            "#!/usr/bin/env bracketeer\n"
            "@ee: [E(a), E(a)] = 0\n"
            "\n"
            "[E(1), E(1)]\n"
            "[E(1), E(2)]\n"
        )
        assert ScriptRunner().run_script(script) == 0
        assert capsys.readouterr().out.splitlines() == ["0", "-[E(2), E(1)]"]

    def test_run_script_quiet(self, tmp_path, capsys):
        script = tmp_path / "check.brk"
        script.write_text("[E(1), E(2)]\n")
        assert ScriptRunner().run_script(script, quiet=True) == 0
        assert capsys.readouterr().out == ""

    def test_run_script_error(self, tmp_path, capsys):
        script = tmp_path / "bad.brk"
        script.write_text("E(1)\n[E(1)\n")
        assert ScriptRunner().run_script(script) == 1
        assert "bad.brk:2:" in capsys.readouterr().err

    def test_run_script_prints_command_output(self, tmp_path, capsys):
        """Queries print in scripts, confirmations do not."""
        script = tmp_path / "query.brk"
        script.write_text(
            ":load chevalley\n"
            ":trace off\n"
            ":zero [E(1), E(1)]\n"
            ":zero [E(1), F(1)]\n"
            "[E(1), F(1)]\n"
        )
        assert ScriptRunner().run_script(script) == 0
        assert capsys.readouterr().out.splitlines() == ["Is zero!", "Not zero", "H(1)"]

    def test_run_script_quit(self, tmp_path, capsys):
        script = tmp_path / "quit.brk"
        script.write_text("E(1)\n:quit\nE(2)\n")
        assert ScriptRunner().run_script(script) == 0
        assert capsys.readouterr().out.splitlines() == ["E(1)"]

    def test_missing_script(self, tmp_path, capsys):
        assert ScriptRunner().run_script(tmp_path / "missing.brk") == 1
        assert "Error reading" in capsys.readouterr().err


class TestMain:
    """Tests for main() argument handling."""

    def test_expression(self, capsys):
        assert main(["-e", "[[E(1), E(2)], F(2)]"]) == 0
        assert capsys.readouterr().out == "E(1)\n"

    def test_no_default_rules(self, capsys):
        assert main(["--no-default-rules", "-e", "[E(1), E(1)]"]) == 0
        assert capsys.readouterr().out == "[E(1), E(1)]\n"

    def test_rules_file(self, tmp_path, capsys):
        path = tmp_path / "tiny.rules"
        path.write_text("E(1) = E(2)\n")
        assert main(["-r", str(path), "-e", "E(1)"]) == 0
        assert capsys.readouterr().out == "E(2)\n"

    def test_missing_rules(self, capsys):
        assert main(["-r", "/nonexistent/x.rules", "-e", "E(1)"]) == 1
        assert "Error loading" in capsys.readouterr().err

    def test_trace_flag(self, capsys):
        assert main(["-t", "-e", "[F(1), E(1)]"]) == 0
        out = capsys.readouterr().out
        assert out.splitlines() == ["-H(1)", "ef-diagonal~"]

    def test_max_steps(self, tmp_path, capsys):
        path = tmp_path / "loop.rules"
        path.write_text("E(1) = E(2)\nE(2) = E(1)\n")
        assert main(["--no-default-rules", "-r", str(path), "--max-steps", "5", "-e", "E(1)"]) == 1
        assert "did not terminate" in capsys.readouterr().err

    def test_search_bad_target(self, capsys):
        assert main(["--search", "4"]) == 1
        assert main(["--search", "x"]) == 1

    def test_search_one(self, capsys):
        assert main(["--search", "3", "--steps", "2"]) == 0
        out = capsys.readouterr().out
        assert ">> b=3 n=0" in out
        assert "b=3: [X(n), F(3)] vanishes at n=1" in out

    def test_search_quiet(self, capsys):
        assert main(["--search", "1", "--steps", "1", "-q"]) == 0
        assert capsys.readouterr().out == "b=1: no zero in 1 steps\n"

    def test_search_all(self, capsys):
        assert main(["--search", "all", "--steps", "1", "-q"]) == 0
        out = capsys.readouterr().out
        for b in (1, 2, 3):
            assert f"b={b}:" in out

    def test_search_all_runs_every_step(self, capsys):
        """b=3 vanishes at n=1 but its history still covers every step."""
        assert main(["--search", "all", "--steps", "2"]) == 0
        out = capsys.readouterr().out
        assert ">> b=3 n=2" in out
        assert "b=3: [X(n), F(3)] vanishes at n=1" in out

    def test_fast_requires_search_all(self, capsys):
        assert main(["--fast"]) == 1
        assert "--search all" in capsys.readouterr().err
        assert main(["--search", "2", "--fast"]) == 1
        assert "--search all" in capsys.readouterr().err

    def test_fast_search(self, capsys):
        assert main(["--search", "all", "--fast", "--steps", "1"]) == 0
        assert capsys.readouterr().out == "No zero found in 1 steps\n"


class TestCLIIntegration:
    """Integration tests using subprocess."""

    def test_help_flag(self):
        """--help flag works."""
        result = subprocess.run(
            [sys.executable, "-m", "bracketeer.cli", "--help"],
            capture_output=True, text=True
        )
        assert result.returncode == 0
        assert "bracketeer" in result.stdout

    def test_version_flag(self):
        """--version flag works."""
        result = subprocess.run(
            [sys.executable, "-m", "bracketeer.cli", "--version"],
            capture_output=True, text=True
        )
        assert result.returncode == 0
        assert "0.1.0" in result.stdout

    def test_expression_mode(self):
        """Expression mode evaluates expression."""
        result = subprocess.run(
            [sys.executable, "-m", "bracketeer.cli", "-e", "[E(1), E(1)]"],
            capture_output=True, text=True
        )
        assert result.returncode == 0
        assert result.stdout.strip() == "0"

    def test_pipe_mode(self):
        """Pipe mode processes stdin."""
        result = subprocess.run(
            [sys.executable, "-m", "bracketeer.cli", "-q"],
            input="[E(1), F(1)]\n# comment\n[H(1), E(2)]\n",
            capture_output=True, text=True
        )
        assert result.returncode == 0
        assert result.stdout.splitlines() == ["H(1)", "-E(2)"]

    def test_verbose_logs_to_stderr(self):
        result = subprocess.run(
            [sys.executable, "-m", "bracketeer.cli", "-vv", "--search", "3", "--steps", "1", "-q"],
            capture_output=True, text=True
        )
        assert result.returncode == 0
        assert "bracketeer.search" in result.stderr
