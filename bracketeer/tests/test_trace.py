"""Tests for trace recording and formatting."""

import pytest
from bracketeer import RuleEngine, RewriteStep, RewriteTrace
from bracketeer.values import Negative, ZERO, E, F, H


class TestTraceRecording:
    """Tests for what a trace records."""

    def setup_method(self):
        """Set up test engine."""
        self.engine = RuleEngine.bundled()

    def test_flipped_step(self):
        """A rule applied through the swapped bracket is marked."""
        result, trace = self.engine.rewrite("[F(1), E(1)]", trace=True)
        assert result == Negative(H(1))
        assert len(trace) == 1
        step = trace.steps[0]
        assert step.flipped
        assert step.rule.name == "ef-diagonal"
        assert step.name == "ef-diagonal~"

    def test_initial_and_final(self):
        result, trace = self.engine.rewrite("[E(2), E(2)]", trace=True)
        assert str(trace.initial) == "[E(2), E(2)]"
        assert trace.final == result == ZERO

    def test_same_result_as_untraced(self):
        text = "[[E(1), E(2)], F(1)] + [[E(1), E(2)], H(2)]"
        traced, _ = self.engine.rewrite(text, trace=True)
        assert traced == self.engine.rewrite(text)

    def test_no_steps(self):
        result, trace = self.engine.rewrite("E(1)", trace=True)
        assert result == E(1)
        assert not trace
        assert len(trace) == 0

    def test_unnamed_rule(self):
        engine = RuleEngine.from_text("[E(a), E(a)] = 0")
        _, trace = engine.rewrite("[E(3), E(3)]", trace=True)
        assert trace.rules_applied() == ["rule[0]"]

    def test_iteration(self):
        _, trace = self.engine.rewrite("[[E(1), E(2)], F(2)]", trace=True)
        steps = list(trace)
        assert steps
        assert all(isinstance(s, RewriteStep) for s in steps)
        assert steps[0].rule.name == "jacobi-f"


class TestTraceFormatting:
    """Tests for trace format() method."""

    def setup_method(self):
        """Set up test engine."""
        self.engine = RuleEngine.bundled()

    def test_format_verbose(self):
        """Verbose format shows full details."""
        _, trace = self.engine.rewrite("[F(1), E(1)]", trace=True)
        verbose = trace.format("verbose")
        assert "Initial: [F(1), E(1)]" in verbose
        assert "Final: -H(1)" in verbose
        assert "ef-diagonal~" in verbose
        assert "([E(i), F(i)] = H(i))" in verbose

    def test_format_compact(self):
        """Compact format shows single line."""
        _, trace = self.engine.rewrite("[F(1), E(1)]", trace=True)
        compact = trace.format("compact")
        assert compact == "[F(1), E(1)] --[ef-diagonal~]--> -H(1)"

    def test_format_rules(self):
        """Rules format shows just rule names."""
        _, trace = self.engine.rewrite("[E(1), F(1)] + 0", trace=True)
        assert trace.format("rules") == "ef-diagonal -> add-zero"

    def test_format_rules_empty(self):
        _, trace = self.engine.rewrite("E(1)", trace=True)
        assert trace.format("rules") == "(no rules applied)"

    def test_format_chain(self):
        """Chain format shows step-by-step transformations."""
        _, trace = self.engine.rewrite("[E(1), F(1)] + 0", trace=True)
        lines = trace.format("chain").splitlines()
        assert lines == [
            "[E(1), F(1)]  --(ef-diagonal)-->  H(1)",
            "H(1) + 0  --(add-zero)-->  H(1)",
        ]

    def test_format_chain_empty(self):
        _, trace = self.engine.rewrite("E(1)", trace=True)
        assert trace.format("chain") == "E(1)"

    def test_unknown_style_is_verbose(self):
        _, trace = self.engine.rewrite("[E(1), F(1)]", trace=True)
        assert trace.format("other") == repr(trace)


class TestTraceSummary:
    """Tests for counts, summaries and serialization."""

    def setup_method(self):
        self.engine = RuleEngine.bundled()

    def test_rule_counts(self):
        _, trace = self.engine.rewrite("[E(1), F(1)] + [E(2), F(2)]", trace=True)
        assert trace.rule_counts() == {"ef-diagonal": 2}

    def test_summary(self):
        _, trace = self.engine.rewrite("[F(1), E(1)]", trace=True)
        assert trace.summary() == "1 steps using 1 unique rules. Most used: ef-diagonal~ (1x)"

    def test_summary_empty(self):
        assert RewriteTrace().summary() == "No rewriting performed"

    def test_to_dict(self):
        _, trace = self.engine.rewrite("[F(1), E(1)]", trace=True)
        data = trace.to_dict()
        assert data["initial"] == "[F(1), E(1)]"
        assert data["final"] == "-H(1)"
        assert data["step_count"] == 1
        step = data["steps"][0]
        assert step["rule_name"] == "ef-diagonal"
        assert step["flipped"] is True
        assert step["rule_index"] == self.engine.rules.index(self.engine["ef-diagonal"])

    def test_step_repr(self):
        engine = RuleEngine.from_text("@ee: [E(a), E(a)] = 0")
        _, trace = engine.rewrite("[E(1), E(1)]", trace=True)
        assert repr(trace.steps[0]) == "ee: [E(1), E(1)] → 0"

    @pytest.mark.parametrize("text", ["[E(1), F(2)]", "[F(3), F(3)]", "[H(2), H(1)]"])
    def test_vanishing_brackets_take_one_step(self, text):
        result, trace = self.engine.rewrite(text, trace=True)
        assert result == ZERO
        assert len(trace) == 1
