"""
Rule Engine and Rule-File Loader for bracketeer

This module parses expressions, loads rewriting rules from text files and
wraps the rewriter in a RuleEngine with optional tracing.

Rule files (.rules):
    # Comment
    pattern = replacement
    @rule-name: pattern = replacement
    @rule-name "Description text": pattern = replacement

    Examples:
    [E(a), E(a)] = 0
    @jacobi-f: [[A, E(b)], F(c)] = [A, [E(b), F(c)]] + [[A, F(c)], E(b)]
    @cartan-e "[H(a), E(b)] = C(a, b) E(b)": [H(a), E(b)] = C(a, b) * E(b)

Expression syntax:
    12              integer
    x               name (pattern variable, or a reference in a scope)
    E(1)            generator with a concrete index
    E(a)            generator whose index is the variable a (patterns)
    [A, B]          bracket
    -A, A + B, A - B, A * B, (A)
    C(a, b)         structure constant lookup (replacements only)

Rules are applied in file order: the first rule that matches a node wins.

Tracing:
    Use RuleEngine.rewrite(value, trace=True) to see which rules are applied.
"""

import logging
import re
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple, Union

from .canonical import collect_terms
from .errors import InvalidRuleLine, ParseError
from .rewriter import (
    DEFAULT_MAX_STEPS,
    Rule,
    Scope,
    evaluate,
    match as _match_internal,
    rewriter,
    rules_matching as _rules_matching,
)
from .syntax import (
    AddNode,
    BracketNode,
    KindNode,
    LiteralNode,
    MulNode,
    NamedNode,
    NegativeNode,
    Node,
    TableNode,
)
from .values import Kind, Number, Value, ZERO

logger = logging.getLogger(__name__)

BUNDLED_RULES_DIR = Path(__file__).parent / "rules"

# Standard rule-set search paths
RULES_SEARCH_PATHS = [
    Path("./rules"),
    Path.home() / ".config" / "bracketeer" / "rules",
    BUNDLED_RULES_DIR,
]

DEFAULT_RULES = "chevalley"


# ============================================================
# Expression Parser
# ============================================================

_TOKEN_RE = re.compile(r"\s*(?:(\d+)|([A-Za-z][A-Za-z0-9_]*)|(\S))")


def _tokenize(text: str) -> List[Tuple[str, str, int]]:
    tokens = []
    pos = 0
    while pos < len(text):
        m = _TOKEN_RE.match(text, pos)
        if m is None:
            # Only trailing whitespace is left
            break
        start = m.start(m.lastindex) if m.lastindex else m.end()
        if m.group(1) is not None:
            tokens.append(("number", m.group(1), start))
        elif m.group(2) is not None:
            tokens.append(("name", m.group(2), start))
        elif m.group(3) is not None:
            if m.group(3) not in "[](),+-*":
                raise ParseError(text, start, f"unexpected character {m.group(3)!r}")
            tokens.append(("op", m.group(3), start))
        pos = m.end()
    return tokens


class _Parser:
    """
    Recursive-descent parser for the expression grammar.

        expr    := product (("+" | "-") product)*
        product := "-" product | atom ("*" product)?
        atom    := number | name | name "(" index ")" | "C" "(" expr "," expr ")"
                 | "[" expr "," expr "]" | "(" expr ")"

    Sums are nested to the right; A - B becomes A + (-B).
    """

    def __init__(self, text: str):
        self.text = text
        self.tokens = _tokenize(text)
        self.index = 0

    def parse(self) -> Node:
        if not self.tokens:
            raise ParseError(self.text, 0, "empty expression")
        node = self.expr()
        if self.index < len(self.tokens):
            raise ParseError(self.text, self.tokens[self.index][2])
        return node

    def peek(self) -> Optional[Tuple[str, str, int]]:
        if self.index < len(self.tokens):
            return self.tokens[self.index]
        return None

    def accept(self, op: str) -> bool:
        token = self.peek()
        if token is not None and token[0] == "op" and token[1] == op:
            self.index += 1
            return True
        return False

    def expect(self, op: str) -> None:
        if not self.accept(op):
            token = self.peek()
            position = token[2] if token else len(self.text)
            raise ParseError(self.text, position, f"expected {op!r}")

    def expr(self) -> Node:
        summands = [self.product()]
        while True:
            if self.accept("+"):
                summands.append(self.product())
            elif self.accept("-"):
                summands.append(NegativeNode(self.product()))
            else:
                break
        node = summands[-1]
        for summand in reversed(summands[:-1]):
            node = AddNode(summand, node)
        return node

    def product(self) -> Node:
        if self.accept("-"):
            return NegativeNode(self.product())
        node = self.atom()
        if self.accept("*"):
            return MulNode(node, self.product())
        return node

    def atom(self) -> Node:
        token = self.peek()
        if token is None:
            raise ParseError(self.text, len(self.text), "unexpected end of input")
        kind, text, position = token

        if kind == "number":
            self.index += 1
            return LiteralNode(Number(int(text)))

        if kind == "name":
            self.index += 1
            if not self.accept("("):
                return NamedNode(text)
            if text == "C":
                row = self.expr()
                if self.accept(","):
                    col = self.expr()
                    self.expect(")")
                    return TableNode(row, col)
                self.expect(")")
                return self._kind_from_index(text, row, position)
            index = self.peek()
            if index is None or index[0] == "op":
                raise ParseError(self.text, index[2] if index else len(self.text),
                                 "expected an index")
            self.index += 1
            self.expect(")")
            if index[0] == "number":
                return LiteralNode(Kind(text, int(index[1])))
            return KindNode(text, index[1])

        if self.accept("["):
            left = self.expr()
            self.expect(",")
            right = self.expr()
            self.expect("]")
            return BracketNode(left, right)

        if self.accept("("):
            node = self.expr()
            self.expect(")")
            return node

        raise ParseError(self.text, position)

    def _kind_from_index(self, name: str, index: Node, position: int) -> Node:
        # C(1) and C(a) are generators named C, not lookups
        if isinstance(index, LiteralNode) and isinstance(index.value, Number):
            return LiteralNode(Kind(name, index.value.value))
        if isinstance(index, NamedNode):
            return KindNode(name, index.name)
        raise ParseError(self.text, position, "expected an index")


def parse_expression(text: str) -> Node:
    """
    Parse expression text into a syntax tree.

    Examples:
        "1 + 2 * 3"     -> AddNode(1, MulNode(2, 3))
        "[E(a), F(b)]"  -> BracketNode(KindNode("E", "a"), KindNode("F", "b"))
        "a - b"         -> AddNode(a, NegativeNode(b))
    """
    return _Parser(text).parse()


def build(text: str, scope: Optional[Union[Scope, Dict[str, Value]]] = None) -> Value:
    """Parse text and evaluate it to a Value."""
    if isinstance(scope, dict):
        scope = Scope(scope)
    return evaluate(parse_expression(text), scope)


# ============================================================
# Rule Loading
# ============================================================

def parse_rule_line(line: str, lineno: Optional[int] = None) -> Optional[Rule]:
    """
    Parse a single rule line.

    Formats:
        pattern = replacement
        @name: pattern = replacement
        @name "description": pattern = replacement

    Returns: Rule, or None for blank and comment lines

    Raises:
        InvalidRuleLine: The line does not contain exactly one '=' or a side
            does not parse
        TablePatternForbidden: The pattern contains a C(a, b) lookup
    """
    original = line
    line = line.strip()

    if not line or line.startswith('#'):
        return None

    name = None
    description = None
    if line.startswith('@'):
        match_obj = re.match(r'@([\w-]+)\s+"([^"]+)":\s*(.+)', line)
        if match_obj:
            name = match_obj.group(1)
            description = match_obj.group(2)
            line = match_obj.group(3)
        else:
            match_obj = re.match(r'@([\w-]+):\s*(.+)', line)
            if match_obj:
                name = match_obj.group(1)
                line = match_obj.group(2)

    parts = line.split('=')
    if len(parts) != 2:
        raise InvalidRuleLine(original.strip(), lineno)

    try:
        pattern = parse_expression(parts[0].strip())
        replacement = parse_expression(parts[1].strip())
    except ParseError as err:
        raise InvalidRuleLine(original.strip(), lineno, reason=str(err)) from err

    return Rule(pattern, replacement, name=name, description=description)


def load_rules_from_text(text: str) -> List[Rule]:
    """
    Load rules from rule-file text, in order.

    Args:
        text: One rule per line; blank lines and # comments are skipped

    Returns:
        List of Rule objects
    """
    rules = []
    for lineno, line in enumerate(text.splitlines(), 1):
        rule = parse_rule_line(line, lineno)
        if rule is not None:
            rules.append(rule)
    return rules


def load_rules_from_file(path: Union[str, Path]) -> List[Rule]:
    """Load rules from a .rules file."""
    path = Path(path)
    rules = load_rules_from_text(path.read_text(encoding="utf-8"))
    logger.debug("Loaded %d rules from %s", len(rules), path)
    return rules


def find_rules_file(name_or_path: Union[str, Path]) -> Optional[Path]:
    """
    Locate a rule file by path or by name.

    A name such as "chevalley" is looked up as chevalley.rules in
    RULES_SEARCH_PATHS (./rules, ~/.config/bracketeer/rules, then the
    bundled rule sets).

    Returns:
        The path, or None if nothing was found
    """
    path = Path(name_or_path)
    if path.suffix == ".rules" or path.parent != Path("."):
        return path if path.exists() else None
    if path.exists() and path.is_file():
        return path

    for search_dir in RULES_SEARCH_PATHS:
        candidate = search_dir / f"{name_or_path}.rules"
        if candidate.exists():
            return candidate
    return None


# ============================================================
# Tracing
# ============================================================

class RewriteStep:
    """A single step in a rewriting trace."""

    def __init__(self, rule_index: int, rule: Rule, before: Value, after: Value,
                 flipped: bool = False):
        self.rule_index = rule_index
        self.rule = rule
        self.before = before
        self.after = after
        self.flipped = flipped

    @property
    def name(self) -> str:
        name = self.rule.name or f"rule[{self.rule_index}]"
        return f"{name}~" if self.flipped else name

    def __repr__(self) -> str:
        return f"{self.name}: {self.before} → {self.after}"

    def to_dict(self) -> Dict:
        """Convert step to dictionary for serialization."""
        return {
            "rule_index": self.rule_index,
            "rule_name": self.rule.name,
            "description": self.rule.description,
            "flipped": self.flipped,
            "before": str(self.before),
            "after": str(self.after),
        }


class RewriteTrace:
    """
    A trace of all rewriting steps applied.

    Provides multiple formatting options:
        - Default repr: verbose multi-line format
        - format("compact"): single line showing rule chain
        - format("rules"): just the rule names applied
        - format("chain"): each step's before and after

    Rules applied through the antisymmetric retry are marked with "~".
    """

    def __init__(self):
        self.steps: List[RewriteStep] = []
        self.initial: Optional[Value] = None
        self.final: Optional[Value] = None

    def add_step(self, step: RewriteStep):
        self.steps.append(step)

    def format(self, style: str = "verbose") -> str:
        """
        Format the trace in different styles.

        Args:
            style: One of "verbose", "compact", "rules", "chain"

        Returns:
            Formatted string representation of the trace.
        """
        if style == "compact":
            rules = [s.name for s in self.steps]
            return f"{self.initial} --[{', '.join(rules)}]--> {self.final}"

        elif style == "rules":
            rules = [s.name for s in self.steps]
            return " -> ".join(rules) if rules else "(no rules applied)"

        elif style == "chain":
            if not self.steps:
                return str(self.initial)
            parts = []
            for step in self.steps:
                parts.append(f"{step.before}  --({step.name})-->  {step.after}")
            return "\n".join(parts)

        else:  # verbose (default)
            return repr(self)

    def __repr__(self) -> str:
        lines = [f"Initial: {self.initial}"]
        for i, step in enumerate(self.steps, 1):
            if step.rule.description:
                lines.append(f"  {i}. {step} ({step.rule.description})")
            else:
                lines.append(f"  {i}. {step}")
        lines.append(f"Final: {self.final}")
        return "\n".join(lines)

    def __len__(self) -> int:
        return len(self.steps)

    def __iter__(self):
        """Iterate over rewrite steps."""
        return iter(self.steps)

    def __bool__(self) -> bool:
        """True if any rewriting was done."""
        return len(self.steps) > 0

    def to_dict(self) -> Dict:
        """Convert trace to dictionary for JSON serialization."""
        return {
            "initial": str(self.initial),
            "final": str(self.final),
            "steps": [step.to_dict() for step in self.steps],
            "step_count": len(self.steps),
        }

    def rule_counts(self) -> Dict[str, int]:
        """Count how many times each rule was applied."""
        counts: Dict[str, int] = {}
        for step in self.steps:
            counts[step.name] = counts.get(step.name, 0) + 1
        return counts

    def rules_applied(self) -> List[str]:
        """Get list of rule names in order of application."""
        return [s.name for s in self.steps]

    def summary(self) -> str:
        """Get a brief summary of the rewriting."""
        if not self.steps:
            return "No rewriting performed"
        counts = self.rule_counts()
        most_used = max(counts.items(), key=lambda x: x[1])
        return (f"{len(self.steps)} steps using {len(counts)} unique rules. "
                f"Most used: {most_used[0]} ({most_used[1]}x)")


# ============================================================
# Rule Engine
# ============================================================

def _as_node(expr: Union[str, Node]) -> Node:
    return parse_expression(expr) if isinstance(expr, str) else expr


def _as_value(expr: Union[str, Value], scope=None) -> Value:
    return build(expr, scope) if isinstance(expr, str) else expr


class RuleEngine:
    """
    An ordered rule set plus the rewriting and term collection built on it.

    Example:
        from bracketeer import RuleEngine

        engine = RuleEngine.from_text('''
            [E(a), E(a)] = 0
            @cartan-e: [H(a), E(b)] = C(a, b) * E(b)
        ''')
        engine.rewrite("[E(1), E(1)]")        # => Number(0)
        engine.evaluate("[H(1), E(2)] + E(2)")  # => Number(0)

        engine = RuleEngine.bundled()         # the chevalley rule set
    """

    def __init__(self, max_steps: int = DEFAULT_MAX_STEPS):
        """
        Initialize a RuleEngine.

        Args:
            max_steps: Rule applications allowed per rewrite before
                NonTerminating is raised.
        """
        self._rules: List[Rule] = []
        self._rule_names: Dict[str, int] = {}  # Maps name -> index
        self._simplifier = None
        self.max_steps = max_steps

    @property
    def max_steps(self) -> int:
        """Rule applications allowed per rewrite."""
        return self._max_steps

    @max_steps.setter
    def max_steps(self, value: int) -> None:
        self._max_steps = value
        self._simplifier = None

    def _append(self, rule: Rule) -> None:
        if rule.name:
            self._rule_names[rule.name] = len(self._rules)
        self._rules.append(rule)
        self._simplifier = None

    def load_text(self, text: str) -> 'RuleEngine':
        """Load rules from rule-file text."""
        for rule in load_rules_from_text(text):
            self._append(rule)
        return self

    def load_file(self, path: Union[str, Path]) -> 'RuleEngine':
        """Load rules from a .rules file, or a rule set found by name."""
        found = find_rules_file(path)
        if found is None:
            raise FileNotFoundError(f"Rules file not found: {path}")
        for rule in load_rules_from_file(found):
            self._append(rule)
        return self

    def load_rules(self, rules: Iterable[Union[Rule, Tuple]]) -> 'RuleEngine':
        """Load Rule objects or (pattern, replacement) pairs."""
        for rule in rules:
            if not isinstance(rule, Rule):
                pattern, replacement = rule
                rule = Rule(_as_node(pattern), _as_node(replacement))
            self._append(rule)
        return self

    def add_rule(self, pattern: Union[str, Node], replacement: Union[str, Node],
                 name: Optional[str] = None,
                 description: Optional[str] = None) -> 'RuleEngine':
        """Add a single rule with optional metadata."""
        self._append(Rule(_as_node(pattern), _as_node(replacement),
                          name=name, description=description))
        return self

    def get_rule(self, name: str) -> Optional[Rule]:
        """Get a rule by name."""
        if name in self._rule_names:
            return self._rules[self._rule_names[name]]
        return None

    def match(self, pattern: Union[str, Node], value: Union[str, Value]) -> Optional[Scope]:
        """
        Match a pattern against a value.

        Returns the bindings as a Scope, or None if the pattern does not match.

        Example:
            if scope := engine.match("[E(a), B]", value):
                print(scope.lookup("a"), scope.lookup("B"))
        """
        scope = Scope()
        if _match_internal(_as_node(pattern), _as_value(value), scope):
            return scope
        return None

    def rules_matching(self, value: Union[str, Value]) -> List[Tuple[int, Rule, bool]]:
        """
        Find all rules that could fire at the root of a value.

        Returns:
            List of (index, rule, flipped)
        """
        return _rules_matching(self._rules, _as_value(value))

    @property
    def rules(self) -> List[Rule]:
        """Get all loaded rules."""
        return self._rules.copy()

    def rewrite(self, value: Union[str, Value], trace: bool = False,
                scope: Optional[Union[Scope, Dict[str, Value]]] = None):
        """
        Rewrite a value to normal form.

        Args:
            value: Value, or expression text evaluated in scope
            trace: If True, return (result, trace) tuple
            scope: Bindings used when value is text

        Returns:
            Normal form, or (normal form, RewriteTrace) if trace=True
        """
        value = _as_value(value, scope)

        if trace:
            rewrite_trace = RewriteTrace()
            rewrite_trace.initial = value

            def record(index, rule, before, after, flipped):
                rewrite_trace.add_step(RewriteStep(index, rule, before, after, flipped))

            result = rewriter(self._rules, self.max_steps, on_step=record)(value)
            rewrite_trace.final = result
            return result, rewrite_trace

        if self._simplifier is None:
            self._simplifier = rewriter(self._rules, self.max_steps)
        return self._simplifier(value)

    def collect(self, value: Union[str, Value],
                scope: Optional[Union[Scope, Dict[str, Value]]] = None) -> Value:
        """Rewrite a value, then collect like terms."""
        return collect_terms(self.rewrite(value, scope=scope))

    def evaluate(self, text: Union[str, Node],
                 scope: Optional[Union[Scope, Dict[str, Value]]] = None) -> Value:
        """Parse, evaluate, rewrite and collect an expression."""
        if isinstance(scope, dict):
            scope = Scope(scope)
        return self.collect(evaluate(_as_node(text), scope))

    def is_zero(self, value: Union[str, Value],
                scope: Optional[Union[Scope, Dict[str, Value]]] = None) -> bool:
        """Check whether a value rewrites and collects to zero."""
        return self.collect(value, scope=scope) == ZERO

    def clear(self) -> 'RuleEngine':
        """Remove all rules."""
        self._rules = []
        self._rule_names = {}
        self._simplifier = None
        return self

    def list_rules(self) -> List[str]:
        """List rules in rule-file notation, numbered in application order."""
        lines = []
        for i, rule in enumerate(self._rules):
            if rule.name and rule.description:
                prefix = f"@{rule.name} \"{rule.description}\": "
            elif rule.name:
                prefix = f"@{rule.name}: "
            else:
                prefix = ""
            lines.append(f"[{i}] {prefix}{rule.pattern} = {rule.replacement}")
        return lines

    def to_text(self) -> str:
        """Export rules as rule-file text."""
        lines = []
        for rule in self._rules:
            if rule.name and rule.description:
                lines.append(f"@{rule.name} \"{rule.description}\": {rule.pattern} = {rule.replacement}")
            elif rule.name:
                lines.append(f"@{rule.name}: {rule.pattern} = {rule.replacement}")
            else:
                lines.append(f"{rule.pattern} = {rule.replacement}")
        return "\n".join(lines) + ("\n" if lines else "")

    def __len__(self) -> int:
        return len(self._rules)

    def __repr__(self) -> str:
        return f"RuleEngine({len(self._rules)} rules)"

    def __call__(self, value: Union[str, Value], **kwargs):
        """Shorthand for rewrite()."""
        return self.rewrite(value, **kwargs)

    def __iter__(self):
        """Iterate over rules in application order."""
        return iter(self._rules)

    def __contains__(self, name: str) -> bool:
        """Check if a rule with the given name exists."""
        return name in self._rule_names

    def __getitem__(self, name: str) -> Rule:
        """Get a rule by name, raising KeyError if not found."""
        rule = self.get_rule(name)
        if rule is None:
            raise KeyError(f"No rule named '{name}'")
        return rule

    @classmethod
    def from_text(cls, text: str, max_steps: int = DEFAULT_MAX_STEPS) -> 'RuleEngine':
        """Create engine from rule-file text."""
        return cls(max_steps=max_steps).load_text(text)

    @classmethod
    def from_file(cls, path: Union[str, Path], max_steps: int = DEFAULT_MAX_STEPS) -> 'RuleEngine':
        """Create engine from a rules file."""
        return cls(max_steps=max_steps).load_file(path)

    @classmethod
    def from_rules(cls, rules: Iterable, max_steps: int = DEFAULT_MAX_STEPS) -> 'RuleEngine':
        """Create engine from Rule objects or (pattern, replacement) pairs."""
        return cls(max_steps=max_steps).load_rules(rules)

    @classmethod
    def bundled(cls, name: str = DEFAULT_RULES, max_steps: int = DEFAULT_MAX_STEPS) -> 'RuleEngine':
        """Create engine from a rule set shipped with the package."""
        return cls(max_steps=max_steps).load_file(BUNDLED_RULES_DIR / f"{name}.rules")

    def copy(self) -> 'RuleEngine':
        """Create a copy of this engine sharing the (immutable) rules."""
        new = RuleEngine(max_steps=self.max_steps)
        new.load_rules(self._rules)
        return new

    def __or__(self, other: 'RuleEngine') -> 'RuleEngine':
        """Combine two engines: self's rules take precedence, then other's."""
        new = self.copy()
        new.load_rules(other._rules)
        return new
