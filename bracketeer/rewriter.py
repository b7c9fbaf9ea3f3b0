"""
Core rewriter module for bracket expressions.

This module provides the binding scope, evaluation of syntax trees into
values, pattern matching with an antisymmetric retry for brackets, and the
bottom-up rewriter that drives an ordered rule list to a normal form.
"""

from typing import Callable, Dict, Iterable, List, Optional, Tuple

from .errors import (
    ExpressionTooDeep,
    NonTerminating,
    TableIndexOutOfRange,
    TablePatternForbidden,
    TypeMismatch,
    UnboundVariable,
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
    contains_table,
)
from .values import (
    Add,
    Bracket,
    Kind,
    Mul,
    Negative,
    Number,
    Value,
    as_integer,
    number,
)

DEFAULT_MAX_STEPS = 100_000

# Structure constants C(i, j) for i, j in 1..3.
STRUCTURE_CONSTANTS: Tuple[Tuple[int, ...], ...] = (
    (2, -1, -1),
    (-1, 2, -2),
    (-1, -1, 2),
)


def structure_constant(row: int, col: int) -> Value:
    """Look up C(row, col) as a Value."""
    if not (1 <= row <= 3 and 1 <= col <= 3):
        raise TableIndexOutOfRange(row, col)
    return number(STRUCTURE_CONSTANTS[row - 1][col - 1])


# ============================================================
# Scope
# ============================================================

class Scope:
    """
    Variable bindings for one match-and-build attempt.

    Binding is first-write-wins: a name bound twice must be bound to
    structurally equal values, which is how a pattern such as [E(a), F(a)]
    insists on equal indices.

        scope = Scope({"b": Number(2)})
        scope.bind("x", E(1))   # => True
        scope.bind("x", E(2))   # => False, x is already E(1)
        scope.number("b")       # => 2
    """

    __slots__ = ('_values',)

    def __init__(self, values: Optional[Dict[str, Value]] = None):
        self._values: Dict[str, Value] = dict(values) if values else {}

    def bind(self, name: str, value: Value) -> bool:
        """Bind name to value, or check it against the existing binding."""
        current = self._values.get(name)
        if current is None:
            self._values[name] = value
            return True
        return current == value

    def lookup(self, name: str) -> Value:
        try:
            return self._values[name]
        except KeyError:
            raise UnboundVariable(name) from None

    def number(self, name: str) -> int:
        """Look up a name that must hold a Number."""
        value = self.lookup(name)
        if not isinstance(value, Number):
            raise TypeMismatch(name, value)
        return value.value

    def get(self, name: str, default=None):
        return self._values.get(name, default)

    def __contains__(self, name: str) -> bool:
        return name in self._values

    def __len__(self) -> int:
        return len(self._values)

    def __iter__(self):
        return iter(self._values)

    def to_dict(self) -> Dict[str, Value]:
        return dict(self._values)

    def __repr__(self) -> str:
        inner = ", ".join(f"{k}={v}" for k, v in self._values.items())
        return f"Scope({inner})"


# ============================================================
# Evaluation
# ============================================================

def evaluate(node: Node, scope: Optional[Scope] = None) -> Value:
    """
    Build the Value a syntax tree denotes in a scope.

    Args:
        node: Syntax tree (a replacement, or a parsed expression)
        scope: Bindings for named references; empty if omitted

    Returns:
        The constructed Value

    Raises:
        UnboundVariable: A NamedNode or kind index is not bound
        TypeMismatch: A kind index or table operand is not a number
        TableIndexOutOfRange: A table operand is outside 1..3
    """
    if scope is None:
        scope = Scope()

    def build(n: Node) -> Value:
        if isinstance(n, NamedNode):
            return scope.lookup(n.name)
        if isinstance(n, LiteralNode):
            return n.value
        if isinstance(n, KindNode):
            return Kind(n.kind, scope.number(n.index_ref))
        if isinstance(n, NegativeNode):
            return Negative(build(n.inner))
        if isinstance(n, BracketNode):
            return Bracket(build(n.left), build(n.right))
        if isinstance(n, AddNode):
            return Add(build(n.left), build(n.right))
        if isinstance(n, MulNode):
            return Mul(build(n.left), build(n.right))
        if isinstance(n, TableNode):
            return structure_constant(table_index(n.row), table_index(n.col))
        raise TypeError(f"Not a syntax node: {n!r}")

    def table_index(n: Node) -> int:
        value = build(n)
        index = as_integer(value)
        if index is None:
            raise TypeMismatch(f"C({n})", value)
        return index

    return build(node)


# ============================================================
# Pattern Matching
# ============================================================

def match(pattern: Node, value: Value, scope: Scope) -> bool:
    """
    Match a pattern against a value, extending scope with its bindings.

    Pattern forms:
        NamedNode("x")         - any value, bound to x
        LiteralNode(v)         - exactly v
        KindNode("E", "a")     - any E(i), binding a to Number(i)
        BracketNode/AddNode/MulNode(p, q) - same compound, p and q matched in order
        NegativeNode(p)        - Negative(v) with p matching v

    On failure the scope may be partially filled and must be discarded.

    Raises:
        TablePatternForbidden: The pattern contains a C(a, b) lookup
    """
    if isinstance(pattern, NamedNode):
        return scope.bind(pattern.name, value)

    if isinstance(pattern, LiteralNode):
        return pattern.value == value

    if isinstance(pattern, KindNode):
        if isinstance(value, Kind) and value.name == pattern.kind:
            return scope.bind(pattern.index_ref, number(value.index))
        return False

    if isinstance(pattern, NegativeNode):
        return isinstance(value, Negative) and match(pattern.inner, value.inner, scope)

    if isinstance(pattern, BracketNode):
        return (isinstance(value, Bracket)
                and match(pattern.left, value.left, scope)
                and match(pattern.right, value.right, scope))

    if isinstance(pattern, AddNode):
        return (isinstance(value, Add)
                and match(pattern.left, value.left, scope)
                and match(pattern.right, value.right, scope))

    if isinstance(pattern, MulNode):
        return (isinstance(value, Mul)
                and match(pattern.left, value.left, scope)
                and match(pattern.right, value.right, scope))

    if isinstance(pattern, TableNode):
        raise TablePatternForbidden(pattern)

    raise TypeError(f"Not a syntax node: {pattern!r}")


# ============================================================
# Rules
# ============================================================

class Rule:
    """
    A rewrite rule: pattern = replacement.

    The flipped pattern is precomputed for bracket patterns; when it matches,
    the replacement is negated, encoding [a, b] = -[b, a].
    """

    __slots__ = ('pattern', 'replacement', 'flipped', 'name', 'description')

    def __init__(self, pattern: Node, replacement: Node,
                 name: Optional[str] = None, description: Optional[str] = None):
        if contains_table(pattern):
            raise TablePatternForbidden(pattern)
        self.pattern = pattern
        self.replacement = replacement
        self.flipped = pattern.flip()
        self.name = name
        self.description = description

    def apply(self, value: Value) -> Optional[Tuple[Value, bool]]:
        """
        Try the rule at the root of value.

        Returns:
            (replacement value, flipped) if the rule fires, None otherwise
        """
        scope = Scope()
        if match(self.pattern, value, scope):
            return evaluate(self.replacement, scope), False

        if self.flipped is not None:
            scope = Scope()
            if match(self.flipped, value, scope):
                return Negative(evaluate(self.replacement, scope)), True

        return None

    def __eq__(self, other):
        if not isinstance(other, Rule):
            return NotImplemented
        return self.pattern == other.pattern and self.replacement == other.replacement

    def __hash__(self):
        return hash((self.pattern, self.replacement))

    def __repr__(self) -> str:
        label = f"@{self.name}: " if self.name else ""
        return f"{label}{self.pattern} = {self.replacement}"


StepCallback = Callable[[int, Rule, Value, Value, bool], None]


# ============================================================
# Rewriter Factory
# ============================================================

def fold_constants(value: Value) -> Value:
    """
    Fold a node whose operands are already integers.

    Mul and Add of two integer values and Negative of an integer value are
    replaced by the resulting integer; everything else is returned as is.
    """
    if isinstance(value, Mul):
        a, b = as_integer(value.left), as_integer(value.right)
        if a is not None and b is not None:
            return number(a * b)
    elif isinstance(value, Add):
        a, b = as_integer(value.left), as_integer(value.right)
        if a is not None and b is not None:
            return number(a + b)
    elif isinstance(value, Negative):
        n = as_integer(value.inner)
        if n is not None:
            return number(-n)
    return value


def rewriter(
    rules: Iterable[Rule],
    max_steps: int = DEFAULT_MAX_STEPS,
    on_step: Optional[StepCallback] = None,
) -> Callable[[Value], Value]:
    """
    Create a rewriter function using given rules.

    The returned function rewrites bottom-up: children are brought to normal
    form first, integer operands are folded, then the rules are tried in
    order at the node. The first rule that matches (directly or with its
    bracket operands swapped) wins; its replacement is rewritten again. Rule
    order is significant and never changed.

    Args:
        rules: Ordered list of Rule objects
        max_steps: Maximum rule applications per call before NonTerminating
        on_step: Optional callback(rule_index, rule, before, after, flipped)
            invoked for each rule application

    Returns:
        A function that rewrites a Value to its normal form

    Examples:
        simplify = rewriter(rules)
        simplify(Bracket(E(1), E(1)))  # => Number(0) with [E(a), E(a)] = 0
    """
    rules = list(rules)

    def simplify(value: Value) -> Value:
        """Rewrite a value to normal form."""
        steps = [0]

        def visit(v: Value) -> Value:
            if isinstance(v, Negative):
                v = Negative(visit(v.inner))
            elif isinstance(v, Add):
                v = Add(visit(v.left), visit(v.right))
            elif isinstance(v, Mul):
                v = Mul(visit(v.left), visit(v.right))
            elif isinstance(v, Bracket):
                v = Bracket(visit(v.left), visit(v.right))
            v = fold_constants(v)
            return try_rules(v)

        def try_rules(v: Value) -> Value:
            for index, rule in enumerate(rules):
                fired = rule.apply(v)
                if fired is None:
                    continue
                result, flipped = fired
                steps[0] += 1
                if steps[0] > max_steps:
                    raise NonTerminating(max_steps)
                if on_step is not None:
                    on_step(index, rule, v, result, flipped)
                return visit(result)
            return v

        try:
            return visit(value)
        except RecursionError:
            raise ExpressionTooDeep() from None

    return simplify


def rewrite(value: Value, rules: Iterable[Rule], max_steps: int = DEFAULT_MAX_STEPS) -> Value:
    """Rewrite a value to normal form with an ordered rule list."""
    return rewriter(rules, max_steps=max_steps)(value)


def rules_matching(rules: List[Rule], value: Value) -> List[Tuple[int, Rule, bool]]:
    """List (index, rule, flipped) for every rule that would fire at value."""
    found = []
    for index, rule in enumerate(rules):
        fired = rule.apply(value)
        if fired is not None:
            found.append((index, rule, fired[1]))
    return found
