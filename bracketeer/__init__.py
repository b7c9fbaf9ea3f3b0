"""
bracketeer - rule-based rewriting for graded bracket algebras

Reduces expressions built from generators E(i), F(i), H(i), the
antisymmetric bracket [A, B], sums, integer multiples and negation to a
normal form, and collects like terms to decide whether they vanish.

Quick Start:
    from bracketeer import RuleEngine

    engine = RuleEngine.bundled()             # chevalley relations
    engine.evaluate("[E(1), E(1)]")           # => Number(0)
    engine.evaluate("[[E(1), E(2)], F(2)]")   # => E(1)

    engine = RuleEngine.from_text('''
        @ee: [E(a), E(a)] = 0
        @he: [H(a), E(b)] = C(a, b) * E(b)
    ''')

Rule Syntax:
    # Comments start with #
    pattern = replacement
    @rule-name: pattern = replacement
    @rule-name "Description": pattern = replacement

Pattern Syntax:
    A, nx_f         - match any value, bind to the name
    E(a)            - match any E generator, bind a to its index
    E(1), 0         - match exactly this value
    [P, Q]          - match a bracket; also tried as [Q, P] with the
                      replacement negated
    C(a, b)         - structure constant (replacements only)

Search:
    from bracketeer import search, chain_search

    search(1, steps=6).zero_at    # symbolic search for b = 1
    chain_search(1000)            # fast search for all b
"""

__version__ = "0.1.0"

from .errors import (
    BracketError,
    UnboundVariable,
    TypeMismatch,
    TableIndexOutOfRange,
    TablePatternForbidden,
    InvalidRuleLine,
    ParseError,
    NonTerminating,
    ExpressionTooDeep,
)

from .values import (
    Value,
    Number,
    Kind,
    Negative,
    Add,
    Mul,
    Bracket,
    ZERO,
    ONE,
    number,
    E,
    F,
    H,
    format_value,
)

from .syntax import (
    Node,
    NamedNode,
    LiteralNode,
    KindNode,
    NegativeNode,
    BracketNode,
    AddNode,
    MulNode,
    TableNode,
)

# Core rewriter components
from .rewriter import (
    STRUCTURE_CONSTANTS,
    Scope,
    Rule,
    evaluate,
    match,
    rewriter,
    rewrite,
)

from .canonical import (
    canonicalize,
    collect_terms,
    collect_terms_list,
    is_zero,
)

# Engine and rule files
from .engine import (
    RuleEngine,
    RewriteStep,
    RewriteTrace,
    parse_expression,
    build,
    parse_rule_line,
    load_rules_from_text,
    load_rules_from_file,
)

from .search import SearchResult, SearchStep, search, search_all
from .chains import ChainSum, chain_search

# Public API
__all__ = [
    # Version
    "__version__",
    # Errors
    "BracketError",
    "UnboundVariable",
    "TypeMismatch",
    "TableIndexOutOfRange",
    "TablePatternForbidden",
    "InvalidRuleLine",
    "ParseError",
    "NonTerminating",
    "ExpressionTooDeep",
    # Values
    "Value",
    "Number",
    "Kind",
    "Negative",
    "Add",
    "Mul",
    "Bracket",
    "ZERO",
    "ONE",
    "number",
    "E",
    "F",
    "H",
    "format_value",
    # Syntax
    "Node",
    "NamedNode",
    "LiteralNode",
    "KindNode",
    "NegativeNode",
    "BracketNode",
    "AddNode",
    "MulNode",
    "TableNode",
    # Core
    "STRUCTURE_CONSTANTS",
    "Scope",
    "Rule",
    "evaluate",
    "match",
    "rewriter",
    "rewrite",
    # Canonical form
    "canonicalize",
    "collect_terms",
    "collect_terms_list",
    "is_zero",
    # Engine
    "RuleEngine",
    "RewriteStep",
    "RewriteTrace",
    "parse_expression",
    "build",
    "parse_rule_line",
    "load_rules_from_text",
    "load_rules_from_file",
    # Search
    "SearchResult",
    "SearchStep",
    "search",
    "search_all",
    "ChainSum",
    "chain_search",
]
