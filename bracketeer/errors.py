"""
Error taxonomy for bracketeer.

Every failure the engine can report is a BracketError, which is a
ValueError so callers that already guard rule loading with ``except
ValueError`` keep working.
"""

from typing import Optional


class BracketError(ValueError):
    """Base class for all configuration and evaluation errors."""


class UnboundVariable(BracketError):
    """A name was referenced that the current scope does not bind."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Could not find variable {name}")


class TypeMismatch(BracketError):
    """A number was expected but a different shape was found."""

    def __init__(self, what: str, value):
        self.what = what
        self.value = value
        super().__init__(f"Expected a number for {what}, got {value}")


class TableIndexOutOfRange(BracketError):
    """A structure-constant lookup used an index outside 1..3."""

    def __init__(self, row: int, col: int):
        self.row = row
        self.col = col
        super().__init__(f"Structure constant index out of range: C({row}, {col})")


class TablePatternForbidden(BracketError):
    """A C(a, b) lookup appeared on the pattern side of a rule."""

    def __init__(self, pattern=None):
        self.pattern = pattern
        detail = f": {pattern}" if pattern is not None else ""
        super().__init__(f"C(a, b) lookups are not allowed in patterns{detail}")


class InvalidRuleLine(BracketError):
    """A rule line did not have the form ``pattern = replacement``."""

    def __init__(self, line: str, lineno: Optional[int] = None,
                 reason: str = "expected exactly one '='"):
        self.line = line
        self.lineno = lineno
        self.reason = reason
        where = f"line {lineno}: " if lineno is not None else ""
        super().__init__(f"{where}Invalid rule {line!r}, {reason}")


class ParseError(BracketError):
    """Expression text could not be parsed."""

    def __init__(self, text: str, position: int, message: str = "unexpected input"):
        self.text = text
        self.position = position
        super().__init__(f"Failed to parse {text!r} at column {position + 1}: {message}")


class NonTerminating(BracketError):
    """Rewriting exceeded its step budget."""

    def __init__(self, max_steps: int):
        self.max_steps = max_steps
        super().__init__(f"Rewriting did not terminate within {max_steps} steps")


class ExpressionTooDeep(BracketError):
    """Expression nesting exceeded the interpreter's recursion limit."""

    def __init__(self):
        super().__init__("Expression is nested too deeply to rewrite")
