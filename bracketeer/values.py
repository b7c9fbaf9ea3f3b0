"""
Value trees: the evaluated algebra objects that rules rewrite.

A Value is one of

    Number(n)            non-negative integer literal
    Kind(name, index)    generator such as E(1), F(2), H(3)
    Negative(v)          sign flip
    Add(a, b)            sum
    Mul(a, b)            product (in practice: integer scalar times a term)
    Bracket(a, b)        the antisymmetric bracket [a, b]

Values are immutable and compare structurally. Negative integers are always
spelled Negative(Number(k)); use number() to build integer values.
"""

from dataclasses import dataclass
from typing import Optional


class Value:
    """Common base for value nodes."""

    __slots__ = ()

    def __str__(self) -> str:
        return format_value(self)


@dataclass(frozen=True)
class Number(Value):
    value: int

    def __post_init__(self):
        if self.value < 0:
            raise ValueError(
                f"Number holds a magnitude, got {self.value}; use number() for negatives"
            )


@dataclass(frozen=True)
class Kind(Value):
    name: str
    index: int


@dataclass(frozen=True)
class Negative(Value):
    inner: Value


@dataclass(frozen=True)
class Add(Value):
    left: Value
    right: Value


@dataclass(frozen=True)
class Mul(Value):
    left: Value
    right: Value


@dataclass(frozen=True)
class Bracket(Value):
    left: Value
    right: Value


ZERO = Number(0)
ONE = Number(1)


def number(n: int) -> Value:
    """Build the integer value n, wrapping negatives in Negative."""
    if n >= 0:
        return Number(n)
    return Negative(Number(-n))


def as_integer(value: Value) -> Optional[int]:
    """Return the integer a value denotes, or None if it is not numeric.

    Accepts a Number wrapped in any number of Negative nodes.
    """
    sign = 1
    while isinstance(value, Negative):
        sign = -sign
        value = value.inner
    if isinstance(value, Number):
        return sign * value.value
    return None


def bracket(a: Value, b: Value) -> Bracket:
    return Bracket(a, b)


def E(n: int) -> Kind:
    return Kind("E", n)


def F(n: int) -> Kind:
    return Kind("F", n)


def H(n: int) -> Kind:
    return Kind("H", n)


# ============================================================
# Formatting
# ============================================================

def format_value(value: Value) -> str:
    """
    Render a value in the expression grammar.

    Parentheses are added only where the grammar needs them, so the text
    parses back to the same tree:

        Add(Number(1), Mul(Number(2), Kind("E", 1)))  ->  "1 + 2 * E(1)"
        Mul(Add(...), ...)                            ->  "(a + b) * c"
        Add(a, Negative(b))                           ->  "a - b"
    """
    if isinstance(value, Number):
        return str(value.value)
    if isinstance(value, Kind):
        return f"{value.name}({value.index})"
    if isinstance(value, Bracket):
        return f"[{format_value(value.left)}, {format_value(value.right)}]"
    if isinstance(value, Negative):
        return "-" + _format_product(value.inner)
    if isinstance(value, Mul):
        return f"{_format_atom(value.left)} * {_format_product(value.right)}"
    if isinstance(value, Add):
        summands = []
        while isinstance(value, Add):
            summands.append(value.left)
            value = value.right
        summands.append(value)
        parts = [_format_summand(summands[0])]
        for term in summands[1:]:
            if isinstance(term, Negative):
                parts.append(f"- {_format_product(term.inner)}")
            else:
                parts.append(f"+ {_format_summand(term)}")
        return " ".join(parts)
    raise TypeError(f"Not a value: {value!r}")


def _format_summand(value: Value) -> str:
    # A sum in left position would re-associate to the right when parsed.
    if isinstance(value, Add):
        return f"({format_value(value)})"
    return format_value(value)


def _format_product(value: Value) -> str:
    if isinstance(value, Add):
        return f"({format_value(value)})"
    return format_value(value)


def _format_atom(value: Value) -> str:
    if isinstance(value, (Add, Mul, Negative)):
        return f"({format_value(value)})"
    return format_value(value)
