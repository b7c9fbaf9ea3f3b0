"""
Syntax trees for rule patterns and replacement expressions.

These are what the parser produces. A pattern is matched against a Value;
a replacement is evaluated in the scope the match produced.

    NamedNode("A")               variable (pattern) or reference (expression)
    LiteralNode(value)           concrete Value, e.g. 0 or E(1)
    KindNode("E", "a")           E(a): a generator whose index is the variable a
    BracketNode / AddNode / MulNode
    NegativeNode(node)
    TableNode(row, col)          C(row, col) structure-constant lookup,
                                 replacement side only
"""

from dataclasses import dataclass
from typing import Optional

from .values import Bracket, Kind, Number, Value, format_value


class Node:
    """Common base for syntax nodes."""

    __slots__ = ()

    def flip(self) -> Optional["BracketNode"]:
        """Return this bracket with its operands swapped, None for other nodes."""
        return None

    def negate(self) -> "NegativeNode":
        return NegativeNode(self)

    def __str__(self) -> str:
        return format_node(self)


@dataclass(frozen=True)
class NamedNode(Node):
    name: str


@dataclass(frozen=True)
class LiteralNode(Node):
    value: Value


@dataclass(frozen=True)
class KindNode(Node):
    kind: str
    index_ref: str


@dataclass(frozen=True)
class NegativeNode(Node):
    inner: Node


@dataclass(frozen=True)
class BracketNode(Node):
    left: Node
    right: Node

    def flip(self) -> "BracketNode":
        return BracketNode(self.right, self.left)


@dataclass(frozen=True)
class AddNode(Node):
    left: Node
    right: Node


@dataclass(frozen=True)
class MulNode(Node):
    left: Node
    right: Node


@dataclass(frozen=True)
class TableNode(Node):
    row: Node
    col: Node


def contains_table(node: Node) -> bool:
    """Check whether a C(a, b) lookup occurs anywhere in the tree."""
    if isinstance(node, TableNode):
        return True
    if isinstance(node, NegativeNode):
        return contains_table(node.inner)
    if isinstance(node, (BracketNode, AddNode, MulNode)):
        return contains_table(node.left) or contains_table(node.right)
    return False


def format_node(node: Node) -> str:
    """Render a syntax tree back into rule-file notation."""
    if isinstance(node, NamedNode):
        return node.name
    if isinstance(node, LiteralNode):
        return format_value(node.value)
    if isinstance(node, KindNode):
        return f"{node.kind}({node.index_ref})"
    if isinstance(node, TableNode):
        return f"C({format_node(node.row)}, {format_node(node.col)})"
    if isinstance(node, BracketNode):
        return f"[{format_node(node.left)}, {format_node(node.right)}]"
    if isinstance(node, NegativeNode):
        inner = node.inner
        text = format_node(inner)
        return f"-({text})" if isinstance(inner, AddNode) else f"-{text}"
    if isinstance(node, MulNode):
        left = format_node(node.left)
        if isinstance(node.left, (AddNode, MulNode, NegativeNode)) or _is_compound_literal(node.left):
            left = f"({left})"
        right = format_node(node.right)
        if isinstance(node.right, AddNode):
            right = f"({right})"
        return f"{left} * {right}"
    if isinstance(node, AddNode):
        left = format_node(node.left)
        if isinstance(node.left, AddNode):
            left = f"({left})"
        if isinstance(node.right, NegativeNode):
            inner = node.right.inner
            text = format_node(inner)
            return f"{left} - ({text})" if isinstance(inner, AddNode) else f"{left} - {text}"
        return f"{left} + {format_node(node.right)}"
    raise TypeError(f"Not a syntax node: {node!r}")


def _is_compound_literal(node: Node) -> bool:
    return isinstance(node, LiteralNode) and not isinstance(node.value, (Number, Kind, Bracket))
