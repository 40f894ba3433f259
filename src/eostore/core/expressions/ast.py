"""Abstract Syntax Tree nodes for filter and index expressions.

Trees are produced by the expression front end and are only compiled
or inspected here, never built up or mutated, hence the frozen nodes.
"""

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class Node:
    """Base class for all AST nodes."""

    pass


@dataclass(frozen=True)
class Literal(Node):
    """Represents a literal value (string, number, boolean, null)."""

    value: Any


@dataclass(frozen=True)
class Variable(Node):
    """Represents a property reference (e.g., opt:cloudCover)."""

    name: str


@dataclass(frozen=True)
class BinaryOp(Node):
    """Represents a binary operation (e.g., a = b)."""

    left: Node
    operator: str
    right: Node


@dataclass(frozen=True)
class UnaryOp(Node):
    """Represents a unary operation (e.g., !a)."""

    operator: str
    operand: Node


@dataclass(frozen=True)
class FunctionCall(Node):
    """Represents a function call (e.g., jsonPointer(extraProperties, '/a'))."""

    name: str
    arguments: tuple[Node, ...]


def referenced_properties(node: Node) -> set[str]:
    """Collect the property names referenced anywhere in an expression."""
    if isinstance(node, Variable):
        return {node.name}
    if isinstance(node, BinaryOp):
        return referenced_properties(node.left) | referenced_properties(node.right)
    if isinstance(node, UnaryOp):
        return referenced_properties(node.operand)
    if isinstance(node, FunctionCall):
        names: set[str] = set()
        for argument in node.arguments:
            names |= referenced_properties(argument)
        return names
    return set()
