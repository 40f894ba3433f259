"""Expression AST consumed by the catalog and its SQL compiler.

Parsing expression text is the job of the expression front end; this
package only holds the tree it produces and turns it into native SQL.
"""

from .ast import BinaryOp, FunctionCall, Literal, Node, UnaryOp, Variable, referenced_properties
from .exceptions import ExpressionError
from .sql_compiler import SQLCompiler, json_pointer_segments

__all__ = [
    "BinaryOp",
    "ExpressionError",
    "FunctionCall",
    "Literal",
    "Node",
    "SQLCompiler",
    "UnaryOp",
    "Variable",
    "json_pointer_segments",
    "referenced_properties",
]
