"""SQL compiler for filter and index expressions.

Compiles AST nodes to SQL fragments for the backing store, either with
bound parameters (query filters) or with inlined literals (DDL).
"""

from typing import Any, Callable, Protocol

from .ast import BinaryOp, FunctionCall, Literal, Node, UnaryOp, Variable
from .exceptions import ExpressionError


class NativeDialect(Protocol):
    """The dialect hooks the compiler needs from the persistence layer."""

    def json_pointer(self, column_sql: str, pointer: str) -> str: ...

    def literal(self, value: Any) -> str: ...

    def bind_value(self, value: Any) -> Any: ...


ColumnResolver = Callable[[str], str]


class SQLCompiler:
    """Compiles expression AST to SQL fragments."""

    OPERATOR_MAP = {
        "=": "=",
        "!=": "!=",
        "<": "<",
        ">": ">",
        "<=": "<=",
        ">=": ">=",
        "~": "LIKE",
        "&&": "AND",
        "||": "OR",
    }

    def __init__(
        self,
        dialect: NativeDialect,
        resolve_column: ColumnResolver,
        inline_literals: bool = False,
    ) -> None:
        """Initialize the compiler.

        Args:
            dialect: Dialect used for JSON access and literal rendering.
            resolve_column: Maps a property name to its SQL column expression.
            inline_literals: Render literals inline instead of as parameters.
        """
        self.dialect = dialect
        self.resolve_column = resolve_column
        self.inline_literals = inline_literals
        self.param_counter = 0
        self.params: dict[str, Any] = {}

    def compile(self, node: Node) -> tuple[str, dict[str, Any]]:
        """Compile AST node to SQL.

        Args:
            node: AST node to compile

        Returns:
            Tuple of (SQL fragment, parameter bindings)

        Raises:
            ExpressionError: If the node uses an unsupported construct
        """
        self.param_counter = 0
        self.params = {}

        sql = self._compile_node(node)
        return sql, self.params

    def _compile_node(self, node: Node) -> str:
        if isinstance(node, Literal):
            return self._compile_literal(node)

        if isinstance(node, Variable):
            return self.resolve_column(node.name)

        if isinstance(node, BinaryOp):
            return self._compile_binary_op(node)

        if isinstance(node, UnaryOp):
            return self._compile_unary_op(node)

        if isinstance(node, FunctionCall):
            return self._compile_function(node)

        raise ExpressionError(f"Unknown node type: {type(node).__name__}")

    def _compile_literal(self, node: Literal) -> str:
        if self.inline_literals:
            return self.dialect.literal(node.value)

        param_name = f"param_{self.param_counter}"
        self.param_counter += 1
        self.params[param_name] = self.dialect.bind_value(node.value)
        return f":{param_name}"

    def _compile_binary_op(self, node: BinaryOp) -> str:
        sql_op = self.OPERATOR_MAP.get(node.operator)
        if not sql_op:
            raise ExpressionError(f"Unknown operator: {node.operator}")

        # null comparisons
        if node.operator in ("=", "!=") and _is_null(node.right):
            left = self._compile_node(node.left)
            return f"{left} IS NULL" if node.operator == "=" else f"{left} IS NOT NULL"

        left = self._compile_node(node.left)
        right = self._compile_node(node.right)

        if sql_op in ("AND", "OR"):
            return f"({left} {sql_op} {right})"

        return f"{left} {sql_op} {right}"

    def _compile_unary_op(self, node: UnaryOp) -> str:
        if node.operator == "!":
            return f"NOT ({self._compile_node(node.operand)})"

        raise ExpressionError(f"Unknown unary operator: {node.operator}")

    def _compile_function(self, node: FunctionCall) -> str:
        if node.name != "jsonPointer":
            raise ExpressionError(f"Unknown function: {node.name}")

        if len(node.arguments) != 2:
            raise ExpressionError("jsonPointer expects a property and a pointer")
        target, pointer = node.arguments
        if not isinstance(target, Variable):
            raise ExpressionError("jsonPointer first argument must be a property reference")
        if not isinstance(pointer, Literal) or not isinstance(pointer.value, str):
            raise ExpressionError("jsonPointer second argument must be a string literal")

        return self.dialect.json_pointer(self.resolve_column(target.name), pointer.value)


def _is_null(node: Node) -> bool:
    return isinstance(node, Literal) and node.value is None


def json_pointer_segments(pointer: str) -> list[str]:
    """Split an RFC 6901 JSON pointer into unescaped path segments.

    Examples:
        >>> json_pointer_segments("/sar:looks_range")
        ['sar:looks_range']
        >>> json_pointer_segments("/a~1b/0")
        ['a/b', '0']
    """
    if not pointer.startswith("/"):
        raise ExpressionError(f"Invalid JSON pointer: {pointer!r}")
    return [
        segment.replace("~1", "/").replace("~0", "~")
        for segment in pointer[1:].split("/")
    ]
