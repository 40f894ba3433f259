"""Exceptions for expression compilation."""


class ExpressionError(Exception):
    """Raised when an expression cannot be compiled to native SQL."""

    pass
