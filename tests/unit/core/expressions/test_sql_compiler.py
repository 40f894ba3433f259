"""Unit tests for the expression SQL compiler."""

from datetime import datetime

import pytest

from eostore.core.expressions import (
    BinaryOp,
    ExpressionError,
    FunctionCall,
    Literal,
    SQLCompiler,
    UnaryOp,
    Variable,
    json_pointer_segments,
    referenced_properties,
)
from eostore.infrastructure.persistence.sql_dialect import SQLDialect


def resolve(name: str) -> str:
    return f'"{name.replace(":", "_")}"'


@pytest.fixture
def compiler():
    return SQLCompiler(SQLDialect("postgresql"), resolve)


def test_comparison_binds_parameters(compiler):
    sql, params = compiler.compile(BinaryOp(Variable("opt:cloudCover"), "<", Literal(20)))

    assert sql == '"opt_cloudCover" < :param_0'
    assert params == {"param_0": 20}


def test_logical_operators_are_parenthesised(compiler):
    node = BinaryOp(
        BinaryOp(Variable("a"), "=", Literal(1)),
        "||",
        BinaryOp(Variable("b"), "~", Literal("S2%")),
    )

    sql, params = compiler.compile(node)

    assert sql == '("a" = :param_0 OR "b" LIKE :param_1)'
    assert params == {"param_0": 1, "param_1": "S2%"}


def test_null_comparisons(compiler):
    assert compiler.compile(BinaryOp(Variable("a"), "=", Literal(None)))[0] == '"a" IS NULL'
    assert compiler.compile(BinaryOp(Variable("a"), "!=", Literal(None)))[0] == '"a" IS NOT NULL'


def test_negation(compiler):
    sql, _ = compiler.compile(UnaryOp("!", BinaryOp(Variable("a"), "=", Literal(1))))

    assert sql == 'NOT ("a" = :param_0)'


def test_inline_literals():
    compiler = SQLCompiler(SQLDialect("sqlite"), resolve, inline_literals=True)

    sql, params = compiler.compile(
        BinaryOp(
            BinaryOp(Variable("a"), "=", Literal("it's")),
            "&&",
            BinaryOp(Variable("b"), "=", Literal(True)),
        )
    )

    assert sql == "(\"a\" = 'it''s' AND \"b\" = 1)"
    assert params == {}


def test_timestamp_literals_match_stored_form():
    moment = datetime(2016, 1, 17, 10, 10, 30)
    node = BinaryOp(Variable("timeStart"), ">", Literal(moment))

    _, sqlite_params = SQLCompiler(SQLDialect("sqlite"), resolve).compile(node)
    _, postgresql_params = SQLCompiler(SQLDialect("postgresql"), resolve).compile(node)

    assert sqlite_params == {"param_0": "2016-01-17T10:10:30"}
    assert postgresql_params == {"param_0": moment}


def test_json_pointer_postgresql(compiler):
    node = FunctionCall("jsonPointer", (Variable("extraProperties"), Literal("/sar:looks_range")))

    sql, _ = compiler.compile(node)

    assert sql == "(\"extraProperties\" ->> 'sar:looks_range')"


def test_json_pointer_nested_postgresql(compiler):
    node = FunctionCall("jsonPointer", (Variable("extraProperties"), Literal("/gsd/value")))

    assert compiler.compile(node)[0] == "(\"extraProperties\" #>> '{\"gsd\",\"value\"}')"


def test_json_pointer_sqlite():
    compiler = SQLCompiler(SQLDialect("sqlite"), resolve)
    node = FunctionCall("jsonPointer", (Variable("extraProperties"), Literal("/gsd/0")))

    assert compiler.compile(node)[0] == "json_extract(\"extraProperties\", '$.\"gsd\"[0]')"


def test_unknown_function(compiler):
    with pytest.raises(ExpressionError):
        compiler.compile(FunctionCall("strToUpperCase", (Variable("a"),)))


def test_unknown_operator(compiler):
    with pytest.raises(ExpressionError):
        compiler.compile(BinaryOp(Variable("a"), "<>", Literal(1)))


def test_json_pointer_requires_literal_pointer(compiler):
    with pytest.raises(ExpressionError):
        compiler.compile(FunctionCall("jsonPointer", (Variable("a"), Variable("b"))))


def test_json_pointer_segments():
    assert json_pointer_segments("/a~1b/c~0d") == ["a/b", "c~d"]
    with pytest.raises(ExpressionError):
        json_pointer_segments("no-slash")


def test_referenced_properties():
    node = BinaryOp(
        FunctionCall("jsonPointer", (Variable("extraProperties"), Literal("/a"))),
        "&&",
        UnaryOp("!", BinaryOp(Variable("opt:cloudCover"), ">", Literal(3))),
    )

    assert referenced_properties(node) == {"extraProperties", "opt:cloudCover"}
