"""fragQL schema models: the query tree and the parameter object."""
from fragql.schema.ast import (
    AndExpressions,
    BetweenExpression,
    BinaryExpression,
    Case,
    CaseExpression,
    ColumnExpression,
    ExistsExpression,
    Expression,
    FromTable,
    FunctionExpression,
    GroupBy,
    InExpression,
    IsNullExpression,
    JoinClause,
    LikeExpression,
    LimitOffset,
    MathExpression,
    OrderBy,
    OrExpressions,
    ParameterExpression,
    Query,
    QueryExpression,
    RegexpExpression,
    ResultColumn,
    Unknown,
    Value,
    as_query,
    to_expression,
)
from fragql.schema.params import QueryParams, ResultColumnShortcut, SortKey

__all__ = [
    "AndExpressions",
    "BetweenExpression",
    "BinaryExpression",
    "Case",
    "CaseExpression",
    "ColumnExpression",
    "ExistsExpression",
    "Expression",
    "FromTable",
    "FunctionExpression",
    "GroupBy",
    "InExpression",
    "IsNullExpression",
    "JoinClause",
    "LikeExpression",
    "LimitOffset",
    "MathExpression",
    "OrderBy",
    "OrExpressions",
    "ParameterExpression",
    "Query",
    "QueryExpression",
    "RegexpExpression",
    "ResultColumn",
    "Unknown",
    "Value",
    "as_query",
    "to_expression",
    "QueryParams",
    "ResultColumnShortcut",
    "SortKey",
]
