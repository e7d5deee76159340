"""SQL operator graphs and column-level lineage."""

from sqlflow.analyzer import (
    FlowAnalyzer,
    ParseResult,
    SkippedQuery,
    parse_error_graph,
    parse_sql,
    parse_sql_batch,
)
from sqlflow.errors import (
    GraphBuildError,
    InputValidationError,
    ParseFailure,
    SqlFlowError,
)
from sqlflow.global_models import SqlDialect

__all__ = [
    "FlowAnalyzer",
    "GraphBuildError",
    "InputValidationError",
    "ParseFailure",
    "ParseResult",
    "SkippedQuery",
    "SqlDialect",
    "SqlFlowError",
    "parse_error_graph",
    "parse_sql",
    "parse_sql_batch",
]
