"""SQL parsing and input validation for sqlflow."""

from sqlflow.parser.adapter import AstAdapter
from sqlflow.parser.sql_parser import ParsedStatement, SqlParser, parse_statements
from sqlflow.parser.validation import (
    ValidationError,
    ValidationLimits,
    count_statements,
    validate_sql,
)

__all__ = [
    "AstAdapter",
    "ParsedStatement",
    "SqlParser",
    "ValidationError",
    "ValidationLimits",
    "count_statements",
    "parse_statements",
    "validate_sql",
]
