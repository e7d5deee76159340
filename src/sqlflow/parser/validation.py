"""Input size and statement-count validation, run before parsing."""

import re
from typing import Literal, Optional

from pydantic import BaseModel, Field

DEFAULT_MAX_SQL_SIZE_BYTES = 100 * 1024
DEFAULT_MAX_QUERY_COUNT = 50

_STRING_LITERALS = re.compile(r"'[^']*'|\"[^\"]*\"")
_BLOCK_COMMENTS = re.compile(r"/\*.*?\*/", re.DOTALL)
_LINE_COMMENTS = re.compile(r"(--|#)[^\n]*")


class ValidationLimits(BaseModel):
    """Limits applied to SQL input before it reaches the parser."""

    max_sql_size_bytes: int = Field(
        default=DEFAULT_MAX_SQL_SIZE_BYTES,
        description="Maximum UTF-8 encoded size of the SQL input",
    )
    max_query_count: int = Field(
        default=DEFAULT_MAX_QUERY_COUNT,
        description="Maximum number of statements in the SQL input",
    )


class ValidationDetails(BaseModel):
    """Measured value versus configured limit."""

    actual: int
    limit: int
    unit: str


class ValidationError(BaseModel):
    """Reason SQL input was rejected."""

    type: Literal["empty_input", "size_limit", "query_count_limit"]
    message: str
    details: ValidationDetails


def validate_sql(
    sql: Optional[str], limits: Optional[ValidationLimits] = None
) -> Optional[ValidationError]:
    """
    Check SQL input against size and statement-count limits.

    Args:
        sql: Raw SQL text
        limits: Limits to enforce (defaults to ValidationLimits())

    Returns:
        A ValidationError describing the first violated limit, or None
    """
    limits = limits or ValidationLimits()

    if not sql or not sql.strip():
        return ValidationError(
            type="empty_input",
            message="No SQL provided",
            details=ValidationDetails(actual=0, limit=1, unit="characters"),
        )

    size_bytes = len(sql.encode("utf-8"))
    if size_bytes > limits.max_sql_size_bytes:
        return ValidationError(
            type="size_limit",
            message=(
                "SQL input exceeds maximum size limit of "
                f"{format_bytes(limits.max_sql_size_bytes)}"
            ),
            details=ValidationDetails(
                actual=size_bytes, limit=limits.max_sql_size_bytes, unit="bytes"
            ),
        )

    statements = count_statements(sql)
    if statements > limits.max_query_count:
        return ValidationError(
            type="query_count_limit",
            message=(
                f"SQL contains approximately {statements} statements, "
                f"exceeding the limit of {limits.max_query_count}"
            ),
            details=ValidationDetails(
                actual=statements, limit=limits.max_query_count, unit="statements"
            ),
        )

    return None


def count_statements(sql: str) -> int:
    """
    Estimate the number of statements by counting semicolons.

    Semicolons inside string literals and comments are ignored. A trailing
    statement without a terminating semicolon still counts.
    """
    cleaned = _STRING_LITERALS.sub("", sql)
    cleaned = _BLOCK_COMMENTS.sub("", cleaned)
    cleaned = _LINE_COMMENTS.sub("", cleaned)

    trimmed = cleaned.strip()
    if not trimmed:
        return 0

    semicolons = trimmed.count(";")
    if semicolons == 0:
        return 1
    return semicolons if trimmed.endswith(";") else semicolons + 1


def format_bytes(size: int) -> str:
    """Render a byte count as bytes, KB or MB."""
    if size < 1024:
        return f"{size} bytes"
    if size < 1024 * 1024:
        return f"{size / 1024:.1f}KB"
    return f"{size / (1024 * 1024):.1f}MB"
