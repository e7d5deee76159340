"""Parse SQL text into statement ASTs using SQLGlot."""

from typing import Any, Dict, List, Union

from pydantic import BaseModel, Field
from sqlglot import exp, parse
from sqlglot.errors import ParseError, TokenError

from sqlflow.errors import ParseFailure
from sqlflow.global_models import SqlDialect
from sqlflow.parser.adapter import AstAdapter

_STATEMENT_NAMES = {
    "Select": "SELECT",
    "Union": "SELECT",
    "Intersect": "SELECT",
    "Except": "SELECT",
    "Subquery": "SELECT",
    "Insert": "INSERT",
    "Update": "UPDATE",
    "Delete": "DELETE",
    "Merge": "MERGE",
    "Alter": "ALTER",
    "Truncate": "TRUNCATE",
    "Command": "COMMAND",
}


class ParsedStatement(BaseModel):
    """One statement of a SQL script, converted to the statement AST."""

    query_index: int = Field(..., description="0-based statement index")
    query_preview: str = Field(..., description="First 100 chars of the statement")
    statement_type: str = Field(..., description="SELECT, INSERT, CREATE TABLE, ...")
    sql: str = Field(default="", description="Statement regenerated by SQLGlot")
    ast: Dict[str, Any] = Field(..., description="Statement AST")


class SqlParser:
    """Parse a SQL script for one dialect."""

    def __init__(self, sql: str, dialect: Union[SqlDialect, str] = SqlDialect.MYSQL):
        """
        Parse all statements in a SQL string.

        Args:
            sql: SQL text (may contain several statements)
            dialect: SqlDialect or dialect name

        Raises:
            ParseFailure: If the SQL cannot be parsed or contains no statement
            ValueError: If the dialect is not supported
        """
        self.sql = sql
        self.dialect = (
            dialect if isinstance(dialect, SqlDialect) else SqlDialect.from_name(dialect)
        )
        self._adapter = AstAdapter(self.dialect.sqlglot_name)

        try:
            parsed = parse(sql, dialect=self.dialect.sqlglot_name)
        except (ParseError, TokenError) as e:
            raise ParseFailure(f"Invalid SQL syntax: {e}") from e

        # Empty statements and bare comments parse to None
        self.expressions: List[exp.Expression] = [e for e in parsed if e is not None]
        if not self.expressions:
            raise ParseFailure("No valid SQL statements found")

    @property
    def statements(self) -> List[ParsedStatement]:
        """All parsed statements converted to the statement AST."""
        return [self._convert(i, e) for i, e in enumerate(self.expressions)]

    def _convert(self, index: int, expr: exp.Expression) -> ParsedStatement:
        return ParsedStatement(
            query_index=index,
            query_preview=self._generate_query_preview(expr),
            statement_type=self._get_statement_type(expr),
            sql=expr.sql(dialect=self.dialect.sqlglot_name, pretty=True),
            ast=self._adapter.statement(expr),
        )

    def _get_statement_type(self, expr: exp.Expression) -> str:
        name = type(expr).__name__
        if name in ("Create", "Drop"):
            return f"{name.upper()} {expr.args.get('kind') or ''}".strip()
        return _STATEMENT_NAMES.get(name, name.upper())

    def _generate_query_preview(self, expr: exp.Expression) -> str:
        query_text = " ".join(expr.sql(dialect=self.dialect.sqlglot_name).split())
        if len(query_text) > 100:
            return query_text[:100] + "..."
        return query_text


def parse_statements(
    sql: str, dialect: Union[SqlDialect, str] = SqlDialect.MYSQL
) -> List[ParsedStatement]:
    """Parse SQL text and return every statement as a ParsedStatement."""
    return SqlParser(sql, dialect).statements
