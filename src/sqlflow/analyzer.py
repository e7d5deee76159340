"""Public entry point: SQL text in, graphs, lineage and summaries out."""

from typing import Any, Dict, Iterable, List, Optional, Union

from pydantic import BaseModel, Field

from sqlflow.documentation.hints import generate_hints
from sqlflow.documentation.models import OptimizationHint, QuerySummary
from sqlflow.documentation.summarizer import QuerySummarizer
from sqlflow.errors import GraphBuildError, InputValidationError, ParseFailure
from sqlflow.global_models import NodeType, SqlDialect
from sqlflow.graph.builder import GraphBuilder, IdGenerator
from sqlflow.graph.models import FlowGraph, FlowNode, QueryStats
from sqlflow.lineage.extractor import extract_column_lineage
from sqlflow.lineage.models import ColumnFlow, ColumnLineage
from sqlflow.lineage.tracer import generate_column_flows
from sqlflow.parser.sql_parser import ParsedStatement, SqlParser
from sqlflow.parser.validation import ValidationError, ValidationLimits, validate_sql


class ParseResult(BaseModel):
    """Everything derived from one SQL statement."""

    query_index: int = Field(..., description="0-based statement index")
    query_preview: str = Field(..., description="First 100 chars of the statement")
    dialect: str = Field(..., description="Dialect the statement was parsed with")
    statement_type: str = Field(..., description="SELECT, INSERT, UPDATE, ...")
    sql: str = Field(default="", description="Statement text")
    graph: FlowGraph
    column_lineage: List[ColumnLineage] = Field(default_factory=list)
    column_flows: List[ColumnFlow] = Field(default_factory=list)
    summary: QuerySummary = Field(default_factory=QuerySummary)
    stats: QueryStats = Field(default_factory=QueryStats)
    hints: List[OptimizationHint] = Field(default_factory=list)
    error: Optional[str] = Field(None, description="Parse or build failure message")


class SkippedQuery(BaseModel):
    """A statement that produced an error graph instead of a pipeline."""

    query_index: int = Field(..., description="0-based statement index")
    statement_type: str = Field(..., description="Type of SQL statement (e.g., CREATE)")
    reason: str = Field(..., description="Reason for skipping")
    query_preview: str = Field(..., description="First 100 chars of the statement")


def parse_error_graph(message: str) -> FlowGraph:
    """A one-node graph standing in for a statement that failed to parse."""
    return FlowGraph(
        nodes=[
            FlowNode(
                id=IdGenerator().next_id("result"),
                type=NodeType.RESULT,
                label="Parse Error",
                description=message,
                details=[message],
            )
        ],
        edges=[],
    )


class FlowAnalyzer:
    """Analyze every statement of a SQL script."""

    def __init__(
        self,
        sql: str,
        dialect: Union[SqlDialect, str, None] = SqlDialect.MYSQL,
        limits: Optional[ValidationLimits] = None,
        aggregates: Optional[Iterable[str]] = None,
        window_functions: Optional[Iterable[str]] = None,
    ):
        """
        Initialize the analyzer.

        Args:
            sql: SQL text (may contain several statements)
            dialect: SqlDialect or dialect name (default MySQL)
            limits: Input limits checked by validate()
            aggregates: Extra aggregate function names
            window_functions: Extra window function names

        Raises:
            ValueError: If the dialect is not supported
        """
        self.sql = sql
        self.dialect = (
            dialect if isinstance(dialect, SqlDialect) else SqlDialect.from_name(dialect)
        )
        self.limits = limits or ValidationLimits()
        self.aggregates = list(aggregates or [])
        self.window_functions = list(window_functions or [])
        self._skipped_queries: List[SkippedQuery] = []

    @property
    def skipped_queries(self) -> List[SkippedQuery]:
        """Statements that could not be turned into a pipeline."""
        return self._skipped_queries.copy()

    def validate(self) -> Optional[ValidationError]:
        """Check the SQL against the configured size and statement limits."""
        return validate_sql(self.sql, self.limits)

    def analyze(self) -> List[ParseResult]:
        """
        Analyze all statements.

        Parse failures and unsupported statements never raise: they become
        results whose graph is a single "Parse Error" node.

        Returns:
            One ParseResult per statement (a single result if the script
            cannot be parsed at all)

        Raises:
            InputValidationError: If the SQL exceeds the size or statement
                count limits
        """
        self._skipped_queries = []

        error = self.validate()
        if error is not None and error.type != "empty_input":
            raise InputValidationError(error)

        try:
            statements = SqlParser(self.sql, self.dialect).statements
        except ParseFailure as e:
            preview = " ".join((self.sql or "").split())[:100]
            return [
                self._error_result(0, preview, "UNKNOWN", str(e), self.sql or "")
            ]

        return [self._analyze_statement(statement) for statement in statements]

    def _analyze_statement(self, statement: ParsedStatement) -> ParseResult:
        builder = GraphBuilder(self.aggregates, self.window_functions)
        try:
            graph = builder.build(statement.ast)
        except GraphBuildError as e:
            return self._error_result(
                statement.query_index,
                statement.query_preview,
                statement.statement_type,
                str(e),
                statement.sql,
            )

        query = _query_ast(statement.ast)
        return ParseResult(
            query_index=statement.query_index,
            query_preview=statement.query_preview,
            dialect=self.dialect.value,
            statement_type=statement.statement_type,
            sql=statement.sql,
            graph=graph,
            column_lineage=extract_column_lineage(query, graph.nodes),
            column_flows=generate_column_flows(query, graph.nodes, graph.edges),
            summary=QuerySummarizer(self.aggregates).summarize(statement.ast),
            stats=builder.stats,
            hints=generate_hints(statement.ast, builder.stats),
        )

    def _error_result(
        self,
        index: int,
        preview: str,
        statement_type: str,
        message: str,
        sql: str = "",
    ) -> ParseResult:
        self._skipped_queries.append(
            SkippedQuery(
                query_index=index,
                statement_type=statement_type,
                reason=message,
                query_preview=preview,
            )
        )
        return ParseResult(
            query_index=index,
            query_preview=preview,
            dialect=self.dialect.value,
            statement_type=statement_type,
            sql=sql,
            graph=parse_error_graph(message),
            summary=QuerySummary(
                summary="Unable to generate documentation",
                purpose="Query analysis failed",
            ),
            error=message,
        )


def _query_ast(ast: Dict[str, Any]) -> Dict[str, Any]:
    # CREATE VIEW and CREATE TABLE ... AS output the columns of their query
    if ast.get("type") == "create" and isinstance(ast.get("select"), dict):
        return ast["select"]
    return ast


def parse_sql(
    sql: str, dialect: Union[SqlDialect, str, None] = SqlDialect.MYSQL
) -> ParseResult:
    """
    Analyze the first statement of a SQL string.

    Args:
        sql: SQL text
        dialect: SqlDialect or dialect name

    Returns:
        ParseResult of the first statement; unparseable input yields a
        "Parse Error" graph

    Raises:
        InputValidationError: If the SQL exceeds the default limits
    """
    return FlowAnalyzer(sql, dialect).analyze()[0]


def parse_sql_batch(
    sql: str,
    dialect: Union[SqlDialect, str, None] = SqlDialect.MYSQL,
    limits: Optional[ValidationLimits] = None,
) -> List[ParseResult]:
    """
    Analyze every statement of a SQL script.

    Args:
        sql: SQL text with one or more statements
        dialect: SqlDialect or dialect name
        limits: Size and statement-count limits

    Returns:
        One ParseResult per statement

    Raises:
        InputValidationError: If the SQL exceeds the configured limits
    """
    return FlowAnalyzer(sql, dialect, limits).analyze()
