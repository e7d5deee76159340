"""Optimization hints derived from a statement and its graph statistics."""

from typing import Any, Dict, List

from sqlflow.documentation.models import OptimizationHint
from sqlflow.documentation.summarizer import has_limit, is_star_column
from sqlflow.graph.models import QueryStats
from sqlflow.utils.navigator import expr_type

MAX_JOINS = 5
MAX_SUBQUERIES = 3


def generate_hints(ast: Dict[str, Any], stats: QueryStats) -> List[OptimizationHint]:
    """
    Suggest improvements for one statement.

    Args:
        ast: Statement AST
        stats: Counts collected by the graph builder for the same statement

    Returns:
        Hints in a fixed order: SELECT *, missing LIMIT, missing WHERE,
        join count, subquery count, Cartesian product
    """
    hints: List[OptimizationHint] = []
    statement_type = expr_type(ast)
    query = ast.get("select") if statement_type == "create" else ast

    if isinstance(query, dict) and any(
        is_star_column(c) for c in query.get("columns") or []
    ):
        hints.append(
            OptimizationHint(
                type="warning",
                message="SELECT * detected",
                suggestion=(
                    "Specify only needed columns to reduce data transfer "
                    "and improve performance"
                ),
            )
        )

    if statement_type == "select" and stats.tables > 0 and not has_limit(ast):
        hints.append(
            OptimizationHint(
                type="info",
                message="No LIMIT clause",
                suggestion="Consider adding LIMIT to prevent fetching large result sets",
            )
        )

    if statement_type in ("update", "delete") and not ast.get("where"):
        hints.append(
            OptimizationHint(
                type="error",
                message=f"{statement_type.upper()} without WHERE clause",
                suggestion=(
                    "This will affect ALL rows in the table. "
                    "Add a WHERE clause to limit scope"
                ),
            )
        )

    if stats.joins > MAX_JOINS:
        hints.append(
            OptimizationHint(
                type="warning",
                message=f"High number of JOINs ({stats.joins})",
                suggestion="Consider breaking into smaller queries or using CTEs for clarity",
            )
        )

    if stats.subqueries > MAX_SUBQUERIES:
        hints.append(
            OptimizationHint(
                type="warning",
                message=f"Multiple subqueries detected ({stats.subqueries})",
                suggestion="Consider using CTEs (WITH clause) for better readability",
            )
        )

    if isinstance(query, dict) and _implicit_cross_join(query):
        hints.append(
            OptimizationHint(
                type="error",
                message="Possible Cartesian product",
                suggestion=(
                    "Multiple tables without JOIN conditions will produce "
                    "all row combinations"
                ),
            )
        )

    return hints


def _implicit_cross_join(query: Dict[str, Any]) -> bool:
    """Comma-separated FROM tables with no WHERE to relate them."""
    items = [i for i in query.get("from") or [] if isinstance(i, dict)]
    implicit = [i for i in items[1:] if not i.get("join")]
    return bool(implicit) and not query.get("where")
