"""Immediate source columns of each SELECT output column."""

from typing import Any, Dict, List, Optional

from sqlflow.global_models import NodeType
from sqlflow.graph.models import FlowNode
from sqlflow.lineage.models import ColumnLineage, LineageSource
from sqlflow.utils.navigator import (
    ExprKind,
    classify_expression,
    expr_type,
    extract_scalar,
    iter_child_expressions,
)


def build_alias_map(from_items: Any) -> Dict[str, str]:
    """
    Map lower-cased FROM aliases (and bare table names) to real table names.

    Args:
        from_items: The FROM list of a statement AST

    Returns:
        Dict of alias -> table name
    """
    aliases: Dict[str, str] = {}
    for item in from_items or []:
        if not isinstance(item, dict):
            continue
        table = extract_scalar(item.get("table")) or extract_scalar(
            item.get("table_function")
        )
        if not table:
            continue
        alias = extract_scalar(item.get("as")) or table
        aliases[alias.lower()] = table
    return aliases


def extract_column_lineage(
    ast: Dict[str, Any], nodes: List[FlowNode]
) -> List[ColumnLineage]:
    """
    Determine the immediate source columns of every projected column.

    Only SELECT statements have column lineage; anything else yields an
    empty list.

    Args:
        ast: Statement AST
        nodes: Top-level nodes of the statement's operator graph

    Returns:
        One ColumnLineage per projected column, in SELECT-list order
    """
    if not isinstance(ast, dict) or expr_type(ast) != "select":
        return []
    columns = ast.get("columns")
    if not isinstance(columns, list):
        return []

    aliases = build_alias_map(ast.get("from"))
    table_nodes = [n for n in nodes if n.type == NodeType.TABLE]

    lineage: List[ColumnLineage] = []
    for col in columns:
        if col == "*" or (
            isinstance(col, dict) and classify_expression(col.get("expr")) == ExprKind.STAR
        ):
            lineage.append(
                ColumnLineage(
                    output_column="*",
                    sources=[
                        LineageSource(table=n.label, column="*", node_id=n.id)
                        for n in table_nodes
                    ],
                )
            )
            continue
        if not isinstance(col, dict):
            continue

        expr = col.get("expr")
        expr_dict = expr if isinstance(expr, dict) else {}
        name = (
            extract_scalar(col.get("as"))
            or extract_scalar(expr_dict.get("column"))
            or extract_scalar(expr_dict.get("name"))
            or "expr"
        )

        sources: List[LineageSource] = []
        extract_sources_from_expr(expr, sources, aliases, table_nodes)
        lineage.append(ColumnLineage(output_column=name, sources=sources))

    return lineage


def extract_sources_from_expr(
    expr: Any,
    sources: List[LineageSource],
    aliases: Dict[str, str],
    table_nodes: List[FlowNode],
) -> None:
    """
    Append the column references found in an expression to ``sources``.

    Column qualifiers are resolved through ``aliases``. An unqualified column
    resolves to the only table in scope; with several tables in scope it is
    skipped. A qualifier that matches no alias is recorded as written, with
    an empty node id.
    """
    kind = classify_expression(expr)

    if kind == ExprKind.COLUMN_REF:
        column = (
            extract_scalar(expr.get("column")) or extract_scalar(expr.get("name")) or "expr"
        )
        qualifier = extract_scalar(expr.get("table")) or ""
        table = aliases.get(qualifier.lower(), qualifier) if qualifier else ""

        node = _find_table_node(table_nodes, table, qualifier)
        if table or len(table_nodes) == 1:
            # A qualifier naming no table in scope has no node to point at
            if node is None and not table:
                node = table_nodes[0]
            sources.append(
                LineageSource(
                    table=table or table_nodes[0].label,
                    column=column,
                    node_id=node.id if node else "",
                )
            )
        return

    if kind in (ExprKind.STAR, ExprKind.SUBQUERY, ExprKind.LITERAL):
        return

    for child in iter_child_expressions(expr):
        extract_sources_from_expr(child, sources, aliases, table_nodes)


def _find_table_node(
    table_nodes: List[FlowNode], table: str, qualifier: str
) -> Optional[FlowNode]:
    for node in table_nodes:
        label = node.label.lower()
        if label == table.lower() or label == qualifier.lower():
            return node
        if qualifier and node.alias and node.alias.lower() == qualifier.lower():
            return node
    return None
