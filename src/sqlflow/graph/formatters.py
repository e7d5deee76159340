"""Output formatters for operator graphs."""

import csv
import json
from io import StringIO
from typing import TYPE_CHECKING, List

from rich.console import Console
from rich.table import Table
from rich.text import Text

from sqlflow.graph.models import FlowGraph, FlowNode

if TYPE_CHECKING:
    from sqlflow.analyzer import ParseResult

NODE_STYLES = {
    "table": "cyan",
    "subquery": "cyan",
    "cte": "cyan",
    "filter": "yellow",
    "join": "magenta",
    "union": "magenta",
    "aggregate": "red",
    "select": "green",
    "result": "dim",
}


def _walk(nodes: List[FlowNode], depth: int = 0):
    """Yield (depth, node) for a node list and its nested pipelines."""
    for node in nodes:
        yield depth, node
        if node.children:
            yield from _walk(node.children, depth + 1)


def _column_names(node: FlowNode) -> str:
    return ", ".join(c.name for c in node.columns or [])


class GraphTextFormatter:
    """Format operator graphs as Rich tables for terminal display."""

    @staticmethod
    def format(results: List["ParseResult"], console: Console) -> None:
        """
        Print one node table and one edge table per statement.

        Nested pipeline nodes are indented under their container.

        Args:
            results: Analysis results
            console: Rich Console instance for output
        """
        if not results:
            console.print("[yellow]No queries found.[/yellow]")
            return

        for i, result in enumerate(results):
            if i > 0:
                console.print()

            title = f"Query {result.query_index}: {result.query_preview}"
            nodes = Table(title=title, title_style="bold")
            nodes.add_column("Node", style="dim")
            nodes.add_column("Type")
            nodes.add_column("Label", style="bold")
            nodes.add_column("Details")

            node_count = 0
            for depth, node in _walk(result.graph.nodes):
                details = "; ".join(node.details) or _column_names(node)
                nodes.add_row(
                    "  " * depth + node.id,
                    Text(node.type.value, style=NODE_STYLES.get(node.type.value, "")),
                    node.label,
                    details,
                )
                node_count += 1

            console.print(nodes)

            if result.graph.edges:
                edges = Table(show_header=True, box=None, pad_edge=False)
                edges.add_column("From", style="cyan")
                edges.add_column("To", style="green")
                edges.add_column("Label")
                for edge in result.graph.edges:
                    edges.add_row(edge.source, edge.target, edge.label or "")
                console.print(edges)

            console.print(
                f"[dim]Total: {node_count} node(s), "
                f"{len(result.graph.edges)} edge(s)[/dim]"
            )


class GraphJsonFormatter:
    """Format operator graphs as JSON."""

    @staticmethod
    def format(results: List["ParseResult"]) -> str:
        """
        Format graphs as JSON.

        Output format:
        {
          "queries": [
            {
              "query_index": 0,
              "query_preview": "SELECT ...",
              "statement_type": "SELECT",
              "graph": {"nodes": [...], "edges": [...]},
              "stats": {"tables": 1, ...}
            }
          ]
        }
        """
        queries = []
        for result in results:
            query = {
                "query_index": result.query_index,
                "query_preview": result.query_preview,
                "statement_type": result.statement_type,
                "graph": result.graph.model_dump(mode="json", exclude_none=True),
                "stats": result.stats.model_dump(),
            }
            if result.error:
                query["error"] = result.error
            queries.append(query)

        return json.dumps({"queries": queries}, indent=2)


class GraphCsvFormatter:
    """Format operator graph nodes as CSV, one row per node."""

    HEADERS = ["query_index", "node_id", "parent_id", "type", "label", "inputs"]

    @staticmethod
    def format(results: List["ParseResult"]) -> str:
        if not results:
            return ""

        output = StringIO()
        writer = csv.writer(output)
        writer.writerow(GraphCsvFormatter.HEADERS)

        for result in results:
            GraphCsvFormatter._rows(
                writer, result.query_index, result.graph, parent_id=""
            )

        return output.getvalue()

    @staticmethod
    def _rows(writer, query_index: int, graph: FlowGraph, parent_id: str) -> None:
        incoming = graph.incoming_index()
        for node in graph.nodes:
            writer.writerow(
                [
                    query_index,
                    node.id,
                    parent_id,
                    node.type.value,
                    node.label,
                    " ".join(incoming.get(node.id, [])),
                ]
            )
            if node.children:
                GraphCsvFormatter._rows(
                    writer,
                    query_index,
                    FlowGraph(nodes=node.children, edges=node.child_edges or []),
                    parent_id=node.id,
                )
