"""Output formatters for column lineage results."""

import csv
import json
from io import StringIO
from pathlib import Path
from typing import TYPE_CHECKING, List, Optional

from rich.console import Console
from rich.table import Table
from rich.text import Text

from sqlflow.lineage.models import ColumnFlow

if TYPE_CHECKING:
    from sqlflow.analyzer import ParseResult

TRANSFORMATION_STYLES = {
    "source": "cyan",
    "passthrough": "dim",
    "renamed": "blue",
    "aggregated": "red",
    "calculated": "yellow",
    "joined": "magenta",
}


def format_flow_path(flow: ColumnFlow) -> str:
    """Render a lineage path as ``node.column -> node.column`` text."""
    return " -> ".join(
        f"{step.node_name}.{step.column_name}" for step in flow.lineage_path
    )


class TextFormatter:
    """Format lineage results as Rich tables for terminal display."""

    @staticmethod
    def format(results: List["ParseResult"], console: Console) -> None:
        """
        Format and print lineage results as Rich tables.

        For each statement, a table of output columns and their base sources is
        followed by the traced path of every output column.

        Args:
            results: Analysis results
            console: Rich Console instance for output
        """
        if not results:
            console.print("[yellow]No lineage results found.[/yellow]")
            return

        for i, result in enumerate(results):
            if i > 0:
                console.print()

            title = f"Query {result.query_index}: {result.query_preview}"
            table = Table(title=title, title_style="bold")
            table.add_column("Output Column", style="cyan")
            table.add_column("Source Column", style="green")

            row_count = 0
            for lineage in result.column_lineage:
                sources = [f"{s.table}.{s.column}" for s in lineage.sources]
                if not sources:
                    table.add_row(
                        lineage.output_column, Text("(no sources)", style="dim")
                    )
                    row_count += 1
                    continue
                table.add_row(lineage.output_column, sources[0])
                for source in sources[1:]:
                    table.add_row("", source)
                row_count += len(sources)

            console.print(table)
            console.print(f"[dim]Total: {row_count} row(s)[/dim]")

            for flow in result.column_flows:
                TextFormatter._print_flow(flow, console)

    @staticmethod
    def _print_flow(flow: ColumnFlow, console: Console) -> None:
        line = Text(f"{flow.output_column}: ", style="bold")
        for index, step in enumerate(flow.lineage_path):
            if index:
                line.append(" -> ", style="dim")
            line.append(f"{step.node_name}.{step.column_name}")
            line.append(
                f" [{step.transformation.value}]",
                style=TRANSFORMATION_STYLES.get(step.transformation.value, ""),
            )
        console.print(line)


class JsonFormatter:
    """Format lineage results as JSON."""

    @staticmethod
    def format(results: List["ParseResult"]) -> str:
        """
        Format lineage results as JSON.

        Output format:
        {
          "queries": [
            {
              "query_index": 0,
              "query_preview": "SELECT ...",
              "lineage": [
                {"output_column": "total", "sources": [{"table": "orders", ...}]}
              ],
              "flows": [
                {"id": "lineage_select_3_total", "lineage_path": [...]}
              ]
            }
          ]
        }

        Args:
            results: Analysis results

        Returns:
            JSON-formatted string
        """
        queries = []
        for result in results:
            queries.append(
                {
                    "query_index": result.query_index,
                    "query_preview": result.query_preview,
                    "lineage": [
                        lineage.model_dump(mode="json")
                        for lineage in result.column_lineage
                    ],
                    "flows": [
                        flow.model_dump(mode="json", exclude_none=True)
                        for flow in result.column_flows
                    ],
                }
            )

        return json.dumps({"queries": queries}, indent=2)


class CsvFormatter:
    """Format lineage results as CSV."""

    @staticmethod
    def format(results: List["ParseResult"]) -> str:
        """
        Format lineage results as CSV.

        Output format:
        query_index,output_column,source_table,source_column,path
        0,total,orders,amount,orders.amount -> Group & Aggregate.amount -> ...

        Output columns without sources produce one row with empty source
        fields.

        Args:
            results: Analysis results

        Returns:
            CSV-formatted string
        """
        if not results:
            return ""

        output = StringIO()
        writer = csv.writer(output)
        writer.writerow(
            ["query_index", "output_column", "source_table", "source_column", "path"]
        )

        for result in results:
            paths = {
                flow.output_column: format_flow_path(flow)
                for flow in result.column_flows
            }
            for lineage in result.column_lineage:
                path = paths.get(lineage.output_column, "")
                if not lineage.sources:
                    writer.writerow(
                        [result.query_index, lineage.output_column, "", "", path]
                    )
                for source in lineage.sources:
                    writer.writerow(
                        [
                            result.query_index,
                            lineage.output_column,
                            source.table,
                            source.column,
                            path,
                        ]
                    )

        return output.getvalue()


class OutputWriter:
    """Write formatted output to a file or stdout."""

    @staticmethod
    def write(content: str, output_file: Optional[Path] = None) -> None:
        if output_file:
            output_file.write_text(content, encoding="utf-8")
        else:
            print(content)
