"""Output formatters for query summaries."""

import json
from typing import TYPE_CHECKING, List

from rich.console import Console
from rich.table import Table

from sqlflow.documentation.summarizer import flow_steps_from_graph, to_markdown

if TYPE_CHECKING:
    from sqlflow.analyzer import ParseResult

COMPLEXITY_STYLES = {
    "Simple": "green",
    "Moderate": "yellow",
    "Complex": "red",
    "Very Complex": "bold red",
}

HINT_STYLES = {"info": "cyan", "warning": "yellow", "error": "red"}


class SummaryTextFormatter:
    """Format query summaries for terminal display."""

    @staticmethod
    def format(results: List["ParseResult"], console: Console) -> None:
        """
        Print an overview table, the pipeline steps, warnings and hints
        for every statement.

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

            doc = result.summary
            title = f"Query {result.query_index}: {result.query_preview}"
            table = Table(title=title, title_style="bold", show_header=False)
            table.add_column("Field", style="cyan")
            table.add_column("Value")

            style = COMPLEXITY_STYLES.get(doc.complexity, "")
            table.add_row("Summary", doc.summary)
            table.add_row("Purpose", doc.purpose)
            table.add_row(
                "Complexity",
                f"[{style}]{doc.complexity}[/{style}] (score {doc.complexity_score})",
            )
            if doc.tables:
                table.add_row(
                    "Tables",
                    ", ".join(f"{t.name} ({t.role})" for t in doc.tables),
                )
            if doc.flow_summary:
                table.add_row("Flow", doc.flow_summary)
            console.print(table)

            if result.error is None:
                console.print("[bold]Pipeline[/bold]")
                for step in flow_steps_from_graph(result.graph):
                    console.print(f"  {step}", markup=False)

            for warning in doc.warnings:
                console.print(f"[yellow]Warning:[/yellow] {warning}")

            for hint in result.hints:
                style = HINT_STYLES[hint.type]
                console.print(
                    f"[{style}]Hint:[/{style}] {hint.message}. {hint.suggestion}"
                )


class SummaryJsonFormatter:
    """Format query summaries as JSON."""

    @staticmethod
    def format(results: List["ParseResult"]) -> str:
        queries = []
        for result in results:
            queries.append(
                {
                    "query_index": result.query_index,
                    "query_preview": result.query_preview,
                    "statement_type": result.statement_type,
                    "summary": result.summary.model_dump(mode="json"),
                    "hints": [h.model_dump(mode="json") for h in result.hints],
                    "pipeline": (
                        flow_steps_from_graph(result.graph)
                        if result.error is None
                        else []
                    ),
                }
            )
        return json.dumps({"queries": queries}, indent=2)


class SummaryMarkdownFormatter:
    """Format query summaries as one Markdown document."""

    @staticmethod
    def format(results: List["ParseResult"]) -> str:
        """Render each statement's summary, separated by horizontal rules."""
        sections = [
            to_markdown(result.summary, result.sql, result.hints) for result in results
        ]
        return "\n---\n\n".join(sections)
