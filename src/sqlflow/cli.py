"""CLI entry point for sqlflow."""

from io import StringIO
from pathlib import Path
from typing import Callable, Dict, List, Optional

import typer
from rich.console import Console
from rich.markup import escape

from sqlflow.analyzer import FlowAnalyzer, ParseResult
from sqlflow.documentation.formatters import (
    SummaryJsonFormatter,
    SummaryMarkdownFormatter,
    SummaryTextFormatter,
)
from sqlflow.errors import InputValidationError
from sqlflow.graph.formatters import (
    GraphCsvFormatter,
    GraphJsonFormatter,
    GraphTextFormatter,
)
from sqlflow.lineage.formatters import (
    CsvFormatter,
    JsonFormatter,
    OutputWriter,
    TextFormatter,
)
from sqlflow.utils.config import ConfigSettings, load_config
from sqlflow.utils.file_utils import SQL_SUFFIXES, is_sql_file, read_sql_file

app = typer.Typer(
    name="sqlflow",
    help="Visualize SQL queries as operator graphs and trace column lineage.",
    invoke_without_command=False,
)
console = Console()
err_console = Console(stderr=True)

DEFAULT_DIALECT = "MySQL"

SQL_FILE_ARGUMENT = typer.Argument(
    ...,
    exists=True,
    file_okay=True,
    dir_okay=False,
    readable=True,
    help="Path to SQL file to analyze",
)
DIALECT_OPTION = typer.Option(
    None,
    "--dialect",
    "-d",
    help="SQL dialect, e.g. MySQL, PostgreSQL, Snowflake (default: MySQL, or from config)",
)
OUTPUT_FILE_OPTION = typer.Option(
    None,
    "--output-file",
    "-o",
    help="Write output to file instead of stdout",
)


@app.callback()
def main():
    """sqlflow - SQL operator graphs and column lineage."""
    pass


def _check_output_format(output_format: str, allowed: List[str]) -> None:
    if output_format not in allowed:
        quoted = ", ".join(f"'{name}'" for name in allowed)
        err_console.print(
            f"[red]Error:[/red] Invalid output format '{output_format}'. "
            f"Use one of: {quoted}."
        )
        raise typer.Exit(1)


def _analyze(
    sql_file: Path, dialect: Optional[str], config: ConfigSettings
) -> List[ParseResult]:
    """Read, validate and analyze a SQL file, warning about skipped statements.

    Raises:
        InputValidationError: If the file exceeds the configured limits
        ValueError: If the dialect is unknown or the file cannot be decoded
    """
    if not is_sql_file(sql_file):
        err_console.print(
            f"[yellow]Warning:[/yellow] {escape(sql_file.name)} does not have a SQL "
            f"extension ({', '.join(SQL_SUFFIXES)}); analyzing it anyway"
        )

    sql = read_sql_file(sql_file)
    analyzer = FlowAnalyzer(
        sql,
        dialect=dialect or config.dialect or DEFAULT_DIALECT,
        limits=config.validation_limits(),
        aggregates=config.custom_aggregates,
        window_functions=config.custom_window_functions,
    )
    results = analyzer.analyze()

    for skipped in analyzer.skipped_queries:
        err_console.print(
            f"[yellow]Warning:[/yellow] Skipping query {skipped.query_index} "
            f"({skipped.statement_type}): {escape(skipped.reason)}"
        )

    return results


def _emit(
    results: List[ParseResult],
    output_format: str,
    output_file: Optional[Path],
    text_formatter: Callable[[List[ParseResult], Console], None],
    formatters: Dict[str, Callable[[List[ParseResult]], str]],
    what: str,
) -> None:
    if output_format == "text":
        if output_file:
            # Render through a plain-text console so the file has no escape codes
            buffer = StringIO()
            text_formatter(results, Console(file=buffer, force_terminal=False))
            output_file.write_text(buffer.getvalue(), encoding="utf-8")
        else:
            text_formatter(results, console)
    else:
        OutputWriter.write(formatters[output_format](results), output_file)

    if output_file:
        console.print(f"[green]Success:[/green] {what} written to {output_file}")


def _filter_column(results: List[ParseResult], column: str) -> List[ParseResult]:
    """Restrict lineage and flows to one output column.

    Raises:
        ValueError: If no statement outputs the column
    """
    wanted = column.lower()
    filtered = []
    for result in results:
        lineage = [
            item
            for item in result.column_lineage
            if item.output_column.lower() == wanted
        ]
        flows = [f for f in result.column_flows if f.output_column.lower() == wanted]
        if lineage or flows:
            filtered.append(
                result.model_copy(
                    update={"column_lineage": lineage, "column_flows": flows}
                )
            )

    if not filtered:
        raise ValueError(f"Column '{column}' not found in any query output")
    return filtered


def _run(action: Callable[[], None]) -> None:
    """Run a command body, turning expected failures into exit code 1."""
    try:
        action()

    except InputValidationError as e:
        err_console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1)

    except FileNotFoundError as e:
        err_console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1)

    except ValueError as e:
        err_console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1)

    except Exception as e:
        err_console.print(f"[red]Error:[/red] Unexpected error: {escape(str(e))}")
        raise typer.Exit(1)


@app.command()
def graph(
    sql_file: Path = SQL_FILE_ARGUMENT,
    dialect: Optional[str] = DIALECT_OPTION,
    output_format: Optional[str] = typer.Option(
        None,
        "--output-format",
        "-f",
        help="Output format: 'text', 'json', or 'csv' (default: text, or from config)",
    ),
    output_file: Optional[Path] = OUTPUT_FILE_OPTION,
) -> None:
    """
    Build the operator graph of every statement in a SQL file.

    Examples:

        # Show nodes and edges as tables
        sqlflow graph query.sql

        # Export nodes, edges and statistics to JSON
        sqlflow graph query.sql -f json -o graph.json

        # One CSV row per node, nested pipelines included
        sqlflow graph query.sql -f csv
    """
    config = load_config()
    output_format = output_format or config.output_format or "text"
    _check_output_format(output_format, ["text", "json", "csv"])

    def action() -> None:
        results = _analyze(sql_file, dialect, config)
        _emit(
            results,
            output_format,
            output_file,
            GraphTextFormatter.format,
            {"json": GraphJsonFormatter.format, "csv": GraphCsvFormatter.format},
            "Graph",
        )

    _run(action)


@app.command()
def lineage(
    sql_file: Path = SQL_FILE_ARGUMENT,
    dialect: Optional[str] = DIALECT_OPTION,
    column: Optional[str] = typer.Option(
        None,
        "--column",
        "-c",
        help="Specific output column to trace (default: all columns)",
    ),
    output_format: Optional[str] = typer.Option(
        None,
        "--output-format",
        "-f",
        help="Output format: 'text', 'json', or 'csv' (default: text, or from config)",
    ),
    output_file: Optional[Path] = OUTPUT_FILE_OPTION,
) -> None:
    """
    Trace column lineage for a SQL file.

    Configuration can be set in sqlflow.toml in the current directory.
    CLI arguments override configuration file values.

    Examples:

        # Sources and paths of every output column
        sqlflow lineage query.sql

        # Only one column
        sqlflow lineage query.sql --column total_amount

        # Export to JSON
        sqlflow lineage query.sql -f json -o lineage.json
    """
    config = load_config()
    output_format = output_format or config.output_format or "text"
    _check_output_format(output_format, ["text", "json", "csv"])

    def action() -> None:
        results = _analyze(sql_file, dialect, config)
        if column:
            results = _filter_column(results, column)
        _emit(
            results,
            output_format,
            output_file,
            TextFormatter.format,
            {"json": JsonFormatter.format, "csv": CsvFormatter.format},
            "Lineage",
        )

    _run(action)


@app.command()
def summary(
    sql_file: Path = SQL_FILE_ARGUMENT,
    dialect: Optional[str] = DIALECT_OPTION,
    output_format: Optional[str] = typer.Option(
        None,
        "--output-format",
        "-f",
        help="Output format: 'text', 'json', or 'markdown' "
        "(default: text, or from config)",
    ),
    output_file: Optional[Path] = OUTPUT_FILE_OPTION,
) -> None:
    """
    Describe what each statement in a SQL file does.

    Examples:

        sqlflow summary query.sql

        # Write query documentation
        sqlflow summary query.sql -f markdown -o QUERY.md
    """
    config = load_config()
    output_format = output_format or config.output_format or "text"
    _check_output_format(output_format, ["text", "json", "markdown"])

    def action() -> None:
        results = _analyze(sql_file, dialect, config)
        _emit(
            results,
            output_format,
            output_file,
            SummaryTextFormatter.format,
            {
                "json": SummaryJsonFormatter.format,
                "markdown": SummaryMarkdownFormatter.format,
            },
            "Summary",
        )

    _run(action)


if __name__ == "__main__":
    app()
