"""Human-readable summaries of statement ASTs and operator graphs."""

from typing import Any, Dict, Iterable, List, Optional

import rustworkx as rx
from rich.console import Console
from rich.markup import escape

from sqlflow.documentation.models import (
    AggregationReference,
    DataVolumeEstimate,
    FilterReference,
    JoinReference,
    OptimizationHint,
    OrderingReference,
    QuerySummary,
    TableReference,
    TransformationPoint,
)
from sqlflow.graph.expressions import format_condition, format_expression
from sqlflow.graph.models import FlowGraph
from sqlflow.graph.serialization import to_rustworkx
from sqlflow.utils.navigator import (
    AGGREGATE_FUNCTIONS,
    ExprKind,
    classify_expression,
    expr_type,
    extract_scalar,
    function_args,
    function_name,
    is_aggregate_call,
)

console = Console(stderr=True)

_PURPOSES = {
    "select": "Retrieve data from the database",
    "insert": "Add new records to the database",
    "update": "Modify existing records in the database",
    "delete": "Remove records from the database",
    "create": "Store query results as a new database object",
}


def _plural(count: int, noun: str) -> str:
    return f"{count} {noun}{'s' if count != 1 else ''}"


class QuerySummarizer:
    """Derive a QuerySummary from a statement AST."""

    def __init__(self, aggregates: Optional[Iterable[str]] = None):
        """
        Initialize the summarizer.

        Args:
            aggregates: Extra aggregate function names on top of the built-ins
        """
        self.aggregates = AGGREGATE_FUNCTIONS | {a.upper() for a in aggregates or []}

    def summarize(self, ast: Dict[str, Any]) -> QuerySummary:
        """
        Summarize one statement.

        Never raises: a statement that cannot be analyzed yields a summary
        reporting the failure.

        Args:
            ast: Statement AST

        Returns:
            QuerySummary for the statement
        """
        doc = QuerySummary()
        try:
            statement_type = expr_type(ast)
            doc.purpose = _PURPOSES.get(statement_type, "")
            if statement_type == "select":
                doc.summary = self._select_summary(ast)
                self._select_details(ast, doc)
                self._select_flow(ast, doc)
            elif statement_type == "insert":
                doc.summary = self._insert_summary(ast)
                self._insert_details(ast, doc)
            elif statement_type == "update":
                doc.summary = self._update_summary(ast)
                self._write_details(ast, doc, "updated")
            elif statement_type == "delete":
                doc.summary = self._delete_summary(ast)
                self._write_details(ast, doc, "deleted")
            elif statement_type == "create":
                query = ast.get("select") or {}
                doc.summary = self._create_summary(ast, query)
                self._select_details(query, doc, warn_without_limit=False)
                self._select_flow(query, doc)
                self._create_details(ast, doc)

            doc.data_flow_steps = self._data_flow_steps(doc)
            doc.flow_summary = _flow_summary(doc.transformation_points)
            doc.complexity_score = (
                len(doc.tables) * 2
                + len(doc.joins) * 5
                + len(doc.aggregations) * 3
                + len(doc.filters) * 2
            )
            doc.complexity = _complexity_bucket(doc.complexity_score)
        except Exception as e:
            console.print(
                "[yellow]Warning:[/yellow] Could not summarize statement: "
                f"{escape(str(e))}"
            )
            doc = QuerySummary(
                summary="Unable to generate documentation",
                purpose="Query analysis failed",
            )
        return doc

    def _select_summary(self, ast: Dict[str, Any]) -> str:
        parts = []
        columns = ast.get("columns")
        if columns == "*" or (isinstance(columns, list) and any(is_star_column(c) for c in columns)):
            parts.append("Select all columns")
        elif isinstance(columns, list) and columns:
            parts.append(f"Select {_plural(len(columns), 'column')}")

        from_items = ast.get("from") or []
        if from_items:
            parts.append(f"from {_plural(len(from_items), 'table')}")

        join_count = _count_joins(ast)
        if join_count:
            parts.append(f"with {_plural(join_count, 'join')}")

        ctes = ast.get("with") or []
        if ctes:
            parts.append(f"using {_plural(len(ctes), 'CTE')}")

        if ast.get("groupby") or self._has_aggregations(ast):
            parts.append("with aggregations")

        return " ".join(parts)

    def _insert_summary(self, ast: Dict[str, Any]) -> str:
        table = _first_table_name(ast.get("table")) or "table"
        column_count = len(ast.get("columns") or [])
        target = f"{column_count} columns" if column_count else "data"
        return f"Insert {target} into {table}"

    def _update_summary(self, ast: Dict[str, Any]) -> str:
        table = _first_table_name(ast.get("table")) or "table"
        return f"Update {_plural(len(ast.get('set') or []), 'column')} in {table}"

    def _delete_summary(self, ast: Dict[str, Any]) -> str:
        table = _first_table_name(ast.get("from")) or "table"
        return f"Delete records from {table}"

    def _create_summary(self, ast: Dict[str, Any], query: Dict[str, Any]) -> str:
        keyword = str(ast.get("keyword") or "table").lower()
        name = _first_table_name(ast.get("table")) or keyword
        return f"Create {keyword} {name}: {self._select_summary(query)}"

    def _select_details(
        self, ast: Dict[str, Any], doc: QuerySummary, warn_without_limit: bool = True
    ) -> None:
        for item in ast.get("from") or []:
            if not isinstance(item, dict):
                continue
            table = extract_scalar(item.get("table"))
            alias = extract_scalar(item.get("as"))
            if item.get("join"):
                left = doc.tables[-1].name if doc.tables else "previous"
                doc.joins.append(
                    JoinReference(
                        type=str(item["join"]).upper(),
                        left_table=left,
                        right_table=table or alias or "subquery",
                        condition=(
                            format_condition(item["on"]) if item.get("on") else "unknown"
                        ),
                    )
                )
                if table:
                    doc.tables.append(TableReference(name=table, alias=alias, role="joined"))
            elif table:
                doc.tables.append(TableReference(name=table, alias=alias, role="source"))

        if ast.get("where"):
            doc.filters.append(_filter_reference(ast["where"]))

        for col in ast.get("columns") or []:
            if not isinstance(col, dict):
                continue
            expr = col.get("expr")
            if not is_aggregate_call(expr, self.aggregates):
                continue
            column = "*"
            for arg in function_args(expr):
                if classify_expression(arg) == ExprKind.COLUMN_REF:
                    column = extract_scalar(arg.get("column")) or "*"
                    break
            doc.aggregations.append(
                AggregationReference(
                    function=function_name(expr) or "UNKNOWN",
                    column=column,
                    alias=extract_scalar(col.get("as")),
                )
            )

        if ast.get("groupby"):
            doc.warnings.append("Uses GROUP BY - ensure indexes exist on grouping columns")

        for order in _orderby(ast):
            if not isinstance(order, dict):
                continue
            direction = "DESC" if str(order.get("type", "")).upper() == "DESC" else "ASC"
            doc.ordering.append(
                OrderingReference(
                    column=format_expression(order.get("expr")) or "unknown",
                    direction=direction,
                )
            )

        if warn_without_limit and not has_limit(ast):
            doc.warnings.append("No LIMIT clause - query may return large result sets")

    def _insert_details(self, ast: Dict[str, Any], doc: QuerySummary) -> None:
        target = _first_table(ast.get("table"))
        if target is not None:
            doc.tables.append(
                TableReference(
                    name=extract_scalar(target.get("table")) or "table",
                    alias=extract_scalar(target.get("as")),
                    role="updated",
                )
            )
        doc.transformation_points.append(
            TransformationPoint(
                id="insert",
                type="aggregate",
                description="INSERT adds new rows to target table",
                estimated_impact="high",
            )
        )

    def _create_details(self, ast: Dict[str, Any], doc: QuerySummary) -> None:
        target = _first_table(ast.get("table"))
        if target is not None:
            doc.tables.append(
                TableReference(
                    name=extract_scalar(target.get("table")) or "table",
                    role="created",
                )
            )

    def _write_details(self, ast: Dict[str, Any], doc: QuerySummary, role: str) -> None:
        key = "table" if role == "updated" else "from"
        target = _first_table(ast.get(key)) or _first_table(ast.get("table"))
        if target is not None:
            doc.tables.append(
                TableReference(
                    name=extract_scalar(target.get("table")) or "table",
                    alias=extract_scalar(target.get("as")),
                    role=role,
                )
            )

        verb = "update" if role == "updated" else "delete"
        doc.transformation_points.append(
            TransformationPoint(
                id=verb,
                type="aggregate" if verb == "update" else "filter",
                description=(
                    "UPDATE modifies existing rows"
                    if verb == "update"
                    else "DELETE removes rows from table"
                ),
                estimated_impact="high",
            )
        )

        stage = "Rows Updated" if verb == "update" else "Rows Deleted"
        if ast.get("where"):
            doc.filters.append(_filter_reference(ast["where"]))
            doc.data_volume_estimates.append(
                DataVolumeEstimate(
                    node_id=f"{verb}_target",
                    stage=stage,
                    estimated_rows="reduced",
                    reasoning="WHERE clause limits affected rows",
                )
            )
        else:
            doc.warnings.append(
                "No WHERE clause - will update ALL records in the table!"
                if verb == "update"
                else "No WHERE clause - will delete ALL records from the table!"
            )
            doc.data_volume_estimates.append(
                DataVolumeEstimate(
                    node_id=f"{verb}_target",
                    stage=stage,
                    estimated_rows="many",
                    reasoning=f"No WHERE clause - ALL rows {role}",
                )
            )

    def _select_flow(self, ast: Dict[str, Any], doc: QuerySummary) -> None:
        """Transformation points and data-volume estimates of a SELECT."""
        points = doc.transformation_points
        estimates = doc.data_volume_estimates

        for index, item in enumerate(ast.get("from") or []):
            if isinstance(item, dict):
                name = extract_scalar(item.get("table")) or extract_scalar(item.get("as"))
                estimates.append(
                    DataVolumeEstimate(
                        node_id=f"from_{index}",
                        stage=f"Source: {name or 'subquery'}",
                        estimated_rows="many",
                        reasoning="Initial table scan",
                    )
                )

        join_count = _count_joins(ast)
        if join_count:
            points.append(
                TransformationPoint(
                    id="joins",
                    type="join",
                    description=(
                        f"{_plural(join_count, 'JOIN operation')} combining data "
                        "from multiple tables"
                    ),
                    estimated_impact="high" if join_count > 2 else "medium",
                )
            )
            estimates.append(
                DataVolumeEstimate(
                    node_id="after_joins",
                    stage="After JOINs",
                    estimated_rows="many",
                    reasoning=f"Data combined from {join_count + 1} tables",
                )
            )

        if ast.get("where"):
            points.append(
                TransformationPoint(
                    id="filter",
                    type="filter",
                    description="WHERE clause filters rows based on conditions",
                    estimated_impact="high",
                )
            )
            estimates.append(
                DataVolumeEstimate(
                    node_id="after_where",
                    stage="After WHERE",
                    estimated_rows="reduced",
                    reasoning="Filtering reduces row count significantly",
                )
            )

        if ast.get("groupby"):
            points.append(
                TransformationPoint(
                    id="aggregate",
                    type="aggregate",
                    description="GROUP BY aggregates rows into groups",
                    estimated_impact="high",
                )
            )
            estimates.append(
                DataVolumeEstimate(
                    node_id="after_groupby",
                    stage="After GROUP BY",
                    estimated_rows="few",
                    reasoning="Aggregation condenses rows into groups",
                )
            )
        elif self._has_aggregations(ast):
            estimates.append(
                DataVolumeEstimate(
                    node_id="after_aggregate",
                    stage="After aggregation",
                    estimated_rows="single",
                    reasoning="Aggregates without GROUP BY return one row",
                )
            )

        if ast.get("having"):
            points.append(
                TransformationPoint(
                    id="having",
                    type="filter",
                    description="HAVING clause filters aggregated results",
                    estimated_impact="medium",
                )
            )

        orderby = _orderby(ast)
        if orderby:
            points.append(
                TransformationPoint(
                    id="sort",
                    type="sort",
                    description=f"ORDER BY sorts results by {_plural(len(orderby), 'column')}",
                    estimated_impact="low",
                )
            )

        limit = _limit(ast)
        if limit is not None:
            value = format_expression(limit["value"][0]) or "N"
            points.append(
                TransformationPoint(
                    id="limit",
                    type="limit",
                    description=f"LIMIT restricts output to {value} rows",
                    estimated_impact="medium",
                )
            )
            estimates.append(
                DataVolumeEstimate(
                    node_id="final",
                    stage="Final Output",
                    estimated_rows="few",
                    reasoning="LIMIT explicitly restricts row count",
                )
            )
        else:
            estimates.append(
                DataVolumeEstimate(
                    node_id="final",
                    stage="Final Output",
                    estimated_rows=estimates[-1].estimated_rows if estimates else "many",
                    reasoning="No LIMIT clause - full result set returned",
                )
            )

        for index, cte in enumerate(ast.get("with") or []):
            name = extract_scalar(cte.get("name")) if isinstance(cte, dict) else None
            points.append(
                TransformationPoint(
                    id=f"cte_{index}",
                    type="aggregate",
                    description=f'CTE "{name or "CTE"}" creates intermediate result set',
                    estimated_impact="medium",
                )
            )

    def _data_flow_steps(self, doc: QuerySummary) -> List[str]:
        steps: List[str] = []
        sources = [t.name for t in doc.tables if t.role == "source"]
        if sources:
            steps.append(f"1. Data is retrieved from: {', '.join(sources)}")

        if doc.joins:
            steps.append(
                f"{len(steps) + 1}. Tables are joined using "
                f"{_plural(len(doc.joins), 'join operation')}"
            )
            for join in doc.joins:
                steps.append(f"   - {join.type} {join.right_table} on {join.condition}")

        numbered = len([s for s in steps if not s.startswith(" ")])
        if doc.filters:
            numbered += 1
            steps.append(f"{numbered}. Filters are applied to reduce the result set")
        if doc.aggregations:
            numbered += 1
            functions = ", ".join(a.function for a in doc.aggregations)
            steps.append(f"{numbered}. Data is aggregated using {functions}")
        if doc.ordering:
            numbered += 1
            keys = ", ".join(f"{o.column} {o.direction}" for o in doc.ordering)
            steps.append(f"{numbered}. Results are sorted by {keys}")
        created = [t.name for t in doc.tables if t.role == "created"]
        if created:
            numbered += 1
            steps.append(f"{numbered}. Results are stored in {created[0]}")
        elif sources:
            numbered += 1
            steps.append(f"{numbered}. Final result set is returned to the caller")
        return steps

    def _has_aggregations(self, ast: Dict[str, Any]) -> bool:
        return any(
            isinstance(c, dict) and is_aggregate_call(c.get("expr"), self.aggregates)
            for c in ast.get("columns") or []
            if c != "*"
        )


def summarize(
    ast: Dict[str, Any], aggregates: Optional[Iterable[str]] = None
) -> QuerySummary:
    """Summarize one statement AST (see QuerySummarizer.summarize)."""
    return QuerySummarizer(aggregates).summarize(ast)


def flow_steps_from_graph(graph: FlowGraph) -> List[str]:
    """
    Describe the operator graph as numbered steps in dependency order.

    Nodes are ordered topologically; if the graph is not acyclic they keep
    their creation order.

    Args:
        graph: Operator graph of one statement

    Returns:
        One "<n>. <label>: <description>" line per top-level node
    """
    rx_graph, node_map = to_rustworkx(graph)
    index_to_id = {index: node_id for node_id, index in node_map.items()}
    try:
        order = [index_to_id[i] for i in rx.topological_sort(rx_graph)]
    except rx.DAGHasCycle:
        order = [n.id for n in graph.nodes]

    steps = []
    for position, node_id in enumerate(order, start=1):
        node = graph.get_node(node_id)
        if node is None:
            continue
        text = f"{position}. {node.label}"
        if node.description:
            text += f": {node.description}"
        steps.append(text)
    return steps


def to_markdown(
    doc: QuerySummary, sql: str, hints: Optional[List[OptimizationHint]] = None
) -> str:
    """
    Render a summary as a Markdown document, ending with the SQL itself.

    Args:
        doc: Summary to render
        sql: Statement text
        hints: Optimization hints listed after the warnings

    Returns:
        Markdown text
    """
    lines = ["# SQL Query Documentation", ""]
    lines += ["## Summary", "", doc.summary, ""]
    lines += ["## Purpose", "", doc.purpose, ""]
    lines += [f"## Complexity: {doc.complexity}", ""]

    if doc.tables:
        lines += ["## Tables Involved", ""]
        for table in doc.tables:
            alias = f" (as {table.alias})" if table.alias else ""
            lines.append(f"- **{table.name}**{alias} - {table.role}")
        lines.append("")

    if doc.joins:
        lines += ["## Join Operations", ""]
        for index, join in enumerate(doc.joins, start=1):
            lines.append(f"{index}. **{join.type}** {join.right_table} on `{join.condition}`")
        lines.append("")

    if doc.filters:
        lines += ["## Filters & Conditions", ""]
        lines += [f"- {f.description}" for f in doc.filters]
        lines.append("")

    if doc.aggregations:
        lines += ["## Aggregations", ""]
        for agg in doc.aggregations:
            alias = f" as {agg.alias}" if agg.alias else ""
            lines.append(f"- **{agg.function}**({agg.column}){alias}")
        lines.append("")

    if doc.ordering:
        lines += ["## Ordering", ""]
        lines += [f"- {o.column} {o.direction}" for o in doc.ordering]
        lines.append("")

    if doc.data_flow_steps:
        lines += ["## Data Flow", ""]
        lines += doc.data_flow_steps
        lines.append("")

    if doc.warnings:
        lines += ["## Warnings", ""]
        lines += [f"- {w}" for w in doc.warnings]
        lines.append("")

    if hints:
        lines += ["## Optimization Hints", ""]
        lines += [f"- **{h.message}**: {h.suggestion}" for h in hints]
        lines.append("")

    lines += ["## SQL Code", "", "```sql", sql.strip(), "```", ""]
    return "\n".join(lines)


def _complexity_bucket(score: int) -> str:
    if score < 10:
        return "Simple"
    if score < 25:
        return "Moderate"
    if score < 40:
        return "Complex"
    return "Very Complex"


def _flow_summary(points: List[TransformationPoint]) -> str:
    if not points:
        return "Simple data flow with no major transformations"

    kinds = {p.type for p in points}
    parts = []
    if "join" in kinds:
        parts.append("combines data from multiple sources")
    if "filter" in kinds:
        parts.append("filters rows")
    if "aggregate" in kinds:
        parts.append("aggregates results")
    if "sort" in kinds:
        parts.append("sorts output")

    if not parts:
        return "Data flows through query with minimal transformation"
    return f"Data {', '.join(parts)} before final output"


def _filter_reference(where: Any) -> FilterReference:
    operator = where.get("operator") if isinstance(where, dict) else None
    return FilterReference(
        column="various",
        operator=str(operator or "unknown"),
        value="see condition",
        description=_describe_condition(where) or "Complex filtering condition",
    )


def _describe_condition(condition: Any) -> str:
    if not isinstance(condition, dict):
        return ""
    operator = str(condition.get("operator") or "").upper()
    if operator in ("AND", "OR"):
        left = _describe_condition(condition.get("left"))
        right = _describe_condition(condition.get("right"))
        return f"{left} {operator} {right}"
    if classify_expression(condition) == ExprKind.BINARY_EXPR:
        return format_condition(condition)
    return "complex condition"


def is_star_column(col: Any) -> bool:
    """True for ``*`` and ``t.*`` projection items."""
    if col == "*":
        return True
    if not isinstance(col, dict):
        return False
    expr = col.get("expr")
    if classify_expression(expr) == ExprKind.STAR:
        return True
    return (
        classify_expression(expr) == ExprKind.COLUMN_REF
        and extract_scalar(expr.get("column")) == "*"
    )


def _count_joins(ast: Dict[str, Any]) -> int:
    return sum(1 for f in ast.get("from") or [] if isinstance(f, dict) and f.get("join"))


def _orderby(ast: Dict[str, Any]) -> List[Any]:
    # A set operation keeps its ORDER BY on the head select as "_orderby"
    return ast.get("orderby") or ast.get("_orderby") or []


def _limit(ast: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    for key in ("limit", "_limit"):
        limit = ast.get(key)
        if isinstance(limit, dict) and limit.get("value"):
            return limit
    return None


def has_limit(ast: Dict[str, Any]) -> bool:
    """True when the statement or its set operation has a LIMIT value."""
    return _limit(ast) is not None


def _first_table(items: Any) -> Optional[Dict[str, Any]]:
    for item in items or []:
        if isinstance(item, dict) and extract_scalar(item.get("table")):
            return item
    return None


def _first_table_name(items: Any) -> Optional[str]:
    item = _first_table(items)
    return extract_scalar(item.get("table")) if item else None
