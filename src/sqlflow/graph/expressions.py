"""Render and inspect projection expressions of the statement AST."""

from typing import Any, Iterable, List, Optional

from sqlflow.graph.models import (
    AggregateFunctionDetail,
    CaseCondition,
    CaseDetail,
    ColumnInfo,
    WindowFunctionDetail,
)
from sqlflow.utils.navigator import (
    AGGREGATE_FUNCTIONS,
    WINDOW_FUNCTIONS,
    ExprKind,
    classify_expression,
    expr_type,
    extract_scalar,
    function_args,
    function_name,
    is_aggregate_call,
)

MAX_CONDITIONS = 5


def format_expression(expr: Any) -> str:
    """
    Render an expression AST back into compact SQL-like text.

    Unknown shapes fall back to their first scalar, then to "expr".
    """
    if expr is None:
        return ""

    kind = classify_expression(expr)

    if kind == ExprKind.COLUMN_REF:
        table = extract_scalar(expr.get("table"))
        column = extract_scalar(expr.get("column")) or "?"
        return f"{table}.{column}" if table else column

    if kind == ExprKind.STAR:
        return "*"

    if kind == ExprKind.FUNCTION_CALL:
        name = function_name(expr) or ("AGG" if expr_type(expr) == "aggr_func" else "FUNC")
        args = ", ".join(format_expression(a) for a in function_args(expr))
        container = expr.get("args")
        distinct = (
            "DISTINCT "
            if isinstance(container, dict) and container.get("distinct")
            else ""
        )
        rendered = f"{name}({distinct}{args})"
        if expr.get("over"):
            rendered += " OVER (...)"
        return rendered

    if kind == ExprKind.BINARY_EXPR:
        left = format_expression(expr.get("left"))
        right = format_expression(expr.get("right"))
        operator = expr.get("operator") or "?"
        if operator in ("IN", "BETWEEN") and expr_type(expr.get("right")) == "expr_list":
            joiner = " AND " if operator == "BETWEEN" else ", "
            values = joiner.join(format_expression(v) for v in expr["right"]["value"])
            right = values if operator == "BETWEEN" else f"({values})"
        return f"{left} {operator} {right}"

    if kind == ExprKind.CAST:
        target = expr.get("target") or {}
        data_type = target.get("dataType") if isinstance(target, dict) else target
        return f"CAST({format_expression(expr.get('expr'))} AS {data_type or 'type'})"

    if kind == ExprKind.CASE:
        parts = ["CASE"]
        if expr.get("expr"):
            parts.append(format_expression(expr["expr"]))
        for branch in expr.get("args") or []:
            if not isinstance(branch, dict):
                continue
            if branch.get("type") == "else":
                parts.append(f"ELSE {format_expression(branch.get('result'))}")
            else:
                parts.append(
                    f"WHEN {format_expression(branch.get('cond'))} "
                    f"THEN {format_expression(branch.get('result'))}"
                )
        parts.append("END")
        return " ".join(parts)

    if kind == ExprKind.LITERAL:
        value = expr.get("value")
        if expr_type(expr) == "null":
            return "NULL"
        if expr_type(expr) in ("single_quote_string", "string"):
            return f"'{value}'"
        if isinstance(value, bool):
            return "TRUE" if value else "FALSE"
        return str(value)

    if kind == ExprKind.SUBQUERY:
        return "(subquery)"

    if expr_type(expr) == "unary_expr":
        operator = expr.get("operator") or ""
        separator = " " if operator.isalpha() else ""
        return f"{operator}{separator}{format_expression(expr.get('expr'))}"

    if expr_type(expr) == "expr_list":
        return ", ".join(format_expression(v) for v in expr.get("value") or [])

    return extract_scalar(expr) or "expr"


def format_condition(expr: Any) -> str:
    """Render a single predicate, or "condition" for non-binary shapes."""
    if expr is None:
        return "?"
    if classify_expression(expr) == ExprKind.BINARY_EXPR:
        return format_expression(expr)
    if expr_type(expr) == "unary_expr":
        return format_expression(expr)
    return "condition"


def extract_conditions(where: Any) -> List[str]:
    """
    Flatten a predicate tree into its leaf conditions.

    AND/OR chains are split; at most MAX_CONDITIONS are returned.
    """
    conditions: List[str] = []
    _collect_conditions(where, conditions, 0)
    return conditions[:MAX_CONDITIONS]


def _collect_conditions(expr: Any, conditions: List[str], depth: int) -> None:
    if expr is None or depth > 3:
        return
    if classify_expression(expr) == ExprKind.BINARY_EXPR:
        if str(expr.get("operator", "")).upper() in ("AND", "OR"):
            _collect_conditions(expr.get("left"), conditions, depth + 1)
            _collect_conditions(expr.get("right"), conditions, depth + 1)
        else:
            conditions.append(format_condition(expr))
    elif expr_type(expr) == "unary_expr":
        conditions.append(format_condition(expr))


def projection_columns(columns: Any) -> List[Any]:
    """SELECT list entries, treating the legacy bare "*" as an empty list."""
    if not isinstance(columns, list):
        return []
    return columns


def column_labels(columns: Any) -> List[str]:
    """Display labels for the SELECT list (alias, else rendered expression)."""
    labels = []
    for col in projection_columns(columns):
        if col == "*":
            labels.append("*")
            continue
        if not isinstance(col, dict):
            continue
        alias = extract_scalar(col.get("as"))
        labels.append(alias or format_expression(col.get("expr")) or "expr")
    return labels


def column_infos(
    columns: Any, aggregates: Iterable[str] = AGGREGATE_FUNCTIONS
) -> List[ColumnInfo]:
    """
    Describe each projected column with its provenance hints.

    The name prefers the alias, then the referenced column, function name or
    literal value. Source hints are read from the expression itself, or from
    the inner expression of a CAST.
    """
    infos: List[ColumnInfo] = []
    for col in projection_columns(columns):
        if col == "*":
            infos.append(ColumnInfo(name="*", expression="*", source_column="*"))
            continue
        if not isinstance(col, dict):
            continue

        expr = col.get("expr")
        expr_dict = expr if isinstance(expr, dict) else {}
        name = (
            extract_scalar(col.get("as"))
            or extract_scalar(expr_dict.get("column"))
            or extract_scalar(expr_dict.get("name"))
            or extract_scalar(expr_dict.get("value"))
            or "expr"
        )
        expression = format_expression(expr) if expr else name

        source = expr_dict
        if classify_expression(expr) == ExprKind.CAST and isinstance(
            expr_dict.get("expr"), dict
        ):
            source = expr_dict["expr"]

        infos.append(
            ColumnInfo(
                name=name,
                expression=expression,
                source_column=extract_scalar(source.get("column")),
                source_table=extract_scalar(source.get("table")),
                is_aggregate=is_aggregate_call(expr, aggregates),
                is_window_func=bool(expr_dict.get("over")),
            )
        )
    return infos


def aggregate_function_details(
    columns: Any, aggregates: Iterable[str] = AGGREGATE_FUNCTIONS
) -> List[AggregateFunctionDetail]:
    """
    Collect aggregate calls anywhere inside the projection.

    The alias is attached only when the projected expression is itself a
    single aggregate call. Repeated calls are de-duplicated, keeping the first
    alias seen.
    """
    aggregate_names = set(aggregates)
    details: List[AggregateFunctionDetail] = []

    for col in projection_columns(columns):
        if not isinstance(col, dict) or not col.get("expr"):
            continue

        start = len(details)
        _collect_aggregates(col["expr"], details, aggregate_names)
        alias = extract_scalar(col.get("as"))
        if alias and len(details) - start == 1 and is_aggregate_call(
            col["expr"], aggregate_names
        ):
            details[start].alias = alias

    deduped: List[AggregateFunctionDetail] = []
    seen = {}
    for detail in details:
        key = (detail.name, detail.expression, detail.source_table, detail.source_column)
        if key not in seen:
            seen[key] = len(deduped)
            deduped.append(detail)
        elif detail.alias and not deduped[seen[key]].alias:
            deduped[seen[key]].alias = detail.alias
    return deduped


def _collect_aggregates(
    expr: Any, details: List[AggregateFunctionDetail], aggregates: set
) -> None:
    if isinstance(expr, list):
        for item in expr:
            _collect_aggregates(item, details, aggregates)
        return
    if not isinstance(expr, dict):
        return

    if is_aggregate_call(expr, aggregates):
        source_column = None
        source_table = None
        for arg in function_args(expr):
            target = arg
            if classify_expression(arg) == ExprKind.CAST:
                target = arg.get("expr")
            if classify_expression(target) == ExprKind.COLUMN_REF:
                source_column = extract_scalar(target.get("column"))
                source_table = extract_scalar(target.get("table"))
                break

        details.append(
            AggregateFunctionDetail(
                name=function_name(expr) or "AGG",
                expression=format_expression(expr),
                source_column=source_column,
                source_table=source_table,
            )
        )

    # Aggregates may be nested in CASE branches or scalar function arguments
    for key, value in expr.items():
        if key != "ast" and isinstance(value, (dict, list)):
            _collect_aggregates(value, details, aggregates)


def window_function_details(
    columns: Any, window_functions: Iterable[str] = WINDOW_FUNCTIONS
) -> List[WindowFunctionDetail]:
    """Collect projected expressions that carry an OVER clause."""
    known = set(window_functions)
    details: List[WindowFunctionDetail] = []

    for col in projection_columns(columns):
        if not isinstance(col, dict):
            continue
        expr = col.get("expr")
        if not isinstance(expr, dict) or not expr.get("over"):
            continue

        name = function_name(expr) or "WINDOW"
        if name not in known and name not in AGGREGATE_FUNCTIONS:
            # Some dialects wrap the function one level deeper
            name = extract_scalar(expr.get("name")) or name
        over = expr["over"] if isinstance(expr["over"], dict) else {}

        details.append(
            WindowFunctionDetail(
                name=name.upper(),
                alias=extract_scalar(col.get("as")),
                partition_by=[
                    format_expression(p) or "?" for p in over.get("partitionby") or []
                ],
                order_by=[
                    f"{format_expression(o.get('expr')) or '?'} {o.get('type') or ''}".strip()
                    for o in over.get("orderby") or []
                    if isinstance(o, dict)
                ],
                frame=over.get("frame"),
            )
        )
    return details


def case_details(columns: Any) -> List[CaseDetail]:
    """Collect CASE expressions projected at the top level."""
    cases: List[CaseDetail] = []
    for col in projection_columns(columns):
        if not isinstance(col, dict):
            continue
        expr = col.get("expr")
        if classify_expression(expr) != ExprKind.CASE:
            continue

        conditions = []
        else_value: Optional[str] = None
        for branch in expr.get("args") or []:
            if not isinstance(branch, dict):
                continue
            if branch.get("type") == "else":
                else_value = format_expression(branch.get("result"))
            elif branch.get("cond") is not None:
                conditions.append(
                    CaseCondition(
                        when=format_expression(branch.get("cond")) or "?",
                        then=format_expression(branch.get("result")) or "?",
                    )
                )

        if conditions:
            cases.append(
                CaseDetail(
                    conditions=conditions,
                    else_value=else_value,
                    alias=extract_scalar(col.get("as")),
                )
            )
    return cases


def collect_subqueries(expr: Any) -> List[dict]:
    """Statement ASTs of subqueries nested anywhere in an expression."""
    found: List[dict] = []
    _collect_subqueries(expr, found)
    return found


def _collect_subqueries(expr: Any, found: List[dict]) -> None:
    if isinstance(expr, list):
        for item in expr:
            _collect_subqueries(item, found)
        return
    if not isinstance(expr, dict):
        return
    if classify_expression(expr) == ExprKind.SUBQUERY and isinstance(
        expr.get("ast"), dict
    ):
        found.append(expr["ast"])
        return
    for value in expr.values():
        if isinstance(value, (dict, list)):
            _collect_subqueries(value, found)
