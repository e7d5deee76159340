"""Helpers for walking the loosely-typed statement AST.

The AST produced by :mod:`sqlflow.parser` is made of
plain dicts keyed by clause name, expressions tagged by ``type``.
Identifiers are not always bare strings, so every component reads scalar
values through :func:`extract_scalar` and dispatches on expression shape
through :func:`classify_expression`.
"""

from enum import Enum
from typing import Any, FrozenSet, Iterable, List, Optional

SCALAR_KEYS = ("value", "name", "column", "table", "expr")

AGGREGATE_FUNCTIONS: FrozenSet[str] = frozenset(
    {
        "ANY_VALUE",
        "APPROX_COUNT_DISTINCT",
        "ARRAY_AGG",
        "AVG",
        "BIT_AND",
        "BIT_OR",
        "BOOL_AND",
        "BOOL_OR",
        "COLLECT_LIST",
        "COLLECT_SET",
        "COUNT",
        "COUNT_IF",
        "GROUP_CONCAT",
        "LISTAGG",
        "MAX",
        "MEDIAN",
        "MIN",
        "STDDEV",
        "STDDEV_POP",
        "STDDEV_SAMP",
        "STRING_AGG",
        "SUM",
        "VARIANCE",
        "VAR_POP",
        "VAR_SAMP",
    }
)

WINDOW_FUNCTIONS: FrozenSet[str] = frozenset(
    {
        "CUME_DIST",
        "DENSE_RANK",
        "FIRST_VALUE",
        "LAG",
        "LAST_VALUE",
        "LEAD",
        "NTH_VALUE",
        "NTILE",
        "PERCENT_RANK",
        "RANK",
        "ROW_NUMBER",
    }
)

LITERAL_TYPES = frozenset(
    {
        "number",
        "string",
        "single_quote_string",
        "double_quote_string",
        "bool",
        "boolean",
        "null",
        "param",
    }
)


class ExprKind(str, Enum):
    """Known expression shapes of the statement AST."""

    COLUMN_REF = "column_ref"
    BINARY_EXPR = "binary_expr"
    FUNCTION_CALL = "function_call"
    CASE = "case"
    CAST = "cast"
    LITERAL = "literal"
    STAR = "star"
    SUBQUERY = "subquery"
    UNKNOWN = "unknown"


def extract_scalar(node: Any, max_depth: int = 6) -> Optional[str]:
    """
    Find the first scalar leaf reachable from an AST fragment.

    Dicts are probed through SCALAR_KEYS in order, lists left to right,
    depth-first. Never raises.

    Args:
        node: Any AST fragment (dict, list, scalar or None)
        max_depth: Maximum nesting depth to descend into

    Returns:
        The scalar rendered as a string, or None if nothing usable was found
    """
    return _extract_scalar(node, 0, max_depth)


def _extract_scalar(node: Any, depth: int, max_depth: int) -> Optional[str]:
    if node is None or depth > max_depth:
        return None

    if isinstance(node, bool):
        return "true" if node else "false"
    if isinstance(node, str):
        return node or None
    if isinstance(node, (int, float)):
        return str(node)

    if isinstance(node, (list, tuple)):
        for item in node:
            extracted = _extract_scalar(item, depth + 1, max_depth)
            if extracted:
                return extracted
        return None

    if isinstance(node, dict):
        for key in SCALAR_KEYS:
            if key in node:
                extracted = _extract_scalar(node[key], depth + 1, max_depth)
                if extracted:
                    return extracted

    return None


def expr_type(node: Any) -> str:
    """Lower-cased ``type`` tag of an AST node, or an empty string."""
    if isinstance(node, dict) and isinstance(node.get("type"), str):
        return node["type"].lower()
    return ""


def classify_expression(node: Any) -> ExprKind:
    """
    Classify an expression node into one of the known shapes.

    A dict carrying a ``column`` key without a type tag is treated as a
    column reference, matching what older parser outputs produce.

    Args:
        node: Expression AST node

    Returns:
        The ExprKind of the node (UNKNOWN for anything unrecognized)
    """
    if not isinstance(node, dict):
        return ExprKind.UNKNOWN

    kind = expr_type(node)
    if kind == "column_ref":
        return ExprKind.COLUMN_REF
    if kind == "binary_expr":
        return ExprKind.BINARY_EXPR
    if kind in ("aggr_func", "function"):
        return ExprKind.FUNCTION_CALL
    if kind == "case":
        return ExprKind.CASE
    if kind == "cast":
        return ExprKind.CAST
    if kind == "star":
        return ExprKind.STAR
    if kind == "subquery" or (not kind and "ast" in node):
        return ExprKind.SUBQUERY
    if kind in LITERAL_TYPES:
        return ExprKind.LITERAL
    if not kind and "column" in node:
        return ExprKind.COLUMN_REF
    return ExprKind.UNKNOWN


def function_name(node: Any) -> str:
    """Upper-cased name of a function or aggregate call, or ''."""
    if classify_expression(node) != ExprKind.FUNCTION_CALL:
        return ""
    name = extract_scalar(node.get("name"))
    return name.upper() if name else ""


def function_args(node: Any) -> List[Any]:
    """
    Argument expressions of a function or aggregate call.

    Handles the three argument container shapes: ``{"expr": arg}``,
    ``{"type": "expr_list", "value": [...]}`` and a bare list.
    """
    if not isinstance(node, dict):
        return []

    args = node.get("args")
    if args is None:
        return []
    if isinstance(args, list):
        return args
    if isinstance(args, dict):
        if isinstance(args.get("value"), list):
            return args["value"]
        if "expr" in args:
            inner = args["expr"]
            return inner if isinstance(inner, list) else [inner]
        return [args]
    return []


def is_aggregate_call(
    node: Any, aggregates: Iterable[str] = AGGREGATE_FUNCTIONS
) -> bool:
    """
    Whether an expression is itself an aggregate function call.

    Windowed aggregates (``SUM(x) OVER (...)``) are window functions, not
    aggregates, and return False.
    """
    if classify_expression(node) != ExprKind.FUNCTION_CALL:
        return False
    if node.get("over"):
        return False
    if expr_type(node) == "aggr_func":
        return True
    return function_name(node) in set(aggregates)


def iter_child_expressions(node: Any) -> List[Any]:
    """Direct sub-expressions of an expression, in source order."""
    kind = classify_expression(node)
    if kind == ExprKind.BINARY_EXPR:
        return [node.get("left"), node.get("right")]
    if kind == ExprKind.FUNCTION_CALL:
        return list(function_args(node))
    if kind == ExprKind.CAST:
        return [node.get("expr")]
    if kind == ExprKind.CASE:
        children = [node.get("expr")]
        for branch in node.get("args") or []:
            if isinstance(branch, dict):
                children.append(branch.get("cond"))
                children.append(branch.get("result"))
        return [c for c in children if c is not None]
    if isinstance(node, dict) and expr_type(node) in ("unary_expr", "expr_list"):
        value = node.get("expr", node.get("value"))
        return value if isinstance(value, list) else [value]
    return []
