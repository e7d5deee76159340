"""Trace output columns backwards through the operator graph.

For every column of every select node, the tracer walks incoming edges from
the select node towards the table nodes, classifying how the column changes at
each hop. The first incoming branch that yields a path wins; branches never
share their visited sets, so diamond-shaped graphs are explored independently
on every incoming path. A table node that references a CTE continues into
the CTE body, so such paths still start at a physical table.
"""

import re
from typing import AbstractSet, Any, Dict, List, Optional

from sqlflow.global_models import NodeType, TableCategory, TransformationType
from sqlflow.graph.models import ColumnInfo, FlowEdge, FlowGraph, FlowNode
from sqlflow.lineage.models import ColumnFlow, LineagePathStep
from sqlflow.utils.navigator import expr_type

NodeMap = Dict[str, FlowNode]
IncomingIndex = Dict[str, List[str]]

_BARE_IDENTIFIER = re.compile(r"^[\w.]+$")


def generate_column_flows(
    ast: Dict[str, Any], nodes: List[FlowNode], edges: List[FlowEdge]
) -> List[ColumnFlow]:
    """
    Build the complete lineage path of every output column.

    Args:
        ast: Statement AST (only SELECT statements produce flows)
        nodes: Top-level graph nodes
        edges: Top-level graph edges

    Returns:
        One ColumnFlow per output column of each select node with a
        non-empty path
    """
    if not isinstance(ast, dict) or expr_type(ast) != "select":
        return []

    node_map, incoming = _index(nodes, edges)
    ctes = _cte_index(nodes)

    flows: List[ColumnFlow] = []
    for select_node in nodes:
        if select_node.type != NodeType.SELECT or not select_node.columns:
            continue
        for column in select_node.columns:
            path = build_column_lineage_path(
                column, select_node, node_map, incoming, ctes=ctes
            )
            if path:
                flows.append(
                    ColumnFlow(
                        id=f"lineage_{select_node.id}_{column.name}",
                        output_column=column.name,
                        output_node_id=select_node.id,
                        lineage_path=path,
                    )
                )
    return flows


def build_column_lineage_path(
    column: ColumnInfo,
    current: FlowNode,
    node_map: NodeMap,
    incoming: IncomingIndex,
    visited: AbstractSet[str] = frozenset(),
    ctes: Optional[NodeMap] = None,
) -> List[LineagePathStep]:
    """
    Walk backwards from ``current`` and return the column's path, source first.

    Args:
        column: Column as it appears at ``current``
        current: Node to start from
        node_map: Node id -> node for the graph being walked
        incoming: Target node id -> source node ids, in edge order
        visited: Node ids already on this branch
        ctes: CTE name -> cte node, for following CTE references

    Returns:
        Ordered path steps; empty if ``current`` was already visited
    """
    if current.id in visited:
        return []
    visited = visited | {current.id}

    transformation = get_transformation_type(column, current)
    if current.type == NodeType.TABLE:
        transformation = TransformationType.SOURCE

    path = [_step(column, current, transformation)]
    if current.type == NodeType.TABLE:
        if current.table_category == TableCategory.CTE_REFERENCE:
            cte_path = _trace_through_cte(
                column, current, node_map, incoming, visited, ctes
            )
            if cte_path:
                path[0] = path[0].model_copy(
                    update={"transformation": TransformationType.PASSTHROUGH}
                )
                return cte_path + path
        return path

    for source_id in _ordered_sources(column, incoming.get(current.id, []), node_map):
        source_node = node_map.get(source_id)
        if source_node is None:
            continue

        source_column = find_source_column(column, source_node, current)
        if source_column is None:
            continue

        source_path = build_column_lineage_path(
            _traceable(source_column), source_node, node_map, incoming, visited, ctes
        )
        if source_path:
            return source_path + path

    if current.type == NodeType.SUBQUERY and current.children:
        child_path = _trace_into_children(column, current, visited, ctes)
        if child_path:
            return child_path + path

    if column.source_table and column.source_column:
        table_node = _match_table_by_hint(column.source_table, node_map)
        if table_node is not None and table_node.id not in visited:
            path.insert(
                0,
                LineagePathStep(
                    node_id=table_node.id,
                    node_name=table_node.label,
                    node_type=NodeType.TABLE,
                    column_name=column.source_column,
                    transformation=TransformationType.SOURCE,
                ),
            )

    return path


def find_source_column(
    target: ColumnInfo, source_node: FlowNode, target_node: FlowNode
) -> Optional[ColumnInfo]:
    """
    Determine which column of ``source_node`` feeds ``target``.

    Resolution order: explicit table/column hints matched against the source
    label, aggregate functions, window functions, the source node's own
    columns, join passthrough, and finally a same-name passthrough.
    """
    name = target.name.lower()
    expression = (target.expression or "").lower()

    if target.source_column and target.source_table:
        if target.source_table.lower() in source_node.label.lower():
            return ColumnInfo(
                name=target.source_column,
                expression=target.source_column,
                source_table=target.source_table,
            )

    if source_node.type == NodeType.AGGREGATE and source_node.aggregate_details:
        for function in source_node.aggregate_details.functions:
            output_name = function.alias or function.name
            if output_name.lower() == name or output_name.lower() in expression:
                return ColumnInfo(
                    name=output_name,
                    expression=function.expression,
                    is_aggregate=True,
                    source_column=function.source_column or output_name,
                    source_table=function.source_table,
                )

    if source_node.type == NodeType.WINDOW and source_node.window_details:
        for function in source_node.window_details.functions:
            if name in (function.name.lower(), (function.alias or "").lower()):
                return ColumnInfo(
                    name=function.alias or function.name,
                    expression=f"{function.name}() OVER (...)",
                    is_window_func=True,
                )

    for source_col in source_node.columns or []:
        source_name = source_col.name.lower()
        if source_name == name:
            return source_col
        if target.source_column and source_name == target.source_column.lower():
            return source_col
        if source_name in expression:
            return source_col

    # Joins and every other stage pass the column through with its hints
    passthrough = target.source_column or target.name
    return ColumnInfo(
        name=passthrough,
        expression=passthrough,
        source_column=target.source_column,
        source_table=target.source_table,
    )


def get_transformation_type(column: ColumnInfo, node: FlowNode) -> TransformationType:
    """Classify how ``column`` is produced at ``node``."""
    if node.type == NodeType.TABLE:
        return TransformationType.SOURCE

    # GROUP BY keys pass through aggregate nodes unchanged
    if column.is_aggregate:
        return TransformationType.AGGREGATED

    if column.is_window_func or node.type == NodeType.WINDOW:
        return TransformationType.CALCULATED

    if node.type == NodeType.JOIN:
        return TransformationType.JOINED

    if column.source_column and column.name.lower() != column.source_column.lower():
        return TransformationType.RENAMED

    if (
        column.expression
        and column.expression != column.name
        and not _BARE_IDENTIFIER.match(column.expression)
    ):
        return TransformationType.CALCULATED

    return TransformationType.PASSTHROUGH


def _index(nodes: List[FlowNode], edges: List[FlowEdge]) -> tuple[NodeMap, IncomingIndex]:
    graph = FlowGraph(nodes=nodes, edges=edges)
    return {n.id: n for n in nodes}, graph.incoming_index()


def _traceable(column: ColumnInfo) -> ColumnInfo:
    """For aggregates, the inner column rather than the output alias."""
    if (
        column.is_aggregate
        and column.source_column
        and column.source_column != column.name
    ):
        return ColumnInfo(
            name=column.source_column,
            expression=column.source_column,
            source_column=column.source_column,
            source_table=column.source_table,
        )
    return column


def _ordered_sources(
    column: ColumnInfo, sources: List[str], node_map: NodeMap
) -> List[str]:
    """Incoming sources with the ones named by the column's table hint first."""
    if not column.source_table:
        return sources
    hint = column.source_table.lower()

    def named_by_hint(source_id: str) -> bool:
        node = node_map.get(source_id)
        if node is None:
            return False
        return node.label.lower() == hint or (node.alias or "").lower() == hint

    return sorted(sources, key=lambda s: not named_by_hint(s))


def _trace_into_children(
    column: ColumnInfo,
    container: FlowNode,
    visited: AbstractSet[str],
    ctes: Optional[NodeMap] = None,
) -> List[LineagePathStep]:
    """Continue a trace inside the nested pipeline of a CTE or subquery."""
    child_nodes = container.children or []
    child_graph = FlowGraph(nodes=child_nodes, edges=container.child_edges or [])
    terminal = child_graph.terminal_node
    if terminal is None:
        return []

    node_map, incoming = _index(child_nodes, child_graph.edges)
    child_ctes = {**(ctes or {}), **_cte_index(child_nodes)}

    candidates = [terminal]
    if terminal.type != NodeType.SELECT:
        candidates = [n for n in child_nodes if n.type == NodeType.SELECT] or candidates

    for candidate in candidates:
        match = _match_output_column(column, candidate)
        if match is None:
            match = find_source_column(column, candidate, container)
        path = build_column_lineage_path(
            match, candidate, node_map, incoming, visited, child_ctes
        )
        if path:
            return path
    return []


def _trace_through_cte(
    column: ColumnInfo,
    reference: FlowNode,
    node_map: NodeMap,
    incoming: IncomingIndex,
    visited: AbstractSet[str],
    ctes: Optional[NodeMap],
) -> List[LineagePathStep]:
    """Continue a trace from a CTE reference into the CTE that defines it."""
    name = reference.label.lower()
    candidates = [
        node_map[s]
        for s in incoming.get(reference.id, [])
        if s in node_map
        and node_map[s].type == NodeType.CTE
        and _cte_name(node_map[s]) == name
    ]
    named = (ctes or {}).get(name)
    if named is not None and named.id not in {c.id for c in candidates}:
        candidates.append(named)

    for cte_node in candidates:
        if cte_node.id in visited:
            continue
        child_path = _trace_into_children(
            column, cte_node, visited | {cte_node.id}, ctes
        )
        # Only a trace that reaches a real table replaces the reference
        if child_path and child_path[0].transformation == TransformationType.SOURCE:
            return child_path + [
                _step(column, cte_node, get_transformation_type(column, cte_node))
            ]
    return []


def _step(
    column: ColumnInfo, node: FlowNode, transformation: TransformationType
) -> LineagePathStep:
    return LineagePathStep(
        node_id=node.id,
        node_name=node.label,
        node_type=node.type,
        column_name=column.name,
        transformation=transformation,
        expression=column.expression if column.expression != column.name else None,
    )


def _cte_name(node: FlowNode) -> str:
    # Labels are "WITH name" or "WITH RECURSIVE name"
    return node.label.split()[-1].lower() if node.label else ""


def _cte_index(nodes: List[FlowNode]) -> NodeMap:
    return {_cte_name(n): n for n in nodes if n.type == NodeType.CTE}


def _match_output_column(column: ColumnInfo, node: FlowNode) -> Optional[ColumnInfo]:
    wanted = [column.name.lower()]
    if column.source_column:
        wanted.append(column.source_column.lower())
    for name in wanted:
        for candidate in node.columns or []:
            if candidate.name.lower() == name:
                return candidate
    return None


def _match_table_by_hint(source_table: str, node_map: NodeMap) -> Optional[FlowNode]:
    """
    Find a table node for a table hint: exact name, then short alias prefix,
    then containment either way.
    """
    hint = source_table.lower()
    tables = [n for n in node_map.values() if n.type == NodeType.TABLE]

    for node in tables:
        if node.label.lower() == hint or (node.alias or "").lower() == hint:
            return node

    if len(hint) <= 2:
        for node in tables:
            if node.label.lower().startswith(hint):
                return node
        return None

    for node in tables:
        label = node.label.lower()
        if hint in label or label in hint:
            return node
    return None
