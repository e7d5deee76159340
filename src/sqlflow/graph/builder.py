"""Build the operator graph of a statement AST."""

from typing import Any, Dict, Iterable, List, Optional, Set

from sqlflow.errors import GraphBuildError
from sqlflow.global_models import AccessMode, ClauseType, NodeType, TableCategory
from sqlflow.graph.expressions import (
    aggregate_function_details,
    case_details,
    collect_subqueries,
    column_infos,
    column_labels,
    extract_conditions,
    format_condition,
    format_expression,
    window_function_details,
)
from sqlflow.graph.models import (
    AggregateDetails,
    CaseDetails,
    ColumnInfo,
    FlowEdge,
    FlowGraph,
    FlowNode,
    QueryStats,
    WindowDetails,
)
from sqlflow.utils.navigator import (
    AGGREGATE_FUNCTIONS,
    WINDOW_FUNCTIONS,
    expr_type,
    extract_scalar,
)

MAX_INLINE_COLUMNS = 5


class IdGenerator:
    """Sequential node and edge ids, scoped to one parse."""

    def __init__(self) -> None:
        self._counter = 0

    def next_id(self, prefix: str) -> str:
        """Return a new id of the form ``<prefix>_<n>``."""
        self._counter += 1
        return f"{prefix}_{self._counter}"

    def reset(self) -> None:
        """Restart numbering so repeated parses yield identical ids."""
        self._counter = 0


class GraphBuilder:
    """Derive a pipeline of FlowNodes and FlowEdges from a statement AST."""

    def __init__(
        self,
        aggregates: Optional[Iterable[str]] = None,
        window_functions: Optional[Iterable[str]] = None,
        id_generator: Optional[IdGenerator] = None,
    ):
        """
        Initialize the graph builder.

        Args:
            aggregates: Extra aggregate function names on top of the built-ins
            window_functions: Extra window function names on top of the built-ins
            id_generator: Id source (a fresh IdGenerator by default)
        """
        self.aggregates = AGGREGATE_FUNCTIONS | {a.upper() for a in aggregates or []}
        self.window_functions = WINDOW_FUNCTIONS | {
            w.upper() for w in window_functions or []
        }
        self.ids = id_generator or IdGenerator()
        self.stats = QueryStats()

    def build(self, ast: Dict[str, Any]) -> FlowGraph:
        """
        Build the operator graph for one statement.

        Ids and statistics are reset first, so building the same AST twice
        produces identical graphs.

        Args:
            ast: Statement AST

        Returns:
            FlowGraph with at least one node

        Raises:
            GraphBuildError: If the statement type is not supported
        """
        self.ids.reset()
        self.stats = QueryStats()

        if not isinstance(ast, dict):
            raise GraphBuildError("Statement AST must be a mapping")

        nodes: List[FlowNode] = []
        edges: List[FlowEdge] = []

        statement_type = expr_type(ast)
        if statement_type == "select":
            self._select(ast, nodes, edges, set())
        elif statement_type == "insert":
            self._insert(ast, nodes, edges)
        elif statement_type in ("update", "delete"):
            self._update_or_delete(ast, statement_type, nodes, edges)
        elif statement_type == "create":
            self._create(ast, nodes, edges)
        else:
            raise GraphBuildError(
                f"Unsupported statement type: {statement_type.upper() or 'UNKNOWN'}"
            )

        if not nodes:
            nodes.append(
                FlowNode(
                    id=self.ids.next_id("result"),
                    type=NodeType.RESULT,
                    label="Empty Query",
                    description="No operations found in the statement",
                )
            )

        return FlowGraph(nodes=nodes, edges=edges)

    def _edge(
        self,
        edges: List[FlowEdge],
        source: Optional[str],
        target: str,
        clause_type: Optional[ClauseType] = None,
        sql_clause: Optional[str] = None,
        label: Optional[str] = None,
    ) -> None:
        if source is None:
            return
        edges.append(
            FlowEdge(
                id=self.ids.next_id("e"),
                source=source,
                target=target,
                label=label,
                sql_clause=sql_clause or None,
                clause_type=clause_type,
            )
        )

    def _select(
        self,
        stmt: Dict[str, Any],
        nodes: List[FlowNode],
        edges: List[FlowEdge],
        cte_names: Set[str],
    ) -> Optional[str]:
        """Append the pipeline of one SELECT and return its terminal node id."""
        scope_ctes = set(cte_names)
        ctes = [c for c in stmt.get("with") or [] if isinstance(c, dict)]
        for cte in ctes:
            scope_ctes.add(_cte_name(cte).lower())

        cte_nodes = [self._cte(cte, nodes, scope_ctes) for cte in ctes]

        from_items = [i for i in stmt.get("from") or [] if isinstance(i, dict)]
        sources = []
        for item in from_items:
            node = self._from_item(item, nodes, scope_ctes, as_join=bool(item.get("join")))
            if node is not None:
                sources.append((item, node))

        # CTEs feed the tables that reference them, else the first source
        for cte_node in cte_nodes:
            cte_label = cte_node.label.split()[-1].lower()
            targets = [
                node.id
                for _, node in sources
                if node.table_category == TableCategory.CTE_REFERENCE
                and node.label.lower() == cte_label
            ]
            if not targets and sources:
                targets = [sources[0][1].id]
            for target in targets:
                self._edge(edges, cte_node.id, target)

        previous = sources[0][1].id if sources else None
        for item, node in sources[1:]:
            previous = self._join(item, node, previous, nodes, edges)

        where = stmt.get("where")
        if where:
            conditions = extract_conditions(where) or [format_condition(where)]
            self.stats.conditions += len(conditions)
            filter_id = self.ids.next_id("filter")
            nodes.append(
                FlowNode(
                    id=filter_id,
                    type=NodeType.FILTER,
                    label="WHERE",
                    description="Filter rows",
                    details=conditions,
                )
            )
            self._edge(
                edges, previous, filter_id, ClauseType.WHERE, " AND ".join(conditions)
            )
            previous = filter_id

        columns = stmt.get("columns")
        group_by = [format_expression(g) or "?" for g in stmt.get("groupby") or []]
        functions = aggregate_function_details(columns, self.aggregates)
        having = stmt.get("having")

        if group_by or functions:
            self.stats.aggregations += 1
            aggregate_id = self.ids.next_id("aggregate")
            if group_by and functions:
                label = "Group & Aggregate"
            elif group_by:
                label = "Group By"
            else:
                label = "Aggregate"

            details = []
            if group_by:
                details.append(f"Columns: {', '.join(group_by)}")
            details.extend(f.expression for f in functions)

            count = len(functions)
            nodes.append(
                FlowNode(
                    id=aggregate_id,
                    type=NodeType.AGGREGATE,
                    label=label,
                    description=(
                        f"{count} aggregate function{'s' if count != 1 else ''}"
                        if functions
                        else "Aggregate rows"
                    ),
                    details=details,
                    aggregate_details=AggregateDetails(
                        functions=functions,
                        group_by=group_by,
                        having=format_condition(having) if having else None,
                    ),
                )
            )
            self._edge(edges, previous, aggregate_id)
            previous = aggregate_id

        if having:
            having_id = self.ids.next_id("filter")
            condition = format_condition(having)
            nodes.append(
                FlowNode(
                    id=having_id,
                    type=NodeType.FILTER,
                    label="HAVING",
                    description="Filter groups",
                    details=[condition],
                )
            )
            self._edge(edges, previous, having_id, ClauseType.HAVING, condition)
            previous = having_id

        windows = window_function_details(columns, self.window_functions)
        if windows:
            self.stats.window_functions += len(windows)
            window_id = self.ids.next_id("window")
            nodes.append(
                FlowNode(
                    id=window_id,
                    type=NodeType.WINDOW,
                    label="WINDOW",
                    description=_plural(len(windows), "window function"),
                    details=[w.name for w in windows],
                    window_details=WindowDetails(functions=windows),
                )
            )
            self._edge(edges, previous, window_id)
            previous = window_id

        cases = case_details(columns)
        if cases:
            case_id = self.ids.next_id("case")
            nodes.append(
                FlowNode(
                    id=case_id,
                    type=NodeType.CASE,
                    label="CASE",
                    description=_plural(len(cases), "CASE statement"),
                    case_details=CaseDetails(cases=cases),
                )
            )
            self._edge(edges, previous, case_id)
            previous = case_id

        previous = self._sort_and_limit(
            stmt.get("orderby"), stmt.get("limit"), previous, nodes, edges
        )

        if isinstance(columns, list) and columns:
            select_id = self.ids.next_id("select")
            labels = column_labels(columns)
            nodes.append(
                FlowNode(
                    id=select_id,
                    type=NodeType.SELECT,
                    label="SELECT",
                    description="Project columns",
                    details=(
                        labels
                        if len(labels) <= MAX_INLINE_COLUMNS
                        else [f"{len(labels)} columns"]
                    ),
                    columns=column_infos(columns, self.aggregates),
                )
            )
            self._edge(edges, previous, select_id)
            previous = select_id

            seen = {node.label.lower() for _, node in sources}
            for table in self._scalar_subquery_tables(stmt, scope_ctes):
                if table.lower() in seen:
                    continue
                seen.add(table.lower())
                self.stats.tables += 1
                table_id = self.ids.next_id("table")
                nodes.append(
                    FlowNode(
                        id=table_id,
                        type=NodeType.TABLE,
                        label=table,
                        description="Scalar subquery source",
                        table_category=TableCategory.PHYSICAL,
                        access_mode=AccessMode.READ,
                    )
                )
                self._edge(
                    edges, table_id, select_id, ClauseType.FLOW, "Subquery source"
                )

        following = stmt.get("_next")
        if isinstance(following, dict) and previous is not None:
            next_terminal = self._select(following, nodes, edges, scope_ctes)
            if next_terminal is not None:
                self.stats.unions += 1
                set_op = str(stmt.get("set_op") or "union").upper()
                details = []
                left_tables = _statement_tables(stmt)
                right_tables = _statement_tables(following)
                if left_tables:
                    details.append(f"Left: {', '.join(left_tables)}")
                if right_tables:
                    details.append(f"Right: {', '.join(right_tables)}")

                union_id = self.ids.next_id("union")
                nodes.append(
                    FlowNode(
                        id=union_id,
                        type=NodeType.UNION,
                        label=set_op,
                        description=f"{set_op} operation",
                        details=details,
                    )
                )
                self._edge(edges, previous, union_id)
                self._edge(edges, next_terminal, union_id)
                previous = union_id

                previous = self._sort_and_limit(
                    stmt.get("_orderby"), stmt.get("_limit"), previous, nodes, edges
                )

        return previous

    def _sort_and_limit(
        self,
        orderby: Any,
        limit: Any,
        previous: Optional[str],
        nodes: List[FlowNode],
        edges: List[FlowEdge],
    ) -> Optional[str]:
        orderby = [o for o in orderby or [] if isinstance(o, dict)]
        if orderby:
            sort_id = self.ids.next_id("sort")
            sort_columns = ", ".join(
                f"{format_expression(o.get('expr')) or '?'} {o.get('type') or 'ASC'}"
                for o in orderby
            )
            nodes.append(
                FlowNode(
                    id=sort_id,
                    type=NodeType.SORT,
                    label="ORDER BY",
                    description="Sort results",
                    details=[sort_columns],
                )
            )
            self._edge(edges, previous, sort_id)
            previous = sort_id

        limit_value = _limit_value(limit)
        if limit_value is not None:
            limit_id = self.ids.next_id("limit")
            nodes.append(
                FlowNode(
                    id=limit_id,
                    type=NodeType.LIMIT,
                    label="LIMIT",
                    description="Limit rows",
                    details=[f"{limit_value} rows"],
                )
            )
            self._edge(edges, previous, limit_id)
            previous = limit_id

        return previous

    def _child_pipeline(
        self, stmt: Any, cte_names: Set[str]
    ) -> tuple[List[FlowNode], List[FlowEdge]]:
        child_nodes: List[FlowNode] = []
        child_edges: List[FlowEdge] = []
        if isinstance(stmt, dict) and expr_type(stmt) == "select":
            self._select(stmt, child_nodes, child_edges, cte_names)
        return child_nodes, child_edges

    def _cte(
        self, cte: Dict[str, Any], nodes: List[FlowNode], cte_names: Set[str]
    ) -> FlowNode:
        self.stats.ctes += 1
        cte_id = self.ids.next_id("cte")
        name = _cte_name(cte)
        recursive = bool(cte.get("recursive"))

        stmt = cte.get("stmt")
        body = stmt.get("ast") if isinstance(stmt, dict) else None
        children, child_edges = self._child_pipeline(body, cte_names)
        terminal = _terminal_select(children, child_edges)

        node = FlowNode(
            id=cte_id,
            type=NodeType.CTE,
            label=f"WITH RECURSIVE {name}" if recursive else f"WITH {name}",
            description=(
                "Recursive Common Table Expression"
                if recursive
                else "Common Table Expression"
            ),
            table_category=TableCategory.DERIVED,
            access_mode=AccessMode.DERIVED,
            columns=terminal.columns if terminal else None,
            children=children or None,
            child_edges=child_edges or None,
        )
        nodes.append(node)
        return node

    def _from_item(
        self,
        item: Dict[str, Any],
        nodes: List[FlowNode],
        cte_names: Set[str],
        as_join: bool = False,
    ) -> Optional[FlowNode]:
        alias = extract_scalar(item.get("as"))
        expr = item.get("expr")

        if isinstance(expr, dict) and isinstance(expr.get("ast"), dict):
            self.stats.subqueries += 1
            children, child_edges = self._child_pipeline(expr["ast"], cte_names)
            terminal = _terminal_select(children, child_edges)
            node = FlowNode(
                id=self.ids.next_id("subquery"),
                type=NodeType.SUBQUERY,
                label=alias or "subquery",
                description=(
                    f"Derived table with {len(children)} operations"
                    if children
                    else "Derived table"
                ),
                alias=alias,
                table_category=TableCategory.DERIVED,
                access_mode=AccessMode.DERIVED,
                columns=terminal.columns if terminal else None,
                children=children or None,
                child_edges=child_edges or None,
            )
            nodes.append(node)
            return node

        function = extract_scalar(item.get("table_function"))
        if function:
            self.stats.tables += 1
            details = [f"Function: {function}"]
            label = alias or function
            if alias and alias != label:
                details.append(f"Alias: {alias}")
            node = FlowNode(
                id=self.ids.next_id("table"),
                type=NodeType.TABLE,
                label=label,
                description=(
                    f"Joined table function ({function})"
                    if as_join
                    else f"Table function source ({function})"
                ),
                details=details,
                alias=alias,
                table_category=TableCategory.TABLE_FUNCTION,
                access_mode=AccessMode.READ,
            )
            nodes.append(node)
            return node

        table = extract_scalar(item.get("table"))
        if not table:
            return None

        self.stats.tables += 1
        is_cte = table.lower() in cte_names
        if is_cte:
            description = "Joined CTE reference" if as_join else "CTE reference"
        else:
            description = "Joined table" if as_join else "Source table"

        details = []
        schema = extract_scalar(item.get("db"))
        if schema:
            details.append(f"Schema: {schema}")
        if alias:
            details.append(f"Alias: {alias}")

        node = FlowNode(
            id=self.ids.next_id("table"),
            type=NodeType.TABLE,
            label=table,
            description=description,
            details=details,
            alias=alias,
            table_category=(
                TableCategory.CTE_REFERENCE if is_cte else TableCategory.PHYSICAL
            ),
            access_mode=AccessMode.READ,
        )
        nodes.append(node)
        return node

    def _join(
        self,
        item: Dict[str, Any],
        right: FlowNode,
        left_id: Optional[str],
        nodes: List[FlowNode],
        edges: List[FlowEdge],
    ) -> str:
        # Comma-separated tables are implicit joins, not counted as JOINs
        if item.get("join"):
            self.stats.joins += 1
        join_id = self.ids.next_id("join")
        join_type = str(item.get("join") or "CROSS JOIN").upper()
        display = right.label
        if right.alias and right.alias != right.label:
            display = f"{right.label} {right.alias}"

        condition = ""
        if item.get("on"):
            condition = format_condition(item["on"])
        elif item.get("using"):
            condition = f"USING ({', '.join(str(u) for u in item['using'])})"

        details = [condition] if condition else []
        details.append(display)

        nodes.append(
            FlowNode(
                id=join_id,
                type=NodeType.JOIN,
                label=join_type,
                description=(
                    f"Join with {display}"
                    if item.get("join")
                    else f"Implicit join with {display}"
                ),
                details=details,
                join_type=join_type,
            )
        )
        self._edge(edges, left_id, join_id, ClauseType.JOIN, condition)
        if right.id != left_id:
            self._edge(edges, right.id, join_id, ClauseType.ON, condition)
        return join_id

    def _scalar_subquery_tables(
        self, stmt: Dict[str, Any], cte_names: Set[str]
    ) -> List[str]:
        """Physical tables read by subqueries nested in scalar expressions."""
        expressions = [stmt.get("where"), stmt.get("having")]
        for col in stmt.get("columns") or []:
            if isinstance(col, dict):
                expressions.append(col.get("expr"))
        for order in stmt.get("orderby") or []:
            if isinstance(order, dict):
                expressions.append(order.get("expr"))
        for item in stmt.get("from") or []:
            if isinstance(item, dict):
                expressions.append(item.get("on"))

        tables: List[str] = []
        for subquery in collect_subqueries([e for e in expressions if e]):
            _collect_tables(subquery, tables, {c.lower() for c in cte_names})
        return tables

    def _insert(
        self, ast: Dict[str, Any], nodes: List[FlowNode], edges: List[FlowEdge]
    ) -> None:
        target = _first_table(ast.get("table"))
        previous = None

        source = ast.get("select")
        values = ast.get("values")
        if isinstance(source, dict):
            previous = self._select(source, nodes, edges, set())
        elif values:
            values_id = self.ids.next_id("result")
            nodes.append(
                FlowNode(
                    id=values_id,
                    type=NodeType.RESULT,
                    label="VALUES",
                    description="Literal rows",
                    details=[_plural(len(values), "row")],
                )
            )
            previous = values_id

        self.stats.tables += 1
        target_columns = [str(c) for c in ast.get("columns") or []]
        target_id = self.ids.next_id("table")
        nodes.append(
            FlowNode(
                id=target_id,
                type=NodeType.TABLE,
                label=target or "unknown",
                description="Insert target",
                details=[f"Columns: {', '.join(target_columns)}"] if target_columns else [],
                table_category=TableCategory.PHYSICAL,
                access_mode=AccessMode.WRITE,
                columns=[ColumnInfo(name=c, expression=c) for c in target_columns] or None,
            )
        )
        self._edge(edges, previous, target_id, label="INSERT")

    def _create(
        self, ast: Dict[str, Any], nodes: List[FlowNode], edges: List[FlowEdge]
    ) -> None:
        keyword = str(ast.get("keyword") or "table").upper()
        source = ast.get("select")
        if not isinstance(source, dict):
            raise GraphBuildError(f"Unsupported statement type: CREATE {keyword}")

        name = _first_table(ast.get("table")) or "unknown"
        previous = self._select(source, nodes, edges, set())

        target_columns = [str(c) for c in ast.get("columns") or []]
        result_id = self.ids.next_id("result")
        nodes.append(
            FlowNode(
                id=result_id,
                type=NodeType.RESULT,
                label=f"{keyword} {name}",
                description=(
                    f"Create view: {name}"
                    if keyword == "VIEW"
                    else f"Create table as select: {name}"
                ),
                details=[f"Columns: {', '.join(target_columns)}"] if target_columns else [],
                access_mode=AccessMode.WRITE,
                columns=[ColumnInfo(name=c, expression=c) for c in target_columns] or None,
            )
        )
        self._edge(edges, previous, result_id)

    def _update_or_delete(
        self,
        ast: Dict[str, Any],
        statement_type: str,
        nodes: List[FlowNode],
        edges: List[FlowEdge],
    ) -> None:
        target = _first_table(ast.get("table")) or _first_table(ast.get("from"))

        self.stats.tables += 1
        target_id = self.ids.next_id("table")
        nodes.append(
            FlowNode(
                id=target_id,
                type=NodeType.TABLE,
                label=target or "unknown",
                description=f"{statement_type.capitalize()} target",
                table_category=TableCategory.PHYSICAL,
                access_mode=AccessMode.WRITE,
            )
        )
        previous = target_id

        if statement_type == "update":
            for item in ast.get("from") or []:
                if not isinstance(item, dict):
                    continue
                node = self._from_item(item, nodes, set(), as_join=True)
                if node is not None:
                    previous = self._join(item, node, previous, nodes, edges)

        where = ast.get("where")
        if where:
            conditions = extract_conditions(where) or [format_condition(where)]
            self.stats.conditions += len(conditions)
            filter_id = self.ids.next_id("filter")
            nodes.append(
                FlowNode(
                    id=filter_id,
                    type=NodeType.FILTER,
                    label="WHERE",
                    description="Filter rows",
                    details=conditions,
                )
            )
            self._edge(
                edges, previous, filter_id, ClauseType.WHERE, " AND ".join(conditions)
            )
            previous = filter_id

        if statement_type == "update":
            details = [
                f"{extract_scalar(s.get('column')) or '?'} = {format_expression(s.get('value')) or '?'}"
                for s in ast.get("set") or []
                if isinstance(s, dict)
            ]
            description = f"Update rows in {target or 'table'}"
        else:
            details = []
            description = f"Delete rows from {target or 'table'}"

        result_id = self.ids.next_id("result")
        nodes.append(
            FlowNode(
                id=result_id,
                type=NodeType.RESULT,
                label=statement_type.upper(),
                description=description,
                details=details,
            )
        )
        self._edge(edges, previous, result_id)


def build_graph(
    ast: Dict[str, Any],
    aggregates: Optional[Iterable[str]] = None,
    window_functions: Optional[Iterable[str]] = None,
) -> FlowGraph:
    """
    Build the operator graph for a statement AST.

    Args:
        ast: Statement AST
        aggregates: Extra aggregate function names
        window_functions: Extra window function names

    Returns:
        FlowGraph with at least one node

    Raises:
        GraphBuildError: If the statement type is not supported
    """
    return GraphBuilder(aggregates, window_functions).build(ast)


def _plural(count: int, noun: str) -> str:
    return f"{count} {noun}{'s' if count != 1 else ''}"


def _cte_name(cte: Dict[str, Any]) -> str:
    return extract_scalar(cte.get("name")) or "CTE"


def _limit_value(limit: Any) -> Optional[str]:
    # Some dialects emit {"value": []} when there is no LIMIT
    if not isinstance(limit, dict):
        return None
    values = limit.get("value")
    if not values:
        return None
    first = values[0] if isinstance(values, list) else values
    return format_expression(first) if isinstance(first, dict) else str(first)


def _first_table(items: Any) -> Optional[str]:
    for item in items or []:
        if isinstance(item, dict):
            name = extract_scalar(item.get("table"))
            if name:
                return name
    return None


def _statement_tables(stmt: Dict[str, Any]) -> List[str]:
    tables = []
    for item in stmt.get("from") or []:
        if isinstance(item, dict):
            name = extract_scalar(item.get("table")) or extract_scalar(item.get("as"))
            if name:
                tables.append(name)
    return tables


def _collect_tables(stmt: Any, tables: List[str], cte_names: Set[str]) -> None:
    """Physical tables of a statement tree, skipping CTE references."""
    if not isinstance(stmt, dict):
        return

    scoped = set(cte_names)
    for cte in stmt.get("with") or []:
        if isinstance(cte, dict):
            scoped.add(_cte_name(cte).lower())
    for cte in stmt.get("with") or []:
        if isinstance(cte, dict) and isinstance(cte.get("stmt"), dict):
            _collect_tables(cte["stmt"].get("ast"), tables, scoped)

    for item in stmt.get("from") or []:
        if not isinstance(item, dict):
            continue
        expr = item.get("expr")
        if isinstance(expr, dict) and isinstance(expr.get("ast"), dict):
            _collect_tables(expr["ast"], tables, scoped)
            continue
        name = extract_scalar(item.get("table"))
        if name and name.lower() not in scoped and name not in tables:
            tables.append(name)

    for nested in collect_subqueries(
        [stmt.get("where"), stmt.get("having"), stmt.get("columns")]
    ):
        _collect_tables(nested, tables, scoped)

    _collect_tables(stmt.get("_next"), tables, scoped)


def _terminal_select(
    nodes: List[FlowNode], edges: List[FlowEdge]
) -> Optional[FlowNode]:
    terminal = FlowGraph(nodes=nodes, edges=edges).terminal_node
    if terminal is not None and terminal.type == NodeType.SELECT:
        return terminal
    selects = [n for n in nodes if n.type == NodeType.SELECT]
    return selects[0] if selects else None
