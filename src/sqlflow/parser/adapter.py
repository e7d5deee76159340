"""Adapt sqlglot expression trees to the statement AST.

The graph builder, lineage extractor and summarizer consume an AST made
of plain clause-keyed dicts. This module is the only place that knows
about sqlglot node classes; everything downstream works on dicts.

Statement shapes::

    {"type": "select", "with": [...] | None, "distinct": bool,
     "columns": [{"expr": EXPR, "as": str | None}, ...],
     "from": [FROM_ITEM, ...] | None, "where": EXPR | None,
     "groupby": [EXPR, ...] | None, "having": EXPR | None,
     "orderby": [{"expr": EXPR, "type": "ASC" | "DESC"}, ...] | None,
     "limit": {"value": [EXPR]} | None,
     "_next": SELECT | None, "set_op": str | None,
     "_orderby": [...] | None, "_limit": {...} | None}

    FROM_ITEM = {"db": str | None, "table": str, "as": str | None,
                 "join": "INNER JOIN" | None, "on": EXPR | None,
                 "using": [str] | None}
              | {"expr": {"ast": SELECT}, "as": str | None, "join": ...}
              | {"table_function": str, "expr": EXPR, "as": str | None, ...}

    {"type": "create", "keyword": "view" | "table",
     "table": [{"db": str | None, "table": str, "as": None}],
     "columns": [str] | None, "select": SELECT}

The head SELECT of a set operation carries ``_orderby`` and ``_limit`` for
clauses that apply to the combined result.

Expression shapes are tagged by ``type``: column_ref, binary_expr, aggr_func,
function, case, cast, unary_expr, expr_list, star, subquery, number,
single_quote_string, bool, null, param and unknown.
"""

from typing import Any, Dict, List, Optional

from sqlglot import exp

AstNode = Dict[str, Any]

_BINARY_OPERATORS = {
    exp.Add: "+",
    exp.Sub: "-",
    exp.Mul: "*",
    exp.Div: "/",
    exp.Mod: "%",
    exp.EQ: "=",
    exp.NEQ: "<>",
    exp.GT: ">",
    exp.GTE: ">=",
    exp.LT: "<",
    exp.LTE: "<=",
    exp.And: "AND",
    exp.Or: "OR",
    exp.DPipe: "||",
    exp.Like: "LIKE",
    exp.ILike: "ILIKE",
    exp.Is: "IS",
    exp.NullSafeEQ: "<=>",
}

_SET_OPERATIONS = (exp.Union, exp.Intersect, exp.Except)


def get_arg(node: exp.Expression, name: str) -> Any:
    """
    Read a clause argument that sqlglot may store under a trailing underscore.

    sqlglot >= 28 renamed keyword-clashing args ("from" -> "from_").
    """
    value = node.args.get(f"{name}_")
    if value is None:
        value = node.args.get(name)
    return value


class AstAdapter:
    """Convert sqlglot expressions into statement AST dicts."""

    def __init__(self, dialect: str = "mysql"):
        """
        Initialize the adapter.

        Args:
            dialect: sqlglot dialect used when rendering fallback SQL text
        """
        self.dialect = dialect

    def statement(self, node: exp.Expression) -> AstNode:
        """
        Convert one top-level statement.

        Unsupported statement kinds are returned as ``{"type": <kind>}`` so the
        graph builder can reject them with a typed error.

        Args:
            node: sqlglot statement expression

        Returns:
            Statement AST dict
        """
        if isinstance(node, (exp.Select, exp.Subquery) + _SET_OPERATIONS):
            return self.query(node)
        if isinstance(node, exp.Insert):
            return self._insert(node)
        if isinstance(node, exp.Update):
            return self._update(node)
        if isinstance(node, exp.Delete):
            return self._delete(node)
        if isinstance(node, exp.Create):
            created = self._create(node)
            if created is not None:
                return created

        kind = node.key.lower()
        if isinstance(node, (exp.Create, exp.Drop)):
            object_kind = node.args.get("kind")
            if object_kind:
                kind = f"{kind} {str(object_kind).lower()}"
        return {"type": kind, "sql": self._sql(node)}

    def query(self, node: exp.Expression) -> AstNode:
        """Convert a SELECT, a parenthesized query or a set operation."""
        if isinstance(node, exp.Subquery):
            return self.query(node.this)

        if isinstance(node, _SET_OPERATIONS):
            left = self.query(node.this)
            right = self.query(node.expression)
            set_op = node.key.lower()
            if isinstance(node, exp.Union) and not node.args.get("distinct"):
                set_op = "union all"

            # The rightmost branch of a chain carries the set operator
            tail = left
            while tail.get("_next"):
                tail = tail["_next"]
            tail["_next"] = right
            tail["set_op"] = set_op

            with_clause = get_arg(node, "with")
            if with_clause and not left.get("with"):
                left["with"] = self._ctes(with_clause)

            # ORDER BY and LIMIT of a set operation apply to the combined rows
            order = node.args.get("order")
            limit = node.args.get("limit")
            if order is not None:
                left["_orderby"] = self._order(order)
            if limit is not None:
                left["_limit"] = self._limit(limit)
            return left

        if not isinstance(node, exp.Select):
            return {"type": node.key.lower(), "sql": self._sql(node)}

        return self._select(node)

    def _select(self, node: exp.Select) -> AstNode:
        from_items: List[AstNode] = []
        from_clause = get_arg(node, "from")
        if from_clause is not None:
            from_items.append(self._from_item(from_clause.this))
        for join in node.args.get("joins") or []:
            from_items.append(self._join(join))

        where = node.args.get("where")
        group = node.args.get("group")
        having = node.args.get("having")
        order = node.args.get("order")
        limit = node.args.get("limit")
        with_clause = get_arg(node, "with")

        groupby = None
        if group is not None and group.expressions:
            groupby = [self.expression(e) for e in group.expressions]

        return {
            "type": "select",
            "with": self._ctes(with_clause) if with_clause else None,
            "distinct": bool(node.args.get("distinct")),
            "columns": [self._projection(p) for p in node.expressions],
            "from": from_items or None,
            "where": self.expression(where.this) if where is not None else None,
            "groupby": groupby,
            "having": self.expression(having.this) if having is not None else None,
            "orderby": self._order(order) if order is not None else None,
            "limit": self._limit(limit) if limit is not None else None,
            "_next": None,
            "set_op": None,
        }

    def _ctes(self, with_clause: exp.With) -> List[AstNode]:
        recursive = bool(with_clause.args.get("recursive"))
        ctes = []
        for cte in with_clause.expressions:
            ctes.append(
                {
                    "name": {"value": cte.alias},
                    "recursive": recursive,
                    "stmt": {"ast": self.query(cte.this)},
                }
            )
        return ctes

    def _projection(self, node: exp.Expression) -> AstNode:
        if isinstance(node, exp.Alias):
            return {"expr": self.expression(node.this), "as": node.alias}
        return {"expr": self.expression(node), "as": None}

    def _from_item(self, node: exp.Expression) -> AstNode:
        alias = node.alias or None

        if isinstance(node, exp.Subquery):
            return {"expr": {"ast": self.query(node.this)}, "as": alias}

        if isinstance(node, exp.Table) and not isinstance(node.this, exp.Func):
            return {"db": node.db or None, "table": node.name, "as": alias}

        # Table-valued functions (UNNEST, FLATTEN, generate_series, ...)
        func = node.this if isinstance(node, exp.Table) else node
        if isinstance(func, exp.Func):
            name = self._function_name(func)
        else:
            name = func.key.upper()
        return {
            "table_function": name,
            "expr": self.expression(func),
            "as": alias,
        }

    def _join(self, join: exp.Join) -> AstNode:
        item = self._from_item(join.this)

        parts = [p for p in (join.method, join.side, join.kind) if p]
        on = join.args.get("on")
        using = join.args.get("using")
        if parts or on is not None or using:
            item["join"] = f"{' '.join(parts or ['INNER'])} JOIN"
        else:
            # Comma-separated FROM list
            item["join"] = None
        item["on"] = self.expression(on) if on is not None else None
        item["using"] = [u.name for u in using] if using else None
        return item

    def _order(self, order: exp.Order) -> List[AstNode]:
        items = []
        for ordered in order.expressions:
            if isinstance(ordered, exp.Ordered):
                direction = "DESC" if ordered.args.get("desc") else "ASC"
                items.append({"expr": self.expression(ordered.this), "type": direction})
            else:
                items.append({"expr": self.expression(ordered), "type": "ASC"})
        return items

    def _limit(self, limit: exp.Expression) -> AstNode:
        # FETCH FIRST n ROWS stores the row count under "count"
        value = limit.args.get("expression") or limit.args.get("count") or limit.this
        return {"seperator": "", "value": [self.expression(value)] if value else []}

    def _insert(self, node: exp.Insert) -> AstNode:
        target = node.this
        columns = None
        if isinstance(target, exp.Schema):
            columns = [c.name for c in target.expressions]
            target = target.this

        source = node.expression
        select = None
        values = None
        if isinstance(source, exp.Values):
            values = [
                [self.expression(v) for v in row.expressions]
                if isinstance(row, exp.Tuple)
                else [self.expression(row)]
                for row in source.expressions
            ]
        elif source is not None:
            select = self.query(source)

        return {
            "type": "insert",
            "table": [self._table_ref(target)],
            "columns": columns,
            "values": values,
            "select": select,
        }

    def _update(self, node: exp.Update) -> AstNode:
        assignments = []
        for assignment in node.expressions:
            if isinstance(assignment, exp.EQ):
                assignments.append(
                    {
                        "column": self._column_name(assignment.this),
                        "value": self.expression(assignment.expression),
                    }
                )

        from_items = []
        from_clause = get_arg(node, "from")
        if from_clause is not None:
            from_items.append(self._from_item(from_clause.this))
        where = node.args.get("where")

        return {
            "type": "update",
            "table": [self._table_ref(node.this)],
            "set": assignments,
            "from": from_items or None,
            "where": self.expression(where.this) if where is not None else None,
        }

    def _delete(self, node: exp.Delete) -> AstNode:
        where = node.args.get("where")
        target = self._table_ref(node.this)
        return {
            "type": "delete",
            "table": [target],
            "from": [target],
            "where": self.expression(where.this) if where is not None else None,
        }

    def _create(self, node: exp.Create) -> Optional[AstNode]:
        """CREATE VIEW ... AS and CREATE TABLE ... AS, or None for other DDL."""
        kind = str(node.args.get("kind") or "").lower()
        query = node.expression
        if kind not in ("view", "table") or not isinstance(
            query, (exp.Select, exp.Subquery) + _SET_OPERATIONS
        ):
            return None

        target = node.this
        columns = None
        if isinstance(target, exp.Schema):
            columns = [c.name for c in target.expressions]
            target = target.this

        return {
            "type": "create",
            "keyword": kind,
            "table": [self._table_ref(target)],
            "columns": columns,
            "select": self.query(query),
        }

    def _table_ref(self, node: Optional[exp.Expression]) -> AstNode:
        if isinstance(node, exp.Table):
            return {"db": node.db or None, "table": node.name, "as": node.alias or None}
        if node is None:
            return {"db": None, "table": None, "as": None}
        return {"db": None, "table": self._sql(node), "as": None}

    def expression(self, node: Optional[exp.Expression]) -> Optional[AstNode]:
        """
        Convert a scalar expression.

        Args:
            node: sqlglot expression (None passes through)

        Returns:
            Expression AST dict, or None
        """
        if node is None:
            return None

        if isinstance(node, exp.Paren):
            return self.expression(node.this)

        if isinstance(node, exp.Column):
            if isinstance(node.this, exp.Star):
                return {"type": "column_ref", "table": node.table or None, "column": "*"}
            return {"type": "column_ref", "table": node.table or None, "column": node.name}

        if isinstance(node, exp.Star):
            return {"type": "star", "value": "*"}

        if isinstance(node, exp.Literal):
            if node.is_string:
                return {"type": "single_quote_string", "value": node.this}
            return {"type": "number", "value": _number(node.this)}

        if isinstance(node, exp.Boolean):
            return {"type": "bool", "value": bool(node.this)}

        if isinstance(node, exp.Null):
            return {"type": "null", "value": None}

        if isinstance(node, (exp.Placeholder, exp.Parameter)):
            return {"type": "param", "value": self._sql(node)}

        if isinstance(node, exp.Alias):
            return self.expression(node.this)

        if isinstance(node, (exp.Subquery, exp.Select) + _SET_OPERATIONS):
            return {"type": "subquery", "ast": self.query(node)}

        if isinstance(node, exp.Window):
            converted = self.expression(node.this) or {"type": "function", "name": "WINDOW"}
            converted["over"] = self._window(node)
            return converted

        if isinstance(node, exp.Case):
            return self._case(node)

        if isinstance(node, exp.Cast):
            to = node.args.get("to")
            return {
                "type": "cast",
                "expr": self.expression(node.this),
                "target": {"dataType": to.sql(dialect=self.dialect) if to else None},
            }

        if isinstance(node, exp.Not):
            return {"type": "unary_expr", "operator": "NOT", "expr": self.expression(node.this)}

        if isinstance(node, exp.Neg):
            return {"type": "unary_expr", "operator": "-", "expr": self.expression(node.this)}

        if isinstance(node, exp.In):
            query = node.args.get("query")
            if query is not None:
                right = self.expression(query)
            else:
                right = {
                    "type": "expr_list",
                    "value": [self.expression(e) for e in node.expressions],
                }
            return {
                "type": "binary_expr",
                "operator": "IN",
                "left": self.expression(node.this),
                "right": right,
            }

        if isinstance(node, exp.Between):
            return {
                "type": "binary_expr",
                "operator": "BETWEEN",
                "left": self.expression(node.this),
                "right": {
                    "type": "expr_list",
                    "value": [
                        self.expression(node.args.get("low")),
                        self.expression(node.args.get("high")),
                    ],
                },
            }

        if isinstance(node, exp.Binary) and not isinstance(node, exp.Dot):
            return {
                "type": "binary_expr",
                "operator": _binary_operator(node),
                "left": self.expression(node.left),
                "right": self.expression(node.right),
            }

        if isinstance(node, exp.Func):
            return self._function(node)

        return {"type": "unknown", "value": self._sql(node)}

    def _function(self, node: exp.Func) -> AstNode:
        distinct = False
        args: List[exp.Expression] = []
        for arg in _func_args(node):
            if isinstance(arg, exp.Distinct):
                distinct = True
                args.extend(arg.expressions)
            else:
                args.append(arg)

        converted = [self.expression(a) for a in args]
        name = self._function_name(node)

        if isinstance(node, exp.AggFunc):
            if len(converted) == 1:
                container: AstNode = {"expr": converted[0]}
            else:
                container = {"type": "expr_list", "value": converted}
            container["distinct"] = "DISTINCT" if distinct else None
            return {"type": "aggr_func", "name": name, "args": container, "over": None}

        return {
            "type": "function",
            "name": name,
            "args": {"type": "expr_list", "value": converted},
            "over": None,
        }

    def _function_name(self, node: exp.Func) -> str:
        if isinstance(node, exp.Anonymous):
            return str(node.name).upper()
        return node.sql_name().upper()

    def _case(self, node: exp.Case) -> AstNode:
        branches = []
        for when in node.args.get("ifs") or []:
            branches.append(
                {
                    "type": "when",
                    "cond": self.expression(when.this),
                    "result": self.expression(when.args.get("true")),
                }
            )
        default = node.args.get("default")
        if default is not None:
            branches.append({"type": "else", "result": self.expression(default)})
        return {"type": "case", "expr": self.expression(node.this), "args": branches}

    def _window(self, node: exp.Window) -> AstNode:
        order = node.args.get("order")
        spec = node.args.get("spec")
        return {
            "partitionby": [self.expression(p) for p in node.args.get("partition_by") or []],
            "orderby": self._order(order) if order is not None else [],
            "frame": spec.sql(dialect=self.dialect) if spec is not None else None,
        }

    def _column_name(self, node: exp.Expression) -> str:
        if isinstance(node, exp.Column):
            return node.name
        return self._sql(node)

    def _sql(self, node: exp.Expression) -> str:
        return node.sql(dialect=self.dialect)


def _binary_operator(node: exp.Binary) -> str:
    for cls, operator in _BINARY_OPERATORS.items():
        if type(node) is cls:
            return operator
    return node.key.upper()


def _func_args(node: exp.Func) -> List[exp.Expression]:
    """Argument expressions of a function in declaration order."""
    args: List[exp.Expression] = []
    for key in node.arg_types:
        value = node.args.get(key)
        if isinstance(value, exp.Expression):
            args.append(value)
        elif isinstance(value, list):
            args.extend(v for v in value if isinstance(v, exp.Expression))
    return args


def _number(text: str) -> Any:
    try:
        return int(text)
    except ValueError:
        try:
            return float(text)
        except ValueError:
            return text
