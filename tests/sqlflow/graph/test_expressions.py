"""Unit tests for expression rendering and projection inspection."""

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
from sqlflow.parser.sql_parser import SqlParser


def col(name, table=None):
    return {"type": "column_ref", "table": table, "column": name}


def num(value):
    return {"type": "number", "value": value}


def binary(operator, left, right):
    return {"type": "binary_expr", "operator": operator, "left": left, "right": right}


def projection(sql):
    return SqlParser(sql).statements[0].ast["columns"]


class TestFormatExpression:
    """Tests for format_expression."""

    def test_column_refs(self):
        """Columns render with their qualifier."""
        assert format_expression(col("id")) == "id"
        assert format_expression(col("id", "u")) == "u.id"

    def test_literals(self):
        """Strings are quoted; NULL and booleans are keywords."""
        assert format_expression(num(5)) == "5"
        assert format_expression({"type": "single_quote_string", "value": "x"}) == "'x'"
        assert format_expression({"type": "null", "value": None}) == "NULL"
        assert format_expression({"type": "bool", "value": False}) == "FALSE"

    def test_binary(self):
        """Binary operators render infix."""
        assert format_expression(binary(">", col("amount"), num(100))) == "amount > 100"

    def test_in_and_between(self):
        """IN lists are parenthesized, BETWEEN bounds joined by AND."""
        in_list = binary(
            "IN", col("status"), {"type": "expr_list", "value": [num(1), num(2)]}
        )
        between = binary(
            "BETWEEN", col("age"), {"type": "expr_list", "value": [num(18), num(65)]}
        )
        assert format_expression(in_list) == "status IN (1, 2)"
        assert format_expression(between) == "age BETWEEN 18 AND 65"

    def test_functions(self):
        """Functions render with arguments, DISTINCT and OVER markers."""
        count = {
            "type": "aggr_func",
            "name": "COUNT",
            "args": {"expr": col("id"), "distinct": "DISTINCT"},
        }
        rank = {"type": "function", "name": "RANK", "args": None, "over": {}}
        ranked = dict(rank, over={"partitionby": []})
        assert format_expression(count) == "COUNT(DISTINCT id)"
        assert format_expression(rank) == "RANK()"
        assert format_expression(ranked) == "RANK() OVER (...)"

    def test_cast_and_case(self):
        """CAST and CASE render in full."""
        cast = {"type": "cast", "expr": col("price"), "target": {"dataType": "INT"}}
        case = {
            "type": "case",
            "expr": None,
            "args": [
                {"type": "when", "cond": binary(">", col("a"), num(1)), "result": num(1)},
                {"type": "else", "result": num(0)},
            ],
        }
        assert format_expression(cast) == "CAST(price AS INT)"
        assert format_expression(case) == "CASE WHEN a > 1 THEN 1 ELSE 0 END"

    def test_subquery_and_unknown(self):
        """Subqueries collapse; unknown shapes fall back to a scalar or expr."""
        assert format_expression({"type": "subquery", "ast": {}}) == "(subquery)"
        assert format_expression({"type": "interval", "value": "1 DAY"}) == "1 DAY"
        assert format_expression({"type": "mystery"}) == "expr"
        assert format_expression(None) == ""

    def test_unary(self):
        """Keyword operators are separated by a space."""
        assert (
            format_expression({"type": "unary_expr", "operator": "NOT", "expr": col("a")})
            == "NOT a"
        )
        assert format_expression({"type": "unary_expr", "operator": "-", "expr": num(1)}) == "-1"


class TestConditions:
    """Tests for condition helpers."""

    def test_format_condition(self):
        """Non-binary predicates render as a placeholder."""
        assert format_condition(binary("=", col("a"), num(1))) == "a = 1"
        assert format_condition(col("flag")) == "condition"
        assert format_condition(None) == "?"

    def test_extract_conditions_flattens(self):
        """AND/OR trees are split into leaves."""
        where = binary(
            "AND",
            binary("=", col("a"), num(1)),
            binary("OR", binary(">", col("b"), num(2)), binary("<", col("c"), num(3))),
        )
        assert extract_conditions(where) == ["a = 1", "b > 2", "c < 3"]

    def test_extract_conditions_capped(self):
        """At most five conditions are returned."""
        where = binary("=", col("c0"), num(0))
        for i in range(1, 8):
            where = binary("AND", binary("=", col(f"c{i}"), num(i)), where)
        # Only the first few levels are descended
        assert len(extract_conditions(where)) <= 5


class TestProjection:
    """Tests for projection inspection."""

    def test_column_labels(self):
        """Labels prefer aliases, then the rendered expression."""
        columns = projection("SELECT id, amount * 2 AS doubled, UPPER(name) FROM t")
        assert column_labels(columns) == ["id", "doubled", "UPPER(name)"]

    def test_column_infos_hints(self):
        """Column infos carry source hints and aggregate flags."""
        infos = column_infos(
            projection("SELECT o.id AS order_id, SUM(o.amount) AS total FROM orders o")
        )

        assert infos[0].name == "order_id"
        assert infos[0].source_column == "id"
        assert infos[0].source_table == "o"
        assert infos[0].is_aggregate is False
        assert infos[1].name == "total"
        assert infos[1].expression == "SUM(o.amount)"
        assert infos[1].is_aggregate is True

    def test_column_infos_cast_hints(self):
        """A CAST exposes the hints of its operand."""
        infos = column_infos(projection("SELECT CAST(t.price AS DECIMAL) AS p FROM t"))
        assert infos[0].source_column == "price"
        assert infos[0].source_table == "t"

    def test_column_infos_window_flag(self):
        """Windowed calls are flagged and are not aggregates."""
        infos = column_infos(
            projection("SELECT SUM(amount) OVER (PARTITION BY region) AS running FROM t")
        )
        assert infos[0].is_window_func is True
        assert infos[0].is_aggregate is False

    def test_aggregate_details(self):
        """Aggregates are collected with their source column and alias."""
        details = aggregate_function_details(
            projection("SELECT region, SUM(amount) AS total, COUNT(*) FROM sales")
        )

        assert [d.name for d in details] == ["SUM", "COUNT"]
        assert details[0].alias == "total"
        assert details[0].source_column == "amount"
        assert details[1].alias is None
        assert details[1].source_column is None

    def test_nested_aggregates(self):
        """Aggregates inside expressions are found; the alias is not attached."""
        details = aggregate_function_details(
            projection("SELECT SUM(a) / COUNT(b) AS ratio FROM t")
        )
        assert [d.name for d in details] == ["SUM", "COUNT"]
        assert all(d.alias is None for d in details)

    def test_duplicate_aggregates(self):
        """The same call projected twice is listed once."""
        details = aggregate_function_details(
            projection("SELECT SUM(a), SUM(a) AS total FROM t")
        )
        assert len(details) == 1
        assert details[0].alias == "total"

    def test_custom_aggregates(self):
        """Extra aggregate names are honored."""
        columns = projection("SELECT HLL_COUNT(user_id) AS users FROM t")
        assert aggregate_function_details(columns) == []
        details = aggregate_function_details(columns, {"HLL_COUNT"})
        assert details[0].name == "HLL_COUNT"

    def test_window_details(self):
        """Window functions carry partition and order keys."""
        details = window_function_details(
            projection(
                "SELECT RANK() OVER (PARTITION BY dept ORDER BY salary DESC) AS r "
                "FROM employees"
            )
        )

        assert details[0].name == "RANK"
        assert details[0].alias == "r"
        assert details[0].partition_by == ["dept"]
        assert details[0].order_by == ["salary DESC"]

    def test_case_details(self):
        """CASE branches and ELSE are captured."""
        cases = case_details(
            projection(
                "SELECT CASE WHEN score >= 90 THEN 'A' WHEN score >= 80 THEN 'B' "
                "ELSE 'C' END AS grade FROM results"
            )
        )

        assert len(cases) == 1
        assert cases[0].alias == "grade"
        assert [c.then for c in cases[0].conditions] == ["'A'", "'B'"]
        assert cases[0].conditions[0].when == "score >= 90"
        assert cases[0].else_value == "'C'"

    def test_collect_subqueries(self):
        """Nested subquery ASTs are found anywhere in an expression tree."""
        where = SqlParser(
            "SELECT a FROM t WHERE b IN (SELECT b FROM u) AND c > (SELECT MAX(c) FROM v)"
        ).statements[0].ast["where"]

        tables = [s["from"][0]["table"] for s in collect_subqueries(where)]
        assert tables == ["u", "v"]
