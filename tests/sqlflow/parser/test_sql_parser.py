"""Unit tests for SQL parsing and AST conversion."""

import pytest

from sqlflow.errors import ParseFailure
from sqlflow.global_models import SqlDialect
from sqlflow.parser.sql_parser import SqlParser, parse_statements


def first_ast(sql, dialect=SqlDialect.MYSQL):
    return SqlParser(sql, dialect).statements[0].ast


class TestSqlParser:
    """Tests for SqlParser."""

    def test_multiple_statements(self):
        """Each statement gets its own index, preview and type."""
        statements = parse_statements("SELECT a FROM t; SELECT b FROM u;")

        assert len(statements) == 2
        assert [s.query_index for s in statements] == [0, 1]
        assert [s.statement_type for s in statements] == ["SELECT", "SELECT"]
        assert statements[1].query_preview == "SELECT b FROM u"

    def test_long_preview_truncated(self):
        """Previews are cut to 100 characters plus an ellipsis."""
        columns = ", ".join(f"column_{i}" for i in range(40))
        statement = parse_statements(f"SELECT {columns} FROM t")[0]
        assert len(statement.query_preview) == 103
        assert statement.query_preview.endswith("...")

    def test_statement_sql(self):
        """The statement text is kept for documentation output."""
        statement = parse_statements("select id from users")[0]
        assert "users" in statement.sql

    @pytest.mark.parametrize(
        "sql,expected",
        [
            ("INSERT INTO t (a) VALUES (1)", "INSERT"),
            ("UPDATE t SET a = 1", "UPDATE"),
            ("DELETE FROM t WHERE a = 1", "DELETE"),
            ("DROP TABLE users", "DROP TABLE"),
            ("SELECT a FROM t UNION SELECT a FROM u", "SELECT"),
        ],
    )
    def test_statement_types(self, sql, expected):
        """Statement types are reported in SQL keywords."""
        assert parse_statements(sql)[0].statement_type == expected

    def test_invalid_sql(self):
        """Syntax errors raise ParseFailure."""
        with pytest.raises(ParseFailure, match="Invalid SQL syntax"):
            SqlParser("SELECT * FROM (")

    def test_no_statements(self):
        """Input with no statements raises ParseFailure."""
        with pytest.raises(ParseFailure, match="No valid SQL statements found"):
            SqlParser(";")

    def test_dialect_by_name(self):
        """Dialect names are resolved case-insensitively."""
        assert SqlParser("SELECT 1", "postgres").dialect == SqlDialect.POSTGRESQL
        assert SqlParser("SELECT 1", "snowflake").dialect == SqlDialect.SNOWFLAKE

    def test_unsupported_dialect(self):
        """Unknown dialect names raise ValueError."""
        with pytest.raises(ValueError, match="Unsupported dialect"):
            SqlParser("SELECT 1", "cobol")


class TestSelectConversion:
    """Tests for SELECT statements converted to the statement AST."""

    def test_basic_select(self):
        """Projection, FROM and WHERE are converted."""
        ast = first_ast("SELECT u.id, u.name AS n FROM users u WHERE u.active = 1")

        assert ast["type"] == "select"
        assert ast["columns"][0] == {
            "expr": {"type": "column_ref", "table": "u", "column": "id"},
            "as": None,
        }
        assert ast["columns"][1]["as"] == "n"
        assert ast["from"] == [{"db": None, "table": "users", "as": "u"}]
        assert ast["where"]["type"] == "binary_expr"
        assert ast["where"]["operator"] == "="
        assert ast["where"]["right"] == {"type": "number", "value": 1}

    def test_schema_qualified_table(self):
        """The schema is kept under db."""
        ast = first_ast("SELECT id FROM sales.orders")
        assert ast["from"][0]["db"] == "sales"
        assert ast["from"][0]["table"] == "orders"

    def test_star(self):
        """A bare star is a star expression."""
        ast = first_ast("SELECT * FROM users")
        assert ast["columns"][0]["expr"]["type"] == "star"

    def test_joins(self):
        """Joins become FROM items with a join label and condition."""
        ast = first_ast(
            "SELECT o.id FROM orders o "
            "LEFT JOIN customers c ON o.customer_id = c.id "
            "JOIN regions r ON c.region_id = r.id"
        )

        assert len(ast["from"]) == 3
        assert ast["from"][1]["join"] == "LEFT JOIN"
        assert ast["from"][1]["as"] == "c"
        assert ast["from"][1]["on"]["operator"] == "="
        assert ast["from"][2]["join"] == "INNER JOIN"

    def test_cross_join(self):
        """A join without condition is a cross join."""
        ast = first_ast("SELECT a.x FROM a CROSS JOIN b")
        assert ast["from"][1]["join"] == "CROSS JOIN"
        assert ast["from"][1]["on"] is None

    def test_comma_join(self):
        """Comma-separated tables carry no join label."""
        ast = first_ast("SELECT a.x FROM a, b WHERE a.id = b.id")
        assert len(ast["from"]) == 2
        assert ast["from"][1]["table"] == "b"
        assert ast["from"][1]["join"] is None

    def test_aggregates_and_grouping(self):
        """Aggregate calls, GROUP BY, HAVING, ORDER BY and LIMIT are converted."""
        ast = first_ast(
            "SELECT customer_id, COUNT(DISTINCT order_id) AS n FROM orders "
            "GROUP BY customer_id HAVING COUNT(DISTINCT order_id) > 1 "
            "ORDER BY n DESC LIMIT 10"
        )

        count = ast["columns"][1]["expr"]
        assert count["type"] == "aggr_func"
        assert count["name"] == "COUNT"
        assert count["args"]["distinct"] == "DISTINCT"
        assert count["args"]["expr"]["column"] == "order_id"
        assert ast["groupby"] == [
            {"type": "column_ref", "table": None, "column": "customer_id"}
        ]
        assert ast["having"]["operator"] == ">"
        assert ast["orderby"][0]["type"] == "DESC"
        assert ast["limit"]["value"] == [{"type": "number", "value": 10}]

    def test_window_function(self):
        """OVER clauses are attached to the function expression."""
        ast = first_ast(
            "SELECT ROW_NUMBER() OVER (PARTITION BY dept ORDER BY salary DESC) AS rn "
            "FROM employees"
        )

        expr = ast["columns"][0]["expr"]
        assert expr["name"] == "ROW_NUMBER"
        assert expr["over"]["partitionby"][0]["column"] == "dept"
        assert expr["over"]["orderby"][0]["type"] == "DESC"

    def test_case_expression(self):
        """CASE branches become when/else entries."""
        ast = first_ast(
            "SELECT CASE WHEN amount > 100 THEN 'big' ELSE 'small' END AS size FROM t"
        )

        expr = ast["columns"][0]["expr"]
        assert expr["type"] == "case"
        assert expr["args"][0]["type"] == "when"
        assert expr["args"][0]["result"] == {
            "type": "single_quote_string",
            "value": "big",
        }
        assert expr["args"][1]["type"] == "else"

    def test_cte(self):
        """WITH clauses carry the CTE name and body."""
        ast = first_ast("WITH recent AS (SELECT id FROM orders) SELECT id FROM recent")

        assert ast["with"][0]["name"] == {"value": "recent"}
        assert ast["with"][0]["recursive"] is False
        assert ast["with"][0]["stmt"]["ast"]["from"][0]["table"] == "orders"

    def test_derived_table(self):
        """Subqueries in FROM keep their alias and AST."""
        ast = first_ast("SELECT s.id FROM (SELECT id FROM orders) AS s")

        item = ast["from"][0]
        assert item["as"] == "s"
        assert item["expr"]["ast"]["type"] == "select"

    def test_union_chain(self):
        """Set operations are chained through _next."""
        ast = first_ast("SELECT a FROM t UNION ALL SELECT a FROM u UNION SELECT a FROM v")

        assert ast["set_op"] == "union all"
        assert ast["_next"]["from"][0]["table"] == "u"
        assert ast["_next"]["set_op"] == "union"
        assert ast["_next"]["_next"]["from"][0]["table"] == "v"

    def test_union_order_and_limit(self):
        """ORDER BY and LIMIT of a set operation are kept on the head select."""
        ast = first_ast("SELECT a FROM t UNION SELECT a FROM u ORDER BY a DESC LIMIT 5")

        assert ast["_orderby"] == [
            {"expr": {"type": "column_ref", "table": None, "column": "a"}, "type": "DESC"}
        ]
        assert ast["_limit"]["value"] == [{"type": "number", "value": 5}]
        assert not ast.get("orderby")
        assert not ast["_next"].get("orderby")
        assert not ast["_next"].get("limit")

    def test_in_and_between(self):
        """IN lists and BETWEEN bounds become expr_list operands."""
        ast = first_ast("SELECT a FROM t WHERE a IN (1, 2) AND b BETWEEN 3 AND 4")

        where = ast["where"]
        assert where["operator"] == "AND"
        assert where["left"]["operator"] == "IN"
        assert where["left"]["right"]["type"] == "expr_list"
        assert where["right"]["operator"] == "BETWEEN"
        assert len(where["right"]["right"]["value"]) == 2


class TestWriteConversion:
    """Tests for INSERT, UPDATE and DELETE statements."""

    def test_insert_values(self):
        """INSERT ... VALUES keeps the target, columns and rows."""
        ast = first_ast("INSERT INTO orders (id, amount) VALUES (1, 10), (2, 20)")

        assert ast["type"] == "insert"
        assert ast["table"][0]["table"] == "orders"
        assert ast["columns"] == ["id", "amount"]
        assert len(ast["values"]) == 2
        assert ast["select"] is None

    def test_insert_select(self):
        """INSERT ... SELECT keeps the source query."""
        ast = first_ast("INSERT INTO archive SELECT id FROM orders")

        assert ast["values"] is None
        assert ast["select"]["type"] == "select"
        assert ast["select"]["from"][0]["table"] == "orders"

    def test_update(self):
        """UPDATE keeps assignments and WHERE."""
        ast = first_ast("UPDATE users SET active = 0 WHERE id = 1")

        assert ast["type"] == "update"
        assert ast["table"][0]["table"] == "users"
        assert ast["set"] == [
            {"column": "active", "value": {"type": "number", "value": 0}}
        ]
        assert ast["where"]["operator"] == "="

    def test_delete(self):
        """DELETE keeps the target and WHERE."""
        ast = first_ast("DELETE FROM sessions WHERE expired = TRUE")

        assert ast["type"] == "delete"
        assert ast["from"][0]["table"] == "sessions"
        assert ast["where"]["right"] == {"type": "bool", "value": True}

    def test_create_view(self):
        """CREATE VIEW ... AS keeps the view name and its query."""
        ast = first_ast("CREATE VIEW big_orders AS SELECT id FROM orders WHERE amount > 100")

        assert ast["type"] == "create"
        assert ast["keyword"] == "view"
        assert ast["table"][0]["table"] == "big_orders"
        assert ast["columns"] is None
        assert ast["select"]["type"] == "select"
        assert ast["select"]["from"][0]["table"] == "orders"

    def test_create_table_as_select(self):
        """CREATE TABLE ... AS keeps the target table and its query."""
        ast = first_ast("CREATE TABLE archive AS SELECT id, amount FROM orders")

        assert ast["keyword"] == "table"
        assert ast["table"][0]["table"] == "archive"
        assert ast["columns"] is None
        assert ast["select"]["from"][0]["table"] == "orders"

    def test_unsupported_statement(self):
        """Other statements are returned with their kind only."""
        ast = first_ast("DROP TABLE users")
        assert ast["type"] == "drop table"

    def test_create_table_definition_unsupported(self):
        """CREATE TABLE with a column definition list has no query."""
        ast = first_ast("CREATE TABLE users (id INT)")
        assert ast["type"] == "create table"
