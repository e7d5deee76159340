"""Tests for optimization hints."""

import pytest

from sqlflow.documentation.hints import generate_hints
from sqlflow.graph.builder import GraphBuilder
from sqlflow.graph.models import QueryStats
from sqlflow.parser.sql_parser import SqlParser

LIMITED_SELECT = {
    "type": "select",
    "columns": [{"expr": {"type": "column_ref", "table": None, "column": "id"}}],
    "limit": {"seperator": "", "value": [{"type": "number", "value": 10}]},
}


def hints_for(sql):
    ast = SqlParser(sql).statements[0].ast
    builder = GraphBuilder()
    builder.build(ast)
    return generate_hints(ast, builder.stats)


def messages(hints):
    return [h.message for h in hints]


class TestSelectHints:
    """Tests for hints on SELECT statements."""

    def test_clean_query(self):
        """A limited query with named columns gets no hints."""
        assert hints_for("SELECT id, name FROM users WHERE id > 1 LIMIT 10") == []

    def test_select_star(self):
        """A star projection is flagged."""
        hints = hints_for("SELECT * FROM users LIMIT 10")

        assert messages(hints) == ["SELECT * detected"]
        assert hints[0].type == "warning"
        assert "Specify only needed columns" in hints[0].suggestion

    def test_qualified_star(self):
        """t.* counts as a star projection."""
        hints = hints_for("SELECT u.* FROM users u LIMIT 10")
        assert messages(hints) == ["SELECT * detected"]

    def test_no_limit(self):
        """A query reading tables without LIMIT gets an info hint."""
        hints = hints_for("SELECT id FROM users")

        assert messages(hints) == ["No LIMIT clause"]
        assert hints[0].type == "info"

    def test_no_limit_without_tables(self):
        """A query without tables is never flagged for LIMIT."""
        assert hints_for("SELECT 1 AS one") == []

    def test_union_limit(self):
        """LIMIT after a set operation counts."""
        assert hints_for("SELECT id FROM a UNION SELECT id FROM b LIMIT 5") == []


class TestWriteHints:
    """Tests for hints on write statements."""

    @pytest.mark.parametrize(
        "sql,message",
        [
            ("UPDATE users SET active = 0", "UPDATE without WHERE clause"),
            ("DELETE FROM sessions", "DELETE without WHERE clause"),
        ],
    )
    def test_missing_where(self, sql, message):
        """Unrestricted writes are errors."""
        hints = hints_for(sql)

        assert messages(hints) == [message]
        assert hints[0].type == "error"
        assert "ALL rows" in hints[0].suggestion

    def test_restricted_write(self):
        """A write with WHERE gets no hints."""
        assert hints_for("DELETE FROM sessions WHERE expired = 1") == []

    def test_create_view_star(self):
        """The query of a view is checked for star projections."""
        hints = hints_for("CREATE VIEW all_users AS SELECT * FROM users")
        assert messages(hints) == ["SELECT * detected"]


class TestStatsHints:
    """Tests for hints derived from graph statistics."""

    @pytest.mark.parametrize("joins,flagged", [(5, False), (6, True)])
    def test_many_joins(self, joins, flagged):
        """More than five joins are flagged."""
        stats = QueryStats(tables=joins + 1, joins=joins, conditions=joins)
        hints = generate_hints(LIMITED_SELECT, stats)

        assert ("High number of JOINs (6)" in messages(hints)) is flagged

    @pytest.mark.parametrize("subqueries,flagged", [(3, False), (4, True)])
    def test_many_subqueries(self, subqueries, flagged):
        """More than three subqueries are flagged."""
        stats = QueryStats(tables=1, subqueries=subqueries)
        hints = generate_hints(LIMITED_SELECT, stats)

        assert ("Multiple subqueries detected (4)" in messages(hints)) is flagged

    def test_many_joins_from_sql(self):
        """Join counts come from the graph builder."""
        joins = " ".join(f"JOIN t{i} ON t{i}.id = t0.id" for i in range(1, 7))
        hints = hints_for(f"SELECT t0.id FROM t0 {joins} LIMIT 1")

        assert messages(hints) == ["High number of JOINs (6)"]

    def test_cartesian_product(self):
        """Comma-separated tables without conditions are flagged."""
        hints = hints_for("SELECT a.x, b.y FROM a, b LIMIT 10")

        assert messages(hints) == ["Possible Cartesian product"]
        assert hints[0].type == "error"

    @pytest.mark.parametrize(
        "sql",
        [
            "SELECT a.x FROM a, b WHERE a.id = b.id LIMIT 10",
            "SELECT a.x FROM a JOIN b ON a.id = b.id LIMIT 10",
        ],
    )
    def test_joined_tables_not_cartesian(self, sql):
        """A WHERE condition or an explicit join rules out the Cartesian hint."""
        assert hints_for(sql) == []

    def test_cte_reference_not_cartesian(self):
        """Tables counted inside a CTE are not a cross join of the outer query."""
        hints = hints_for("WITH x AS (SELECT id FROM a) SELECT id FROM x LIMIT 1")
        assert hints == []
