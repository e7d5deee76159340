"""Tests for query summaries."""

import pytest

from sqlflow.documentation.models import OptimizationHint, QuerySummary
from sqlflow.documentation.summarizer import (
    QuerySummarizer,
    _complexity_bucket,
    flow_steps_from_graph,
    summarize,
    to_markdown,
)
from sqlflow.graph.builder import build_graph
from sqlflow.parser.sql_parser import SqlParser

GROUP_BY_SQL = (
    "SELECT customer_id, SUM(amount) AS total FROM orders GROUP BY customer_id"
)
JOIN_SQL = (
    "SELECT o.id, c.name FROM orders o LEFT JOIN customers c ON o.cid = c.id "
    "WHERE o.total > 10 ORDER BY o.id DESC LIMIT 5"
)


def ast_for(sql):
    return SqlParser(sql).statements[0].ast


class TestSelectSummary:
    """Tests for SELECT summaries."""

    def test_group_by(self):
        """Aggregating queries are described and scored."""
        doc = summarize(ast_for(GROUP_BY_SQL))

        assert doc.summary == "Select 2 columns from 1 table with aggregations"
        assert doc.purpose == "Retrieve data from the database"
        assert doc.complexity == "Simple"
        assert doc.complexity_score == 5
        assert [(t.name, t.role) for t in doc.tables] == [("orders", "source")]
        assert doc.aggregations[0].function == "SUM"
        assert doc.aggregations[0].column == "amount"
        assert doc.aggregations[0].alias == "total"
        assert doc.warnings == [
            "Uses GROUP BY - ensure indexes exist on grouping columns",
            "No LIMIT clause - query may return large result sets",
        ]
        assert doc.flow_summary == "Data aggregates results before final output"
        assert doc.data_flow_steps == [
            "1. Data is retrieved from: orders",
            "2. Data is aggregated using SUM",
            "3. Final result set is returned to the caller",
        ]

    def test_join_filter_sort_limit(self):
        """Joins, filters, ordering and limits are all reported."""
        doc = summarize(ast_for(JOIN_SQL))

        assert doc.summary == "Select 2 columns from 2 tables with 1 join"
        assert doc.complexity == "Moderate"
        assert doc.complexity_score == 11
        assert [(t.name, t.alias, t.role) for t in doc.tables] == [
            ("orders", "o", "source"),
            ("customers", "c", "joined"),
        ]
        join = doc.joins[0]
        assert join.type == "LEFT JOIN"
        assert join.left_table == "orders"
        assert join.right_table == "customers"
        assert join.condition == "o.cid = c.id"
        assert doc.filters[0].description == "o.total > 10"
        assert doc.ordering[0].column == "o.id"
        assert doc.ordering[0].direction == "DESC"
        assert doc.warnings == []
        assert doc.data_flow_steps == [
            "1. Data is retrieved from: orders",
            "2. Tables are joined using 1 join operation",
            "   - LEFT JOIN customers on o.cid = c.id",
            "3. Filters are applied to reduce the result set",
            "4. Results are sorted by o.id DESC",
            "5. Final result set is returned to the caller",
        ]

    def test_transformation_points(self):
        """Each reshaping clause becomes a transformation point."""
        doc = summarize(ast_for(JOIN_SQL))

        assert [p.id for p in doc.transformation_points] == [
            "joins",
            "filter",
            "sort",
            "limit",
        ]
        assert doc.transformation_points[-1].description == (
            "LIMIT restricts output to 5 rows"
        )
        assert doc.flow_summary == (
            "Data combines data from multiple sources, filters rows, sorts output "
            "before final output"
        )
        assert doc.data_volume_estimates[-1].stage == "Final Output"
        assert doc.data_volume_estimates[-1].estimated_rows == "few"

    def test_select_star(self):
        """A star projection is described as all columns."""
        doc = summarize(ast_for("SELECT * FROM users LIMIT 10"))
        assert doc.summary == "Select all columns from 1 table"
        assert doc.warnings == []

    def test_ctes(self):
        """CTEs are counted in the summary."""
        doc = summarize(
            ast_for("WITH recent AS (SELECT id FROM orders) SELECT id FROM recent")
        )
        assert doc.summary == "Select 1 column from 1 table using 1 CTE"
        assert doc.transformation_points[-1].description == (
            'CTE "recent" creates intermediate result set'
        )

    def test_aggregate_without_group_by(self):
        """A bare aggregate returns a single row."""
        doc = summarize(ast_for("SELECT COUNT(*) FROM users"))

        assert doc.aggregations[0].column == "*"
        stages = [e.estimated_rows for e in doc.data_volume_estimates]
        assert "single" in stages

    def test_custom_aggregates(self):
        """Configured aggregate names count as aggregations."""
        ast = ast_for("SELECT HLL_COUNT(user_id) FROM visits")

        assert summarize(ast).aggregations == []
        doc = QuerySummarizer(["hll_count"]).summarize(ast)
        assert doc.aggregations[0].function == "HLL_COUNT"

    def test_union_order_and_limit(self):
        """ORDER BY and LIMIT after a set operation are reported."""
        doc = summarize(
            ast_for("SELECT a FROM t UNION SELECT a FROM u ORDER BY a LIMIT 5")
        )

        assert doc.warnings == []
        assert [(o.column, o.direction) for o in doc.ordering] == [("a", "ASC")]
        assert [p.id for p in doc.transformation_points] == ["sort", "limit"]
        assert doc.transformation_points[-1].description == (
            "LIMIT restricts output to 5 rows"
        )
        assert doc.data_volume_estimates[-1].estimated_rows == "few"


class TestWriteSummary:
    """Tests for INSERT, UPDATE and DELETE summaries."""

    def test_insert(self):
        """Inserts name the target and column count."""
        doc = summarize(ast_for("INSERT INTO orders (id, amount) VALUES (1, 2)"))

        assert doc.summary == "Insert 2 columns into orders"
        assert doc.purpose == "Add new records to the database"
        assert doc.tables[0].role == "updated"

    def test_update_without_where(self):
        """An unrestricted UPDATE is flagged."""
        doc = summarize(ast_for("UPDATE users SET active = 0"))

        assert doc.summary == "Update 1 column in users"
        assert doc.warnings == ["No WHERE clause - will update ALL records in the table!"]
        assert doc.data_volume_estimates[0].estimated_rows == "many"

    def test_delete_with_where(self):
        """A restricted DELETE records its filter."""
        doc = summarize(ast_for("DELETE FROM sessions WHERE expired = 1"))

        assert doc.summary == "Delete records from sessions"
        assert doc.tables[0].role == "deleted"
        assert doc.filters[0].description == "expired = 1"
        assert doc.warnings == []

    def test_delete_without_where(self):
        """An unrestricted DELETE is flagged."""
        doc = summarize(ast_for("DELETE FROM sessions"))
        assert doc.warnings == [
            "No WHERE clause - will delete ALL records from the table!"
        ]

    def test_create_view(self):
        """A view summary covers its query and names the created view."""
        doc = summarize(
            ast_for("CREATE VIEW big_orders AS SELECT id FROM orders WHERE amount > 100")
        )

        assert doc.summary == "Create view big_orders: Select 1 column from 1 table"
        assert doc.purpose == "Store query results as a new database object"
        assert [(t.name, t.role) for t in doc.tables] == [
            ("orders", "source"),
            ("big_orders", "created"),
        ]
        assert doc.warnings == []
        assert doc.complexity_score == 6
        assert doc.data_flow_steps == [
            "1. Data is retrieved from: orders",
            "2. Filters are applied to reduce the result set",
            "3. Results are stored in big_orders",
        ]

    def test_create_table_as_select(self):
        """CTAS is summarized as a created table."""
        doc = summarize(ast_for("CREATE TABLE archive AS SELECT id, amount FROM orders"))

        assert doc.summary == "Create table archive: Select 2 columns from 1 table"
        assert doc.tables[-1].name == "archive"
        assert doc.tables[-1].role == "created"


class TestComplexityBucket:
    """Tests for the complexity score buckets."""

    @pytest.mark.parametrize(
        "score,expected",
        [
            (0, "Simple"),
            (9, "Simple"),
            (10, "Moderate"),
            (24, "Moderate"),
            (25, "Complex"),
            (39, "Complex"),
            (40, "Very Complex"),
            (100, "Very Complex"),
        ],
    )
    def test_bucket_edges(self, score, expected):
        """Scores of 10, 25 and 40 open the next bucket."""
        assert _complexity_bucket(score) == expected


class TestSummarizeFailure:
    """Tests for summaries of statements that cannot be analyzed."""

    def test_failure_yields_placeholder(self, mocker, capsys):
        """Errors are reported and replaced by a placeholder summary."""
        mocker.patch.object(
            QuerySummarizer, "_select_details", side_effect=RuntimeError("boom")
        )

        doc = summarize(ast_for(GROUP_BY_SQL))

        assert doc.summary == "Unable to generate documentation"
        assert doc.purpose == "Query analysis failed"
        assert "Could not summarize statement: boom" in capsys.readouterr().err


class TestFlowSteps:
    """Tests for flow_steps_from_graph."""

    def test_topological_order(self):
        """Steps follow the pipeline from source to projection."""
        graph = build_graph(ast_for(GROUP_BY_SQL))

        assert flow_steps_from_graph(graph) == [
            "1. orders: Source table",
            "2. Group & Aggregate: 1 aggregate function",
            "3. SELECT: Project columns",
        ]

    def test_join(self):
        """Both join inputs come before the join."""
        graph = build_graph(ast_for("SELECT a.x FROM a JOIN b ON a.id = b.id"))
        steps = flow_steps_from_graph(graph)

        assert len(steps) == 4
        assert steps[2] == "3. INNER JOIN: Join with b"
        assert steps[3] == "4. SELECT: Project columns"


class TestToMarkdown:
    """Tests for to_markdown."""

    def test_sections(self):
        """Populated sections are rendered and the SQL is appended."""
        doc = summarize(ast_for(JOIN_SQL))
        markdown = to_markdown(doc, JOIN_SQL)

        assert markdown.startswith("# SQL Query Documentation\n")
        assert "## Complexity: Moderate" in markdown
        assert "- **orders** (as o) - source" in markdown
        assert "1. **LEFT JOIN** customers on `o.cid = c.id`" in markdown
        assert "## Ordering" in markdown
        assert "## Aggregations" not in markdown
        assert f"```sql\n{JOIN_SQL}\n```" in markdown

    def test_hints_section(self):
        """Optimization hints are listed when given."""
        hint = OptimizationHint(
            type="warning", message="SELECT * detected", suggestion="Name the columns"
        )
        markdown = to_markdown(
            QuerySummary(summary="x", purpose="y"), "SELECT * FROM t", [hint]
        )

        assert "## Optimization Hints" in markdown
        assert "- **SELECT * detected**: Name the columns" in markdown

    @pytest.mark.parametrize(
        "section", ["## Tables Involved", "## Warnings", "## Optimization Hints"]
    )
    def test_empty_sections_skipped(self, section):
        """Sections without content are left out."""
        markdown = to_markdown(QuerySummary(summary="x", purpose="y"), "SELECT 1")
        assert section not in markdown
