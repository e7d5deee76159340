"""Shared models and enums used across sqlflow modules."""

from enum import Enum
from typing import Optional


class NodeType(str, Enum):
    """Kind of pipeline stage represented by a flow node."""

    TABLE = "table"
    FILTER = "filter"
    JOIN = "join"
    AGGREGATE = "aggregate"
    SORT = "sort"
    LIMIT = "limit"
    SELECT = "select"
    RESULT = "result"
    CTE = "cte"
    UNION = "union"
    SUBQUERY = "subquery"
    WINDOW = "window"
    CASE = "case"
    CLUSTER = "cluster"


class TransformationType(str, Enum):
    """How a column changes at one hop of its lineage path."""

    SOURCE = "source"
    PASSTHROUGH = "passthrough"
    RENAMED = "renamed"
    AGGREGATED = "aggregated"
    CALCULATED = "calculated"
    JOINED = "joined"


class ClauseType(str, Enum):
    """SQL clause an edge was derived from."""

    JOIN = "join"
    WHERE = "where"
    HAVING = "having"
    ON = "on"
    FILTER = "filter"
    FLOW = "flow"


class TableCategory(str, Enum):
    """Origin of a table node."""

    PHYSICAL = "physical"
    DERIVED = "derived"
    CTE_REFERENCE = "cte_reference"
    TABLE_FUNCTION = "table_function"


class AccessMode(str, Enum):
    """Whether a table node is read from or written to."""

    READ = "read"
    WRITE = "write"
    DERIVED = "derived"


class SqlDialect(str, Enum):
    """Supported SQL dialects."""

    MYSQL = "MySQL"
    POSTGRESQL = "PostgreSQL"
    TRANSACTSQL = "TransactSQL"
    MARIADB = "MariaDB"
    SQLITE = "SQLite"
    SNOWFLAKE = "Snowflake"
    BIGQUERY = "BigQuery"
    HIVE = "Hive"
    REDSHIFT = "Redshift"
    ATHENA = "Athena"
    TRINO = "Trino"

    @property
    def sqlglot_name(self) -> str:
        """Name of the matching sqlglot dialect."""
        return _SQLGLOT_DIALECTS[self]

    @classmethod
    def from_name(cls, name: Optional[str]) -> "SqlDialect":
        """
        Resolve a dialect from a display name or a sqlglot dialect name.

        Matching is case-insensitive, so "postgres", "PostgreSQL" and
        "postgresql" all resolve to POSTGRESQL.

        Args:
            name: Dialect name. None resolves to the default (MySQL).

        Returns:
            The matching SqlDialect

        Raises:
            ValueError: If the name matches no supported dialect
        """
        if not name:
            return cls.MYSQL

        lowered = name.strip().lower()
        for dialect in cls:
            if lowered in (dialect.value.lower(), dialect.sqlglot_name):
                return dialect

        supported = ", ".join(d.value for d in cls)
        raise ValueError(f"Unsupported dialect '{name}'. Use one of: {supported}")


_SQLGLOT_DIALECTS = {
    SqlDialect.MYSQL: "mysql",
    SqlDialect.POSTGRESQL: "postgres",
    SqlDialect.TRANSACTSQL: "tsql",
    SqlDialect.MARIADB: "mysql",
    SqlDialect.SQLITE: "sqlite",
    SqlDialect.SNOWFLAKE: "snowflake",
    SqlDialect.BIGQUERY: "bigquery",
    SqlDialect.HIVE: "hive",
    SqlDialect.REDSHIFT: "redshift",
    SqlDialect.ATHENA: "athena",
    SqlDialect.TRINO: "trino",
}
