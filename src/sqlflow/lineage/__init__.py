"""Column lineage extraction and tracing for sqlflow."""

from sqlflow.lineage.extractor import extract_column_lineage, extract_sources_from_expr
from sqlflow.lineage.models import (
    ColumnFlow,
    ColumnLineage,
    LineagePathStep,
    LineageSource,
)
from sqlflow.lineage.tracer import (
    build_column_lineage_path,
    find_source_column,
    generate_column_flows,
    get_transformation_type,
)

__all__ = [
    "ColumnFlow",
    "ColumnLineage",
    "LineagePathStep",
    "LineageSource",
    "build_column_lineage_path",
    "extract_column_lineage",
    "extract_sources_from_expr",
    "find_source_column",
    "generate_column_flows",
    "get_transformation_type",
]
