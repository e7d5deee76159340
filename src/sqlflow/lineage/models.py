"""Pydantic models for column lineage."""

from typing import List, Optional

from pydantic import BaseModel, Field

from sqlflow.global_models import NodeType, TransformationType


class LineageSource(BaseModel):
    """A base column an output column reads from."""

    table: str = Field(..., description="Real table name (alias resolved)")
    column: str = Field(..., description="Column name, or * for star expansion")
    node_id: str = Field(
        default="", description="Id of the matching table node, empty when unresolved"
    )


class ColumnLineage(BaseModel):
    """Immediate sources of one SELECT output column."""

    output_column: str = Field(..., description="Output column name")
    sources: List[LineageSource] = Field(default_factory=list)


class LineagePathStep(BaseModel):
    """One hop of a column's path through the operator graph."""

    node_id: str
    node_name: str = Field(..., description="Label of the node")
    node_type: NodeType
    column_name: str = Field(..., description="Column name at this node")
    transformation: TransformationType
    expression: Optional[str] = Field(
        None, description="Expression, when it differs from the column name"
    )


class ColumnFlow(BaseModel):
    """Complete lineage of one output column, ordered source to result."""

    id: str = Field(..., description="Flow identifier")
    output_column: str
    output_node_id: str = Field(..., description="Id of the producing select node")
    lineage_path: List[LineagePathStep] = Field(default_factory=list)
