"""Pydantic models for query summaries."""

from typing import List, Literal, Optional

from pydantic import BaseModel, Field

Complexity = Literal["Simple", "Moderate", "Complex", "Very Complex"]


class TableReference(BaseModel):
    """A table touched by the statement."""

    name: str
    alias: Optional[str] = None
    role: Literal["source", "joined", "updated", "deleted", "created"]


class JoinReference(BaseModel):
    """A join between the previous table and a joined table."""

    type: str = Field(..., description="Join label, e.g. LEFT JOIN")
    left_table: str
    right_table: str
    condition: str


class FilterReference(BaseModel):
    """A WHERE clause rendered for humans."""

    column: str
    operator: str
    value: str
    description: str


class AggregationReference(BaseModel):
    """An aggregate function projected by a SELECT."""

    function: str
    column: str
    alias: Optional[str] = None


class OrderingReference(BaseModel):
    """One ORDER BY key."""

    column: str
    direction: Literal["ASC", "DESC"]


class TransformationPoint(BaseModel):
    """A clause that reshapes the data flowing through the statement."""

    id: str
    type: Literal["join", "filter", "aggregate", "sort", "limit"]
    description: str
    estimated_impact: Literal["high", "medium", "low"]


class DataVolumeEstimate(BaseModel):
    """Rough row-count estimate after one stage."""

    node_id: str
    stage: str
    estimated_rows: Literal["many", "reduced", "few", "single"]
    reasoning: str


class QuerySummary(BaseModel):
    """Human-readable description of one statement."""

    summary: str = Field(default="", description="One-line summary")
    purpose: str = Field(default="", description="What the statement is for")
    complexity: Complexity = "Simple"
    complexity_score: int = 0
    tables: List[TableReference] = Field(default_factory=list)
    joins: List[JoinReference] = Field(default_factory=list)
    filters: List[FilterReference] = Field(default_factory=list)
    aggregations: List[AggregationReference] = Field(default_factory=list)
    ordering: List[OrderingReference] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    data_flow_steps: List[str] = Field(default_factory=list)
    transformation_points: List[TransformationPoint] = Field(default_factory=list)
    data_volume_estimates: List[DataVolumeEstimate] = Field(default_factory=list)
    flow_summary: str = ""


class OptimizationHint(BaseModel):
    """A performance or safety suggestion for one statement."""

    type: Literal["info", "warning", "error"]
    message: str
    suggestion: str
