"""Pydantic models for the operator graph."""

from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from sqlflow.global_models import AccessMode, ClauseType, NodeType, TableCategory


class ColumnInfo(BaseModel):
    """A column as it appears in a SELECT list or table schema."""

    name: str = Field(..., description="Output name (alias if present)")
    expression: str = Field(..., description="Rendered source expression")
    source_column: Optional[str] = Field(
        None, description="Underlying base column, when the expression is one"
    )
    source_table: Optional[str] = Field(
        None, description="Table or alias qualifying the base column"
    )
    is_aggregate: bool = Field(
        default=False, description="True if the expression is an aggregate call"
    )
    is_window_func: bool = Field(
        default=False, description="True if the expression has an OVER clause"
    )


class AggregateFunctionDetail(BaseModel):
    """One aggregate function call found in the projection."""

    name: str = Field(..., description="Upper-cased function name")
    expression: str = Field(..., description="Rendered call, e.g. COUNT(order_id)")
    alias: Optional[str] = None
    source_column: Optional[str] = None
    source_table: Optional[str] = None


class AggregateDetails(BaseModel):
    """Aggregate functions and grouping keys of an aggregate node."""

    functions: List[AggregateFunctionDetail] = Field(default_factory=list)
    group_by: List[str] = Field(default_factory=list)
    having: Optional[str] = None


class WindowFunctionDetail(BaseModel):
    """One window function call with its OVER specification."""

    name: str
    alias: Optional[str] = None
    partition_by: List[str] = Field(default_factory=list)
    order_by: List[str] = Field(default_factory=list)
    frame: Optional[str] = None


class WindowDetails(BaseModel):
    """Window functions evaluated at a window node."""

    functions: List[WindowFunctionDetail] = Field(default_factory=list)


class CaseCondition(BaseModel):
    """One WHEN ... THEN ... branch."""

    when: str
    then: str


class CaseDetail(BaseModel):
    """A CASE expression found in the projection."""

    conditions: List[CaseCondition] = Field(default_factory=list)
    else_value: Optional[str] = None
    alias: Optional[str] = None


class CaseDetails(BaseModel):
    """CASE expressions evaluated at a case node."""

    cases: List[CaseDetail] = Field(default_factory=list)


class FlowEdge(BaseModel):
    """Directed edge between two pipeline stages."""

    id: str = Field(..., description="Unique edge identifier")
    source: str = Field(..., description="Upstream node id")
    target: str = Field(..., description="Downstream node id")
    label: Optional[str] = None
    sql_clause: Optional[str] = Field(
        None, description="SQL text of the clause that produced the edge"
    )
    clause_type: Optional[ClauseType] = None


class FlowNode(BaseModel):
    """One stage of the query pipeline."""

    id: str = Field(..., description="Unique node identifier")
    type: NodeType = Field(..., description="Kind of pipeline stage")
    label: str = Field(..., description="Short display label")
    description: Optional[str] = None
    details: List[str] = Field(default_factory=list)

    alias: Optional[str] = Field(None, description="FROM alias (table nodes)")
    table_category: Optional[TableCategory] = None
    join_type: Optional[str] = None
    access_mode: Optional[AccessMode] = None

    columns: Optional[List[ColumnInfo]] = None
    aggregate_details: Optional[AggregateDetails] = None
    window_details: Optional[WindowDetails] = None
    case_details: Optional[CaseDetails] = None

    # Nested pipeline of CTE and subquery containers
    children: Optional[List["FlowNode"]] = None
    child_edges: Optional[List[FlowEdge]] = None


class FlowGraph(BaseModel):
    """Nodes and edges derived from one statement."""

    nodes: List[FlowNode] = Field(default_factory=list)
    edges: List[FlowEdge] = Field(default_factory=list)

    def get_node(self, node_id: str) -> Optional[FlowNode]:
        """
        Find a node by id.

        Args:
            node_id: Node identifier

        Returns:
            FlowNode if found, None otherwise
        """
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def nodes_of_type(self, node_type: NodeType) -> List[FlowNode]:
        """All nodes of one type, in creation order."""
        return [n for n in self.nodes if n.type == node_type]

    def incoming_index(self) -> Dict[str, List[str]]:
        """Map of target node id to its source node ids, in edge order."""
        incoming: Dict[str, List[str]] = {}
        for edge in self.edges:
            incoming.setdefault(edge.target, []).append(edge.source)
        return incoming

    @property
    def terminal_node(self) -> Optional[FlowNode]:
        """The last node with no outgoing edge, if any."""
        sources = {edge.source for edge in self.edges}
        for node in reversed(self.nodes):
            if node.id not in sources:
                return node
        return None


class QueryStats(BaseModel):
    """Structural counts collected while building a graph."""

    tables: int = 0
    joins: int = 0
    subqueries: int = 0
    ctes: int = 0
    aggregations: int = 0
    window_functions: int = 0
    unions: int = 0
    conditions: int = 0


FlowNode.model_rebuild()
