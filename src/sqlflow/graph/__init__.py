"""Operator graph construction for sqlflow."""

from sqlflow.graph.builder import GraphBuilder, IdGenerator, build_graph
from sqlflow.graph.models import (
    AggregateDetails,
    AggregateFunctionDetail,
    CaseCondition,
    CaseDetail,
    CaseDetails,
    ColumnInfo,
    FlowEdge,
    FlowGraph,
    FlowNode,
    QueryStats,
    WindowDetails,
    WindowFunctionDetail,
)
from sqlflow.graph.serialization import (
    from_rustworkx,
    load_graph,
    save_graph,
    to_rustworkx,
)

__all__ = [
    # Models
    "AggregateDetails",
    "AggregateFunctionDetail",
    "CaseCondition",
    "CaseDetail",
    "CaseDetails",
    "ColumnInfo",
    "FlowEdge",
    "FlowGraph",
    "FlowNode",
    "QueryStats",
    "WindowDetails",
    "WindowFunctionDetail",
    # Builder
    "GraphBuilder",
    "IdGenerator",
    "build_graph",
    # Serialization
    "load_graph",
    "save_graph",
    "to_rustworkx",
    "from_rustworkx",
]
