"""Query summaries and data-flow descriptions."""

from sqlflow.documentation.hints import generate_hints
from sqlflow.documentation.models import OptimizationHint, QuerySummary
from sqlflow.documentation.summarizer import (
    QuerySummarizer,
    flow_steps_from_graph,
    summarize,
    to_markdown,
)

__all__ = [
    "OptimizationHint",
    "QuerySummarizer",
    "QuerySummary",
    "flow_steps_from_graph",
    "generate_hints",
    "summarize",
    "to_markdown",
]
