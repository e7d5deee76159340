"""Serialization and rustworkx conversion for flow graphs."""

from pathlib import Path
from typing import Dict, Tuple

import rustworkx as rx

from sqlflow.graph.models import FlowEdge, FlowGraph, FlowNode


def save_graph(graph: FlowGraph, output_path: Path) -> None:
    """
    Save a FlowGraph to a JSON file.

    Args:
        graph: FlowGraph to save
        output_path: Output file path
    """
    output_path.write_text(
        graph.model_dump_json(indent=2, exclude_none=True),
        encoding="utf-8",
    )


def load_graph(input_path: Path) -> FlowGraph:
    """
    Load a FlowGraph from a JSON file.

    Args:
        input_path: Input file path

    Returns:
        Loaded FlowGraph

    Raises:
        FileNotFoundError: If input file doesn't exist
        ValueError: If file content is invalid JSON or doesn't match schema
    """
    if not input_path.exists():
        raise FileNotFoundError(f"Graph file not found: {input_path}")

    content = input_path.read_text(encoding="utf-8")
    return FlowGraph.model_validate_json(content)


def to_rustworkx(graph: FlowGraph) -> Tuple[rx.PyDiGraph, Dict[str, int]]:
    """
    Convert a FlowGraph to a rustworkx PyDiGraph.

    Only top-level nodes are added; nested CTE and subquery pipelines stay
    inside their container node's payload.

    Args:
        graph: FlowGraph to convert

    Returns:
        Tuple of (PyDiGraph, node_id_to_index_map)
    """
    rx_graph: rx.PyDiGraph = rx.PyDiGraph()
    node_map: Dict[str, int] = {}

    for node in graph.nodes:
        node_map[node.id] = rx_graph.add_node(node.model_dump())

    for edge in graph.edges:
        source_idx = node_map.get(edge.source)
        target_idx = node_map.get(edge.target)
        if source_idx is not None and target_idx is not None:
            rx_graph.add_edge(source_idx, target_idx, edge.model_dump())

    return rx_graph, node_map


def from_rustworkx(rx_graph: rx.PyDiGraph) -> FlowGraph:
    """
    Convert a rustworkx PyDiGraph built by to_rustworkx back to a FlowGraph.

    Args:
        rx_graph: rustworkx directed graph with FlowNode/FlowEdge payloads

    Returns:
        FlowGraph with nodes and edges from the rustworkx graph
    """
    nodes = [FlowNode(**rx_graph[idx]) for idx in rx_graph.node_indices()]
    edges = [
        FlowEdge(**rx_graph.get_edge_data_by_index(idx))
        for idx in rx_graph.edge_indices()
    ]
    return FlowGraph(nodes=nodes, edges=edges)
