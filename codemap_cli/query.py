"""Read-only queries over a built :class:`~codemap_cli.models.Graph`."""

from __future__ import annotations

import os
from collections import Counter, deque
from typing import Dict, List, Optional

from .models import CallRef, FileRef, Graph


def get_subgraph(graph: Graph, node_id: str, depth: int = 2) -> Graph:
    """Nodes within *depth* hops of *node_id*, following edges in both directions.

    Edges whose far end is not a node (virtual targets) are included but not
    followed. An unknown *node_id* gives an empty graph.
    """
    subgraph = Graph()
    center = graph.get_node(node_id)
    if center is None:
        return subgraph
    subgraph.add_node(center)

    adjacency: Dict[str, List] = {}
    for edge in graph.edges:
        adjacency.setdefault(edge.source, []).append(edge)
        if edge.target != edge.source:
            adjacency.setdefault(edge.target, []).append(edge)

    seen = {node_id}
    queue = deque([(node_id, 0)])
    while queue:
        current, hops = queue.popleft()
        if hops >= depth:
            continue
        for edge in adjacency.get(current, []):
            subgraph.add_edge(edge)
            nxt = edge.target if edge.source == current else edge.source
            if nxt in seen:
                continue
            seen.add(nxt)
            node = graph.get_node(nxt)
            if node is not None:
                subgraph.add_node(node)
                queue.append((nxt, hops + 1))
    return subgraph


def get_function_calls(graph: Graph, function_id: str) -> List[CallRef]:
    refs = []
    for edge in graph.edges:
        if edge.type == "calls" and edge.source == function_id:
            target = graph.get_node(edge.target)
            refs.append(CallRef(
                source=function_id,
                target=edge.target,
                name=target.label if target else "Unknown",
                path=target.path if target else "Unknown",
                line=edge.line,
            ))
    return refs


def get_function_callers(graph: Graph, function_id: str) -> List[CallRef]:
    refs = []
    for edge in graph.edges:
        if edge.type == "calls" and edge.target == function_id:
            source = graph.get_node(edge.source)
            refs.append(CallRef(
                source=edge.source,
                target=function_id,
                name=source.label if source else "Unknown",
                path=source.path if source else "Unknown",
                line=edge.line,
            ))
    return refs


def get_file_dependencies(graph: Graph, file_path: str) -> List[FileRef]:
    return [
        FileRef(source=file_path, target=edge.target, name=_file_name(graph, edge.target))
        for edge in graph.edges
        if edge.type == "imports" and edge.source == file_path
    ]


def get_file_dependents(graph: Graph, file_path: str) -> List[FileRef]:
    return [
        FileRef(source=edge.source, target=file_path, name=_file_name(graph, edge.source))
        for edge in graph.edges
        if edge.type == "imports" and edge.target == file_path
    ]


def _file_name(graph: Graph, node_id: str) -> str:
    node = graph.get_node(node_id)
    return os.path.basename(node.path) if node else "Unknown"


def find_nodes(graph: Graph, label: str, node_type: Optional[str] = None) -> List:
    """Nodes whose id or label equals *label*, optionally of one type."""
    return [
        node for node in graph.nodes
        if (node.id == label or node.label == label) and (node_type is None or node.type == node_type)
    ]


def summarize(graph: Graph) -> Dict[str, Dict[str, int]]:
    return {
        "nodes": dict(Counter(node.type for node in graph.nodes)),
        "edges": dict(Counter(edge.type for edge in graph.edges)),
    }
