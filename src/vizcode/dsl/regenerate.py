"""Prompt regenerator: the inverse of the parser.

Writes a graph back as canonical DSL text, so the text view stays in sync
after programmatic edits. Floating nodes come first (before any cluster
line, so they stay floating on re-parse), then clusters depth-first with
two spaces of indentation per level, each followed by its own nodes, then
one line per edge.
"""

from __future__ import annotations

from collections import defaultdict
from typing import Dict, List, Optional, Sequence

from ..graph.types import Cluster, Edge, EdgeType, Node

INDENT = "  "


def _node_line(node: Node, depth: int) -> str:
    line = f"{INDENT * depth}Node: {node.label}"
    if node.name:
        line += f" [name={node.name}]"
    return line


def quote_value(text: str) -> str:
    """Quote an attribute value so `parse_attributes` reads back the same text."""
    if "\\" not in text:
        if "'" not in text:
            return f"'{text}'"
        if '"' not in text:
            return f'"{text}"'
    escaped = text.replace("\\", "\\\\").replace("'", "\\'")
    return f"'{escaped}'"


def _edge_line(edge: Edge, by_id: Dict[str, Node]) -> Optional[str]:
    source = by_id.get(edge.source)
    target = by_id.get(edge.target)
    if source is None or target is None:
        return None
    attrs = [f"arrow={EdgeType.normalize(edge.type)}"]
    if edge.label:
        attrs.append(f"label={quote_value(edge.label)}")
    return f"{source.reference} -> {target.reference} [{', '.join(attrs)}]"


def regenerate_prompt(nodes: Sequence[Node], edges: Sequence[Edge], clusters: Sequence[Cluster]) -> str:
    """Render the graph as DSL text."""
    by_cluster = {c.id: c for c in clusters}
    children: Dict[Optional[str], List[Cluster]] = defaultdict(list)
    for c in clusters:
        parent = c.parent_id if c.parent_id in by_cluster and c.parent_id != c.id else None
        children[parent].append(c)
    members: Dict[Optional[str], List[Node]] = defaultdict(list)
    for n in nodes:
        members[n.cluster_id if n.cluster_id in by_cluster else None].append(n)

    lines: List[str] = [_node_line(n, 0) for n in members[None]]

    emitted = set()

    def emit_tree(root: Cluster) -> None:
        stack = [(root, 0)]
        while stack:
            cluster, depth = stack.pop()
            if cluster.id in emitted:
                continue
            emitted.add(cluster.id)
            lines.append(f"{INDENT * depth}Cluster: {cluster.label}")
            lines.extend(_node_line(n, depth + 1) for n in members[cluster.id])
            for child in reversed(children[cluster.id]):
                stack.append((child, depth + 1))

    for root in children[None]:
        emit_tree(root)
    # Clusters caught in a parent cycle are never reached from a root
    for c in clusters:
        if c.id not in emitted:
            emit_tree(c)

    by_id = {n.id: n for n in nodes}
    for e in edges:
        line = _edge_line(e, by_id)
        if line:
            lines.append(line)

    return "\n".join(lines).strip()
