"""Conversion between graph objects and JSON-ready dicts.

The dict form uses the field names of the wire format shared with the
remote parse service (`parentId`, `clusterId`, `from`, `to`).
"""

from __future__ import annotations

from typing import Dict, List, Optional

from .types import Cluster, Edge, EdgeType, Graph, Node


def _num(value) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def cluster_to_dict(c: Cluster) -> Dict:
    out = {"id": c.id, "label": c.label, "parentId": c.parent_id}
    if c.x is not None and c.y is not None:
        out["x"] = c.x
        out["y"] = c.y
    return out


def node_to_dict(n: Node) -> Dict:
    return {
        "id": n.id,
        "label": n.label,
        "name": n.name,
        "x": n.x,
        "y": n.y,
        "clusterId": n.cluster_id,
    }


def edge_to_dict(e: Edge) -> Dict:
    return {"id": e.id, "from": e.source, "to": e.target, "label": e.label, "type": e.type}


def graph_to_dict(graph: Graph) -> Dict[str, List[Dict]]:
    return {
        "clusters": [cluster_to_dict(c) for c in graph.clusters],
        "nodes": [node_to_dict(n) for n in graph.nodes],
        "edges": [edge_to_dict(e) for e in graph.edges],
    }


def graph_from_dict(data: Dict) -> Graph:
    """Build a graph from its dict form. Unknown keys are ignored."""
    clusters = [
        Cluster(
            id=str(c["id"]),
            label=str(c.get("label") or c["id"]),
            parent_id=c.get("parentId") or None,
            x=_num(c.get("x")),
            y=_num(c.get("y")),
        )
        for c in data.get("clusters") or []
    ]
    nodes = [
        Node(
            id=str(n["id"]),
            label=str(n.get("label") or n["id"]),
            name=n.get("name") or None,
            x=_num(n.get("x")) or 0.0,
            y=_num(n.get("y")) or 0.0,
            cluster_id=n.get("clusterId") or None,
        )
        for n in data.get("nodes") or []
    ]
    edges = [
        Edge(
            id=str(e["id"]),
            source=str(e["from"]),
            target=str(e["to"]),
            label=e.get("label") or e.get("lable") or None,
            type=EdgeType.normalize(e.get("type")),
        )
        for e in data.get("edges") or []
    ]
    return Graph(clusters=clusters, nodes=nodes, edges=edges)
