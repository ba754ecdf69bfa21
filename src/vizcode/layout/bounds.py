"""Cluster outline geometry.

Outlines are derived, never stored: a cluster's box encloses its member
icons and the boxes of its child clusters, plus a small padding. The
walk is an explicit post-order traversal over clusters indexed by id,
guarded against parent cycles.
"""

from __future__ import annotations

import math
from collections import defaultdict
from typing import Dict, List, Optional, Sequence

from ..graph.types import Cluster, Node
from .placement import EMPTY_CLUSTER_H, EMPTY_CLUSTER_W, find_empty_cluster_position

MEMBER_EXTENT = 36
OUTLINE_PAD = 8
FRAME_NODE_MARGIN = 22
FRAME_PAD = 8


def cluster_depths(clusters: Sequence[Cluster]) -> Dict[str, int]:
    """Number of ancestors of each cluster.

    A broken parent chain (unknown id or a cycle) ends the walk.
    """
    parent = {c.id: c.parent_id for c in clusters}
    depths: Dict[str, int] = {}
    for c in clusters:
        seen = {c.id}
        depth = 0
        current = parent.get(c.id)
        while current is not None and current in parent and current not in seen:
            seen.add(current)
            depth += 1
            current = parent[current]
        depths[c.id] = depth
    return depths


def cluster_bounds(
    clusters: Sequence[Cluster],
    nodes: Sequence[Node],
    canvas_width: float = 2000,
) -> Dict[str, Dict]:
    """Compute the outline box (`x`, `y`, `w`, `h`) of every cluster."""
    by_id = {c.id: c for c in clusters}
    children: Dict[str, List[str]] = defaultdict(list)
    for c in clusters:
        if c.parent_id in by_id and c.parent_id != c.id:
            children[c.parent_id].append(c.id)
    members: Dict[str, List[Node]] = defaultdict(list)
    for n in nodes:
        if n.cluster_id in by_id:
            members[n.cluster_id].append(n)

    boxes: Dict[str, Dict] = {}
    for root in clusters:
        if root.id in boxes:
            continue
        on_path = set()
        stack = [(root.id, False)]
        while stack:
            cid, expanded = stack.pop()
            if expanded:
                on_path.discard(cid)
                boxes[cid] = _outline(by_id[cid], members[cid], children[cid], boxes, nodes, clusters, canvas_width)
                continue
            if cid in boxes or cid in on_path:
                continue
            on_path.add(cid)
            stack.append((cid, True))
            for child in reversed(children[cid]):
                if child not in boxes and child not in on_path:
                    stack.append((child, False))
    return boxes


def _outline(
    cluster: Cluster,
    members: List[Node],
    child_ids: List[str],
    boxes: Dict[str, Dict],
    nodes: Sequence[Node],
    clusters: Sequence[Cluster],
    canvas_width: float,
) -> Dict:
    min_x = min_y = math.inf
    max_x = max_y = -math.inf
    for n in members:
        min_x = min(min_x, n.x - MEMBER_EXTENT)
        min_y = min(min_y, n.y - MEMBER_EXTENT)
        max_x = max(max_x, n.x + MEMBER_EXTENT)
        max_y = max(max_y, n.y + MEMBER_EXTENT)
    for child in child_ids:
        box = boxes.get(child)
        if box is None:
            continue
        min_x = min(min_x, box["x"])
        min_y = min(min_y, box["y"])
        max_x = max(max_x, box["x"] + box["w"])
        max_y = max(max_y, box["y"] + box["h"])

    if math.isinf(min_x):
        if cluster.x is not None and cluster.y is not None:
            return {"x": cluster.x, "y": cluster.y, "w": EMPTY_CLUSTER_W, "h": EMPTY_CLUSTER_H}
        x, y = find_empty_cluster_position(EMPTY_CLUSTER_W, EMPTY_CLUSTER_H, nodes, clusters, canvas_width)
        return {"x": x, "y": y, "w": EMPTY_CLUSTER_W, "h": EMPTY_CLUSTER_H}

    return {
        "x": min_x - OUTLINE_PAD,
        "y": min_y - OUTLINE_PAD,
        "w": (max_x - min_x) + OUTLINE_PAD * 2,
        "h": (max_y - min_y) + OUTLINE_PAD * 2,
    }


def find_cluster_at(
    x: float,
    y: float,
    clusters: Sequence[Cluster],
    nodes: Sequence[Node],
    bounds: Optional[Dict[str, Dict]] = None,
) -> Optional[str]:
    """Return the id of the innermost cluster whose outline contains (x, y)."""
    if bounds is None:
        bounds = cluster_bounds(clusters, nodes)
    depths = cluster_depths(clusters)
    best: Optional[str] = None
    for c in clusters:
        box = bounds.get(c.id)
        if not box:
            continue
        if box["x"] <= x <= box["x"] + box["w"] and box["y"] <= y <= box["y"] + box["h"]:
            if best is None or depths[c.id] > depths[best]:
                best = c.id
    return best


def diagram_bounds(
    clusters: Sequence[Cluster],
    nodes: Sequence[Node],
    bounds: Optional[Dict[str, Dict]] = None,
) -> Dict:
    """Tight frame around every node and cluster outline, used for export."""
    if bounds is None:
        bounds = cluster_bounds(clusters, nodes)
    min_x = min_y = math.inf
    max_x = max_y = -math.inf
    for n in nodes:
        min_x = min(min_x, n.x - FRAME_NODE_MARGIN)
        min_y = min(min_y, n.y - FRAME_NODE_MARGIN)
        max_x = max(max_x, n.x + FRAME_NODE_MARGIN)
        max_y = max(max_y, n.y + FRAME_NODE_MARGIN)
    for box in bounds.values():
        min_x = min(min_x, box["x"])
        min_y = min(min_y, box["y"])
        max_x = max(max_x, box["x"] + box["w"])
        max_y = max(max_y, box["y"] + box["h"])

    if math.isinf(min_x):
        return {"x": 0, "y": 0, "w": 800, "h": 600}

    left = max(0, math.floor(min_x - FRAME_PAD))
    top = max(0, math.floor(min_y - FRAME_PAD))
    right = math.ceil(max_x + FRAME_PAD)
    bottom = math.ceil(max_y + FRAME_PAD)
    return {"x": left, "y": top, "w": max(1, right - left), "h": max(1, bottom - top)}
