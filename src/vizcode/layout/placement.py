"""Free-slot placement heuristic.

Scans a coarse grid over the canvas for the first slot whose padded
rectangle does not collide with any placed node or anchored cluster.
Used to give freshly created nodes and clusters a sensible starting
point, so an immediate re-layout is visually stable.
"""

from __future__ import annotations

import math
from typing import Dict, List, Sequence, Tuple

from ..graph.types import Cluster, Node

SLOT_MARGIN = 24
NODE_CLEARANCE = 36
EMPTY_CLUSTER_W = 180
EMPTY_CLUSTER_H = 100


def _overlaps(a: Dict, b: Dict) -> bool:
    return not (
        a["x"] + a["w"] < b["x"]
        or a["x"] > b["x"] + b["w"]
        or a["y"] + a["h"] < b["y"]
        or a["y"] > b["y"] + b["h"]
    )


def occupied_rects(nodes: Sequence[Node], clusters: Sequence[Cluster]) -> List[Dict]:
    """Rectangles already taken by placed nodes and anchored clusters."""
    occupied = []
    for n in nodes:
        occupied.append({
            "x": n.x - NODE_CLEARANCE,
            "y": n.y - NODE_CLEARANCE,
            "w": NODE_CLEARANCE * 2,
            "h": NODE_CLEARANCE * 2,
        })
    for c in clusters:
        if c.x and c.y:
            occupied.append({
                "x": c.x - SLOT_MARGIN,
                "y": c.y - SLOT_MARGIN,
                "w": EMPTY_CLUSTER_W + SLOT_MARGIN * 2,
                "h": EMPTY_CLUSTER_H + SLOT_MARGIN * 2,
            })
    return occupied


def find_empty_cluster_position(
    w: float,
    h: float,
    nodes: Sequence[Node],
    clusters: Sequence[Cluster],
    canvas_width: float = 2000,
) -> Tuple[float, float]:
    """Return the top-left corner of the first free `w` x `h` slot.

    Args:
        w: Width of the rectangle to place
        h: Height of the rectangle to place
        nodes: Nodes already on the canvas
        clusters: Clusters already on the canvas (only anchored ones occupy space)
        canvas_width: Width of the drawing area

    Returns:
        (x, y) of the slot; when the grid is full, a position offset by the
        number of existing entities so successive calls do not coincide.
    """
    base_w = max(220, w + 120)
    base_h = max(160, h + 80)
    cols = max(2, int(canvas_width // base_w))
    rows = max(2, math.ceil((len(clusters) + 1) / cols))
    occupied = occupied_rects(nodes, clusters)

    for r in range(rows):
        for c in range(cols):
            x = 80 + c * base_w
            y = 60 + r * base_h
            rect = {
                "x": x - SLOT_MARGIN,
                "y": y - SLOT_MARGIN,
                "w": w + SLOT_MARGIN * 2,
                "h": h + SLOT_MARGIN * 2,
            }
            if any(_overlaps(rect, occ) for occ in occupied):
                continue
            return (x, y)

    count = len(clusters) + len(nodes)
    return (100 + count * 20, 80 + (count // 6) * 40)


def find_free_node_position(
    nodes: Sequence[Node],
    clusters: Sequence[Cluster],
    canvas_width: float = 2000,
) -> Tuple[float, float]:
    """Placement for a new node: the first free empty-cluster sized slot."""
    return find_empty_cluster_position(EMPTY_CLUSTER_W, EMPTY_CLUSTER_H, nodes, clusters, canvas_width)
