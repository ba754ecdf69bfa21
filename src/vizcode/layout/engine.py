"""Deterministic grid layout for clusters.

Every cluster gets one cell of a near-square grid centred on the canvas.
Member nodes follow their cluster into its cell and, when a cluster has
more than one member, are packed into a small sub-grid around the cell
centre. Floating nodes (no cluster) are never moved.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, replace
from typing import Dict, List, Optional, Sequence, Tuple

from ..graph.types import ICON_HALF, Cluster, Node
from .bounds import cluster_depths
from .placement import EMPTY_CLUSTER_H, EMPTY_CLUSTER_W

logger = logging.getLogger(__name__)

PACK_STEP = 120
MIN_CLUSTER_W = 120
MIN_CLUSTER_H = 80
MEMBER_MARGIN = 36
CELL_PAD = 40
CELL_SPACING = 80
NEST_MARGIN = 12
CANVAS_MARGIN = 80
EMPTY_GUESS_GAP = 40


@dataclass
class FixedAnchor:
    """Pin `cluster_id` to the grid cell nearest (x, y)."""

    cluster_id: str
    x: float
    y: float


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def pack_shape(count: int) -> Tuple[int, int]:
    """Columns and rows of the sub-grid used for `count` member icons."""
    if count <= 1:
        return 1, 1
    cols = math.ceil(math.sqrt(count))
    return cols, math.ceil(count / cols)


def _cluster_info(cluster: Cluster, index: int, members: List[Node], guess_cols: int, depth: int) -> Dict:
    if not members:
        w, h = EMPTY_CLUSTER_W, EMPTY_CLUSTER_H
        cx = cluster.x if cluster.x is not None else (index % guess_cols) * (w + EMPTY_GUESS_GAP) + 120
        cy = cluster.y if cluster.y is not None else (index // guess_cols) * (h + EMPTY_GUESS_GAP) + 80
    else:
        cx = sum(n.x for n in members) / len(members)
        cy = sum(n.y for n in members) / len(members)
        # Footprint after packing, so the result does not depend on where members started
        cols, rows = pack_shape(len(members))
        span_x = (cols - 1) * PACK_STEP
        span_y = (rows - 1) * PACK_STEP
        w = max(MIN_CLUSTER_W, span_x + 2 * ICON_HALF + MEMBER_MARGIN)
        h = max(MIN_CLUSTER_H, span_y + 2 * ICON_HALF + MEMBER_MARGIN)

    margin = 2 * NEST_MARGIN * depth
    return {"id": cluster.id, "w": w + margin, "h": h + margin, "cx": cx, "cy": cy}


def _grid_cells(count: int, cell_w: float, cell_h: float, canvas_width: float, canvas_height: float) -> List[Dict]:
    cols = max(1, _round_half_up(math.sqrt(count)))
    avail_w = max(200, canvas_width - CANVAS_MARGIN)
    if cols * cell_w > avail_w:
        cols = max(1, int(avail_w // cell_w))
    cols = min(cols, count)
    rows = math.ceil(count / cols)

    origin_x = max(20, math.floor((canvas_width - cols * cell_w) / 2 + 20))
    origin_y = max(20, math.floor((canvas_height - rows * cell_h) / 2 + 20))

    cells = []
    for r in range(rows):
        for c in range(cols):
            x = origin_x + c * cell_w
            y = origin_y + r * cell_h
            cells.append({"x": x, "y": y, "cx": x + cell_w / 2, "cy": y + cell_h / 2})
    return cells


def _assign_cells(ids: List[str], cells: List[Dict], fixed: Optional[FixedAnchor]) -> Dict[str, int]:
    """Map cluster id -> cell index, in order, with an optional pinned cluster first."""
    if fixed is None or fixed.cluster_id not in ids:
        return {cid: i for i, cid in enumerate(ids)}

    best_idx = 0
    best_d = math.inf
    for i, cell in enumerate(cells):
        d = math.hypot(cell["cx"] - fixed.x, cell["cy"] - fixed.y)
        if d < best_d:
            best_d = d
            best_idx = i

    assignment = {fixed.cluster_id: best_idx}
    free = (i for i in range(len(cells)) if i != best_idx)
    for cid in ids:
        if cid == fixed.cluster_id:
            continue
        assignment[cid] = next(free)
    return assignment


def layout(
    clusters: Sequence[Cluster],
    nodes: Sequence[Node],
    fixed: Optional[FixedAnchor] = None,
    canvas_width: float = 2000,
    canvas_height: float = 1200,
) -> Tuple[List[Cluster], List[Node]]:
    """Place clusters on a grid and move their member nodes along.

    Args:
        clusters: Clusters in declaration order
        nodes: All nodes; members follow their cluster, others stay put
        fixed: Optional anchor pinning one cluster near a point
        canvas_width: Width of the drawing area
        canvas_height: Height of the drawing area

    Returns:
        (clusters, nodes) as new lists of new objects, in input order
    """
    n_clusters = len(clusters)
    if n_clusters == 0:
        return [replace(c) for c in clusters], [replace(n) for n in nodes]

    depths = cluster_depths(clusters)
    members: Dict[str, List[Node]] = {c.id: [] for c in clusters}
    for n in nodes:
        if n.cluster_id in members:
            members[n.cluster_id].append(n)

    guess_cols = max(1, _round_half_up(math.sqrt(n_clusters)))
    infos = {
        c.id: _cluster_info(c, idx, members[c.id], guess_cols, depths[c.id])
        for idx, c in enumerate(clusters)
    }

    cell_w = max(info["w"] for info in infos.values()) + CELL_PAD + CELL_SPACING
    cell_h = max(info["h"] for info in infos.values()) + CELL_PAD + CELL_SPACING
    cells = _grid_cells(n_clusters, cell_w, cell_h, canvas_width, canvas_height)
    assignment = _assign_cells([c.id for c in clusters], cells, fixed)

    out_clusters: List[Cluster] = []
    targets: Dict[str, Tuple[float, float, float, float]] = {}
    for c in clusters:
        cell = cells[assignment[c.id]]
        info = infos[c.id]
        cx = info["cx"] or cell["cx"]
        cy = info["cy"] or cell["cy"]
        targets[c.id] = (cell["cx"] - cx, cell["cy"] - cy, cell["cx"], cell["cy"])
        out_clusters.append(replace(c, x=cell["x"], y=cell["y"]))

    out_nodes: List[Node] = []
    slot_of: Dict[str, int] = {}
    for n in nodes:
        if n.cluster_id not in targets:
            out_nodes.append(replace(n))
            continue
        dx, dy, tx, ty = targets[n.cluster_id]
        group = members[n.cluster_id]
        if len(group) == 1:
            out_nodes.append(replace(n, x=n.x + dx, y=n.y + dy))
            continue
        cols, rows = pack_shape(len(group))
        slot = slot_of.get(n.cluster_id, 0)
        slot_of[n.cluster_id] = slot + 1
        col = slot % cols
        row = slot // cols
        out_nodes.append(replace(
            n,
            x=tx + (col - (cols - 1) / 2) * PACK_STEP,
            y=ty + (row - (rows - 1) / 2) * PACK_STEP,
        ))

    logger.debug(f"Laid out {n_clusters} clusters on a {len(cells)}-cell grid ({cell_w:.0f}x{cell_h:.0f})")
    return out_clusters, out_nodes
