"""Edge decoration: arrowhead markers, endpoint offsets and label placement."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

from ..graph.types import ICON_HALF, EdgeType, Node
from .geometry import Point

MARKER_PAD = 12
LABEL_OFFSET = 18


@dataclass(frozen=True)
class EdgeStyle:
    marker_start: bool
    marker_end: bool
    dasharray: Optional[str]


def edge_style(edge_type: str) -> EdgeStyle:
    """Markers and dash pattern drawn for an edge type."""
    edge_type = EdgeType.normalize(edge_type)
    both_ends = edge_type in (EdgeType.DOUBLE, EdgeType.DOUBLE_DOTTED)
    dashed = edge_type in (EdgeType.DASHED, EdgeType.DOUBLE_DOTTED)
    return EdgeStyle(marker_start=both_ends, marker_end=True, dasharray="6,6" if dashed else None)


def attach_radii(edge_type: str) -> Tuple[float, float]:
    """Distance from the node centre to the line end, at the source and target."""
    style = edge_style(edge_type)
    start = ICON_HALF + (MARKER_PAD if style.marker_start else 0)
    end = ICON_HALF + (MARKER_PAD if style.marker_end else 0)
    return start, end


def edge_endpoints(source: Node, target: Node, edge_type: str = EdgeType.SOLID) -> Tuple[Point, Point]:
    """Line ends pulled in from both centres along the centre-to-centre direction."""
    r_start, r_end = attach_radii(edge_type)
    angle = math.atan2(target.y - source.y, target.x - source.x)
    start = (source.x + math.cos(angle) * r_start, source.y + math.sin(angle) * r_start)
    end = (target.x - math.cos(angle) * r_end, target.y - math.sin(angle) * r_end)
    return start, end


def label_position(points: Sequence[Point], offset: float = LABEL_OFFSET) -> Point:
    """
    Anchor for an edge label.

    Walks the polyline to half its length and steps `offset` to the left
    of the direction of travel, which is above the line for an edge drawn
    left to right.
    """
    if not points:
        return (0.0, 0.0)
    if len(points) == 1:
        return points[0]

    seg_lengths = [
        math.hypot(points[i + 1][0] - points[i][0], points[i + 1][1] - points[i][1])
        for i in range(len(points) - 1)
    ]
    total = sum(seg_lengths)
    if total == 0:
        return points[0]

    half = total / 2
    walked = 0.0
    for i, length in enumerate(seg_lengths):
        if length == 0:
            continue
        if walked + length >= half:
            t = (half - walked) / length
            x1, y1 = points[i]
            x2, y2 = points[i + 1]
            tx = (x2 - x1) / length
            ty = (y2 - y1) / length
            mx = x1 + (x2 - x1) * t
            my = y1 + (y2 - y1) * t
            return (mx + ty * offset, my - tx * offset)
        walked += length
    return points[-1]
