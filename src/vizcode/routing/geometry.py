"""
Geometry helpers for edge routing.

Obstacles are plain dicts with 'id', 'left', 'right', 'top', 'bottom'
(screen coordinates, y grows downwards).
"""

from __future__ import annotations

import math
from typing import Dict, List, Sequence, Tuple

from ..graph.types import ICON_HALF, Node

Point = Tuple[float, float]

ROUTE_PADDING = 6


def calculate_bounding_boxes(nodes: Sequence[Node], padding: float = ROUTE_PADDING) -> List[Dict]:
    """
    Calculate padded icon boxes for nodes.

    Args:
        nodes: Nodes with centre coordinates
        padding: Clearance added on every side of the icon

    Returns:
        List of box dicts with 'id', 'center_x', 'center_y', 'left', 'right', 'top', 'bottom'
    """
    half = ICON_HALF + padding
    return [
        {
            'id': n.id,
            'center_x': n.x,
            'center_y': n.y,
            'left': n.x - half,
            'right': n.x + half,
            'top': n.y - half,
            'bottom': n.y + half,
        }
        for n in nodes
    ]


def _orientation(o: Point, a: Point, b: Point) -> float:
    """Signed area of the triangle o-a-b; positive when o->a->b turns counter-clockwise."""
    return (a[0] - o[0]) * (b[1] - o[1]) - (a[1] - o[1]) * (b[0] - o[0])


def line_segments_intersect(p1: Point, p2: Point, p3: Point, p4: Point) -> bool:
    """True if segments p1-p2 and p3-p4 share a point. Parallel segments never do."""
    dx1, dy1 = p2[0] - p1[0], p2[1] - p1[1]
    dx2, dy2 = p4[0] - p3[0], p4[1] - p3[1]
    if abs(dx1 * dy2 - dy1 * dx2) < 1e-10:
        return False

    # Each segment's endpoints must lie on opposite sides of (or on) the other's line
    straddles_first = _orientation(p1, p2, p3) * _orientation(p1, p2, p4) <= 0
    straddles_second = _orientation(p3, p4, p1) * _orientation(p3, p4, p2) <= 0
    return straddles_first and straddles_second


def line_intersects_box(p1: Point, p2: Point, box: Dict) -> bool:
    """
    Check if line segment from p1 to p2 touches the box.

    Args:
        p1: Start point (x, y)
        p2: End point (x, y)
        box: Box dict with 'left', 'right', 'top', 'bottom'

    Returns:
        True if the segment touches or crosses the box
    """
    x1, y1 = p1
    x2, y2 = p2

    # Segment bounding box misses the box entirely
    if max(x1, x2) < box['left'] or min(x1, x2) > box['right']:
        return False
    if max(y1, y2) < box['top'] or min(y1, y2) > box['bottom']:
        return False

    # Either endpoint inside the box
    if box['left'] <= x1 <= box['right'] and box['top'] <= y1 <= box['bottom']:
        return True
    if box['left'] <= x2 <= box['right'] and box['top'] <= y2 <= box['bottom']:
        return True

    top_left = (box['left'], box['top'])
    top_right = (box['right'], box['top'])
    bottom_left = (box['left'], box['bottom'])
    bottom_right = (box['right'], box['bottom'])
    return (
        line_segments_intersect(p1, p2, top_left, bottom_left)
        or line_segments_intersect(p1, p2, top_right, bottom_right)
        or line_segments_intersect(p1, p2, top_left, top_right)
        or line_segments_intersect(p1, p2, bottom_left, bottom_right)
    )


def route_is_clear(path: Sequence[Point], obstacles: Sequence[Dict]) -> bool:
    """True if no segment of the path touches any obstacle."""
    for i in range(len(path) - 1):
        segment_start = path[i]
        segment_end = path[i + 1]
        for box in obstacles:
            if line_intersects_box(segment_start, segment_end, box):
                return False
    return True


def blocking_obstacles(path: Sequence[Point], obstacles: Sequence[Dict]) -> List[Dict]:
    """Obstacles touched by any segment of the path."""
    return [
        box for box in obstacles
        if any(line_intersects_box(path[i], path[i + 1], box) for i in range(len(path) - 1))
    ]


def polyline_length(path: Sequence[Point]) -> float:
    return sum(math.hypot(path[i + 1][0] - path[i][0], path[i + 1][1] - path[i][1]) for i in range(len(path) - 1))


def dedupe_points(path: Sequence[Point], eps: float = 1e-9) -> List[Point]:
    """Drop consecutive duplicate points."""
    out: List[Point] = []
    for p in path:
        if out and abs(out[-1][0] - p[0]) < eps and abs(out[-1][1] - p[1]) < eps:
            continue
        out.append(p)
    if len(out) == 1:
        out.append(out[0])
    return out


def simplify_path(path: Sequence[Point], eps: float = 1e-6) -> List[Point]:
    """Remove intermediate points that lie on a straight line with their neighbours."""
    pts = dedupe_points(path)
    if len(pts) <= 2:
        return pts
    out = [pts[0]]
    for i in range(1, len(pts) - 1):
        ax, ay = out[-1]
        bx, by = pts[i]
        cx, cy = pts[i + 1]
        cross = (bx - ax) * (cy - by) - (by - ay) * (cx - bx)
        if abs(cross) < eps:
            continue
        out.append(pts[i])
    out.append(pts[-1])
    return out
