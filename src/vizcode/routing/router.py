"""
Tiered edge router with obstacle avoidance.

Routes an edge between two node icons so that no segment touches the
padded icon box of any third node. The direct segment between the two
default attachment points is used when it is clear. Otherwise detours are
tried cheapest first: straight lines between other attachment points,
single-bend L, U/S/J detours at growing offsets, a sampled quadratic curve
and finally a grid search. Each pair of candidate attachment points stops
at its first tier with a clear candidate, keeping that tier's shortest
one, and the shortest result over all pairs wins. The grid only runs when
no pair found anything. When every tier fails, the direct segment is
returned with `routed=False`.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from ..graph.types import EdgeType, Graph, Node
from .geometry import (
    Point,
    calculate_bounding_boxes,
    dedupe_points,
    polyline_length,
    route_is_clear,
)
from .grid_search import grid_route
from .labels import attach_radii, edge_endpoints, label_position

logger = logging.getLogger(__name__)

DETOUR_OFFSETS = (30, 60, 90, 120, 180, 240)
CURVE_BENDS = (0.25, -0.25, 0.5, -0.5, 0.8, -0.8)
CURVE_SAMPLES = 16
SELF_LOOP_RISE = 24


@dataclass
class Route:
    """Polyline for one edge. `routed` is True when a detour was needed."""

    points: List[Point]
    routed: bool
    strategy: str

    @property
    def length(self) -> float:
        return polyline_length(self.points)

    @property
    def label_point(self) -> Point:
        return label_position(self.points)


def attachment_candidates(node: Node, other: Node, radius: float) -> List[Point]:
    """Points at `radius` around a node: toward the other node, the four sides and four corners."""
    cx, cy = node.x, node.y
    if other.x == cx and other.y == cy:
        angle = 0.0
    else:
        angle = math.atan2(other.y - cy, other.x - cx)
    return [
        (cx + math.cos(angle) * radius, cy + math.sin(angle) * radius),
        (cx + radius, cy),
        (cx - radius, cy),
        (cx, cy + radius),
        (cx, cy - radius),
        (cx + radius, cy + radius),
        (cx + radius, cy - radius),
        (cx - radius, cy + radius),
        (cx - radius, cy - radius),
    ]


def straight_paths(p1: Point, p2: Point) -> Iterable[List[Point]]:
    yield [p1, p2]


def l_paths(p1: Point, p2: Point) -> Iterable[List[Point]]:
    (x1, y1), (x2, y2) = p1, p2
    yield [p1, (x2, y1), p2]
    yield [p1, (x1, y2), p2]


def detour_paths(p1: Point, p2: Point, offsets: Sequence[float] = DETOUR_OFFSETS) -> Iterable[List[Point]]:
    """3-4 segment detours: mid-split Z shapes, then U, shifted Z and J shapes per offset."""
    (x1, y1), (x2, y2) = p1, p2
    mid_x = (x1 + x2) / 2
    mid_y = (y1 + y2) / 2

    # H-V-H and V-H-V through the midpoint
    yield [p1, (mid_x, y1), (mid_x, y2), p2]
    yield [p1, (x1, mid_y), (x2, mid_y), p2]

    for d in offsets:
        top = min(y1, y2) - d
        bottom = max(y1, y2) + d
        left = min(x1, x2) - d
        right = max(x1, x2) + d

        # U around both ends
        yield [p1, (x1, top), (x2, top), p2]
        yield [p1, (x1, bottom), (x2, bottom), p2]
        yield [p1, (left, y1), (left, y2), p2]
        yield [p1, (right, y1), (right, y2), p2]

        # S with the crossing leg shifted off the midpoint
        for shift in (d, -d):
            yield [p1, (mid_x + shift, y1), (mid_x + shift, y2), p2]
            yield [p1, (x1, mid_y + shift), (x2, mid_y + shift), p2]

        # J: leave perpendicular, run past the target, come back
        yield [p1, (x1, top), (right, top), (right, y2), p2]
        yield [p1, (x1, bottom), (right, bottom), (right, y2), p2]
        yield [p1, (x1, top), (left, top), (left, y2), p2]
        yield [p1, (x1, bottom), (left, bottom), (left, y2), p2]
        yield [p1, (left, y1), (left, top), (x2, top), p2]
        yield [p1, (right, y1), (right, top), (x2, top), p2]
        yield [p1, (left, y1), (left, bottom), (x2, bottom), p2]
        yield [p1, (right, y1), (right, bottom), (x2, bottom), p2]


def curve_paths(p1: Point, p2: Point, bends: Sequence[float] = CURVE_BENDS,
                samples: int = CURVE_SAMPLES) -> Iterable[List[Point]]:
    """Quadratic curves bowing to either side, sampled into short segments."""
    (x1, y1), (x2, y2) = p1, p2
    dx = x2 - x1
    dy = y2 - y1
    length = math.hypot(dx, dy)
    if length == 0:
        return
    perp_x = -dy / length
    perp_y = dx / length
    mid_x = (x1 + x2) / 2
    mid_y = (y1 + y2) / 2
    for bend in bends:
        ctrl_x = mid_x + perp_x * length * bend
        ctrl_y = mid_y + perp_y * length * bend
        pts = []
        for i in range(samples + 1):
            t = i / samples
            a = (1 - t) * (1 - t)
            b = 2 * (1 - t) * t
            c = t * t
            pts.append((a * x1 + b * ctrl_x + c * x2, a * y1 + b * ctrl_y + c * y2))
        yield pts


DETOUR_TIERS: Tuple[Tuple[str, Callable[[Point, Point], Iterable[List[Point]]]], ...] = (
    ("shifted-straight", straight_paths),
    ("l-shape", l_paths),
    ("detour", detour_paths),
    ("curve", curve_paths),
)


def _shortest_clear(candidates: Iterable[List[Point]], obstacles: Sequence[Dict]) -> Optional[List[Point]]:
    ranked = sorted((dedupe_points(c) for c in candidates), key=polyline_length)
    for candidate in ranked:
        if route_is_clear(candidate, obstacles):
            return candidate
    return None


def route_pair(p1: Point, p2: Point, obstacles: Sequence[Dict]) -> Optional[Tuple[List[Point], str]]:
    """Shortest clear polyline of the first tier that has one for this pair, with the tier name."""
    for name, generate in DETOUR_TIERS:
        best = _shortest_clear(generate(p1, p2), obstacles)
        if best is not None:
            return best, name
    return None


def _self_loop(node: Node, radius: float, obstacles: Sequence[Dict]) -> Route:
    rise = node.y - radius - SELF_LOOP_RISE
    points = [
        (node.x + radius, node.y),
        (node.x + radius, rise),
        (node.x - radius, rise),
        (node.x - radius, node.y),
    ]
    return Route(points=points, routed=route_is_clear(points, obstacles), strategy="self-loop")


def route_edge(
    source: Node,
    target: Node,
    nodes: Sequence[Node],
    edge_type: str = EdgeType.SOLID,
) -> Route:
    """
    Route one edge between two nodes.

    Args:
        source: Node the edge leaves
        target: Node the edge enters
        nodes: All nodes on the canvas; every node other than source and target is an obstacle
        edge_type: Edge style, used for the arrowhead clearance at each end

    Returns:
        Route with at least two points
    """
    obstacles = calculate_bounding_boxes([n for n in nodes if n.id not in (source.id, target.id)])
    r_start, r_end = attach_radii(edge_type)

    if source.id == target.id:
        return _self_loop(source, r_start, obstacles)

    start, end = edge_endpoints(source, target, edge_type)
    if route_is_clear([start, end], obstacles):
        return Route(points=[start, end], routed=False, strategy="straight")

    logger.debug(f"[Edge Routing] {source.id}→{target.id}: straight path blocked, trying alternative routes...")

    starts = attachment_candidates(source, target, r_start)
    ends = attachment_candidates(target, source, r_end)
    pairs = [(a, b) for a in starts for b in ends]
    # Grid paths are axis-aligned, so corner starts add nothing over the side points
    side_pairs = [(a, b) for a in starts[:5] for b in ends[:5]]

    best: Optional[List[Point]] = None
    best_len = math.inf
    best_name = ""
    for p1, p2 in pairs:
        # No polyline between the pair is shorter than the chord
        if math.hypot(p2[0] - p1[0], p2[1] - p1[1]) >= best_len:
            continue
        found = route_pair(p1, p2, obstacles)
        if found is None:
            continue
        path, name = found
        length = polyline_length(path)
        if length < best_len:
            best, best_len, best_name = path, length, name

    if best is None:
        best_name = "grid"
        for p1, p2 in side_pairs:
            path = grid_route(p1, p2, obstacles)
            if path is None:
                continue
            path = dedupe_points(path)
            length = polyline_length(path)
            if length < best_len and route_is_clear(path, obstacles):
                best, best_len = path, length

    if best is not None:
        logger.debug(f"[Edge Routing] {source.id}→{target.id}: routed with {best_name} ({len(best)} points)")
        return Route(points=best, routed=True, strategy=best_name)

    logger.debug(f"[Edge Routing] {source.id}→{target.id}: all strategies blocked, using direct segment")
    return Route(points=[start, end], routed=False, strategy="direct")


def route_all(graph: Graph) -> Dict[str, Route]:
    """
    Route every edge of the graph whose endpoints exist.

    Returns:
        Dict mapping edge id to its route
    """
    by_id = graph.node_map()
    routes: Dict[str, Route] = {}
    for edge in graph.edges:
        source = by_id.get(edge.source)
        target = by_id.get(edge.target)
        if source is None or target is None:
            continue
        routes[edge.id] = route_edge(source, target, graph.nodes, edge.type)
    return routes


def routes_to_dict(routes: Dict[str, Route]) -> Dict[str, Dict]:
    return {
        edge_id: {
            "points": [list(p) for p in route.points],
            "routed": route.routed,
            "strategy": route.strategy,
            "label": list(route.label_point),
        }
        for edge_id, route in routes.items()
    }
