"""Uniform-grid shortest-path search used when no simple detour is clear.

The region around both endpoints is rasterised into square cells; every
cell overlapping an obstacle box is blocked. A* over the four axis moves
(cost = hops, heuristic = Manhattan distance) finds a staircase of cell
centres, which is then reduced to its corner points.
"""

from __future__ import annotations

import heapq
import itertools
import math
from typing import Dict, List, Optional, Sequence, Set, Tuple

from .geometry import Point, simplify_path

GRID_CELL = 10
GRID_MARGIN = 160
MAX_GRID_CELLS = 160

MOVES = ((1, 0), (-1, 0), (0, 1), (0, -1))

Cell = Tuple[int, int]


def _blocked_cells(obstacles: Sequence[Dict], min_x: float, min_y: float, cell: float,
                   cols: int, rows: int) -> Set[Cell]:
    blocked: Set[Cell] = set()
    for box in obstacles:
        c0 = max(0, math.floor((box['left'] - min_x) / cell))
        c1 = min(cols - 1, math.floor((box['right'] - min_x) / cell))
        r0 = max(0, math.floor((box['top'] - min_y) / cell))
        r1 = min(rows - 1, math.floor((box['bottom'] - min_y) / cell))
        for c in range(c0, c1 + 1):
            for r in range(r0, r1 + 1):
                blocked.add((c, r))
    return blocked


def _astar(start: Cell, goal: Cell, blocked: Set[Cell], cols: int, rows: int) -> Optional[List[Cell]]:
    def heuristic(c: Cell) -> int:
        return abs(c[0] - goal[0]) + abs(c[1] - goal[1])

    counter = itertools.count()
    open_set = [(heuristic(start), 0, next(counter), start)]
    came_from: Dict[Cell, Cell] = {}
    g_score = {start: 0}

    while open_set:
        _, g, _, current = heapq.heappop(open_set)
        if current == goal:
            path = [current]
            while current in came_from:
                current = came_from[current]
                path.append(current)
            path.reverse()
            return path
        if g > g_score.get(current, math.inf):
            continue
        for dx, dy in MOVES:
            nxt = (current[0] + dx, current[1] + dy)
            if not (0 <= nxt[0] < cols and 0 <= nxt[1] < rows):
                continue
            if nxt in blocked and nxt != goal:
                continue
            tentative = g + 1
            if tentative < g_score.get(nxt, math.inf):
                g_score[nxt] = tentative
                came_from[nxt] = current
                heapq.heappush(open_set, (tentative + heuristic(nxt), tentative, next(counter), nxt))
    return None


def grid_route(
    p1: Point,
    p2: Point,
    obstacles: Sequence[Dict],
    cell: float = GRID_CELL,
    margin: float = GRID_MARGIN,
    max_cells: int = MAX_GRID_CELLS,
) -> Optional[List[Point]]:
    """
    Find an axis-aligned path from p1 to p2 through the free cells.

    Args:
        p1: Start point, placed exactly on a cell centre
        p2: End point
        obstacles: Box dicts to avoid
        cell: Preferred cell size; grows when the region would exceed `max_cells`
        margin: Extra room around the two points
        max_cells: Upper bound on cells per axis

    Returns:
        Simplified polyline starting at p1 and ending at p2, or None if the
        goal is unreachable
    """
    span_x = abs(p2[0] - p1[0]) + 2 * margin
    span_y = abs(p2[1] - p1[1]) + 2 * margin
    cell = max(cell, span_x / max_cells, span_y / max_cells)

    # Align the grid so p1 sits on a cell centre
    min_x = min(p1[0], p2[0]) - margin
    min_y = min(p1[1], p2[1]) - margin
    min_x = p1[0] - (math.ceil((p1[0] - min_x) / cell) + 0.5) * cell
    min_y = p1[1] - (math.ceil((p1[1] - min_y) / cell) + 0.5) * cell
    max_x = max(p1[0], p2[0]) + margin
    max_y = max(p1[1], p2[1]) + margin
    cols = math.ceil((max_x - min_x) / cell) + 1
    rows = math.ceil((max_y - min_y) / cell) + 1

    def to_cell(p: Point) -> Cell:
        return (math.floor((p[0] - min_x) / cell), math.floor((p[1] - min_y) / cell))

    def centre(c: Cell) -> Point:
        return (min_x + (c[0] + 0.5) * cell, min_y + (c[1] + 0.5) * cell)

    start = to_cell(p1)
    goal = to_cell(p2)
    blocked = _blocked_cells(obstacles, min_x, min_y, cell, cols, rows)
    blocked.discard(start)

    cells = _astar(start, goal, blocked, cols, rows)
    if cells is None:
        return None

    points = [centre(c) for c in cells]
    points[0] = p1
    points.append(p2)
    return simplify_path(points)
