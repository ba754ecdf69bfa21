"""
Reconciler: merge a fresh parse with the live graph.

The parsed text is authoritative. Entities it no longer mentions are
dropped; entities it still mentions keep their existing id (and, for
nodes, their position) when their identity key matches. Identity
matching is first-declared-wins on both sides: the first existing entity
with a key is the one that can be matched, and only the first parsed
entity claiming it gets it.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Dict, List, Optional, Sequence, Set, Tuple

from .graph.types import Cluster, Edge, Graph, Node
from .layout.engine import PACK_STEP
from .layout.placement import find_free_node_position

logger = logging.getLogger(__name__)


def _unique(base: str, used: Set[str]) -> str:
    candidate = base
    suffix = 2
    while candidate in used:
        candidate = f"{base}-{suffix}"
        suffix += 1
    used.add(candidate)
    return candidate


def _break_cycles(clusters: List[Cluster]) -> List[Cluster]:
    """Detach any cluster whose parent chain leads back to itself."""
    parent = {c.id: c.parent_id for c in clusters}
    out = []
    for c in clusters:
        seen = {c.id}
        current = parent.get(c.id)
        while current is not None and current in parent:
            if current == c.id:
                logger.warning(f"Cluster '{c.id}' closes a parent cycle; detaching it")
                parent[c.id] = None
                break
            if current in seen:
                break
            seen.add(current)
            current = parent[current]
        out.append(replace(c, parent_id=parent[c.id]))
    return out


def merge_clusters(parsed: Sequence[Cluster], existing: Sequence[Cluster]) -> Tuple[List[Cluster], Dict[str, str]]:
    """Merge clusters by case-insensitive label.

    Returns:
        (merged clusters, parsed id -> final id)
    """
    existing_by_label: Dict[str, Cluster] = {}
    for c in existing:
        existing_by_label.setdefault(c.label.strip().lower(), c)

    final: List[Optional[str]] = [None] * len(parsed)
    matched: Dict[int, Cluster] = {}
    claimed: Set[str] = set()
    used: Set[str] = set()
    for i, pc in enumerate(parsed):
        found = existing_by_label.get(pc.label.strip().lower())
        if found is not None and found.id not in claimed:
            claimed.add(found.id)
            matched[i] = found
            final[i] = _unique(found.id, used)

    for i, pc in enumerate(parsed):
        if final[i] is None:
            final[i] = _unique(pc.id, used)

    # A repeated parsed id resolves references to its first occurrence
    remap: Dict[str, str] = {}
    for pc, cluster_id in zip(parsed, final):
        remap.setdefault(pc.id, cluster_id)

    merged = []
    for i, pc in enumerate(parsed):
        found = matched.get(i)
        merged.append(Cluster(
            id=final[i],
            label=pc.label,
            parent_id=remap.get(pc.parent_id) if pc.parent_id else None,
            x=found.x if found is not None else pc.x,
            y=found.y if found is not None else pc.y,
        ))
    return _break_cycles(merged), remap


def _place_new_node(
    cluster_id: Optional[str],
    parsed: Node,
    placed: List[Node],
    clusters: Sequence[Cluster],
    canvas_width: float,
) -> Tuple[float, float]:
    if cluster_id is not None:
        peers = [n for n in placed if n.cluster_id == cluster_id and n.is_placed]
        if peers:
            rightmost = max(peers, key=lambda n: n.x)
            return rightmost.x + PACK_STEP, rightmost.y
    if parsed.is_placed:
        return parsed.x, parsed.y
    return find_free_node_position(placed, clusters, canvas_width)


def merge(
    parsed: Graph,
    existing_nodes: Sequence[Node],
    existing_clusters: Sequence[Cluster],
    canvas_width: float = 2000,
) -> Graph:
    """
    Merge a parsed graph into the existing state.

    Args:
        parsed: Raw parser (or remote service) output
        existing_nodes: Live nodes, read only
        existing_clusters: Live clusters, read only
        canvas_width: Width of the drawing area, for placing new floating nodes

    Returns:
        New graph; nothing in the inputs is modified
    """
    clusters, cluster_remap = merge_clusters(parsed.clusters, existing_clusters)

    existing_by_key: Dict[str, Node] = {}
    for n in existing_nodes:
        existing_by_key.setdefault(n.key, n)

    # First pass: decide matches so new ids can avoid every inherited one
    matches: Dict[int, Node] = {}
    claimed: Set[str] = set()
    for i, pn in enumerate(parsed.nodes):
        found = existing_by_key.get(pn.key)
        if found is not None and found.id not in claimed:
            claimed.add(found.id)
            matches[i] = found

    used: Set[str] = set(claimed)
    merged: List[Optional[Node]] = [None] * len(parsed.nodes)
    node_remap: Dict[str, str] = {}
    for i, pn in enumerate(parsed.nodes):
        found = matches.get(i)
        if found is None:
            continue
        merged[i] = Node(
            id=found.id,
            label=pn.label,
            name=pn.name,
            x=found.x,
            y=found.y,
            cluster_id=cluster_remap.get(pn.cluster_id) if pn.cluster_id else None,
        )
        node_remap[pn.id] = found.id

    placed = [n for n in merged if n is not None]
    for i, pn in enumerate(parsed.nodes):
        if merged[i] is not None:
            continue
        cluster_id = cluster_remap.get(pn.cluster_id) if pn.cluster_id else None
        x, y = _place_new_node(cluster_id, pn, placed, clusters, canvas_width)
        node = Node(
            id=_unique(pn.id, used),
            label=pn.label,
            name=pn.name,
            x=x,
            y=y,
            cluster_id=cluster_id,
        )
        merged[i] = node
        placed.append(node)
        node_remap[pn.id] = node.id

    edges: List[Edge] = []
    edge_ids: Set[str] = set()
    for pe in parsed.edges:
        source = node_remap.get(pe.source)
        target = node_remap.get(pe.target)
        if source is None or target is None:
            logger.debug(f"Dropping edge '{pe.id}' with an unknown endpoint")
            continue
        edges.append(Edge(id=_unique(pe.id, edge_ids), source=source, target=target, label=pe.label, type=pe.type))

    logger.debug(
        f"Merged {len(clusters)} clusters, {len(merged)} nodes ({len(matches)} kept), {len(edges)} edges"
    )
    return Graph(clusters=clusters, nodes=list(merged), edges=edges)
