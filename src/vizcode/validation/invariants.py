from __future__ import annotations

from collections import Counter
from typing import List

import networkx as nx

from ..graph.types import Graph


def build_cluster_tree(graph: Graph) -> nx.DiGraph:
    """Directed parent -> child graph over cluster ids."""
    G = nx.DiGraph()
    ids = {c.id for c in graph.clusters}
    for c in graph.clusters:
        G.add_node(c.id, label=c.label)
    for c in graph.clusters:
        if c.parent_id in ids and c.parent_id != c.id:
            G.add_edge(c.parent_id, c.id)
    return G


def find_violations(graph: Graph) -> List[str]:
    """Describe every broken invariant of the data model. Empty when valid."""
    problems: List[str] = []

    cluster_ids = [c.id for c in graph.clusters]
    node_ids = [n.id for n in graph.nodes]
    for cid, count in Counter(cluster_ids).items():
        if count > 1:
            problems.append(f"duplicate cluster id '{cid}'")
    for nid, count in Counter(node_ids).items():
        if count > 1:
            problems.append(f"duplicate node id '{nid}'")

    known_clusters = set(cluster_ids)
    for c in graph.clusters:
        if c.parent_id is not None and c.parent_id not in known_clusters:
            problems.append(f"cluster '{c.id}' has unknown parent '{c.parent_id}'")
        if c.parent_id == c.id:
            problems.append(f"cluster '{c.id}' is its own parent")

    tree = build_cluster_tree(graph)
    for cycle in nx.simple_cycles(tree):
        problems.append(f"cluster parent cycle: {' -> '.join(cycle)}")

    for n in graph.nodes:
        if n.cluster_id is not None and n.cluster_id not in known_clusters:
            problems.append(f"node '{n.id}' references unknown cluster '{n.cluster_id}'")

    known_nodes = set(node_ids)
    for e in graph.edges:
        for end in (e.source, e.target):
            if end not in known_nodes:
                problems.append(f"edge '{e.id}' references unknown node '{end}'")

    return problems


def is_valid(graph: Graph) -> bool:
    return not find_violations(graph)
