"""
Tolerant parser for the diagram DSL.

Grammar (one statement per line, anything else is skipped):

    Cluster: <label>
    Node: <label> [name=<alias>]
    <ref> -> <ref> [arrow=<type>, label='<text>']

Cluster nesting comes from indentation only. Node lines attach to the
cluster on top of the indentation stack. Edge references resolve against
prior-state nodes, then nodes declared in this text, and otherwise
create a floating node named after the reference.
"""

from __future__ import annotations

import logging
import random
import re
import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence, Set, Tuple

from ..graph.types import Cluster, Edge, EdgeType, Graph, Node, identity_key, slugify
from ..layout.placement import find_free_node_position

logger = logging.getLogger(__name__)

INDENT_RE = re.compile(r"^[ \t]*")
CLUSTER_RE = re.compile(r"^Cluster:\s*(.+?)\s*$", re.IGNORECASE)
NODE_RE = re.compile(r"^Node:\s*([^\[]+?)\s*(?:\[(.*)\])?\s*$", re.IGNORECASE)
EDGE_RE = re.compile(r"^(.+?)\s*->\s*(.+?)\s*(?:\[(.*)\])?\s*$")
ATTR_RE = re.compile(r"""([A-Za-z_][\w-]*)\s*=\s*(?:'((?:[^'\\]|\\.)*)'|"((?:[^"\\]|\\.)*)"|([^,]*))""")
ESCAPE_RE = re.compile(r"""\\([\\'"])""")

EXISTING = "existing"
DECLARED = "declared"
CREATED = "created"


@dataclass(frozen=True)
class Resolution:
    """Outcome of looking up an edge reference.

    `kind` is EXISTING (matched a prior-state node), DECLARED (matched a
    node of this parse) or CREATED (nothing matched, caller must create).
    """

    kind: str
    node: Optional[Node] = None


def default_token() -> str:
    return f"{int(time.time() * 1000)}-{random.getrandbits(12):03x}"


def parse_attributes(attr_text: Optional[str]) -> Dict[str, str]:
    """Parse `key=value, key='quoted, value'` pairs. Keys are lower-cased.

    Inside quotes a backslash escapes a quote or another backslash.
    """
    attrs: Dict[str, str] = {}
    if not attr_text:
        return attrs
    for m in ATTR_RE.finditer(attr_text):
        key = m.group(1).lower()
        if m.group(2) is not None:
            value = ESCAPE_RE.sub(r"\1", m.group(2))
        elif m.group(3) is not None:
            value = ESCAPE_RE.sub(r"\1", m.group(3))
        else:
            value = (m.group(4) or "").strip().strip("'\"")
        attrs[key] = value.strip()
    return attrs


def _matches(node: Node, key: str) -> bool:
    return (bool(node.name) and node.name.lower() == key) or node.label.lower() == key


def resolve_reference(ref: str, known_nodes: Sequence[Node], declared_nodes: Sequence[Node]) -> Resolution:
    """Look up an edge reference by alias or label, case-insensitively.

    Prior-state nodes are searched first, then nodes of the current parse.
    First match in list order wins.
    """
    key = ref.strip().lower()
    for n in known_nodes:
        if _matches(n, key):
            return Resolution(EXISTING, n)
    for n in declared_nodes:
        if _matches(n, key):
            return Resolution(DECLARED, n)
    return Resolution(CREATED)


class _ParseState:
    """Accumulates the output of one parse."""

    def __init__(self, known_nodes: Sequence[Node], known_clusters: Sequence[Cluster],
                 token_factory: Callable[[], str], canvas_width: float):
        self.known_nodes = list(known_nodes)
        self.known_clusters = list(known_clusters)
        self.token_factory = token_factory
        self.canvas_width = canvas_width
        self.clusters: List[Cluster] = []
        self.nodes: List[Node] = []
        self.edges: List[Edge] = []
        self.used_ids: Set[str] = set()

    def unique_id(self, base: str, with_token: bool) -> str:
        root = f"{base}-{self.token_factory()}" if with_token else base
        candidate = root
        suffix = 2
        while candidate in self.used_ids:
            candidate = f"{root}-{suffix}"
            suffix += 1
        self.used_ids.add(candidate)
        return candidate

    def placement(self) -> Tuple[float, float]:
        return find_free_node_position(self.known_nodes + self.nodes, self.known_clusters, self.canvas_width)

    def add_node(self, label: str, name: Optional[str], cluster_id: Optional[str],
                 position: Optional[Tuple[float, float]] = None) -> Node:
        node_id = self.unique_id(slugify(identity_key(label, name)), with_token=True)
        x, y = position if position is not None else self.placement()
        node = Node(id=node_id, label=label, name=name, x=x, y=y, cluster_id=cluster_id)
        self.nodes.append(node)
        return node

    def resolve(self, ref: str) -> Node:
        outcome = resolve_reference(ref, self.known_nodes, self.nodes)
        if outcome.kind == DECLARED:
            return outcome.node
        if outcome.kind == EXISTING:
            existing = outcome.node
            for n in self.nodes:
                if n.key == existing.key:
                    return n
            for n in self.nodes:
                if _matches(n, ref.strip().lower()):
                    return n
            # Carry the prior-state node so the edge has an endpoint; the
            # reconciler maps it back onto the existing id and position.
            return self.add_node(existing.label, existing.name, None, (existing.x, existing.y))
        return self.add_node(ref.strip(), None, None)


def parse(
    text: str,
    known_nodes: Sequence[Node] = (),
    known_clusters: Sequence[Cluster] = (),
    token_factory: Optional[Callable[[], str]] = None,
    canvas_width: float = 2000,
) -> Graph:
    """
    Parse DSL text into a raw graph.

    Args:
        text: DSL source; `\\n` or `\\r\\n` line endings
        known_nodes: Prior-state nodes used to resolve edge references and
            to keep new placements clear of them (read only)
        known_clusters: Prior-state clusters, used for placement only
        token_factory: Supplies the uniqueness suffix of node and edge ids
        canvas_width: Width of the drawing area for placement

    Returns:
        Graph with clusters, nodes and edges in declaration order
    """
    state = _ParseState(known_nodes, known_clusters, token_factory or default_token, canvas_width)
    stack: List[Tuple[str, int]] = []
    edge_lines: List[Tuple[str, str, Dict[str, str]]] = []

    for raw in (text or "").splitlines():
        if not raw.strip():
            continue
        indent = len(INDENT_RE.match(raw).group(0))
        line = raw.strip()

        m = CLUSTER_RE.match(line)
        if m:
            label = m.group(1)
            while stack and stack[-1][1] >= indent:
                stack.pop()
            parent_id = stack[-1][0] if stack else None
            cluster_id = state.unique_id(slugify(label), with_token=False)
            state.clusters.append(Cluster(id=cluster_id, label=label, parent_id=parent_id))
            stack.append((cluster_id, indent))
            continue

        m = NODE_RE.match(line)
        if m:
            label = m.group(1).strip()
            name = parse_attributes(m.group(2)).get("name") or None
            state.add_node(label, name, stack[-1][0] if stack else None)
            continue

        m = EDGE_RE.match(line)
        if m:
            source_ref = m.group(1).strip()
            target_ref = m.group(2).strip()
            if source_ref and target_ref:
                edge_lines.append((source_ref, target_ref, parse_attributes(m.group(3))))
            continue

        logger.debug(f"Skipping unrecognised line: {line!r}")

    for source_ref, target_ref, attrs in edge_lines:
        source = state.resolve(source_ref)
        target = state.resolve(target_ref)
        label = attrs.get("label") or attrs.get("lable") or None
        edge_type = EdgeType.normalize(attrs.get("arrow") or attrs.get("type"))
        edge_id = state.unique_id(f"e-{source.id}-{target.id}", with_token=True)
        state.edges.append(Edge(id=edge_id, source=source.id, target=target.id, label=label, type=edge_type))

    return Graph(clusters=state.clusters, nodes=state.nodes, edges=state.edges)
