"""
Diagram session: owns the live graph and its prompt text.

Text edits run parse -> merge (against the live graph) -> layout and
commit the result. When a remote parse service is configured it is tried
afterwards; its answer replaces the local result only if no newer text
edit has started since, and any failure leaves the local result in place.
Interactive edits change the graph directly and then regenerate the text.
Every commit replaces whole collections.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Callable, Dict, List, Optional

from .config import AppConfig, load_config
from .dsl.parser import default_token, parse
from .dsl.regenerate import regenerate_prompt
from .graph.serialize import graph_to_dict
from .graph.types import Cluster, Edge, EdgeType, Graph, Node, identity_key, slugify
from .layout.bounds import cluster_bounds, diagram_bounds, find_cluster_at
from .layout.engine import FixedAnchor, layout
from .layout.placement import EMPTY_CLUSTER_H, EMPTY_CLUSTER_W, find_empty_cluster_position
from .reconcile import merge
from .remote.client import ParseServiceClient, ParseServiceError, parse_response
from .routing.router import Route, route_all, routes_to_dict
from .tables import load_tables
from .validation.invariants import find_violations

logger = logging.getLogger(__name__)

REMOTE_DISABLED = "disabled"
REMOTE_APPLIED = "applied"
REMOTE_UNAVAILABLE = "unavailable"
REMOTE_STALE = "stale"


@dataclass
class UpdateStatus:
    """Result of a text update. The local result is always applied."""

    generation: int
    remote: str = REMOTE_DISABLED
    error: Optional[str] = None


class DiagramSession:
    """Live diagram state for one editing session."""

    def __init__(
        self,
        config: Optional[AppConfig] = None,
        client: Optional[ParseServiceClient] = None,
        token_factory: Optional[Callable[[], str]] = None,
    ):
        """Create an empty session.

        Args:
            config: Application config; loaded from the environment when omitted
            client: Remote parse client; built from config when remote use is enabled
            token_factory: Uniqueness suffix for generated ids
        """
        self.config = config or load_config()
        self.client = client
        if self.client is None and self.config.use_remote:
            self.client = ParseServiceClient(self.config.parse_service_url, self.config.remote_timeout)
        self.token_factory = token_factory or default_token
        self.graph = Graph()
        self.text = ""
        self.generation = 0

    # -- state -----------------------------------------------------------

    @property
    def clusters(self) -> List[Cluster]:
        return self.graph.clusters

    @property
    def nodes(self) -> List[Node]:
        return self.graph.nodes

    @property
    def edges(self) -> List[Edge]:
        return self.graph.edges

    def _commit(self, graph: Graph, regenerate: bool) -> None:
        for problem in find_violations(graph):
            logger.warning(f"Invariant violated: {problem}")
        self.graph = graph
        if regenerate:
            self.text = regenerate_prompt(graph.nodes, graph.edges, graph.clusters)

    def _layout(self, clusters: List[Cluster], nodes: List[Node], fixed: Optional[FixedAnchor] = None):
        return layout(clusters, nodes, fixed, self.config.canvas_width, self.config.canvas_height)

    def _require_node(self, node_id: str) -> Node:
        for n in self.graph.nodes:
            if n.id == node_id:
                return n
        raise KeyError(f"Unknown node: {node_id}")

    def _require_cluster(self, cluster_id: str) -> Cluster:
        for c in self.graph.clusters:
            if c.id == cluster_id:
                return c
        raise KeyError(f"Unknown cluster: {cluster_id}")

    def _new_id(self, base: str, taken) -> str:
        candidate = f"{base}-{self.token_factory()}"
        root = candidate
        suffix = 2
        while candidate in taken:
            candidate = f"{root}-{suffix}"
            suffix += 1
        return candidate

    def load_graph(self, graph: Graph, text: Optional[str] = None) -> None:
        """Replace the live state with a saved graph; the text is regenerated when not given."""
        self._commit(graph, regenerate=text is None)
        if text is not None:
            self.text = text

    # -- text updates ----------------------------------------------------

    def local_update(self, text: str) -> int:
        """Parse, merge and lay out `text` locally and commit it.

        Returns:
            Generation number of this update
        """
        self.generation += 1
        self.text = text
        parsed = parse(text, self.graph.nodes, self.graph.clusters, self.token_factory, self.config.canvas_width)
        merged = merge(parsed, self.graph.nodes, self.graph.clusters, self.config.canvas_width)
        clusters, nodes = self._layout(merged.clusters, merged.nodes)
        self._commit(Graph(clusters=clusters, nodes=nodes, edges=merged.edges), regenerate=False)
        logger.info(
            f"Update {self.generation}: {len(clusters)} clusters, {len(nodes)} nodes, {len(merged.edges)} edges"
        )
        return self.generation

    def update_from_text(self, text: str, use_remote: Optional[bool] = None) -> UpdateStatus:
        """Apply a text edit, then try the remote service when enabled."""
        generation = self.local_update(text)

        want_remote = self.config.use_remote if use_remote is None else use_remote
        if not want_remote:
            return UpdateStatus(generation)
        if self.client is None:
            self.client = ParseServiceClient(self.config.parse_service_url, self.config.remote_timeout)

        try:
            remote_graph = self.client.parse(text)
        except ParseServiceError as exc:
            logger.warning(f"Remote parse unavailable, keeping local result: {exc}")
            return UpdateStatus(generation, REMOTE_UNAVAILABLE, str(exc))
        return self._apply_remote_graph(generation, remote_graph)

    def apply_remote_payload(self, generation: int, payload) -> UpdateStatus:
        """Apply a response body fetched by the host for update `generation`."""
        try:
            remote_graph = parse_response(payload)
        except ParseServiceError as exc:
            logger.warning(f"Ignoring remote result for update {generation}: {exc}")
            return UpdateStatus(generation, REMOTE_UNAVAILABLE, str(exc))
        return self._apply_remote_graph(generation, remote_graph)

    def _apply_remote_graph(self, generation: int, remote: Graph) -> UpdateStatus:
        if generation != self.generation:
            logger.info(f"Discarding remote result for update {generation}; update {self.generation} is newer")
            return UpdateStatus(generation, REMOTE_STALE)

        local_edges = self.graph.edges
        merged = merge(remote, self.graph.nodes, self.graph.clusters, self.config.canvas_width)
        clusters, nodes = self._layout(merged.clusters, merged.nodes)
        edges = [self._keep_local_style(e, local_edges) for e in merged.edges]
        self._commit(Graph(clusters=clusters, nodes=nodes, edges=edges), regenerate=False)
        logger.info(f"Update {generation}: applied remote parse result")
        return UpdateStatus(generation, REMOTE_APPLIED)

    @staticmethod
    def _keep_local_style(edge: Edge, local_edges: List[Edge]) -> Edge:
        """Remote label wins when given; the local edge type always wins."""
        local = next((e for e in local_edges if e.source == edge.source and e.target == edge.target), None)
        if local is None:
            return edge
        return replace(edge, label=edge.label or local.label, type=local.type)

    def import_table(self, path: Path, edges_path: Optional[Path] = None) -> UpdateStatus:
        """Load a workbook or CSV pair as DSL text and apply it."""
        return self.update_from_text(load_tables(path, edges_path))

    # -- layout ----------------------------------------------------------

    def relayout(self, fixed: Optional[FixedAnchor] = None) -> None:
        clusters, nodes = self._layout(self.graph.clusters, self.graph.nodes, fixed)
        self._commit(Graph(clusters=clusters, nodes=nodes, edges=list(self.graph.edges)), regenerate=False)

    def drop_cluster(self, cluster_id: str, x: float, y: float) -> None:
        """Re-pack every cluster, keeping `cluster_id` in the cell nearest (x, y)."""
        self._require_cluster(cluster_id)
        self.relayout(FixedAnchor(cluster_id, x, y))

    def move_cluster(self, cluster_id: str, x: float, y: float) -> None:
        """Drag a cluster outline so its top-left lands on (x, y); members move along."""
        self._require_cluster(cluster_id)
        box = cluster_bounds(self.graph.clusters, self.graph.nodes, self.config.canvas_width)[cluster_id]
        dx = x - box["x"]
        dy = y - box["y"]
        clusters = [replace(c, x=x, y=y) if c.id == cluster_id else replace(c) for c in self.graph.clusters]
        nodes = [
            replace(n, x=n.x + dx, y=n.y + dy) if n.cluster_id == cluster_id else replace(n)
            for n in self.graph.nodes
        ]
        self._commit(Graph(clusters=clusters, nodes=nodes, edges=list(self.graph.edges)), regenerate=False)

    # -- interactive edits -----------------------------------------------

    def add_node(self, label: str, x: float, y: float, name: Optional[str] = None) -> Node:
        """Drop a new node at (x, y); it joins the innermost cluster under that point."""
        cluster_id = find_cluster_at(x, y, self.graph.clusters, self.graph.nodes)
        node_id = self._new_id(slugify(identity_key(label, name)), {n.id for n in self.graph.nodes})
        node = Node(id=node_id, label=label, name=name or None, x=x, y=y, cluster_id=cluster_id)
        self._commit(
            Graph(clusters=list(self.graph.clusters), nodes=self.graph.nodes + [node], edges=list(self.graph.edges)),
            regenerate=True,
        )
        return node

    def move_node(self, node_id: str, x: float, y: float) -> None:
        """Move a node while it is being dragged. Cluster membership is settled on finalize."""
        self._require_node(node_id)
        nodes = [replace(n, x=x, y=y) if n.id == node_id else replace(n) for n in self.graph.nodes]
        self._commit(Graph(clusters=list(self.graph.clusters), nodes=nodes, edges=list(self.graph.edges)), regenerate=False)

    def finalize_node_move(self, node_id: str) -> Optional[str]:
        """Assign a dropped node to the cluster under it (or none) and resync the text."""
        node = self._require_node(node_id)
        others = [n for n in self.graph.nodes if n.id != node_id]
        bounds = cluster_bounds(self.graph.clusters, others, self.config.canvas_width)
        cluster_id = find_cluster_at(node.x, node.y, self.graph.clusters, others, bounds)
        nodes = [replace(n, cluster_id=cluster_id) if n.id == node_id else replace(n) for n in self.graph.nodes]
        self._commit(Graph(clusters=list(self.graph.clusters), nodes=nodes, edges=list(self.graph.edges)), regenerate=True)
        return cluster_id

    def delete_node(self, node_id: str) -> None:
        """Remove a node and every edge touching it."""
        self._require_node(node_id)
        nodes = [n for n in self.graph.nodes if n.id != node_id]
        edges = [e for e in self.graph.edges if e.source != node_id and e.target != node_id]
        self._commit(Graph(clusters=list(self.graph.clusters), nodes=nodes, edges=edges), regenerate=True)

    def rename_node(self, node_id: str, name: Optional[str]) -> None:
        """Set or clear a node's alias."""
        self._require_node(node_id)
        alias = (name or "").strip() or None
        nodes = [replace(n, name=alias) if n.id == node_id else replace(n) for n in self.graph.nodes]
        self._commit(Graph(clusters=list(self.graph.clusters), nodes=nodes, edges=list(self.graph.edges)), regenerate=True)

    def add_edge(self, source_id: str, target_id: str, arrow: str = "single", label: Optional[str] = None) -> Edge:
        """Connect two existing nodes. `arrow` uses the picker names (single, double, dotted, double-dotted)."""
        self._require_node(source_id)
        self._require_node(target_id)
        edge_id = self._new_id(f"e-{source_id}-{target_id}", {e.id for e in self.graph.edges})
        edge = Edge(id=edge_id, source=source_id, target=target_id, label=label or None, type=EdgeType.normalize(arrow))
        self._commit(
            Graph(clusters=list(self.graph.clusters), nodes=list(self.graph.nodes), edges=self.graph.edges + [edge]),
            regenerate=True,
        )
        return edge

    def delete_edge(self, edge_id: str) -> None:
        if not any(e.id == edge_id for e in self.graph.edges):
            raise KeyError(f"Unknown edge: {edge_id}")
        edges = [e for e in self.graph.edges if e.id != edge_id]
        self._commit(Graph(clusters=list(self.graph.clusters), nodes=list(self.graph.nodes), edges=edges), regenerate=True)

    def add_cluster(self, label: str) -> Cluster:
        """Add an empty top-level cluster at a free spot, then re-pack all clusters."""
        label = label.strip()
        if not label:
            raise ValueError("Cluster label must not be empty")
        taken = {c.id for c in self.graph.clusters}
        cluster_id = slugify(label)
        suffix = 2
        while cluster_id in taken:
            cluster_id = f"{slugify(label)}-{suffix}"
            suffix += 1
        x, y = find_empty_cluster_position(
            EMPTY_CLUSTER_W, EMPTY_CLUSTER_H, self.graph.nodes, self.graph.clusters, self.config.canvas_width
        )
        clusters, nodes = self._layout(self.graph.clusters + [Cluster(id=cluster_id, label=label, x=x, y=y)], self.graph.nodes)
        self._commit(Graph(clusters=clusters, nodes=nodes, edges=list(self.graph.edges)), regenerate=True)
        return next(c for c in clusters if c.id == cluster_id)

    # -- output ----------------------------------------------------------

    def routes(self) -> Dict[str, Route]:
        return route_all(self.graph)

    def snapshot(self) -> Dict:
        """Graph, routes, frame and prompt text as a JSON-ready dict."""
        data = graph_to_dict(self.graph)
        data["routes"] = routes_to_dict(self.routes())
        data["bounds"] = diagram_bounds(self.graph.clusters, self.graph.nodes)
        data["prompt"] = self.text
        return data
