from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..graph.types import Cluster, Edge, EdgeType, Graph, Node


class RemoteCluster(BaseModel):
    """A cluster as returned by the parse service."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str = Field(..., description="Cluster id")
    label: str = Field(..., description="Display label")
    parent_id: Optional[str] = Field(default=None, alias="parentId", description="Parent cluster id")
    x: Optional[float] = Field(default=None, description="Anchor x")
    y: Optional[float] = Field(default=None, description="Anchor y")


class RemoteNode(BaseModel):
    """A node as returned by the parse service. Positions are optional."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str = Field(..., description="Node id")
    label: str = Field(..., description="Display label")
    name: Optional[str] = Field(default=None, description="Alias used for references")
    x: Optional[float] = Field(default=None, description="Centre x")
    y: Optional[float] = Field(default=None, description="Centre y")
    cluster_id: Optional[str] = Field(default=None, alias="clusterId", description="Owning cluster id")


class RemoteEdge(BaseModel):
    """An edge as returned by the parse service; accepts the legacy `lable` spelling."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: Optional[str] = Field(default=None, description="Edge id")
    source: str = Field(..., alias="from", description="Source node id")
    target: str = Field(..., alias="to", description="Target node id")
    label: Optional[str] = Field(default=None, description="Edge label")
    lable: Optional[str] = Field(default=None, description="Legacy spelling of label")
    type: Optional[str] = Field(default=None, description="Edge style")

    @property
    def text(self) -> Optional[str]:
        for value in (self.label, self.lable):
            if value and value.strip():
                return value.strip()
        return None


class ParseResponse(BaseModel):
    """Body of a successful parse call: all three arrays are required."""

    model_config = ConfigDict(extra="ignore")

    clusters: List[RemoteCluster] = Field(..., description="Clusters in declaration order")
    nodes: List[RemoteNode] = Field(..., description="Nodes in declaration order")
    edges: List[RemoteEdge] = Field(..., description="Edges in declaration order")
    message: Optional[str] = Field(default=None, description="Free-form service note")

    def to_graph(self) -> Graph:
        clusters = [
            Cluster(id=c.id, label=c.label, parent_id=c.parent_id or None, x=c.x, y=c.y)
            for c in self.clusters
        ]
        nodes = [
            Node(
                id=n.id,
                label=n.label,
                name=n.name or None,
                x=n.x or 0.0,
                y=n.y or 0.0,
                cluster_id=n.cluster_id or None,
            )
            for n in self.nodes
        ]
        edges = [
            Edge(
                id=e.id or f"e-{e.source}-{e.target}-{i}",
                source=e.source,
                target=e.target,
                label=e.text,
                type=EdgeType.normalize(e.type),
            )
            for i, e in enumerate(self.edges)
        ]
        return Graph(clusters=clusters, nodes=nodes, edges=edges)
