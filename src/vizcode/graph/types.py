from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional

ICON_SIZE = 36
ICON_HALF = ICON_SIZE / 2


class EdgeType:
    """Visual style variants of an edge."""

    SOLID = "solid"
    DASHED = "dashed"
    DOUBLE = "double"
    DOUBLE_DOTTED = "double-dotted"

    ALL = (SOLID, DASHED, DOUBLE, DOUBLE_DOTTED)

    # Arrow-picker vocabulary accepted on input
    ALIASES = {
        "single": SOLID,
        "dotted": DASHED,
    }

    @classmethod
    def normalize(cls, value: Optional[str]) -> str:
        """Map free text to a known edge type, defaulting to solid."""
        if not value:
            return cls.SOLID
        key = value.strip().strip("'\"").lower()
        if key in cls.ALL:
            return key
        return cls.ALIASES.get(key, cls.SOLID)


def slugify(text: str) -> str:
    """Lower-case `text` and collapse whitespace runs into hyphens."""
    return re.sub(r"\s+", "-", text.strip().lower())


def identity_key(label: str, name: Optional[str] = None) -> str:
    """Key used to match an entity across re-parses: alias, else label, lower-cased."""
    return (name or label).strip().lower()


@dataclass
class Cluster:
    id: str
    label: str
    parent_id: Optional[str] = None
    x: Optional[float] = None
    y: Optional[float] = None

    @property
    def key(self) -> str:
        return identity_key(self.label)


@dataclass
class Node:
    id: str
    label: str
    name: Optional[str] = None
    x: float = 0.0
    y: float = 0.0
    cluster_id: Optional[str] = None

    @property
    def key(self) -> str:
        return identity_key(self.label, self.name)

    @property
    def reference(self) -> str:
        """Text used to refer to this node from an edge line."""
        return self.name or self.label

    @property
    def is_placed(self) -> bool:
        return bool(self.x) or bool(self.y)


@dataclass
class Edge:
    id: str
    source: str
    target: str
    label: Optional[str] = None
    type: str = EdgeType.SOLID


@dataclass
class Graph:
    """A whole diagram. Collections are kept in declaration order."""

    clusters: List[Cluster] = field(default_factory=list)
    nodes: List[Node] = field(default_factory=list)
    edges: List[Edge] = field(default_factory=list)

    def cluster_map(self) -> Dict[str, Cluster]:
        return {c.id: c for c in self.clusters}

    def node_map(self) -> Dict[str, Node]:
        return {n.id: n for n in self.nodes}

    def members(self, cluster_id: str) -> List[Node]:
        return [n for n in self.nodes if n.cluster_id == cluster_id]

    def is_empty(self) -> bool:
        return not (self.clusters or self.nodes or self.edges)
