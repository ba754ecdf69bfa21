"""vizcode package root.

Turns an indented text description of clusters, nodes and edges into a
positioned diagram graph: a tolerant DSL parser, a reconciler that keeps
entity identity and positions stable across edits, a deterministic grid
layout for nested clusters and an obstacle-avoiding edge router. It also
includes a small HTTP parse service and a CLI.
"""

__all__ = []
