"""Diagram graph model: clusters, nodes, edges and their wire format."""
