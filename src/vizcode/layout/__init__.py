"""Cluster grid layout, free-slot placement and cluster outline geometry."""
