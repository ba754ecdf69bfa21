"""Invariant checks for diagram graphs."""
