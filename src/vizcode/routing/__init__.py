"""Obstacle-avoiding edge routing between node icons."""
