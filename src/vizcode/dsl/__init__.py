"""Diagram DSL: tolerant parser and its inverse, the prompt regenerator."""
