"""Client side of the optional remote parse service."""
