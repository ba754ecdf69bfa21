#!/usr/bin/env python3
"""Main entry point - same as the `vizcode` console script."""

from __future__ import annotations

from vizcode.cli import main

if __name__ == "__main__":
    main()
