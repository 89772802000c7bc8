"""
Module entrypoint for the rxshelf CLI.

This file exists so that `python -m rxshelf ...` works consistently in all
environments, including when the console-script wrapper is not installed.
"""

from __future__ import annotations

from rxshelf.cli import main

if __name__ == "__main__":
    raise SystemExit(main())
