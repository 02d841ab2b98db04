"""
CLI tools for CineTrack administration.

This module provides command-line tools for:
- hash-password: Generate the administrator password hash
- seed: Insert the starter catalog
- requests: Inspect visitor requests grouped by title

Invariants:
    - Tools work offline (no running server required)
"""

from .admin_cli import AdminCLI

__all__ = ["AdminCLI"]
