"""
CineTrack - community movie/series catalog with visitor requests.

This package implements a small catalog service built on:
- A document store with live, snapshot-based subscriptions
- Visitor requests grouped by title into aggregate status records
- Atomic bulk transitions on request groups (done/undone, delete)
- A FastAPI surface with JWT sessions for visitors and the administrator

Architecture:
    ┌─────────────┐     ┌─────────────┐     ┌──────────────────┐
    │   Client    │────▶│  HTTP API   │────▶│ Action Executor  │
    │ (browser)   │◀─┐  │  (FastAPI)  │     │ / CatalogService │
    └─────────────┘  │  └─────────────┘     └────────┬─────────┘
                     │                               │
                     │ SSE                           ▼
              ┌──────┴──────┐             ┌─────────────────────┐
              │ Live views  │◀────────────│   Document store    │
              │ (aggregate) │  snapshots  │ (SQLite / memory)   │
              └─────────────┘             └─────────────────────┘

Invariants:
    - The document store is the only shared mutable state
    - Views are recomputed from each full snapshot, never patched
    - Bulk actions on a request group succeed or fail as a unit
    - Components receive an explicit AppContext; there are no global handles

Version: see _version.py.
"""

from ._version import __version__

__all__ = ["__version__"]
