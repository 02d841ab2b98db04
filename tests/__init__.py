"""
CineTrack Test Suite.

This package contains:
- unit/: Unit tests (no external dependencies beyond temp files)
- integration/: Integration tests (executor, stores, live views, HTTP API)
"""
