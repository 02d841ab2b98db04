"""
CineTrack HTTP API.

FastAPI application exposing the catalog, visitor requests and the
administrator request panel, with Server-Sent Event streams for live views.
"""

from .app import create_app, status_code_for
from .config import Settings

__all__ = ["create_app", "status_code_for", "Settings"]
