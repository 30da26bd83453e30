"""
HTTP API for schemagraph.

Provides the FastAPI app factory and the /api/v1 routes.
"""

from .app import create_app

__all__ = ["create_app"]
