"""API Package.

FastAPI server exposing the reconciliation engine.
"""

from api.server import create_app, app

__all__ = [
    "create_app",
    "app",
]
