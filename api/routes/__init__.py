"""API Routes Package."""

from api.routes import health, validation, reconciliation, reports

__all__ = [
    "health",
    "validation",
    "reconciliation",
    "reports",
]
