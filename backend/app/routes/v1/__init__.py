# backend/app/routes/v1/__init__.py
"""
API v1 Routes

Versioned API endpoints under /api/v1.
All new endpoints should be added here.
"""

from . import (
    bookings,
    checkout,
    class_instances,
    class_templates,
    health,
    metrics,
    passes,
    subscriptions,
    webhooks,
)

__all__ = [
    "bookings",
    "checkout",
    "class_instances",
    "class_templates",
    "health",
    "metrics",
    "passes",
    "subscriptions",
    "webhooks",
]
