"""
API routes package.
"""

from app.api import (
    customers,
    carriers,
    csp_events,
    tariffs,
    insights,
    pins,
)

__all__ = [
    "customers",
    "carriers",
    "csp_events",
    "tariffs",
    "insights",
    "pins",
]
