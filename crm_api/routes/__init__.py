"""
API routes for the CRM service.

This module provides the entity filter routes (preview, count, validate)
and the saved-filter routes.
"""

from .entities import router as entities_router
from .saved_filters import router as saved_filters_router

__all__ = [
    "entities_router",
    "saved_filters_router",
]
