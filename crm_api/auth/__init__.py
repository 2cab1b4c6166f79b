"""
Authentication dependencies for the CRM service.

This module provides the FastAPI dependencies that turn a bearer token into
the caller's claims.
"""

from .require import require_auth, current_owner_id

__all__ = [
    "require_auth",
    "current_owner_id",
]
