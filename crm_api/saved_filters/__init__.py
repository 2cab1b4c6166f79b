"""
Saved filter persistence for the CRM service.

This module stores named filter configs per entity type, counts their use
and raises typed errors the API layer maps to HTTP statuses.
"""

from .errors import SavedFilterError, SavedFilterConflict, SavedFilterNotFound
from .store import EntityType, SavedFilter, SavedFilterStore, total_pages

__all__ = [
    "SavedFilterError",
    "SavedFilterConflict",
    "SavedFilterNotFound",
    "EntityType",
    "SavedFilter",
    "SavedFilterStore",
    "total_pages",
]
