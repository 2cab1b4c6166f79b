"""
Database operations for the CRM service.

This module handles the SQLAlchemy engine, table metadata and the execution
of compiled filter predicates.
"""

from .engine import build_engine, get_engine
from .schema import metadata, create_all
from .queries import count_matching, find_matching, preview_matches

__all__ = [
    "build_engine",
    "get_engine",
    "metadata",
    "create_all",
    "count_matching",
    "find_matching",
    "preview_matches",
]
