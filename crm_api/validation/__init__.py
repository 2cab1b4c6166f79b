"""
Validation module for the CRM service.

This module provides advisory checks of filter configs against the entity
registry and the page-size cap for listings.
"""

from .rules import check_filter_against_entity, _cap_page_size

__all__ = [
    "check_filter_against_entity",
    "_cap_page_size",
]
