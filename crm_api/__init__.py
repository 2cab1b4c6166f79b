"""
CRM filter service.

Compiles user-composed filters over CRM entities into parametrized SQL,
previews their matches and persists them as saved filters.
"""

__version__ = "1.0.0"
