"""
Query building module for the CRM service.

This module compiles filter configs into parametrized SQL predicates and
builds the COUNT/SELECT statements run against entity tables.
"""

from .builder import (
    ALWAYS_FALSE,
    COUNT_COLUMN_PREFIX,
    Predicate,
    SelectBuildResult,
    build_condition_sql,
    compile_filter,
    build_count_sql,
    build_select_sql,
)

__all__ = [
    "ALWAYS_FALSE",
    "COUNT_COLUMN_PREFIX",
    "Predicate",
    "SelectBuildResult",
    "build_condition_sql",
    "compile_filter",
    "build_count_sql",
    "build_select_sql",
]
