"""
Filter system for the CRM service.

This module provides filter models, parsing, validation and value coercion
for user-composed filters.
"""

from .models import (
    Operator,
    LogicalOperator,
    OperatorFamily,
    OPERATOR_FAMILIES,
    operator_family,
    FilterCondition,
    FilterGroup,
    FilterConfig,
    FILTER_SCHEMA,
    FILTER_REQUEST_SCHEMA,
    parse_filter_config_json,
    parse_filter_request_json,
)
from .utils import (
    usable_conditions,
    has_valid_conditions,
    empty_filter_config,
    validate_filter_config,
    describe_filter,
    encode_filters,
    decode_filters,
    filter_hash,
)

__all__ = [
    "Operator",
    "LogicalOperator",
    "OperatorFamily",
    "OPERATOR_FAMILIES",
    "operator_family",
    "FilterCondition",
    "FilterGroup",
    "FilterConfig",
    "FILTER_SCHEMA",
    "FILTER_REQUEST_SCHEMA",
    "parse_filter_config_json",
    "parse_filter_request_json",
    "usable_conditions",
    "has_valid_conditions",
    "empty_filter_config",
    "validate_filter_config",
    "describe_filter",
    "encode_filters",
    "decode_filters",
    "filter_hash",
]
