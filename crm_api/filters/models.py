from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union
import json

import jsonschema

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class Operator(str, Enum):
    # text
    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    CONTAINS = "contains"
    NOT_CONTAINS = "not_contains"
    STARTS_WITH = "starts_with"
    ENDS_WITH = "ends_with"
    IS_EMPTY = "is_empty"
    IS_NOT_EMPTY = "is_not_empty"
    # number
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    GREATER_THAN_OR_EQUAL = "greater_than_or_equal"
    LESS_THAN_OR_EQUAL = "less_than_or_equal"
    BETWEEN = "between"
    # date
    BEFORE = "before"
    AFTER = "after"
    ON_OR_BEFORE = "on_or_before"
    ON_OR_AFTER = "on_or_after"
    DATE_BETWEEN = "date_between"
    IS_TODAY = "is_today"
    # boolean
    IS_TRUE = "is_true"
    IS_FALSE = "is_false"


class LogicalOperator(str, Enum):
    AND = "AND"
    OR = "OR"


class OperatorFamily(str, Enum):
    """
    Shape of the value an operator expects. The compiler dispatches on this
    before looking at the individual operator.
    """
    TEXT = "text"                    # single scalar, compared as text
    PRESENCE = "presence"            # no value
    NUMBER = "number"                # single scalar, coerced to a number
    RANGE = "range"                  # [lo, hi] numbers
    DATE = "date"                    # single date
    DATE_RANGE = "date_range"        # [from, to] dates
    RELATIVE_DATE = "relative_date"  # no value, window derived from the clock
    BOOLEAN = "boolean"              # no value


OPERATOR_FAMILIES: Dict[Operator, OperatorFamily] = {
    Operator.EQUALS: OperatorFamily.TEXT,
    Operator.NOT_EQUALS: OperatorFamily.TEXT,
    Operator.CONTAINS: OperatorFamily.TEXT,
    Operator.NOT_CONTAINS: OperatorFamily.TEXT,
    Operator.STARTS_WITH: OperatorFamily.TEXT,
    Operator.ENDS_WITH: OperatorFamily.TEXT,
    Operator.IS_EMPTY: OperatorFamily.PRESENCE,
    Operator.IS_NOT_EMPTY: OperatorFamily.PRESENCE,
    Operator.GREATER_THAN: OperatorFamily.NUMBER,
    Operator.LESS_THAN: OperatorFamily.NUMBER,
    Operator.GREATER_THAN_OR_EQUAL: OperatorFamily.NUMBER,
    Operator.LESS_THAN_OR_EQUAL: OperatorFamily.NUMBER,
    Operator.BETWEEN: OperatorFamily.RANGE,
    Operator.BEFORE: OperatorFamily.DATE,
    Operator.AFTER: OperatorFamily.DATE,
    Operator.ON_OR_BEFORE: OperatorFamily.DATE,
    Operator.ON_OR_AFTER: OperatorFamily.DATE,
    Operator.DATE_BETWEEN: OperatorFamily.DATE_RANGE,
    Operator.IS_TODAY: OperatorFamily.RELATIVE_DATE,
    Operator.IS_TRUE: OperatorFamily.BOOLEAN,
    Operator.IS_FALSE: OperatorFamily.BOOLEAN,
}


def _operator_from(raw: Any) -> Union[Operator, str]:
    """
    Known tags become Operator members; anything else is kept verbatim so a
    saved filter referencing a retired operator still loads.
    """
    if isinstance(raw, Operator):
        return raw
    if raw is None:
        return ""
    try:
        return Operator(raw)
    except ValueError:
        return str(raw)


def _logical_from(raw: Any) -> Optional[LogicalOperator]:
    if raw is None or raw == "":
        return None
    try:
        return LogicalOperator(str(raw).upper())
    except ValueError:
        return None


def operator_family(op: Union[Operator, str]) -> Optional[OperatorFamily]:
    if isinstance(op, Operator):
        return OPERATOR_FAMILIES.get(op)
    return None


# ---------------------------------------------------------------------------
# Core filter models
# ---------------------------------------------------------------------------

@dataclass
class FilterCondition:
    """
    One atomic test: a field (possibly a dotted path), an operator and a value.
    """
    id: str = ""
    field: str = ""
    operator: Union[Operator, str] = ""
    value: Any = None
    logical_operator: Optional[LogicalOperator] = None

    @property
    def is_usable(self) -> bool:
        return bool(self.field) and bool(self.operator)

    # camelCase JSON helpers
    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "id": self.id,
            "field": self.field,
            "operator": self.operator.value if isinstance(self.operator, Operator) else self.operator,
        }
        if self.value is not None:
            out["value"] = self.value
        if self.logical_operator is not None:
            out["logicalOperator"] = self.logical_operator.value
        return out

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FilterCondition":
        return cls(
            id=str(data.get("id", "")),
            field=str(data.get("field") or ""),
            operator=_operator_from(data.get("operator")),
            value=data.get("value"),
            logical_operator=_logical_from(data.get("logicalOperator")),
        )


@dataclass
class FilterGroup:
    """
    Conditions combined with one logical operator.
    """
    id: str = ""
    conditions: List[FilterCondition] = field(default_factory=list)
    logical_operator: Optional[LogicalOperator] = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "id": self.id,
            "conditions": [c.to_dict() for c in self.conditions],
        }
        if self.logical_operator is not None:
            out["logicalOperator"] = self.logical_operator.value
        return out

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FilterGroup":
        return cls(
            id=str(data.get("id", "")),
            conditions=[FilterCondition.from_dict(c) for c in data.get("conditions") or []],
            logical_operator=_logical_from(data.get("logicalOperator")),
        )


@dataclass
class FilterConfig:
    """
    Root of a filter. Groups are always OR-ed together at compile time.
    """
    groups: List[FilterGroup] = field(default_factory=list)
    name: Optional[str] = None
    is_public: Optional[bool] = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"groups": [g.to_dict() for g in self.groups]}
        if self.name is not None:
            out["name"] = self.name
        if self.is_public is not None:
            out["isPublic"] = self.is_public
        return out

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FilterConfig":
        return cls(
            groups=[FilterGroup.from_dict(g) for g in data.get("groups") or []],
            name=data.get("name"),
            is_public=data.get("isPublic"),
        )


# ---------------------------------------------------------------------------
# JSON Schemas
# ---------------------------------------------------------------------------

_DEFS: Dict[str, Any] = {
    "FilterCondition": {
        "type": "object",
        "properties": {
            "id": {"type": "string"},
            "field": {"type": "string"},
            # Free-form on purpose: unknown operators compile to a neutral fragment.
            "operator": {"type": "string"},
            "value": {},
            "logicalOperator": {"type": "string", "enum": ["AND", "OR"]},
        },
        "required": ["id", "field", "operator"],
    },
    "FilterGroup": {
        "type": "object",
        "properties": {
            "id": {"type": "string"},
            "conditions": {"type": "array", "items": {"$ref": "#/$defs/FilterCondition"}},
            "logicalOperator": {"type": "string", "enum": ["AND", "OR"]},
        },
        "required": ["id", "conditions"],
    },
    "FilterConfig": {
        "type": "object",
        "properties": {
            "groups": {"type": "array", "items": {"$ref": "#/$defs/FilterGroup"}},
            "name": {"type": "string"},
            "isPublic": {"type": "boolean"},
        },
        "required": ["groups"],
    },
}

FILTER_SCHEMA: Dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "$id": "https://crm.local/filter.schema.json",
    "title": "Filter Config",
    "$defs": _DEFS,
    "$ref": "#/$defs/FilterConfig",
}

FILTER_REQUEST_SCHEMA: Dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "$id": "https://crm.local/filter-request.schema.json",
    "title": "Filter Request",
    "$defs": _DEFS,
    "type": "object",
    "properties": {
        "filters": {"$ref": "#/$defs/FilterConfig"},
    },
    "required": ["filters"],
}


def _load(payload: Union[str, bytes, Dict[str, Any]]) -> Dict[str, Any]:
    data = json.loads(payload) if isinstance(payload, (str, bytes)) else payload
    if not isinstance(data, dict):
        raise ValueError("filter payload must be a JSON object")
    return data


def parse_filter_config_json(
    payload: Union[str, bytes, Dict[str, Any]],
    *,
    validate: bool = True,
) -> FilterConfig:
    """
    Accept a JSON string or dict holding a bare FilterConfig.
    Raises ValueError for bad JSON and jsonschema.ValidationError for bad shape.
    """
    data = _load(payload)
    if validate:
        jsonschema.validate(instance=data, schema=FILTER_SCHEMA)
    return FilterConfig.from_dict(data)


def parse_filter_request_json(
    payload: Union[str, bytes, Dict[str, Any]],
    *,
    validate: bool = True,
) -> FilterConfig:
    """
    Accept the `{"filters": {...}}` envelope used by the preview and count
    endpoints and return the inner FilterConfig.
    """
    data = _load(payload)
    if validate:
        jsonschema.validate(instance=data, schema=FILTER_REQUEST_SCHEMA)
    return FilterConfig.from_dict(data.get("filters") or {})


# ---------------------------------------------------------------------------
# Public exports
# ---------------------------------------------------------------------------

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
]
