from __future__ import annotations
import base64
import binascii
import hashlib
import json
import logging
from typing import Any, Dict, List, Mapping, Optional, Tuple

from .models import FilterCondition, FilterConfig, FilterGroup, Operator

log = logging.getLogger("filters")


def usable_conditions(group: FilterGroup) -> List[FilterCondition]:
    return [c for c in group.conditions if c.is_usable]


def has_valid_conditions(config: FilterConfig) -> bool:
    return any(usable_conditions(g) for g in config.groups)


def empty_filter_config() -> FilterConfig:
    """One group holding one blank AND condition, the starting point of a new filter."""
    return FilterConfig(
        groups=[
            FilterGroup(
                id="group_1",
                conditions=[FilterCondition(id="condition_1", operator=Operator.EQUALS, value="")],
            )
        ]
    )


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

def validate_filter_config(config: FilterConfig) -> Tuple[bool, List[str]]:
    """
    Structural check used before saving: at least one group, no empty groups,
    every condition has a field and an operator.
    """
    errors: List[str] = []
    if not config.groups:
        errors.append("At least one filter group is required")
        return False, errors

    for gi, group in enumerate(config.groups, start=1):
        if not group.conditions:
            errors.append(f"Group {gi} must have at least one condition")
            continue
        for ci, cond in enumerate(group.conditions, start=1):
            if not cond.field:
                errors.append(f"Group {gi}, Condition {ci}: Field is required")
            if not cond.operator:
                errors.append(f"Group {gi}, Condition {ci}: Operator is required")

    return not errors, errors


# ---------------------------------------------------------------------------
# Description
# ---------------------------------------------------------------------------

def _describe_value(value: Any) -> str:
    if not value:
        return ""
    if isinstance(value, (list, tuple)):
        return " " + " and ".join(str(v) for v in value)
    return f' "{value}"'


def _describe_condition(cond: FilterCondition, labels: Mapping[str, str]) -> str:
    op = cond.operator.value if isinstance(cond.operator, Operator) else str(cond.operator)
    label = labels.get(cond.field, cond.field)
    return f"{label} {op.replace('_', ' ')}{_describe_value(cond.value)}"


def describe_filter(config: FilterConfig, labels: Optional[Mapping[str, str]] = None) -> str:
    """
    Human-readable rendering of a filter, e.g.
        Company Name contains "acme" OR (Industry equals "tech" AND Status equals "ACTIVE")
    Groups are joined with OR, matching how they are compiled.
    """
    labels = labels or {}
    if not has_valid_conditions(config):
        return "No filters applied"

    parts: List[str] = []
    for group in config.groups:
        conds = usable_conditions(group)
        if not conds:
            continue
        if parts:
            parts.append("OR")
        if len(conds) == 1:
            parts.append(_describe_condition(conds[0], labels))
            continue
        first = group.conditions[0].logical_operator
        joiner = " OR " if first is not None and first.value == "OR" else " AND "
        parts.append("(" + joiner.join(_describe_condition(c, labels) for c in conds) + ")")
    return " ".join(parts)


# ---------------------------------------------------------------------------
# Compact URL encoding
# ---------------------------------------------------------------------------

def _compress(config: FilterConfig) -> Dict[str, Any]:
    groups = []
    for group in config.groups:
        conds = []
        for c in usable_conditions(group):
            item: Dict[str, Any] = {
                "id": c.id,
                "f": c.field,
                "o": c.operator.value if isinstance(c.operator, Operator) else c.operator,
            }
            if c.value is not None:
                item["v"] = c.value
            if c.logical_operator is not None:
                item["l"] = c.logical_operator.value
            conds.append(item)
        if not conds:
            continue
        g: Dict[str, Any] = {"id": group.id, "c": conds}
        if group.logical_operator is not None:
            g["l"] = group.logical_operator.value
        groups.append(g)

    out: Dict[str, Any] = {"g": groups}
    if config.name is not None:
        out["n"] = config.name
    if config.is_public is not None:
        out["p"] = config.is_public
    return out


def _expand(compressed: Mapping[str, Any]) -> FilterConfig:
    return FilterConfig.from_dict({
        "groups": [
            {
                "id": g.get("id", ""),
                "conditions": [
                    {
                        "id": c.get("id", ""),
                        "field": c.get("f"),
                        "operator": c.get("o"),
                        "value": c.get("v"),
                        "logicalOperator": c.get("l"),
                    }
                    for c in g.get("c") or []
                ],
                "logicalOperator": g.get("l"),
            }
            for g in compressed.get("g") or []
        ],
        "name": compressed.get("n"),
        "isPublic": compressed.get("p"),
    })


def encode_filters(config: FilterConfig) -> str:
    """URL-safe base64 of the compact JSON form. Unusable conditions are dropped."""
    raw = json.dumps(_compress(config), separators=(",", ":"), sort_keys=True)
    return base64.urlsafe_b64encode(raw.encode("utf-8")).decode("ascii").rstrip("=")


def decode_filters(encoded: Optional[str]) -> FilterConfig:
    """
    Inverse of encode_filters. Anything unreadable yields a blank filter instead
    of raising, so a mangled link still opens the list view.
    """
    if not encoded:
        return empty_filter_config()
    try:
        padded = encoded + "=" * (-len(encoded) % 4)
        data = json.loads(base64.urlsafe_b64decode(padded.encode("ascii")))
        if not isinstance(data, dict):
            raise ValueError("compact filter must be an object")
        return _expand(data)
    except (ValueError, binascii.Error, UnicodeError, AttributeError, TypeError) as e:
        log.warning("Failed to decode filters from URL: %s", e)
        return empty_filter_config()


def filter_hash(config: FilterConfig) -> str:
    """Stable 16-char key for caching compiled results."""
    canonical = json.dumps(config.to_dict(), sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:16]


__all__ = [
    "usable_conditions",
    "has_valid_conditions",
    "empty_filter_config",
    "validate_filter_config",
    "describe_filter",
    "encode_filters",
    "decode_filters",
    "filter_hash",
]
