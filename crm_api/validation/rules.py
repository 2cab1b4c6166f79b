from typing import List

from ..config import DEFAULT_PAGE_SIZE, GLOBAL_MAX_PAGE_SIZE
from ..filters import FilterConfig, OperatorFamily, operator_family
from ..registry import Registry

_TEXTY = {"TEXT"}
_NUMERIC = {"NUMBER"}
_DATES = {"DATE", "TIMESTAMP"}

_ALLOWED_TYPES = {
    OperatorFamily.TEXT: _TEXTY,
    OperatorFamily.NUMBER: _NUMERIC,
    OperatorFamily.RANGE: _NUMERIC,
    OperatorFamily.DATE: _DATES,
    OperatorFamily.DATE_RANGE: _DATES,
    OperatorFamily.RELATIVE_DATE: _DATES,
    OperatorFamily.BOOLEAN: {"BOOLEAN"},
}


def check_filter_against_entity(entity: str, config: FilterConfig, registry: Registry) -> List[str]:
    """
    Advisory messages for conditions that will not do what they look like
    they do: unknown field paths, unknown operators and operators applied to
    a column of the wrong type. Empty list when nothing stands out.
    Previews never call this; a bad condition there just degrades.
    """
    registry.ensure_entity(entity)
    problems: List[str] = []
    for gi, group in enumerate(config.groups, start=1):
        for ci, cond in enumerate(group.conditions, start=1):
            if not cond.is_usable:
                continue
            where = f"Group {gi}, Condition {ci}"
            op = cond.operator
            family = operator_family(op)
            if family is None:
                problems.append(f"{where}: Unsupported operator {op}")
                continue
            typ = registry.field_type(entity, cond.field)
            if typ is None:
                problems.append(f"{where}: Unknown field {cond.field} for {entity}")
                continue
            allowed = _ALLOWED_TYPES.get(family)
            if allowed is not None and typ not in allowed:
                problems.append(
                    f"{where}: Operator {op.value} not allowed on field {cond.field} of type {typ}"
                )
    return problems


def _cap_page_size(limit: int, cap: int = GLOBAL_MAX_PAGE_SIZE) -> int:
    if limit <= 0:
        return min(DEFAULT_PAGE_SIZE, cap)
    return min(limit, cap)
