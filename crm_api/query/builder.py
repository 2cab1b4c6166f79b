from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple
import datetime as dt
import logging
import re

from ..filters import (
    FilterCondition,
    FilterConfig,
    FilterGroup,
    LogicalOperator,
    Operator,
    OperatorFamily,
    operator_family,
)
from ..filters.values import parse_date, parse_number, range_pair, today_window
from ..registry import COUNT_MARKER, EntityEntry, Registry

log = logging.getLogger("filters")

ALWAYS_FALSE = "1=0"

_UNQUOTED_IDENT_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_$]*$")

def _quote_identifier(name: str, *, quote_identifiers: bool) -> str:
    """
    Quote an identifier if needed. Doubles internal quotes.
    """
    if not quote_identifiers and _UNQUOTED_IDENT_RE.match(name):
        return name
    escaped = name.replace('"', '""')
    return f'"{escaped}"'

def _escape_like(value: str) -> str:
    """
    Escape \\, %, _ in LIKE patterns. We'll use ESCAPE '\\' in SQL.
    """
    value = value.replace("\\", "\\\\")
    value = value.replace("%", "\\%").replace("_", "\\_")
    return value

class _ParamSink:
    """
    Collects params under generated names and returns the ':name'
    placeholder for each, ready for SQLAlchemy text().
    """
    def __init__(self, prefix: str = "p"):
        self.prefix = prefix
        self.next_idx = 1
        self.params: Dict[str, Any] = {}

    def add(self, value: Any) -> str:
        name = f"{self.prefix}{self.next_idx}"
        self.next_idx += 1
        self.params[name] = value
        return f":{name}"


@dataclass
class Predicate:
    """
    Compiled filter: a SQL boolean expression over the entity's table plus its
    bound parameters. An empty `sql` matches every row.
    """
    sql: str = ""
    params: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_match_all(self) -> bool:
        return not self.sql


@dataclass
class _Context:
    registry: Registry
    sink: _ParamSink
    use_ilike: bool
    quote_identifiers: bool
    today: Optional[dt.date] = None
    alias_idx: int = 0

    def q(self, name: str) -> str:
        return _quote_identifier(name, quote_identifiers=self.quote_identifiers)

    def next_alias(self) -> str:
        self.alias_idx += 1
        return f"_sq{self.alias_idx}"


@dataclass
class _Resolved:
    column: str
    column_type: str
    wrap: Callable[[str], str]


def _identity(fragment: str) -> str:
    return fragment


# -----------------------------------------------------------------------------
# Field resolution
# -----------------------------------------------------------------------------

def _count_subquery(ctx: _Context, entry: EntityEntry, ref: str, name: str) -> Optional[str]:
    link = entry["counts"].get(name)
    if link is None:
        return None
    target = ctx.registry.entities[link["entity"]]
    alias = ctx.q(ctx.next_alias())
    return (
        f"(SELECT COUNT(*) FROM {ctx.q(target['table'])} AS {alias} "
        f"WHERE {alias}.{ctx.q(link['foreignKey'])} = {ref}.{ctx.q(entry['primaryKey'])})"
    )


def _resolve(ctx: _Context, entity: str, ref: str, path: List[str]) -> Optional[_Resolved]:
    """
    Walk a dotted path from `entity` (referenced in SQL as `ref`).
      - one segment: a column of the entity
      - `_count.<name>`: the aggregate count, deeper segments ignored
      - `<relation>.<rest>`: `rest` resolved on the related entity, the
        resulting fragment wrapped in a membership subquery
    """
    entry = ctx.registry.entities.get(entity)
    if entry is None or not path:
        return None

    head = path[0]
    if len(path) == 1:
        typ = entry["columns"].get(head)
        if typ is None:
            return None
        return _Resolved(f"{ref}.{ctx.q(head)}", typ, _identity)

    if head == COUNT_MARKER:
        sub = _count_subquery(ctx, entry, ref, path[1])
        if sub is None:
            return None
        return _Resolved(sub, "NUMBER", _identity)

    link = entry["relations"].get(head)
    if link is None:
        return None
    target = ctx.registry.entities[link["entity"]]
    alias = ctx.q(ctx.next_alias())
    inner = _resolve(ctx, link["entity"], alias, path[1:])
    if inner is None:
        return None

    fk = f"{ref}.{ctx.q(link['foreignKey'])}"
    pk = f"{alias}.{ctx.q(target['primaryKey'])}"
    table = f"{ctx.q(target['table'])} AS {alias}"

    def wrap(fragment: str) -> str:
        return f"{fk} IN (SELECT {pk} FROM {table} WHERE {inner.wrap(fragment)})"

    return _Resolved(inner.column, inner.column_type, wrap)


# -----------------------------------------------------------------------------
# Condition evaluator
# -----------------------------------------------------------------------------

def _format_like_pattern(val: Any, op: Operator) -> str:
    lit = _escape_like(str(val))
    if op in (Operator.CONTAINS, Operator.NOT_CONTAINS):
        return f"%{lit}%"
    if op == Operator.STARTS_WITH:
        return f"{lit}%"
    if op == Operator.ENDS_WITH:
        return f"%{lit}"
    raise AssertionError("LIKE pattern requested for non-like operator")

def _like(ctx: _Context, col: str, value: Any, op: Operator) -> str:
    ph = ctx.sink.add(_format_like_pattern(value, op))
    if ctx.use_ilike:
        return f"{col} ILIKE {ph} ESCAPE '\\'"
    return f"LOWER({col}) LIKE LOWER({ph}) ESCAPE '\\'"

def _text_fragment(ctx: _Context, col: str, op: Operator, value: Any) -> str:
    if value is None:
        log.debug("No value for %s, ignoring condition", op.value)
        return ""
    if op == Operator.EQUALS:
        return f"{col} = {ctx.sink.add(value)}"
    if op == Operator.NOT_EQUALS:
        return f"{col} <> {ctx.sink.add(value)}"
    if op == Operator.NOT_CONTAINS:
        return f"({col} IS NULL OR NOT ({_like(ctx, col, value, op)}))"
    return _like(ctx, col, value, op)

def _presence_fragment(col: str, col_type: str, op: Operator) -> str:
    texty = col_type == "TEXT"
    if op == Operator.IS_EMPTY:
        return f"({col} IS NULL OR {col} = '')" if texty else f"{col} IS NULL"
    return f"({col} IS NOT NULL AND {col} <> '')" if texty else f"{col} IS NOT NULL"

_COMPARE = {
    Operator.GREATER_THAN: ">",
    Operator.LESS_THAN: "<",
    Operator.GREATER_THAN_OR_EQUAL: ">=",
    Operator.LESS_THAN_OR_EQUAL: "<=",
    Operator.BEFORE: "<",
    Operator.AFTER: ">",
    Operator.ON_OR_BEFORE: "<=",
    Operator.ON_OR_AFTER: ">=",
}

def _range_fragment(ctx: _Context, col: str, lo: Any, hi: Any, *, hi_op: str = "<=") -> str:
    return f"({col} >= {ctx.sink.add(lo)} AND {col} {hi_op} {ctx.sink.add(hi)})"

def _leaf_fragment(ctx: _Context, col: str, col_type: str, op: Operator, value: Any) -> str:
    family = operator_family(op)

    if family == OperatorFamily.TEXT:
        return _text_fragment(ctx, col, op, value)

    if family == OperatorFamily.PRESENCE:
        return _presence_fragment(col, col_type, op)

    if family == OperatorFamily.NUMBER:
        return f"{col} {_COMPARE[op]} {ctx.sink.add(parse_number(value))}"

    if family == OperatorFamily.RANGE:
        pair = range_pair(value)
        if pair is None:
            log.debug("Malformed range for %s: %r", op.value, value)
            return ""
        return _range_fragment(ctx, col, parse_number(pair[0]), parse_number(pair[1]))

    if family == OperatorFamily.DATE:
        when = parse_date(value)
        if when is None:
            log.debug("Unreadable date for %s: %r", op.value, value)
            return ""
        return f"{col} {_COMPARE[op]} {ctx.sink.add(when)}"

    if family == OperatorFamily.DATE_RANGE:
        pair = range_pair(value)
        start = parse_date(pair[0]) if pair else None
        end = parse_date(pair[1]) if pair else None
        if start is None or end is None:
            log.debug("Malformed date range for %s: %r", op.value, value)
            return ""
        return _range_fragment(ctx, col, start, end)

    if family == OperatorFamily.RELATIVE_DATE:
        start, end = today_window(ctx.today)
        return _range_fragment(ctx, col, start, end, hi_op="<")

    if family == OperatorFamily.BOOLEAN:
        return f"{col} = {ctx.sink.add(op == Operator.IS_TRUE)}"

    log.warning("Unsupported filter operator: %s", op)
    return ""

def _build_condition_sql(ctx: _Context, entity: str, cond: FilterCondition) -> str:
    op = cond.operator
    if not isinstance(op, Operator):
        log.warning("Unsupported filter operator: %s", op)
        return ""

    table = ctx.registry.entities[entity]["table"]
    resolved = _resolve(ctx, entity, ctx.q(table), cond.field.split("."))
    if resolved is None:
        log.warning("Unresolvable filter field %s.%s", entity, cond.field)
        return ALWAYS_FALSE

    fragment = _leaf_fragment(ctx, resolved.column, resolved.column_type, op, cond.value)
    if not fragment:
        return ""
    return resolved.wrap(fragment)


# -----------------------------------------------------------------------------
# Group and filter compilers
# -----------------------------------------------------------------------------

def _combine(parts: List[str], logical: LogicalOperator) -> str:
    if not parts:
        return ""
    if len(parts) == 1:
        return parts[0]
    joiner = " AND " if logical == LogicalOperator.AND else " OR "
    return "(" + joiner.join(parts) + ")"

def _group_operator(group: FilterGroup) -> LogicalOperator:
    # Only the first condition's operator counts, for the whole group.
    first = group.conditions[0].logical_operator if group.conditions else None
    return LogicalOperator.OR if first == LogicalOperator.OR else LogicalOperator.AND

def _build_group_sql(ctx: _Context, entity: str, group: FilterGroup) -> str:
    parts: List[str] = []
    for cond in group.conditions:
        if not cond.is_usable:
            continue
        frag = _build_condition_sql(ctx, entity, cond)
        if frag:
            parts.append(frag)
    return _combine(parts, _group_operator(group))

def _build_filter_sql(ctx: _Context, entity: str, config: FilterConfig) -> str:
    parts = [p for p in (_build_group_sql(ctx, entity, g) for g in config.groups) if p]
    # Groups are always OR-ed; a group's own logicalOperator is not consulted here.
    return _combine(parts, LogicalOperator.OR)

def _context(
    registry: Registry,
    entity: str,
    *,
    use_ilike: bool,
    quote_identifiers: bool,
    today: Optional[dt.date],
) -> _Context:
    registry.ensure_entity(entity)
    return _Context(registry, _ParamSink(), use_ilike, quote_identifiers, today)

def build_condition_sql(
    cond: FilterCondition,
    entity: str,
    registry: Registry,
    *,
    use_ilike: bool = False,
    quote_identifiers: bool = True,
    today: Optional[dt.date] = None,
) -> Predicate:
    """Compile one condition on its own. Unusable or neutral conditions give an empty Predicate."""
    ctx = _context(registry, entity, use_ilike=use_ilike, quote_identifiers=quote_identifiers, today=today)
    sql = _build_condition_sql(ctx, entity, cond) if cond.is_usable else ""
    return Predicate(sql, ctx.sink.params)

def compile_filter(
    config: FilterConfig,
    entity: str,
    registry: Registry,
    *,
    use_ilike: bool = False,
    quote_identifiers: bool = True,
    today: Optional[dt.date] = None,
) -> Predicate:
    """
    Compile a whole FilterConfig against `entity`. Never raises for bad
    condition data; the worst case is a broader predicate (see module logger).
    Raises KeyError only for an unknown entity.
    """
    ctx = _context(registry, entity, use_ilike=use_ilike, quote_identifiers=quote_identifiers, today=today)
    return Predicate(_build_filter_sql(ctx, entity, config), ctx.sink.params)

# -----------------------------------------------------------------------------
# SELECT builder
# -----------------------------------------------------------------------------

COUNT_COLUMN_PREFIX = "_count_"

@dataclass
class SelectBuildResult:
    sql: str
    params: Dict[str, Any]

def _scoped_where(entry: EntityEntry, predicate: Predicate, *, quote_identifiers: bool) -> str:
    table = _quote_identifier(entry["table"], quote_identifiers=quote_identifiers)
    clauses: List[str] = []
    if entry.get("softDelete"):
        col = _quote_identifier(entry["softDelete"], quote_identifiers=quote_identifiers)
        clauses.append(f"NOT {table}.{col}")
    if not predicate.is_match_all:
        clauses.append(predicate.sql if len(clauses) == 0 else f"({predicate.sql})")
    return " AND ".join(clauses)

def build_count_sql(
    entity: str,
    registry: Registry,
    predicate: Predicate,
    *,
    quote_identifiers: bool = True,
) -> Tuple[str, Dict[str, Any]]:
    entry = registry.ensure_entity(entity)
    table = _quote_identifier(entry["table"], quote_identifiers=quote_identifiers)
    where = _scoped_where(entry, predicate, quote_identifiers=quote_identifiers)
    sql = f"SELECT COUNT(*) FROM {table}"
    if where:
        sql += f" WHERE {where}"
    return sql, predicate.params

def build_select_sql(
    entity: str,
    registry: Registry,
    predicate: Predicate,
    *,
    columns: Optional[Iterable[str]] = None,
    order_by: Optional[Iterable[Tuple[str, str]]] = None,
    limit: Optional[int] = None,
    include_counts: bool = True,
    quote_identifiers: bool = True,
) -> SelectBuildResult:
    """
    SELECT for a bounded list of matching rows.
    - columns default to the entity's sample columns
    - every `counts` link is selected as `_count_<name>` when include_counts
    - order_by is a list of (column, 'ASC'|'DESC'); defaults to updatedAt DESC
    """
    entry = registry.ensure_entity(entity)
    q = lambda name: _quote_identifier(name, quote_identifiers=quote_identifiers)
    table = q(entry["table"])

    cols = list(columns) if columns is not None else list(entry["sample"])
    select_list = [f"{table}.{q(c)}" for c in cols if c in entry["columns"]] or [f"{table}.*"]

    if include_counts:
        for n, link in entry["counts"].items():
            target = registry.entities[link["entity"]]
            alias = q(f"_c_{n}")
            select_list.append(
                f"(SELECT COUNT(*) FROM {q(target['table'])} AS {alias} "
                f"WHERE {alias}.{q(link['foreignKey'])} = {table}.{q(entry['primaryKey'])}) "
                f"AS {q(COUNT_COLUMN_PREFIX + n)}"
            )

    sql = f"SELECT {', '.join(select_list)} FROM {table}"
    where = _scoped_where(entry, predicate, quote_identifiers=quote_identifiers)
    if where:
        sql += f" WHERE {where}"

    if order_by is None:
        order_by = [(entry["updatedAt"], "DESC")] if entry.get("updatedAt") else []
    rendered = [
        f"{table}.{q(col)} {'DESC' if direction.upper() == 'DESC' else 'ASC'}"
        for col, direction in order_by
        if col in entry["columns"]
    ]
    if rendered:
        sql += " ORDER BY " + ", ".join(rendered)
    if limit is not None and limit > 0:
        sql += f" LIMIT {int(limit)}"

    return SelectBuildResult(sql=sql, params=predicate.params)

# -----------------------------------------------------------------------------
# Public exports
# -----------------------------------------------------------------------------
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
