from __future__ import annotations
import datetime as dt
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlalchemy import Boolean, DateTime, bindparam, text
from sqlalchemy.engine import Engine
from sqlalchemy.sql.elements import TextClause

from ..query import COUNT_COLUMN_PREFIX, Predicate, build_count_sql, build_select_sql
from ..registry import Registry

log = logging.getLogger("database")

_RESULT_TYPES = {"TIMESTAMP": DateTime, "DATE": DateTime, "BOOLEAN": Boolean}


def _statement(sql: str, params: Dict[str, Any], result_types: Optional[Dict[str, Any]] = None) -> TextClause:
    """
    text() with bind types attached to datetime and boolean params, so each
    dialect stores and compares them in its own format.
    """
    stmt = text(sql)
    typed = []
    for name, value in params.items():
        if isinstance(value, bool):
            typed.append(bindparam(name, type_=Boolean()))
        elif isinstance(value, dt.datetime):
            typed.append(bindparam(name, type_=DateTime()))
    if typed:
        stmt = stmt.bindparams(*typed)
    if result_types:
        stmt = stmt.columns(**result_types)
    return stmt


def _nest_counts(row: Dict[str, Any]) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    counts: Dict[str, int] = {}
    for k, v in row.items():
        if k.startswith(COUNT_COLUMN_PREFIX):
            counts[k[len(COUNT_COLUMN_PREFIX):]] = int(v or 0)
        else:
            out[k] = v
    if counts:
        out["_count"] = counts
    return out


def count_matching(engine: Engine, entity: str, registry: Registry, predicate: Predicate) -> int:
    sql, params = build_count_sql(entity, registry, predicate)
    with engine.connect() as conn:
        return int(conn.execute(_statement(sql, params), params).scalar_one())


def find_matching(
    engine: Engine,
    entity: str,
    registry: Registry,
    predicate: Predicate,
    *,
    limit: int,
    order_by: Optional[Iterable[Tuple[str, str]]] = None,
    columns: Optional[Iterable[str]] = None,
) -> List[Dict[str, Any]]:
    entry = registry.ensure_entity(entity)
    selected = list(columns) if columns is not None else list(entry["sample"])
    build = build_select_sql(entity, registry, predicate, columns=selected, order_by=order_by, limit=limit)
    types = {
        c: _RESULT_TYPES[entry["columns"][c]]
        for c in selected
        if entry["columns"].get(c) in _RESULT_TYPES
    }
    params = build.params
    with engine.connect() as conn:
        rows = conn.execute(_statement(build.sql, params, types), params).mappings().all()
    return [_nest_counts(dict(r)) for r in rows]


def preview_matches(
    engine: Engine,
    entity: str,
    registry: Registry,
    predicate: Predicate,
    *,
    sample_size: int,
) -> Dict[str, Any]:
    """
    Count plus a most-recently-updated sample. The two queries are independent;
    they run side by side except on SQLite, where one connection is shared.
    """
    if engine.dialect.name == "sqlite":
        count = count_matching(engine, entity, registry, predicate)
        sample = find_matching(engine, entity, registry, predicate, limit=sample_size)
        return {"count": count, "sample": sample}

    with ThreadPoolExecutor(max_workers=2, thread_name_prefix="preview") as pool:
        count_future = pool.submit(count_matching, engine, entity, registry, predicate)
        sample_future = pool.submit(find_matching, engine, entity, registry, predicate, limit=sample_size)
        return {"count": count_future.result(), "sample": sample_future.result()}
