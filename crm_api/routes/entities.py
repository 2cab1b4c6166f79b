import logging
import time
from typing import Any, Dict

import jsonschema
from fastapi import APIRouter, Body, Depends, HTTPException, Query
from sqlalchemy.engine import Engine

from ..auth import require_auth
from ..config import PREVIEW_SAMPLE_SIZE
from ..database import count_matching, preview_matches
from ..deps import get_db_engine, get_registry
from ..filters import (
    FilterConfig,
    decode_filters,
    describe_filter,
    encode_filters,
    filter_hash,
    parse_filter_request_json,
    validate_filter_config,
)
from ..query import Predicate, compile_filter
from ..registry import Registry
from ..validation import check_filter_against_entity

log = logging.getLogger("routes")

router = APIRouter(prefix="/api", tags=["filters"], dependencies=[Depends(require_auth)])


def _elapsed_ms(started: float) -> float:
    return (time.perf_counter() - started) * 1000


def parse_filters(payload: Dict[str, Any]) -> FilterConfig:
    try:
        return parse_filter_request_json(payload, validate=True)
    except jsonschema.ValidationError as e:
        raise HTTPException(status_code=400, detail=f"Invalid filter: {e.message}")
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


def compile_for(entity: str, config: FilterConfig, reg: Registry) -> Predicate:
    try:
        return compile_filter(config, entity, reg)
    except KeyError as e:
        raise HTTPException(status_code=404, detail=e.args[0] if e.args else str(e))


@router.post("/{entity}/preview")
def preview(
    entity: str,
    payload: dict = Body(..., description="Filter request JSON"),
    reg: Registry = Depends(get_registry),
    engine: Engine = Depends(get_db_engine),
):
    """Match count plus up to PREVIEW_SAMPLE_SIZE most recently updated rows."""
    started = time.perf_counter()
    config = parse_filters(payload)
    predicate = compile_for(entity, config, reg)
    result = preview_matches(engine, entity, reg, predicate, sample_size=PREVIEW_SAMPLE_SIZE)
    log.info("POST /api/%s/preview: %d matches in %.1fms", entity, result["count"], _elapsed_ms(started))
    return result


@router.get("/{entity}/preview")
def preview_encoded(
    entity: str,
    filters: str = Query("", description="Filter in the compact URL form returned by validate"),
    reg: Registry = Depends(get_registry),
    engine: Engine = Depends(get_db_engine),
):
    """Same as POST preview for a shared link. An unreadable filter previews everything."""
    started = time.perf_counter()
    config = decode_filters(filters)
    predicate = compile_for(entity, config, reg)
    result = preview_matches(engine, entity, reg, predicate, sample_size=PREVIEW_SAMPLE_SIZE)
    log.info("GET /api/%s/preview: %d matches in %.1fms", entity, result["count"], _elapsed_ms(started))
    return result


@router.post("/{entity}/count")
def count(
    entity: str,
    payload: dict = Body(..., description="Filter request JSON"),
    reg: Registry = Depends(get_registry),
    engine: Engine = Depends(get_db_engine),
):
    started = time.perf_counter()
    config = parse_filters(payload)
    predicate = compile_for(entity, config, reg)
    total = count_matching(engine, entity, reg, predicate)
    log.info("POST /api/%s/count: %d matches in %.1fms", entity, total, _elapsed_ms(started))
    return {"count": total}


@router.post("/{entity}/filters/validate")
def validate_filters(
    entity: str,
    payload: dict = Body(..., description="Filter request JSON"),
    reg: Registry = Depends(get_registry),
):
    """
    Structural errors plus advisory warnings for a filter on `entity`.
    Nothing here blocks a preview; it only reports.
    """
    config = parse_filters(payload)
    try:
        warnings = check_filter_against_entity(entity, config, reg)
    except KeyError as e:
        raise HTTPException(status_code=404, detail=e.args[0] if e.args else str(e))
    valid, errors = validate_filter_config(config)
    return {
        "valid": valid,
        "errors": errors,
        "warnings": warnings,
        "description": describe_filter(config),
        "hash": filter_hash(config),
        "encoded": encode_filters(config),
    }
