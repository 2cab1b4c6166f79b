import logging
import time
from typing import Any, Dict, Optional

import jsonschema
from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from sqlalchemy.engine import Engine

from ..auth import current_owner_id, require_auth
from ..config import DEFAULT_PAGE_SIZE, PREVIEW_SAMPLE_SIZE
from ..database import preview_matches
from ..deps import get_db_engine, get_registry, get_store
from ..filters import FilterConfig, parse_filter_config_json
from ..registry import Registry
from ..saved_filters import (
    SavedFilterConflict,
    SavedFilterNotFound,
    SavedFilterStore,
    total_pages,
)
from ..validation import _cap_page_size
from .entities import compile_for

log = logging.getLogger("routes")

router = APIRouter(
    prefix="/api/saved-filters",
    tags=["saved-filters"],
    dependencies=[Depends(require_auth)],
)


class SavedFilterIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    config: Dict[str, Any]
    isPublic: bool = False
    entity: str
    description: Optional[str] = None


class SavedFilterPatch(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    config: Optional[Dict[str, Any]] = None
    isPublic: Optional[bool] = None
    description: Optional[str] = None


def _parse_config(raw: Dict[str, Any]) -> FilterConfig:
    try:
        return parse_filter_config_json(raw, validate=True)
    except jsonschema.ValidationError as e:
        raise HTTPException(status_code=400, detail=f"Invalid filter: {e.message}")


@router.get("")
def list_saved_filters(
    entity_type: Optional[str] = Query(None, alias="entityType"),
    is_public: Optional[bool] = Query(None, alias="isPublic"),
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1),
    store: SavedFilterStore = Depends(get_store),
):
    limit = _cap_page_size(limit)
    items, total = store.list(entity=entity_type, is_public=is_public, search=search, page=page, limit=limit)
    return {
        "data": [sf.to_dict() for sf in items],
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "totalPages": total_pages(total, limit),
        },
    }


@router.post("", status_code=201)
def create_saved_filter(
    body: SavedFilterIn,
    owner_id: str = Depends(current_owner_id),
    store: SavedFilterStore = Depends(get_store),
):
    config = _parse_config(body.config)
    try:
        sf = store.create(
            body.name,
            config,
            body.entity,
            is_public=body.isPublic,
            description=body.description,
            owner_id=owner_id,
        )
    except SavedFilterConflict as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return sf.to_dict()


@router.get("/{filter_id}")
def get_saved_filter(filter_id: str, store: SavedFilterStore = Depends(get_store)):
    """Reading a saved filter counts as using it."""
    try:
        return store.get(filter_id).to_dict()
    except SavedFilterNotFound:
        raise HTTPException(status_code=404, detail="Saved filter not found")


@router.patch("/{filter_id}")
def update_saved_filter(
    filter_id: str,
    body: SavedFilterPatch,
    store: SavedFilterStore = Depends(get_store),
):
    changes: Dict[str, Any] = {
        "name": body.name,
        "filter_config": _parse_config(body.config) if body.config is not None else None,
        "is_public": body.isPublic,
    }
    if "description" in body.model_fields_set:
        changes["description"] = body.description
    try:
        return store.update(filter_id, **changes).to_dict()
    except SavedFilterNotFound:
        raise HTTPException(status_code=404, detail="Saved filter not found")
    except SavedFilterConflict as e:
        raise HTTPException(status_code=409, detail=str(e))


@router.delete("/{filter_id}")
def delete_saved_filter(filter_id: str, store: SavedFilterStore = Depends(get_store)):
    try:
        deleted = store.delete(filter_id)
    except SavedFilterNotFound:
        raise HTTPException(status_code=404, detail="Saved filter not found")
    return {"message": "Saved filter deleted successfully", "deletedFilter": deleted}


@router.get("/{filter_id}/preview")
def preview_saved_filter(
    filter_id: str,
    store: SavedFilterStore = Depends(get_store),
    reg: Registry = Depends(get_registry),
    engine: Engine = Depends(get_db_engine),
):
    started = time.perf_counter()
    try:
        sf = store.get(filter_id)
    except SavedFilterNotFound:
        raise HTTPException(status_code=404, detail="Saved filter not found")
    entity = sf.entity.entity_name
    predicate = compile_for(entity, sf.filter_config, reg)
    result = preview_matches(engine, entity, reg, predicate, sample_size=PREVIEW_SAMPLE_SIZE)
    log.info(
        "GET /api/saved-filters/%s/preview: %d matches in %.1fms",
        filter_id,
        result["count"],
        (time.perf_counter() - started) * 1000,
    )
    return {"filter": sf.to_dict(), **result}
