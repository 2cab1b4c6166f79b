from __future__ import annotations
import logging
import math
import uuid
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from sqlalchemy import and_, delete, func, insert, select, update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from ..database.schema import saved_filters, utcnow
from ..filters import FilterConfig
from .errors import SavedFilterConflict, SavedFilterNotFound

log = logging.getLogger("saved_filters")

_UNSET: Any = object()


class EntityType(str, Enum):
    COMPANIES = "COMPANIES"
    CONTACTS = "CONTACTS"
    DEALS = "DEALS"
    ACTIVITIES = "ACTIVITIES"

    @classmethod
    def parse(cls, raw: Union[str, "EntityType"]) -> "EntityType":
        """Accepts 'companies', 'Companies' or 'COMPANIES'."""
        if isinstance(raw, EntityType):
            return raw
        try:
            return cls(str(raw).strip().upper())
        except ValueError:
            raise ValueError(f"Unknown entity type: {raw}")

    @property
    def entity_name(self) -> str:
        """Key of this entity in the registry and in the /api/{entity} routes."""
        return self.value.lower()


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


@dataclass
class SavedFilter:
    id: str
    name: str
    filter_config: FilterConfig
    is_public: bool
    entity: EntityType
    use_count: int
    created_at: datetime
    updated_at: datetime
    description: Optional[str] = None
    last_used_at: Optional[datetime] = None
    owner_id: Optional[str] = None

    @classmethod
    def from_row(cls, row: Any) -> "SavedFilter":
        return cls(
            id=row["id"],
            name=row["name"],
            filter_config=FilterConfig.from_dict(row["filterConfig"] or {}),
            is_public=bool(row["isPublic"]),
            entity=EntityType(row["entity"]),
            use_count=int(row["useCount"] or 0),
            created_at=row["createdAt"],
            updated_at=row["updatedAt"],
            description=row["description"],
            last_used_at=row["lastUsedAt"],
            owner_id=row["ownerId"],
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "filterConfig": self.filter_config.to_dict(),
            "isPublic": self.is_public,
            "entity": self.entity.value,
            "useCount": self.use_count,
            "lastUsedAt": _iso(self.last_used_at),
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
        }


class SavedFilterStore:
    """
    CRUD over saved filters. Name is unique per entity; every read by id
    counts as a use. Not scoped by owner yet: ownerId is recorded, never
    filtered on.
    """

    def __init__(self, engine: Engine, *, clock: Callable[[], datetime] = utcnow):
        self.engine = engine
        self.clock = clock

    def _name_taken(self, conn, name: str, entity: str, exclude_id: Optional[str] = None) -> bool:
        stmt = select(saved_filters.c.id).where(saved_filters.c.name == name, saved_filters.c.entity == entity)
        if exclude_id is not None:
            stmt = stmt.where(saved_filters.c.id != exclude_id)
        return conn.execute(stmt).first() is not None

    def create(
        self,
        name: str,
        filter_config: FilterConfig,
        entity: Union[str, EntityType],
        *,
        is_public: bool = False,
        description: Optional[str] = None,
        owner_id: Optional[str] = None,
    ) -> SavedFilter:
        ent = EntityType.parse(entity)
        now = self.clock()
        filter_id = uuid.uuid4().hex
        try:
            with self.engine.begin() as conn:
                if self._name_taken(conn, name, ent.value):
                    raise SavedFilterConflict(name, ent.value)
                conn.execute(
                    insert(saved_filters).values(
                        id=filter_id,
                        name=name,
                        description=description,
                        entity=ent.value,
                        filterConfig=filter_config.to_dict(),
                        isPublic=is_public,
                        useCount=0,
                        createdAt=now,
                        updatedAt=now,
                        ownerId=owner_id,
                    )
                )
                row = conn.execute(select(saved_filters).where(saved_filters.c.id == filter_id)).mappings().one()
        except IntegrityError:
            # lost a race with a concurrent create of the same name
            raise SavedFilterConflict(name, ent.value)
        log.info("Created saved filter %s (%s/%s)", filter_id, ent.value, name)
        return SavedFilter.from_row(row)

    def get(self, filter_id: str) -> SavedFilter:
        """Fetch by id and count the use, in one transaction."""
        now = self.clock()
        with self.engine.begin() as conn:
            res = conn.execute(
                update(saved_filters)
                .where(saved_filters.c.id == filter_id)
                .values(
                    useCount=saved_filters.c.useCount + 1,
                    lastUsedAt=now,
                    updatedAt=now,
                )
            )
            if res.rowcount == 0:
                raise SavedFilterNotFound(filter_id)
            row = conn.execute(select(saved_filters).where(saved_filters.c.id == filter_id)).mappings().one()
        return SavedFilter.from_row(row)

    def list(
        self,
        *,
        entity: Optional[Union[str, EntityType]] = None,
        is_public: Optional[bool] = None,
        search: Optional[str] = None,
        page: int = 1,
        limit: int = 20,
    ) -> Tuple[List[SavedFilter], int]:
        """Returns (page of filters, total matching). Most used first, then most recently updated."""
        conds = []
        if entity is not None:
            # an unknown entity matches no rows
            value = entity.value if isinstance(entity, EntityType) else str(entity).strip().upper()
            conds.append(saved_filters.c.entity == value)
        if is_public is not None:
            conds.append(saved_filters.c.isPublic == is_public)
        if search:
            conds.append(saved_filters.c.name.icontains(search, autoescape=True))

        count_stmt = select(func.count()).select_from(saved_filters)
        rows_stmt = select(saved_filters).order_by(
            saved_filters.c.useCount.desc(), saved_filters.c.updatedAt.desc()
        )
        if conds:
            count_stmt = count_stmt.where(and_(*conds))
            rows_stmt = rows_stmt.where(and_(*conds))
        rows_stmt = rows_stmt.limit(limit).offset((max(page, 1) - 1) * limit)

        with self.engine.connect() as conn:
            total = int(conn.execute(count_stmt).scalar_one())
            rows = conn.execute(rows_stmt).mappings().all()
        return [SavedFilter.from_row(r) for r in rows], total

    def update(
        self,
        filter_id: str,
        *,
        name: Optional[str] = None,
        filter_config: Optional[FilterConfig] = None,
        entity: Optional[Union[str, EntityType]] = None,
        is_public: Optional[bool] = None,
        description: Any = _UNSET,
    ) -> SavedFilter:
        """Partial update; renaming onto an existing (name, entity) is a conflict. Does not count as a use."""
        values: Dict[str, Any] = {}
        if name is not None:
            values["name"] = name
        if filter_config is not None:
            values["filterConfig"] = filter_config.to_dict()
        if entity is not None:
            values["entity"] = EntityType.parse(entity).value
        if is_public is not None:
            values["isPublic"] = is_public
        if description is not _UNSET:
            values["description"] = description

        try:
            with self.engine.begin() as conn:
                current = conn.execute(
                    select(saved_filters.c.name, saved_filters.c.entity).where(saved_filters.c.id == filter_id)
                ).mappings().first()
                if current is None:
                    raise SavedFilterNotFound(filter_id)
                new_name = values.get("name", current["name"])
                new_entity = values.get("entity", current["entity"])
                if (new_name, new_entity) != (current["name"], current["entity"]):
                    if self._name_taken(conn, new_name, new_entity, exclude_id=filter_id):
                        raise SavedFilterConflict(new_name, new_entity)
                if values:
                    values["updatedAt"] = self.clock()
                    conn.execute(update(saved_filters).where(saved_filters.c.id == filter_id).values(**values))
                row = conn.execute(select(saved_filters).where(saved_filters.c.id == filter_id)).mappings().one()
        except IntegrityError:
            raise SavedFilterConflict(new_name, new_entity)
        return SavedFilter.from_row(row)

    def delete(self, filter_id: str) -> Dict[str, str]:
        """Hard delete. Returns the id and name of what was removed."""
        with self.engine.begin() as conn:
            existing = conn.execute(
                select(saved_filters.c.id, saved_filters.c.name).where(saved_filters.c.id == filter_id)
            ).mappings().first()
            if existing is None:
                raise SavedFilterNotFound(filter_id)
            conn.execute(delete(saved_filters).where(saved_filters.c.id == filter_id))
        log.info("Deleted saved filter %s (%s)", existing["id"], existing["name"])
        return {"id": existing["id"], "name": existing["name"]}


def total_pages(total: int, limit: int) -> int:
    return math.ceil(total / limit) if limit > 0 else 0
