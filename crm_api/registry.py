import json, os, typing as t
from pathlib import Path

import yaml

ENTITIES_PATH = Path(os.getenv("ENTITIES_FILE", "config/entities.yaml"))

COUNT_MARKER = "_count"
COLUMN_TYPES = {"TEXT", "NUMBER", "BOOLEAN", "DATE", "TIMESTAMP"}


class LinkMeta(t.TypedDict):
    entity: str
    foreignKey: str


class EntityEntry(t.TypedDict, total=False):
    table: str
    primaryKey: str
    softDelete: str
    updatedAt: str
    columns: dict[str, str]  # NAME -> TYPE_CATEGORY
    relations: dict[str, LinkMeta]  # to-one, this table holds foreignKey
    counts: dict[str, LinkMeta]  # to-many, the other table holds foreignKey
    sample: list[str]


def _link(entity: str, kind: str, name: str, v: t.Any) -> LinkMeta:
    if not isinstance(v, dict) or "entity" not in v or "foreignKey" not in v:
        raise RuntimeError(f"Bad {kind} mapping {entity}.{name}: {v}")
    return {"entity": str(v["entity"]), "foreignKey": str(v["foreignKey"])}


class Registry:
    def __init__(self, path: Path | None = None):
        self.path = path or ENTITIES_PATH
        self.entities: dict[str, EntityEntry] = {}

    def load_entities(self) -> None:
        if not self.path.exists():
            raise RuntimeError(f"Entity mapping file not found: {self.path}")
        with self.path.open("r", encoding="utf-8") as f:
            if self.path.suffix.lower() in (".yaml", ".yml"):
                cfg = yaml.safe_load(f)
            else:
                cfg = json.load(f)
        self.load_mapping(cfg or {})

    def load_mapping(self, cfg: dict) -> None:
        ents = cfg.get("entities", {})
        norm: dict[str, EntityEntry] = {}
        for k, v in ents.items():
            if not isinstance(v, dict) or "table" not in v:
                raise RuntimeError(f"Bad entity mapping for {k}: {v}")
            cols = {str(c): str(typ).upper() for c, typ in (v.get("columns") or {}).items()}
            for c, typ in cols.items():
                if typ not in COLUMN_TYPES:
                    raise RuntimeError(f"Bad column type for {k}.{c}: {typ}")
            item: EntityEntry = {
                "table": v["table"],
                "primaryKey": v.get("primaryKey", "id"),
                "columns": cols,
                "relations": {n: _link(k, "relation", n, r) for n, r in (v.get("relations") or {}).items()},
                "counts": {n: _link(k, "count", n, r) for n, r in (v.get("counts") or {}).items()},
                "sample": list(v.get("sample") or cols.keys()),
            }
            if v.get("softDelete"):
                item["softDelete"] = v["softDelete"]
            if v.get("updatedAt"):
                item["updatedAt"] = v["updatedAt"]
            norm[k] = item

        for k, item in norm.items():
            for n, link in {**item["relations"], **item["counts"]}.items():
                if link["entity"] not in norm:
                    raise RuntimeError(f"{k}.{n} points at unknown entity {link['entity']}")
        self.entities = norm

    def ensure_entity(self, name: str) -> EntityEntry:
        if not self.entities and self.path.exists():
            self.load_entities()
        if name not in self.entities:
            raise KeyError(f"Unknown entity: {name}")
        return self.entities[name]

    def field_type(self, entity: str, field: str) -> str | None:
        """
        Type category of a (possibly dotted) field path, or None when the path
        does not resolve. `_count.<name>` is always NUMBER.
        """
        entry = self.entities.get(entity)
        if entry is None or not field:
            return None
        head, _, rest = field.partition(".")
        if not rest:
            return entry["columns"].get(head)
        if head == COUNT_MARKER:
            name = rest.split(".")[0]
            return "NUMBER" if name in entry["counts"] else None
        rel = entry["relations"].get(head)
        if rel is None:
            return None
        return self.field_type(rel["entity"], rest)
