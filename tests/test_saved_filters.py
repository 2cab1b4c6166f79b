"""Tests for crm_api.saved_filters against in-memory SQLite."""
import datetime as dt
import itertools

import pytest

from crm_api.filters import FilterConfig, parse_filter_config_json
from crm_api.saved_filters import (
    EntityType,
    SavedFilterConflict,
    SavedFilterNotFound,
    SavedFilterStore,
    total_pages,
)

CONFIG = parse_filter_config_json(
    {"groups": [{"id": "g1", "conditions": [{"id": "c1", "field": "name", "operator": "contains", "value": "acme"}]}]}
)


@pytest.fixture
def store(engine):
    ticks = itertools.count()
    start = dt.datetime(2024, 1, 1)
    return SavedFilterStore(engine, clock=lambda: start + dt.timedelta(minutes=next(ticks)))


class _UncheckedStore(SavedFilterStore):
    """Skips the name lookup, as if a concurrent write landed right after it."""

    def _name_taken(self, conn, name, entity, exclude_id=None):
        return False


@pytest.fixture
def unchecked_store(engine):
    return _UncheckedStore(engine)


class TestEntityType:
    @pytest.mark.parametrize("raw", ["companies", "Companies", "COMPANIES", " companies "])
    def test_parse_any_case(self, raw):
        assert EntityType.parse(raw) is EntityType.COMPANIES

    def test_entity_name(self):
        assert EntityType.DEALS.entity_name == "deals"

    def test_unknown(self):
        with pytest.raises(ValueError):
            EntityType.parse("widgets")


class TestCreate:
    def test_create_and_read_back(self, store):
        created = store.create("Acme", CONFIG, "companies", description="acme things", owner_id="u1")
        assert created.entity is EntityType.COMPANIES
        assert created.use_count == 0
        assert created.last_used_at is None
        assert created.owner_id == "u1"

        fetched = store.get(created.id)
        assert fetched.name == "Acme"
        assert fetched.filter_config == CONFIG
        assert fetched.description == "acme things"

    def test_duplicate_name_same_entity_conflicts(self, store):
        store.create("Acme", CONFIG, "companies")
        with pytest.raises(SavedFilterConflict) as exc:
            store.create("Acme", CONFIG, "COMPANIES")
        assert exc.value.name == "Acme"
        assert exc.value.entity == "COMPANIES"
        assert "already exists" in str(exc.value)

    def test_same_name_other_entity_is_fine(self, store):
        store.create("Acme", CONFIG, "companies")
        other = store.create("Acme", CONFIG, "contacts")
        assert other.entity is EntityType.CONTACTS

    def test_unknown_entity(self, store):
        with pytest.raises(ValueError):
            store.create("Acme", CONFIG, "widgets")

    def test_unique_constraint_reported_as_conflict(self, store, unchecked_store):
        store.create("Acme", CONFIG, "companies")
        with pytest.raises(SavedFilterConflict) as exc:
            unchecked_store.create("Acme", CONFIG, "companies")
        assert exc.value.name == "Acme"
        assert store.list(entity="companies")[1] == 1


class TestGet:
    def test_each_read_counts_once(self, store):
        created = store.create("Acme", CONFIG, "companies")
        store.get(created.id)
        second = store.get(created.id)
        assert second.use_count == 2
        assert second.last_used_at is not None
        assert second.updated_at > created.updated_at

    def test_missing(self, store):
        with pytest.raises(SavedFilterNotFound):
            store.get("nope")


class TestList:
    def test_most_used_then_most_recent(self, store):
        a = store.create("A", CONFIG, "companies")
        b = store.create("B", CONFIG, "companies")
        c = store.create("C", CONFIG, "companies")
        store.get(a.id)
        store.get(a.id)
        items, total = store.list()
        assert total == 3
        assert [f.id for f in items] == [a.id, c.id, b.id]

    def test_filters(self, store):
        store.create("Acme accounts", CONFIG, "companies", is_public=True)
        store.create("Big deals", CONFIG, "deals")
        store.create("ACME contacts", CONFIG, "contacts")

        assert [f.name for f in store.list(entity="deals")[0]] == ["Big deals"]
        assert [f.name for f in store.list(is_public=True)[0]] == ["Acme accounts"]
        assert {f.name for f in store.list(search="acme")[0]} == {"Acme accounts", "ACME contacts"}

    def test_search_is_literal(self, store):
        store.create("100% pipeline", CONFIG, "deals")
        store.create("Pipeline", CONFIG, "deals")
        assert [f.name for f in store.list(search="%")[0]] == ["100% pipeline"]

    def test_unknown_entity_gives_empty_page(self, store):
        store.create("Acme", CONFIG, "companies")
        assert store.list(entity="widgets") == ([], 0)

    def test_pagination(self, store):
        for i in range(5):
            store.create(f"F{i}", CONFIG, "companies")
        items, total = store.list(page=2, limit=2)
        assert total == 5
        assert len(items) == 2
        assert total_pages(total, 2) == 3


class TestUpdate:
    def test_partial_update(self, store):
        created = store.create("Acme", CONFIG, "companies", description="old")
        updated = store.update(created.id, is_public=True, description=None)
        assert updated.is_public is True
        assert updated.description is None
        assert updated.name == "Acme"
        assert updated.use_count == 0

    def test_description_untouched_when_not_given(self, store):
        created = store.create("Acme", CONFIG, "companies", description="keep")
        assert store.update(created.id, name="Acme 2").description == "keep"

    def test_replace_config(self, store):
        created = store.create("Acme", CONFIG, "companies")
        updated = store.update(created.id, filter_config=FilterConfig())
        assert updated.filter_config.groups == []

    def test_rename_onto_existing_conflicts(self, store):
        store.create("Taken", CONFIG, "companies")
        created = store.create("Acme", CONFIG, "companies")
        with pytest.raises(SavedFilterConflict):
            store.update(created.id, name="Taken")

    def test_move_entity_onto_existing_conflicts(self, store):
        store.create("Acme", CONFIG, "deals")
        created = store.create("Acme", CONFIG, "companies")
        with pytest.raises(SavedFilterConflict):
            store.update(created.id, entity="deals")

    def test_rename_hitting_unique_constraint_conflicts(self, store, unchecked_store):
        store.create("Taken", CONFIG, "companies")
        created = store.create("Acme", CONFIG, "companies")
        with pytest.raises(SavedFilterConflict) as exc:
            unchecked_store.update(created.id, name="Taken")
        assert exc.value.name == "Taken"
        assert store.get(created.id).name == "Acme"

    def test_missing(self, store):
        with pytest.raises(SavedFilterNotFound):
            store.update("nope", name="x")


class TestDelete:
    def test_delete(self, store):
        created = store.create("Acme", CONFIG, "companies")
        assert store.delete(created.id) == {"id": created.id, "name": "Acme"}
        with pytest.raises(SavedFilterNotFound):
            store.get(created.id)

    def test_missing(self, store):
        with pytest.raises(SavedFilterNotFound):
            store.delete("nope")


class TestSerialization:
    def test_to_dict_shape(self, store):
        created = store.create("Acme", CONFIG, "companies")
        out = store.get(created.id).to_dict()
        assert set(out) == {
            "id", "name", "description", "filterConfig", "isPublic", "entity",
            "useCount", "lastUsedAt", "createdAt", "updatedAt",
        }
        assert out["entity"] == "COMPANIES"
        assert out["useCount"] == 1
        assert out["filterConfig"] == CONFIG.to_dict()
        assert out["createdAt"] == "2024-01-01T00:00:00"
