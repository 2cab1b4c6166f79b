import os
import time

os.environ.setdefault("APP_JWT_SECRET", "test-secret")

import datetime as dt
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import insert
from sqlalchemy.pool import StaticPool

from crm_api.database import build_engine, create_all
from crm_api.database.schema import activities, companies, contacts, deals, pipeline_stages
from crm_api.registry import Registry

ENTITIES_FILE = Path(__file__).resolve().parents[1] / "config" / "entities.yaml"

T0 = dt.datetime(2024, 3, 10, 12, 0, 0)


def _company(id, name, *, industry=None, status="ACTIVE", revenue=None, employees=None,
             created=T0, updated_offset=0, deleted=False):
    return {
        "id": id,
        "name": name,
        "industry": industry,
        "status": status,
        "annualRevenue": revenue,
        "employeeCount": employees,
        "isDeleted": deleted,
        "createdAt": created,
        "updatedAt": T0 + dt.timedelta(hours=updated_offset),
    }


@pytest.fixture
def registry():
    reg = Registry(ENTITIES_FILE)
    reg.load_entities()
    return reg


@pytest.fixture
def engine():
    eng = build_engine("sqlite+pysqlite:///:memory:", poolclass=StaticPool)
    create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def seeded(engine):
    """
    companies:
      co1 Acme Corp          tech     ACTIVE    1,000,000  50   6 contacts, 1 deal, 1 activity
      co2 Globex             ''       ACTIVE      250,000  10   1 contact
      co3 Initech            NULL     INACTIVE  5,000,000  200
      co4 Umbrella 100% Inc  biotech  ACTIVE    NULL       NULL
      co5 Acme Deleted       tech     soft-deleted
    """
    with engine.begin() as conn:
        conn.execute(insert(companies), [
            _company("co1", "Acme Corp", industry="tech", revenue=1_000_000, employees=50,
                     created=dt.datetime(2024, 3, 15, 10, 0), updated_offset=5),
            _company("co2", "Globex", industry="", revenue=250_000, employees=10,
                     created=dt.datetime(2024, 3, 14, 23, 59), updated_offset=4),
            _company("co3", "Initech", status="INACTIVE", revenue=5_000_000, employees=200,
                     created=dt.datetime(2024, 3, 16, 0, 0), updated_offset=3),
            _company("co4", "Umbrella 100% Inc", industry="biotech",
                     created=dt.datetime(2024, 1, 1, 9, 0), updated_offset=2),
            _company("co5", "Acme Deleted", industry="tech", updated_offset=6, deleted=True),
        ])
        conn.execute(insert(contacts), [
            {
                "id": f"ct{i}",
                "firstName": f"Person{i}",
                "lastName": "Acme",
                "email": f"p{i}@acme.test",
                "isPrimary": i == 1,
                "companyId": "co1",
                "createdAt": T0,
                "updatedAt": T0,
            }
            for i in range(1, 7)
        ] + [
            {
                "id": "ct7",
                "firstName": "Hank",
                "lastName": "Scorpio",
                "email": "hank@globex.test",
                "isPrimary": False,
                "companyId": "co2",
                "createdAt": T0,
                "updatedAt": T0,
            },
        ])
        conn.execute(insert(pipeline_stages), [
            {"id": "st1", "name": "Qualified", "position": 1, "probability": 0.3},
            {"id": "st2", "name": "Closed Won", "position": 5, "probability": 1.0},
        ])
        conn.execute(insert(deals), [
            {"id": "d1", "title": "Big deal", "value": 5000.0, "companyId": "co1", "contactId": "ct1",
             "stageId": "st1", "createdAt": T0, "updatedAt": T0},
            {"id": "d2", "title": "Small deal", "value": 100.0, "companyId": None, "contactId": "ct7",
             "stageId": "st2", "createdAt": T0, "updatedAt": T0},
        ])
        conn.execute(insert(activities), [
            {"id": "a1", "type": "CALL", "subject": "Intro call", "companyId": "co1", "dealId": "d1",
             "createdAt": T0, "updatedAt": T0},
        ])
    return engine


@pytest.fixture
def many_companies(engine):
    with engine.begin() as conn:
        conn.execute(insert(companies), [
            _company(f"bulk{i:02d}", f"Bulk Company {i:02d}", updated_offset=i) for i in range(15)
        ])
    return engine


@pytest.fixture
def client(engine, registry):
    from crm_api.deps import get_db_engine, get_registry
    from crm_api.main import app

    app.dependency_overrides[get_db_engine] = lambda: engine
    app.dependency_overrides[get_registry] = lambda: registry
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    from crm_api.session import issue_access_token

    token, _ = issue_access_token({"sub": "user-1", "email": "user@crm.test"}, ["read:data"])
    return {"Authorization": f"Bearer {token}"}


def _use_timezone(monkeypatch, name):
    if not hasattr(time, "tzset"):
        pytest.skip("time.tzset is not available on this platform")
    monkeypatch.setenv("TZ", name)
    time.tzset()


@pytest.fixture
def tz_utc(monkeypatch):
    _use_timezone(monkeypatch, "UTC")
    yield
    monkeypatch.undo()
    time.tzset()


@pytest.fixture
def tz_new_york(monkeypatch):
    _use_timezone(monkeypatch, "America/New_York")
    yield
    monkeypatch.undo()
    time.tzset()
