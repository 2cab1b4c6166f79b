from fastapi import Depends
from sqlalchemy.engine import Engine

from .database import get_engine
from .registry import Registry
from .saved_filters import SavedFilterStore

REG = Registry()


def get_registry() -> Registry:
    return REG


def get_db_engine() -> Engine:
    return get_engine()


def get_store(engine: Engine = Depends(get_db_engine)) -> SavedFilterStore:
    return SavedFilterStore(engine)
