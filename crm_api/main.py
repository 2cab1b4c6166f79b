from __future__ import annotations
import logging

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .auth import require_auth
from .config import LOG_LEVEL, get_cors_origins
from .database import create_all
from .deps import REG, get_db_engine
from .routes import entities_router, saved_filters_router

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
log = logging.getLogger("crm_api")

app = FastAPI(title="CRM Filter Service", version="1.0.0")

app.include_router(saved_filters_router)
app.include_router(entities_router)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_cors_origins(),
    allow_methods=["*"],
    allow_headers=["*"],
    allow_credentials=True,
)


@app.on_event("startup")
def _startup():
    REG.load_entities()
    create_all(get_db_engine())
    log.info("Loaded %d entities from %s", len(REG.entities), REG.path)


@app.get("/healthz")
def health():
    return {"ok": True, "entities": sorted(REG.entities.keys())}


@app.get("/me")
def me(claims=Depends(require_auth)):
    return {
        "sub": claims["sub"],
        "email": claims.get("email"),
        "roles": claims.get("roles", []),
    }
