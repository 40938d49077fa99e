"""Liveness and readiness checks.

/health never fails (process is up). /readyz answers 503 while the
database cannot serve a round trip, so load balancers stop routing signups
to an instance that would only return storage_unavailable.
"""

import logging

from fastapi import APIRouter, Response, status
from pydantic import BaseModel
from sqlalchemy import Engine, text

from raid_api import __version__
from raid_api.db.session import engine

router = APIRouter()
logger = logging.getLogger(__name__)

DB_UP = "up"
DB_DOWN = "down"


class HealthResponse(BaseModel):
    status: str
    version: str
    services: dict[str, str]


def check_database(db_engine: Engine = engine) -> str:
    """Run SELECT 1 against the service database.

    Returns:
        "up" or "down". Driver detail goes to the log, never the response.
    """
    try:
        with db_engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except Exception as e:
        logger.error(
            f"Database check failed: {type(e).__name__}: {e}",
            extra={"event": "health.db.down", "dialect": db_engine.dialect.name},
        )
        return DB_DOWN
    return DB_UP


def _services() -> dict[str, str]:
    return {"api": DB_UP, "database": check_database()}


@router.get("/health", response_model=HealthResponse)
def health_check() -> HealthResponse:
    """Liveness: always 200, database state reported for information only."""
    return HealthResponse(status="healthy", version=__version__, services=_services())


@router.get("/readyz", response_model=HealthResponse)
def readiness_check(response: Response) -> HealthResponse:
    services = _services()
    if services["database"] != DB_UP:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return HealthResponse(status="not_ready", version=__version__, services=services)
    return HealthResponse(status="ready", version=__version__, services=services)
