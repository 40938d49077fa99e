"""Database session management.

Uses the unified engine builder (SSOT). Every mutating core operation runs
inside ``unit_of_work``: one transaction, committed on success, rolled back
on any failure.
"""

import logging
from contextlib import contextmanager
from typing import Generator, Iterator

from sqlalchemy import exc as sa_exc
from sqlalchemy.orm import Session

from raid_api.config.env import get_database_url
from raid_api.db.engine import build_engine, build_sessionmaker
from raid_api.errors import InternalError, RaidSystemError, StorageError

logger = logging.getLogger(__name__)

# Production fail-fast happens inside get_database_url()
DATABASE_URL = get_database_url()

engine = build_engine(DATABASE_URL)

SessionLocal = build_sessionmaker(engine)

# Collaborator outages and timeouts, as opposed to programming errors
_UNAVAILABLE_ERRORS = (
    sa_exc.OperationalError,
    sa_exc.DisconnectionError,
    sa_exc.TimeoutError,
    sa_exc.InterfaceError,
)


def constraint_violated(error: sa_exc.IntegrityError, *markers: str) -> bool:
    """Check whether an IntegrityError names one of the given constraints.

    Markers are matched case-insensitively against the driver message, which
    carries the constraint name on PostgreSQL and the column list on SQLite.
    """
    message = str(error.orig).lower()
    return any(marker.lower() in message for marker in markers)


def get_db() -> Generator[Session, None, None]:
    """
    Get database session.

    Yields:
        Session: SQLAlchemy session
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def unit_of_work(db: Session) -> Iterator[Session]:
    """Run a block as one atomic transaction.

    Commits when the block exits cleanly. Any exception rolls the whole
    transaction back, so partial writes are never observable.

    Raises:
        RaidSystemError: Domain failures raised by the block, unchanged
        StorageError: Database unreachable, timed out, or lock wait exceeded
        InternalError: Any other SQLAlchemy failure (detail is logged, not exposed)
    """
    try:
        yield db
        db.commit()
    except RaidSystemError:
        db.rollback()
        raise
    except _UNAVAILABLE_ERRORS as e:
        db.rollback()
        logger.error(
            f"Storage unavailable: {type(e).__name__}",
            extra={"event": "db.unavailable"},
            exc_info=True,
        )
        raise StorageError() from e
    except sa_exc.SQLAlchemyError as e:
        db.rollback()
        logger.error(
            f"Unexpected storage failure: {type(e).__name__}",
            extra={"event": "db.failure"},
            exc_info=True,
        )
        raise InternalError() from e
    except Exception:
        db.rollback()
        raise
