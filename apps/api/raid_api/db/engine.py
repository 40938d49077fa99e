"""Database engine builder (SSOT).

- Default pool: QueuePool (RAID_DB_POOL=queuepool), NullPool available
- pool_pre_ping=True always
- SQLite: check_same_thread=False + PRAGMA foreign_keys=ON on every connection,
  so ON DELETE CASCADE / RESTRICT hold the same way they do on PostgreSQL
- ENV: RAID_DB_POOL=nullpool|queuepool
- ENV: RAID_DB_POOL_SIZE, RAID_DB_MAX_OVERFLOW (queuepool only)
- ENV: RAID_DB_TIMEOUT_SECONDS bounds connection/lock waits (default 10)
"""

import logging
import os
import re
from typing import Any

from sqlalchemy import Engine, NullPool, QueuePool, create_engine, event
from sqlalchemy.orm import Session, sessionmaker

from raid_api.config.env import get_database_url, get_db_pool_mode

logger = logging.getLogger(__name__)


def _mask_password(url: str) -> str:
    """Mask password in database URL for safe logging."""
    return re.sub(r"://([^:]+):([^@]+)@", r"://\1:***@", url)


def _is_sqlite(url: str) -> bool:
    return url.startswith("sqlite")


def _enable_sqlite_foreign_keys(dbapi_connection: Any, connection_record: Any) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def build_engine(database_url: str | None = None) -> Engine:
    """
    Build SQLAlchemy Engine with pool policy.

    Args:
        database_url: Database URL. Defaults to get_database_url().

    Returns:
        Configured SQLAlchemy Engine.

    Raises:
        ValueError: If RAID_DB_POOL is not a known pool mode

    Environment Variables:
        RAID_DB_POOL: Pool mode - "queuepool" (default) | "nullpool"
        RAID_DB_POOL_SIZE: QueuePool size (default: 5, only for queuepool)
        RAID_DB_MAX_OVERFLOW: QueuePool overflow (default: 10, only for queuepool)
        RAID_DB_TIMEOUT_SECONDS: Connect / busy timeout (default: 10)
    """
    url = database_url or get_database_url()
    timeout = int(os.getenv("RAID_DB_TIMEOUT_SECONDS", "10"))

    connect_args: dict[str, Any] = {}
    if _is_sqlite(url):
        # Sessions cross threads under the threadpool request model.
        connect_args = {"check_same_thread": False, "timeout": timeout}
    elif url.startswith("postgresql"):
        connect_args = {
            "connect_timeout": timeout,
            "options": f"-c lock_timeout={timeout * 1000}",
        }

    pool_mode = get_db_pool_mode()

    if pool_mode == "nullpool":
        engine = create_engine(
            url,
            poolclass=NullPool,
            pool_pre_ping=True,
            connect_args=connect_args,
        )
    elif pool_mode == "queuepool":
        pool_size = int(os.getenv("RAID_DB_POOL_SIZE", "5"))
        max_overflow = int(os.getenv("RAID_DB_MAX_OVERFLOW", "10"))
        engine = create_engine(
            url,
            poolclass=QueuePool,
            pool_pre_ping=True,
            pool_size=pool_size,
            max_overflow=max_overflow,
            pool_timeout=timeout,
            connect_args=connect_args,
        )
    else:
        raise ValueError(
            f"Invalid RAID_DB_POOL value: {pool_mode}. "
            "Must be 'nullpool' or 'queuepool'."
        )

    if _is_sqlite(url):
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)

    logger.debug(
        "Database engine created: pool=%s, url=%s",
        engine.pool.__class__.__name__,
        _mask_password(url),
    )
    return engine


def build_sessionmaker(engine: Engine) -> sessionmaker[Session]:
    """
    Build SQLAlchemy sessionmaker.

    Args:
        engine: SQLAlchemy Engine instance.

    Returns:
        sessionmaker instance configured with autocommit=False, autoflush=False,
        expire_on_commit=False (records stay readable after the unit of work).
    """
    return sessionmaker(
        autocommit=False, autoflush=False, expire_on_commit=False, bind=engine
    )
