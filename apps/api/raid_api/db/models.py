"""SQLAlchemy ORM models for the raid signup schema.

Constraints double as the last line of defense behind the service-level
checks:
- raid_signups: UNIQUE(raid_id, character_id)
- characters: at most one is_default=true row per user (partial unique index)
- raid_signups.raid_id cascades on raid deletion; character_id restricts
  character deletion while signups reference it
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    BIGINT,
    BOOLEAN,
    INTEGER,
    TEXT,
    TIMESTAMP,
    CheckConstraint,
    ForeignKey,
    Index,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator

SIGNUP_STATUS_CONFIRMED = "confirmed"

# BIGINT on PostgreSQL; SQLite only autoincrements INTEGER PRIMARY KEY
ID_TYPE = BIGINT().with_variant(INTEGER, "sqlite")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UTCDateTime(TypeDecorator):
    """Timezone-aware UTC timestamps on every backend.

    Naive values are taken as UTC on the way in; SQLite hands back naive
    values, which get UTC attached on the way out.
    """

    impl = TIMESTAMP(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


class User(Base):
    """Identity created on first login, refreshed on later logins."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    external_id: Mapped[str] = mapped_column(TEXT, nullable=False, unique=True)
    display_name: Mapped[str] = mapped_column(TEXT, nullable=False)
    picture_url: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), nullable=False, default=_utcnow, onupdate=_utcnow
    )


class Character(Base):
    """Game persona owned by exactly one user."""

    __tablename__ = "characters"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        ID_TYPE, ForeignKey("users.id"), nullable=False
    )
    name: Mapped[str] = mapped_column(TEXT, nullable=False)
    job: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    level: Mapped[Optional[int]] = mapped_column(INTEGER, nullable=True)
    is_default: Mapped[bool] = mapped_column(BOOLEAN, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), nullable=False, default=_utcnow, onupdate=_utcnow
    )

    __table_args__ = (
        CheckConstraint("level IS NULL OR level >= 0", name="ck_characters_level_non_negative"),
        Index("idx_characters_user", "user_id"),
        Index(
            "uq_characters_one_default_per_user",
            "user_id",
            unique=True,
            postgresql_where=text("is_default"),
            sqlite_where=text("is_default = 1"),
        ),
    )


class Raid(Base):
    """Scheduled event. Immutable after creation except via deletion."""

    __tablename__ = "raids"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(TEXT, nullable=False)
    subtitle: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    boss: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    start_time: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    created_by: Mapped[int] = mapped_column(
        ID_TYPE, ForeignKey("users.id"), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, default=_utcnow)

    __table_args__ = (Index("idx_raids_start_time", "start_time"),)


class Signup(Base):
    """Join record between a raid and a character."""

    __tablename__ = "raid_signups"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    raid_id: Mapped[int] = mapped_column(
        ID_TYPE,
        ForeignKey("raids.id", ondelete="CASCADE"),
        nullable=False,
    )
    character_id: Mapped[int] = mapped_column(
        ID_TYPE,
        ForeignKey("characters.id", ondelete="RESTRICT"),
        nullable=False,
    )
    status: Mapped[str] = mapped_column(TEXT, nullable=False, default=SIGNUP_STATUS_CONFIRMED)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, default=_utcnow)

    __table_args__ = (
        UniqueConstraint("raid_id", "character_id", name="uq_raid_signups_raid_character"),
        Index("idx_raid_signups_character", "character_id"),
    )
