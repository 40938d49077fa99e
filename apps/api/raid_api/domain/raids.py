"""Raid lifecycle: create (with optional creator auto-signup), delete, list."""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy.orm import Session

from raid_api.db.locks import serialized
from raid_api.db.models import Raid
from raid_api.db.repo_raids import RaidRepository
from raid_api.db.repo_signups import SignupDetail
from raid_api.db.repo_users import UserRepository
from raid_api.db.session import unit_of_work
from raid_api.domain.signups import RAID_LOCK_SCOPE, lock_raid, try_auto_signup
from raid_api.errors import (
    EMPTY_TITLE,
    NOT_RAID_CREATOR,
    START_TIME_TOO_FAR_IN_PAST,
    AuthorizationError,
    ValidationError,
)
from raid_api.notifications import Notifier, RaidCreated, RaidCreatedWithSignup, dispatch

logger = logging.getLogger(__name__)

# How far in the past a new raid may start
START_TIME_GRACE = timedelta(hours=1)


@dataclass(frozen=True)
class RaidCreation:
    raid: Raid
    created_by_name: str
    signup: Optional[SignupDetail]


@dataclass(frozen=True)
class ListedRaid:
    raid: Raid
    created_by_name: Optional[str]


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC; convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def validate_raid(title: Optional[str], start_time: datetime, now: datetime) -> str:
    """Check creation rules and return the trimmed title.

    Raises:
        ValidationError: empty_title, start_time_too_far_in_past
    """
    if title is None or not title.strip():
        raise ValidationError(EMPTY_TITLE, "Raid title cannot be empty")

    if as_utc(start_time) < now - START_TIME_GRACE:
        raise ValidationError(
            START_TIME_TOO_FAR_IN_PAST, "Raid start time cannot be more than 1 hour in the past"
        )
    return title.strip()


def create_raid(
    db: Session,
    identity_id: int,
    title: Optional[str],
    start_time: datetime,
    subtitle: Optional[str] = None,
    boss: Optional[str] = None,
    character_id: Optional[int] = None,
    notifier: Optional[Notifier] = None,
    now: Optional[datetime] = None,
) -> RaidCreation:
    """Create a raid, then optionally sign the creator's character up.

    The raid is committed first. Auto-signup runs in its own unit of work and
    its failure only yields ``signup=None``.

    Raises:
        ValidationError: empty_title, start_time_too_far_in_past
    """
    now = now or datetime.now(timezone.utc)
    clean_title = validate_raid(title, start_time, now)

    with unit_of_work(db):
        raid = RaidRepository(db).create(
            Raid(
                title=clean_title,
                subtitle=subtitle,
                boss=boss,
                start_time=as_utc(start_time),
                created_by=identity_id,
            )
        )

    logger.info(
        f"Raid created: {raid.id}",
        extra={"event": "raid.created", "raid_id": raid.id},
    )

    signup = None
    if character_id is not None:
        signup = try_auto_signup(db, identity_id, raid.id, character_id)

    creator = UserRepository(db).get_by_id(identity_id)
    creator_name = creator.display_name if creator else ""

    if notifier is not None:
        if signup is not None:
            dispatch(
                notifier.raid_created_with_signup,
                RaidCreatedWithSignup(
                    raid_id=raid.id,
                    raid_title=raid.title,
                    subtitle=raid.subtitle,
                    start_time=raid.start_time,
                    creator_name=creator_name,
                    character_name=signup.character_name,
                    character_job=signup.character_job,
                    character_level=signup.character_level,
                ),
            )
        else:
            dispatch(
                notifier.raid_created,
                RaidCreated(
                    raid_id=raid.id,
                    raid_title=raid.title,
                    subtitle=raid.subtitle,
                    start_time=raid.start_time,
                    creator_name=creator_name,
                ),
            )

    return RaidCreation(raid=raid, created_by_name=creator_name, signup=signup)


def delete_raid(db: Session, identity_id: int, raid_id: int) -> int:
    """Delete a raid and all of its signups atomically. Creator only.

    Returns:
        Number of signups removed

    Raises:
        NotFoundError: raid_not_found
        AuthorizationError: not_raid_creator
    """
    with serialized(RAID_LOCK_SCOPE, raid_id), unit_of_work(db):
        raid = lock_raid(db, raid_id)
        if raid.created_by != identity_id:
            raise AuthorizationError("Only the raid creator can delete this raid", code=NOT_RAID_CREATOR)
        removed = RaidRepository(db).delete_with_signups(raid)

    logger.info(
        f"Raid deleted: {raid_id} (signups removed: {removed})",
        extra={"event": "raid.deleted", "raid_id": raid_id, "signups_removed": removed},
    )
    return removed


def list_raids(db: Session, now: Optional[datetime] = None) -> list[ListedRaid]:
    """Raids starting at or after now, earliest first, with creator name."""
    now = now or datetime.now(timezone.utc)
    return [
        ListedRaid(raid=raid, created_by_name=name)
        for raid, name in RaidRepository(db).list_upcoming(now)
    ]
