"""Signup invariant engine.

A signup attempt walks six steps, all inside one unit of work that holds the
raid's keyed lock and the raid row lock:

    1. raid exists                 NotFoundError(raid)
    2. character exists            NotFoundError(character)
    3. caller owns the character   AuthorizationError
    4. no signup for the pair yet  ConflictError(duplicate_signup)
    5. fewer than RAID_CAPACITY    ConflictError(raid_full)
    6. insert, status "confirmed"

Count and insert therefore never interleave with another signup for the same
raid. UNIQUE(raid_id, character_id) catches anything that slips past step 4.
Notifications go out only after commit.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from raid_api.db.locks import serialized
from raid_api.db.models import SIGNUP_STATUS_CONFIRMED, Character, Raid, Signup
from raid_api.db.repo_raids import RaidRepository
from raid_api.db.repo_signups import SignupDetail, SignupRepository
from raid_api.db.repo_users import UserRepository
from raid_api.db.session import constraint_violated, unit_of_work
from raid_api.domain.ownership import require_character_owner
from raid_api.errors import DUPLICATE_SIGNUP, RAID_FULL, ConflictError, NotFoundError, RaidSystemError
from raid_api.notifications import Notifier, SignupCancelled, SignupCreated, dispatch

logger = logging.getLogger(__name__)

RAID_CAPACITY = 6
RAID_LOCK_SCOPE = "raid"


@dataclass(frozen=True)
class _SignupOutcome:
    detail: SignupDetail
    raid: Raid
    character: Character
    count: int


def _display_name(db: Session, user_id: int) -> str:
    user = UserRepository(db).get_by_id(user_id)
    return user.display_name if user else ""


def lock_raid(db: Session, raid_id: int) -> Raid:
    """Row-lock the raid for the current unit of work.

    Raises:
        NotFoundError: raid_not_found
    """
    raid = RaidRepository(db).get_for_update(raid_id)
    if raid is None:
        raise NotFoundError("raid")
    return raid


def _signup_locked(db: Session, identity_id: int, raid_id: int, character_id: int) -> _SignupOutcome:
    """Steps 1-6. Caller holds the raid lock and an open unit of work."""
    raid = lock_raid(db, raid_id)
    character = require_character_owner(db, identity_id, character_id)

    signups = SignupRepository(db)
    if signups.exists_for(raid_id, character_id):
        raise ConflictError(DUPLICATE_SIGNUP, "This character is already signed up for this raid")

    count = signups.count_for_raid(raid_id)
    if count >= RAID_CAPACITY:
        raise ConflictError(RAID_FULL, f"Raid is full (maximum {RAID_CAPACITY} participants)")

    try:
        signup = signups.create(
            Signup(raid_id=raid_id, character_id=character_id, status=SIGNUP_STATUS_CONFIRMED)
        )
    except IntegrityError as e:
        if constraint_violated(e, "uq_raid_signups_raid_character", "raid_signups.raid_id"):
            raise ConflictError(
                DUPLICATE_SIGNUP, "This character is already signed up for this raid"
            ) from e
        # Character deleted after step 2; the raid row is locked, so this FK is the only one that can fail
        if constraint_violated(e, "raid_signups_character_id_fkey", "foreign key constraint failed"):
            raise NotFoundError("character") from e
        raise

    detail = signups.get_detail(signup.id)
    return _SignupOutcome(detail=detail, raid=raid, character=character, count=count + 1)


def _reject(raid_id: int, character_id: int, error: RaidSystemError) -> None:
    logger.info(
        f"Signup rejected: {error.code}",
        extra={
            "event": "signup.rejected",
            "raid_id": raid_id,
            "character_id": character_id,
            "code": error.code,
        },
    )


def create_signup(
    db: Session,
    identity_id: int,
    raid_id: int,
    character_id: int,
    notifier: Optional[Notifier] = None,
) -> SignupDetail:
    """Sign one of the caller's characters up for a raid.

    Returns:
        SignupDetail joined with character and owner fields

    Raises:
        NotFoundError: raid_not_found, character_not_found
        AuthorizationError: not_character_owner
        ConflictError: duplicate_signup, raid_full
    """
    try:
        with serialized(RAID_LOCK_SCOPE, raid_id), unit_of_work(db):
            outcome = _signup_locked(db, identity_id, raid_id, character_id)
    except RaidSystemError as e:
        _reject(raid_id, character_id, e)
        raise

    logger.info(
        f"Signup created: raid={raid_id} character={character_id} ({outcome.count}/{RAID_CAPACITY})",
        extra={
            "event": "signup.created",
            "raid_id": raid_id,
            "character_id": character_id,
            "signup_count": outcome.count,
        },
    )

    if notifier is not None:
        detail = outcome.detail
        dispatch(
            notifier.signup_created,
            SignupCreated(
                raid_id=raid_id,
                raid_title=outcome.raid.title,
                user_name=detail.user_display_name,
                character_name=detail.character_name,
                character_job=detail.character_job,
                character_level=detail.character_level,
                current_count=outcome.count,
                max_count=RAID_CAPACITY,
                creator_name=_display_name(db, outcome.raid.created_by),
            ),
        )
    return outcome.detail


def try_auto_signup(
    db: Session, identity_id: int, raid_id: int, character_id: int
) -> Optional[SignupDetail]:
    """Creator auto-signup after raid creation.

    Same protocol as create_signup, but a failure is downgraded to None: the
    raid stays created and the reason is only logged. Sends no notification;
    the raid announcement covers it.
    """
    try:
        with serialized(RAID_LOCK_SCOPE, raid_id), unit_of_work(db):
            outcome = _signup_locked(db, identity_id, raid_id, character_id)
    except RaidSystemError as e:
        logger.warning(
            f"Auto-signup skipped: {e.code}",
            extra={
                "event": "raid.auto_signup.skipped",
                "raid_id": raid_id,
                "character_id": character_id,
                "code": e.code,
            },
        )
        return None

    logger.info(
        f"Auto-signup created: raid={raid_id} character={character_id}",
        extra={"event": "signup.created", "raid_id": raid_id, "character_id": character_id},
    )
    return outcome.detail


def cancel_signup(
    db: Session,
    identity_id: int,
    raid_id: int,
    notifier: Optional[Notifier] = None,
) -> None:
    """Remove the caller's signup for a raid.

    The signup is found by ownership (the caller's earliest signup in this
    raid), not by signup id. No capacity re-check.

    Raises:
        NotFoundError: raid_not_found, signup_not_found
    """
    with serialized(RAID_LOCK_SCOPE, raid_id), unit_of_work(db):
        raid = lock_raid(db, raid_id)
        signups = SignupRepository(db)

        signup = signups.find_earliest_owned(raid_id, identity_id)
        if signup is None:
            raise NotFoundError("signup", "You have not signed up for this raid")

        detail = signups.get_detail(signup.id)
        signups.delete(signup)
        remaining = signups.count_for_raid(raid_id)

    logger.info(
        f"Signup cancelled: raid={raid_id} character={detail.character_id} ({remaining}/{RAID_CAPACITY})",
        extra={
            "event": "signup.cancelled",
            "raid_id": raid_id,
            "character_id": detail.character_id,
            "signup_count": remaining,
        },
    )

    if notifier is not None:
        dispatch(
            notifier.signup_cancelled,
            SignupCancelled(
                raid_id=raid_id,
                raid_title=raid.title,
                user_name=detail.user_display_name,
                character_name=detail.character_name,
                current_count=remaining,
                max_count=RAID_CAPACITY,
                creator_name=_display_name(db, raid.created_by),
            ),
        )


def list_signups(db: Session, raid_id: int) -> list[SignupDetail]:
    """Signups of a raid with character and owner fields, oldest first.

    An unknown raid has no signups: returns an empty list.
    """
    return SignupRepository(db).list_details(raid_id)
