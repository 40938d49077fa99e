"""Character lifecycle: create, update, delete, list.

Every mutation on an existing character goes through the ownership check.
Writes that touch is_default take the owner lock and delegate to
domain.defaults so the one-default rule has a single code path.
"""

import logging
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from raid_api.db.locks import serialized
from raid_api.db.models import Character
from raid_api.db.repo_characters import CharacterRepository
from raid_api.db.session import constraint_violated, unit_of_work
from raid_api.domain.defaults import OWNER_LOCK_SCOPE, apply_default
from raid_api.domain.ownership import require_character_owner
from raid_api.errors import EMPTY_NAME, HAS_ACTIVE_SIGNUPS, NEGATIVE_LEVEL, ValidationError

logger = logging.getLogger(__name__)


def _validate_name(name: Optional[str]) -> str:
    if name is None or not name.strip():
        raise ValidationError(EMPTY_NAME, "Character name cannot be empty")
    return name.strip()


def _validate_level(level: Optional[int]) -> None:
    if level is not None and level < 0:
        raise ValidationError(NEGATIVE_LEVEL, "Character level cannot be negative")


def list_characters(db: Session, identity_id: int) -> list[Character]:
    return CharacterRepository(db).list_by_user(identity_id)


def create_character(
    db: Session,
    identity_id: int,
    name: Optional[str],
    job: Optional[str] = None,
    level: Optional[int] = None,
    is_default: bool = False,
) -> Character:
    """Create a character for the caller.

    Raises:
        ValidationError: empty_name, negative_level
    """
    clean_name = _validate_name(name)
    _validate_level(level)

    with serialized(OWNER_LOCK_SCOPE, identity_id), unit_of_work(db):
        character = CharacterRepository(db).create(
            Character(user_id=identity_id, name=clean_name, job=job, level=level, is_default=False)
        )
        if is_default:
            apply_default(db, identity_id, character)

    logger.info(
        f"Character created: {character.id}",
        extra={"event": "character.created", "character_id": character.id},
    )
    return character


def update_character(
    db: Session,
    identity_id: int,
    character_id: int,
    name: Optional[str] = None,
    job: Optional[str] = None,
    level: Optional[int] = None,
    is_default: Optional[bool] = None,
) -> Character:
    """Apply a partial update. Fields left as None are unchanged.

    Raises:
        NotFoundError: character_not_found
        AuthorizationError: not_character_owner
        ValidationError: empty_name, negative_level
    """
    with serialized(OWNER_LOCK_SCOPE, identity_id), unit_of_work(db):
        character = require_character_owner(db, identity_id, character_id, for_update=True)

        if name is not None:
            character.name = _validate_name(name)
        if level is not None:
            _validate_level(level)
            character.level = level
        if job is not None:
            character.job = job

        if is_default is True and not character.is_default:
            apply_default(db, identity_id, character)
        elif is_default is False:
            character.is_default = False

        db.flush()

    logger.info(
        f"Character updated: {character_id}",
        extra={"event": "character.updated", "character_id": character_id},
    )
    return character


def delete_character(db: Session, identity_id: int, character_id: int) -> None:
    """Delete a character that has no signups.

    Raises:
        NotFoundError: character_not_found
        AuthorizationError: not_character_owner
        ValidationError: has_active_signups
    """
    with serialized(OWNER_LOCK_SCOPE, identity_id), unit_of_work(db):
        character = require_character_owner(db, identity_id, character_id, for_update=True)
        repo = CharacterRepository(db)

        if repo.has_signups(character_id):
            raise ValidationError(
                HAS_ACTIVE_SIGNUPS, "Cannot delete character with active raid signups"
            )

        try:
            repo.delete(character)
        except IntegrityError as e:
            # A signup landed between the check and the delete; RESTRICT caught it
            if constraint_violated(e, "foreign key"):
                raise ValidationError(
                    HAS_ACTIVE_SIGNUPS, "Cannot delete character with active raid signups"
                ) from e
            raise

    logger.info(
        f"Character deleted: {character_id}",
        extra={"event": "character.deleted", "character_id": character_id},
    )
