"""Default character selection: at most one is_default=true per owner.

Unset-all then set-one runs as one unit of work while holding the owner's
keyed lock, and every character row of the owner is locked first, so
concurrent calls for the same owner serialize instead of interleaving. The
partial unique index on characters is the backstop.
"""

import logging

from sqlalchemy.orm import Session

from raid_api.db.locks import serialized
from raid_api.db.models import Character
from raid_api.db.repo_characters import CharacterRepository
from raid_api.db.session import unit_of_work
from raid_api.domain.ownership import require_character_owner

logger = logging.getLogger(__name__)

OWNER_LOCK_SCOPE = "owner"


def apply_default(db: Session, identity_id: int, character: Character) -> None:
    """Make ``character`` the owner's only default.

    Must run inside a unit of work that holds the owner lock.
    """
    repo = CharacterRepository(db)
    repo.lock_all_for_user(identity_id)
    cleared = repo.unset_default_for_user(identity_id)
    character.is_default = True
    db.flush()
    logger.debug(
        f"Default moved to character {character.id} (cleared {cleared})",
        extra={"event": "character.default.applied", "character_id": character.id},
    )


def set_default(db: Session, identity_id: int, character_id: int) -> Character:
    """Mark one of the caller's characters as their default.

    Raises:
        NotFoundError: character_not_found
        AuthorizationError: not_character_owner
    """
    with serialized(OWNER_LOCK_SCOPE, identity_id), unit_of_work(db):
        character = require_character_owner(db, identity_id, character_id, for_update=True)
        apply_default(db, identity_id, character)

    logger.info(
        f"Default character set: {character_id}",
        extra={"event": "character.default.set", "character_id": character_id},
    )
    return character
