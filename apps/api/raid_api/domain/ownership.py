"""Ownership capability checks.

Composed in front of every character mutation and every signup creation.
Failing ownership is an AuthorizationError (caller known, not entitled),
never an AuthError.
"""

from sqlalchemy.orm import Session

from raid_api.db.models import Character
from raid_api.db.repo_characters import CharacterRepository
from raid_api.errors import NOT_CHARACTER_OWNER, AuthorizationError, NotFoundError


def owns_character(db: Session, identity_id: int, character_id: int) -> bool:
    """True if the (owner, character) pair exists."""
    return CharacterRepository(db).exists_owned(character_id, identity_id)


def require_character_owner(
    db: Session, identity_id: int, character_id: int, for_update: bool = False
) -> Character:
    """Load a character the caller is entitled to act on.

    Args:
        db: Database session
        identity_id: Acting identity
        character_id: Target character
        for_update: Row-lock the character for the rest of the transaction

    Returns:
        The character

    Raises:
        NotFoundError: character_not_found
        AuthorizationError: not_character_owner
    """
    repo = CharacterRepository(db)
    character = repo.get_for_update(character_id) if for_update else repo.get_by_id(character_id)
    if character is None:
        raise NotFoundError("character")

    if not owns_character(db, identity_id, character_id):
        raise AuthorizationError(
            "You do not have permission to access this character",
            code=NOT_CHARACTER_OWNER,
        )
    return character
