"""Repository for Character operations."""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import exists, func, select, update
from sqlalchemy.orm import Session

from raid_api.db.models import Character, Signup


class CharacterRepository:
    """Repository for Character CRUD operations.

    Writes flush immediately so later reads in the same unit of work see them.
    """

    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, character_id: int) -> Optional[Character]:
        return self.db.get(Character, character_id)

    def get_for_update(self, character_id: int) -> Optional[Character]:
        """Get character with a row lock (SELECT ... FOR UPDATE).

        SQLite ignores FOR UPDATE; callers also hold an in-process lock.
        """
        stmt = select(Character).where(Character.id == character_id).with_for_update()
        return self.db.execute(stmt).scalar_one_or_none()

    def exists_owned(self, character_id: int, user_id: int) -> bool:
        """Single existence check on the (id, owner) pair."""
        stmt = select(
            exists().where(Character.id == character_id, Character.user_id == user_id)
        )
        return bool(self.db.execute(stmt).scalar())

    def list_by_user(self, user_id: int) -> list[Character]:
        """List a user's characters, newest first."""
        stmt = (
            select(Character)
            .where(Character.user_id == user_id)
            .order_by(Character.created_at.desc(), Character.id.desc())
        )
        return list(self.db.execute(stmt).scalars().all())

    def lock_all_for_user(self, user_id: int) -> list[Character]:
        """Row-lock every character of a user (default selection)."""
        stmt = (
            select(Character)
            .where(Character.user_id == user_id)
            .order_by(Character.id)
            .with_for_update()
        )
        return list(self.db.execute(stmt).scalars().all())

    def create(self, character: Character) -> Character:
        self.db.add(character)
        self.db.flush()
        return character

    def unset_default_for_user(self, user_id: int) -> int:
        """Clear is_default on every character of a user.

        Returns:
            Number of rows changed
        """
        stmt = (
            update(Character)
            .where(Character.user_id == user_id, Character.is_default.is_(True))
            .values(is_default=False, updated_at=datetime.now(timezone.utc))
            .execution_options(synchronize_session="fetch")
        )
        result = self.db.execute(stmt)
        return result.rowcount

    def count_defaults(self, user_id: int) -> int:
        stmt = select(func.count()).select_from(Character).where(
            Character.user_id == user_id, Character.is_default.is_(True)
        )
        return int(self.db.execute(stmt).scalar_one())

    def has_signups(self, character_id: int) -> bool:
        stmt = select(exists().where(Signup.character_id == character_id))
        return bool(self.db.execute(stmt).scalar())

    def delete(self, character: Character) -> None:
        self.db.delete(character)
        self.db.flush()
