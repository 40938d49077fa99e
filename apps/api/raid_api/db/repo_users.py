"""Repository for User (identity) operations."""

from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from raid_api.db.models import User


class UserRepository:
    """Repository for User CRUD operations."""

    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, user_id: int) -> Optional[User]:
        return self.db.get(User, user_id)

    def get_by_external_id(self, external_id: str, for_update: bool = False) -> Optional[User]:
        """Get user by identity-provider id.

        Args:
            external_id: Provider-issued id (unique)
            for_update: Lock the row for the rest of the transaction

        Returns:
            User or None if not found
        """
        stmt = select(User).where(User.external_id == external_id)
        if for_update:
            stmt = stmt.with_for_update()
        return self.db.execute(stmt).scalar_one_or_none()

    def create(self, user: User) -> User:
        self.db.add(user)
        self.db.flush()
        return user
