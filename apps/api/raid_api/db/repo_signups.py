"""Repository for Signup operations."""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy import exists, func, select
from sqlalchemy.orm import Session

from raid_api.db.models import Character, Signup, User


@dataclass(frozen=True)
class SignupDetail:
    """Signup joined with its character and the character's owner."""

    id: int
    raid_id: int
    character_id: int
    character_name: str
    character_job: Optional[str]
    character_level: Optional[int]
    user_id: int
    user_display_name: str
    user_picture_url: Optional[str]
    status: str
    created_at: datetime


class SignupRepository:
    """Repository for Signup CRUD operations."""

    def __init__(self, db: Session):
        self.db = db

    def _detail_query(self):
        return (
            select(
                Signup.id,
                Signup.raid_id,
                Signup.character_id,
                Character.name,
                Character.job,
                Character.level,
                User.id,
                User.display_name,
                User.picture_url,
                Signup.status,
                Signup.created_at,
            )
            .join(Character, Character.id == Signup.character_id)
            .join(User, User.id == Character.user_id)
        )

    def get_detail(self, signup_id: int) -> Optional[SignupDetail]:
        row = self.db.execute(self._detail_query().where(Signup.id == signup_id)).first()
        return SignupDetail(*row) if row else None

    def list_details(self, raid_id: int) -> list[SignupDetail]:
        """List signups of a raid with joined details, oldest first."""
        stmt = (
            self._detail_query()
            .where(Signup.raid_id == raid_id)
            .order_by(Signup.created_at.asc(), Signup.id.asc())
        )
        return [SignupDetail(*row) for row in self.db.execute(stmt).all()]

    def count_for_raid(self, raid_id: int) -> int:
        stmt = select(func.count()).select_from(Signup).where(Signup.raid_id == raid_id)
        return int(self.db.execute(stmt).scalar_one())

    def exists_for(self, raid_id: int, character_id: int) -> bool:
        stmt = select(
            exists().where(Signup.raid_id == raid_id, Signup.character_id == character_id)
        )
        return bool(self.db.execute(stmt).scalar())

    def find_earliest_owned(self, raid_id: int, user_id: int) -> Optional[Signup]:
        """Find the caller's earliest signup for a raid, matched through character ownership."""
        stmt = (
            select(Signup)
            .join(Character, Character.id == Signup.character_id)
            .where(Signup.raid_id == raid_id, Character.user_id == user_id)
            .order_by(Signup.created_at.asc(), Signup.id.asc())
            .limit(1)
            .with_for_update(of=Signup)
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def create(self, signup: Signup) -> Signup:
        self.db.add(signup)
        self.db.flush()
        return signup

    def delete(self, signup: Signup) -> None:
        self.db.delete(signup)
        self.db.flush()
