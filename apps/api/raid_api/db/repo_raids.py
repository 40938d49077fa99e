"""Repository for Raid operations."""

from datetime import datetime
from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from raid_api.db.models import Raid, Signup, User


class RaidRepository:
    """Repository for Raid CRUD operations."""

    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, raid_id: int) -> Optional[Raid]:
        return self.db.get(Raid, raid_id)

    def get_for_update(self, raid_id: int) -> Optional[Raid]:
        """Get raid with a row lock.

        Taken first in every signup and deletion unit of work, so all writers
        for one raid queue up behind the same row.
        """
        stmt = select(Raid).where(Raid.id == raid_id).with_for_update()
        return self.db.execute(stmt).scalar_one_or_none()

    def list_upcoming(self, now: datetime) -> list[tuple[Raid, Optional[str]]]:
        """List raids with start_time >= now, ascending, with creator display name.

        Returns:
            List of (raid, created_by_name) tuples
        """
        stmt = (
            select(Raid, User.display_name)
            .outerjoin(User, User.id == Raid.created_by)
            .where(Raid.start_time >= now)
            .order_by(Raid.start_time.asc(), Raid.id.asc())
        )
        return [(raid, name) for raid, name in self.db.execute(stmt).all()]

    def create(self, raid: Raid) -> Raid:
        self.db.add(raid)
        self.db.flush()
        return raid

    def delete_with_signups(self, raid: Raid) -> int:
        """Delete every signup of the raid, then the raid itself.

        Both statements run in the caller's transaction; nothing is visible
        until it commits.

        Returns:
            Number of signups removed
        """
        result = self.db.execute(delete(Signup).where(Signup.raid_id == raid.id))
        self.db.delete(raid)
        self.db.flush()
        return result.rowcount
