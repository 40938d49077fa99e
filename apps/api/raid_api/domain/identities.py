"""Login: identity upsert plus token issuance."""

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from raid_api.auth.tokens import IssuedToken, TokenService
from raid_api.db.locks import serialized
from raid_api.db.models import User
from raid_api.db.repo_users import UserRepository
from raid_api.db.session import constraint_violated, unit_of_work
from raid_api.errors import NotFoundError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LoginResult:
    user: User
    token: IssuedToken
    created: bool


class _ExternalIdTaken(Exception):
    """Another process inserted the same external id between select and insert."""


def _upsert_identity(
    db: Session, external_id: str, display_name: str, picture_url: Optional[str]
) -> tuple[User, bool]:
    with serialized("identity", external_id), unit_of_work(db):
        repo = UserRepository(db)
        user = repo.get_by_external_id(external_id, for_update=True)
        if user is not None:
            user.display_name = display_name
            user.picture_url = picture_url
            db.flush()
            return user, False

        try:
            user = repo.create(
                User(external_id=external_id, display_name=display_name, picture_url=picture_url)
            )
        except IntegrityError as e:
            if constraint_violated(e, "uq_users_external_id", "users.external_id", "users_external_id_key"):
                raise _ExternalIdTaken() from e
            raise
        return user, True


def login(
    db: Session,
    tokens: TokenService,
    external_id: str,
    display_name: str,
    picture_url: Optional[str] = None,
) -> LoginResult:
    """Create the identity on first login, refresh its profile afterwards, issue a token.

    The keyed lock only covers this process. A first login that loses the
    insert race to another process rolls back and retries as a profile refresh.
    """
    try:
        user, created = _upsert_identity(db, external_id, display_name, picture_url)
    except _ExternalIdTaken:
        user, created = _upsert_identity(db, external_id, display_name, picture_url)

    issued = tokens.issue(user.id, user.external_id)
    logger.info(
        f"Login: identity {user.id} ({'created' if created else 'existing'})",
        extra={"event": "auth.login", "identity_id": user.id, "identity_created": created},
    )
    return LoginResult(user=user, token=issued, created=created)


def get_identity(db: Session, identity_id: int) -> User:
    """Load the stored identity behind a token.

    Raises:
        NotFoundError: identity_not_found (token outlived its identity row)
    """
    user = UserRepository(db).get_by_id(identity_id)
    if user is None:
        raise NotFoundError("identity")
    return user
