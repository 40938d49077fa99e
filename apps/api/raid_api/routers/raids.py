"""Raid and signup endpoints.

Listing raids and signups is public; everything that writes needs an identity.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy.orm import Session

from raid_api.auth.gate import require_identity
from raid_api.auth.tokens import TokenIdentity
from raid_api.db.models import Raid
from raid_api.db.session import get_db
from raid_api.domain import raids as raid_service
from raid_api.domain import signups as signup_service
from raid_api.notifications import Notifier
from raid_api.schemas import (
    RaidCreateRequest,
    RaidCreateResponse,
    RaidResponse,
    SignupRequest,
    SignupResponse,
)

router = APIRouter(prefix="/raids", tags=["raids"])


def get_notifier(request: Request) -> Notifier:
    return request.app.state.notifier


def _raid_fields(raid: Raid, created_by_name: Optional[str]) -> dict:
    return {
        "id": raid.id,
        "title": raid.title,
        "subtitle": raid.subtitle,
        "boss": raid.boss,
        "start_time": raid.start_time,
        "created_by": raid.created_by,
        "created_by_name": created_by_name,
        "created_at": raid.created_at,
    }


@router.get("", response_model=list[RaidResponse])
def list_raids(db: Session = Depends(get_db)) -> list[RaidResponse]:
    """Upcoming raids (start time >= now), earliest first."""
    return [
        RaidResponse(**_raid_fields(item.raid, item.created_by_name))
        for item in raid_service.list_raids(db)
    ]


@router.post("", response_model=RaidCreateResponse, status_code=status.HTTP_201_CREATED)
def create_raid(
    payload: RaidCreateRequest,
    identity: TokenIdentity = Depends(require_identity),
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
) -> RaidCreateResponse:
    """Create a raid; with characterId, also sign that character up.

    ``signup`` is null when the creator signup was not confirmed.
    """
    result = raid_service.create_raid(
        db,
        identity.identity_id,
        title=payload.title,
        start_time=payload.start_time,
        subtitle=payload.subtitle,
        boss=payload.boss,
        character_id=payload.character_id,
        notifier=notifier,
    )
    signup = SignupResponse.model_validate(result.signup) if result.signup else None
    return RaidCreateResponse(**_raid_fields(result.raid, result.created_by_name), signup=signup)


@router.delete("/{raid_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_raid(
    raid_id: int,
    identity: TokenIdentity = Depends(require_identity),
    db: Session = Depends(get_db),
) -> Response:
    """Delete a raid and its signups. Creator only."""
    raid_service.delete_raid(db, identity.identity_id, raid_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{raid_id}/signup", response_model=SignupResponse, status_code=status.HTTP_201_CREATED)
def create_signup(
    raid_id: int,
    payload: SignupRequest,
    identity: TokenIdentity = Depends(require_identity),
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
) -> SignupResponse:
    detail = signup_service.create_signup(
        db, identity.identity_id, raid_id, payload.character_id, notifier=notifier
    )
    return SignupResponse.model_validate(detail)


@router.delete("/{raid_id}/signup", status_code=status.HTTP_204_NO_CONTENT)
def cancel_signup(
    raid_id: int,
    identity: TokenIdentity = Depends(require_identity),
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
) -> Response:
    """Cancel the caller's own signup for this raid."""
    signup_service.cancel_signup(db, identity.identity_id, raid_id, notifier=notifier)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{raid_id}/signups", response_model=list[SignupResponse])
def list_signups(raid_id: int, db: Session = Depends(get_db)) -> list[SignupResponse]:
    return [SignupResponse.model_validate(d) for d in signup_service.list_signups(db, raid_id)]
