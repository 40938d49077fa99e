"""Character endpoints under /me/characters. All require an identity."""

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from raid_api.auth.gate import require_identity
from raid_api.auth.tokens import TokenIdentity
from raid_api.db.session import get_db
from raid_api.domain import characters as character_service
from raid_api.domain.defaults import set_default
from raid_api.schemas import CharacterCreateRequest, CharacterResponse, CharacterUpdateRequest

router = APIRouter(prefix="/me/characters", tags=["characters"])


@router.get("", response_model=list[CharacterResponse])
def list_characters(
    identity: TokenIdentity = Depends(require_identity),
    db: Session = Depends(get_db),
) -> list[CharacterResponse]:
    return [
        CharacterResponse.model_validate(c)
        for c in character_service.list_characters(db, identity.identity_id)
    ]


@router.post("", response_model=CharacterResponse, status_code=status.HTTP_201_CREATED)
def create_character(
    payload: CharacterCreateRequest,
    identity: TokenIdentity = Depends(require_identity),
    db: Session = Depends(get_db),
) -> CharacterResponse:
    character = character_service.create_character(
        db,
        identity.identity_id,
        name=payload.name,
        job=payload.job,
        level=payload.level,
        is_default=payload.is_default,
    )
    return CharacterResponse.model_validate(character)


@router.put("/{character_id}", response_model=CharacterResponse)
def update_character(
    character_id: int,
    payload: CharacterUpdateRequest,
    identity: TokenIdentity = Depends(require_identity),
    db: Session = Depends(get_db),
) -> CharacterResponse:
    character = character_service.update_character(
        db,
        identity.identity_id,
        character_id,
        name=payload.name,
        job=payload.job,
        level=payload.level,
        is_default=payload.is_default,
    )
    return CharacterResponse.model_validate(character)


@router.delete("/{character_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_character(
    character_id: int,
    identity: TokenIdentity = Depends(require_identity),
    db: Session = Depends(get_db),
) -> Response:
    character_service.delete_character(db, identity.identity_id, character_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.put("/{character_id}/default", response_model=CharacterResponse)
def set_default_character(
    character_id: int,
    identity: TokenIdentity = Depends(require_identity),
    db: Session = Depends(get_db),
) -> CharacterResponse:
    """Make this character the caller's only default."""
    return CharacterResponse.model_validate(set_default(db, identity.identity_id, character_id))
