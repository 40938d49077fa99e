"""Login and identity endpoints.

POST /auth/login trusts the caller-supplied provider profile: verifying the
provider's own token is left to the deployment in front of this service.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from raid_api.auth.gate import get_token_service, require_identity
from raid_api.auth.tokens import TokenIdentity, TokenService
from raid_api.db.session import get_db
from raid_api.domain.identities import get_identity, login
from raid_api.schemas import IdentityResponse, LoginRequest, LoginResponse

router = APIRouter(tags=["auth"])


@router.post("/auth/login", response_model=LoginResponse)
def login_endpoint(
    payload: LoginRequest,
    db: Session = Depends(get_db),
    tokens: TokenService = Depends(get_token_service),
) -> LoginResponse:
    """Upsert the identity and issue a bearer token."""
    result = login(
        db,
        tokens,
        external_id=payload.external_id,
        display_name=payload.display_name,
        picture_url=payload.picture_url,
    )
    return LoginResponse(
        token=result.token.token,
        identity_id=result.user.id,
        external_id=result.user.external_id,
        display_name=result.user.display_name,
        expires_at=result.token.expires_at,
    )


@router.get("/me", response_model=IdentityResponse)
def me(
    identity: TokenIdentity = Depends(require_identity),
    db: Session = Depends(get_db),
) -> IdentityResponse:
    """Return the identity behind the presented token."""
    user = get_identity(db, identity.identity_id)
    return IdentityResponse(
        identity_id=user.id,
        external_id=user.external_id,
        display_name=user.display_name,
        picture_url=user.picture_url,
    )
