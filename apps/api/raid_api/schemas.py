"""Pydantic schemas for API requests/responses.

Wire format is camelCase (``createdByName``, ``isDefault``); Python
attributes stay snake_case.
"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ApiModel(BaseModel):
    """Base model: camelCase aliases, population by field name, ORM reads."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


# ============================================================================
# POST /auth/login, GET /me
# ============================================================================


class LoginRequest(ApiModel):
    """Request body for POST /auth/login."""

    external_id: str = Field(..., min_length=1, description="Identity-provider user id")
    display_name: str = Field(..., min_length=1, description="Display name from the provider profile")
    picture_url: Optional[str] = Field(None, description="Avatar URL")


class LoginResponse(ApiModel):
    """Issued token plus the identity it names."""

    token: str
    token_type: str = "Bearer"
    identity_id: int
    external_id: str
    display_name: str
    expires_at: datetime


class IdentityResponse(ApiModel):
    """Response for GET /me."""

    identity_id: int
    external_id: str
    display_name: str
    picture_url: Optional[str] = None


# ============================================================================
# /me/characters
# ============================================================================


class CharacterCreateRequest(ApiModel):
    """Request body for POST /me/characters.

    name/level rules are enforced by the domain so violations come back as
    400 with a stable code, not as 422.
    """

    name: Optional[str] = None
    job: Optional[str] = None
    level: Optional[int] = None
    is_default: bool = False


class CharacterUpdateRequest(ApiModel):
    """Request body for PUT /me/characters/{id}. Omitted fields are unchanged."""

    name: Optional[str] = None
    job: Optional[str] = None
    level: Optional[int] = None
    is_default: Optional[bool] = None


class CharacterResponse(ApiModel):
    id: int
    user_id: int
    name: str
    job: Optional[str] = None
    level: Optional[int] = None
    is_default: bool
    created_at: datetime
    updated_at: datetime


# ============================================================================
# /raids
# ============================================================================


class RaidCreateRequest(ApiModel):
    """Request body for POST /raids.

    Naive startTime values are read as UTC.
    """

    title: Optional[str] = None
    subtitle: Optional[str] = None
    boss: Optional[str] = None
    start_time: datetime
    character_id: Optional[int] = Field(None, description="Creator character to sign up right away")


class RaidResponse(ApiModel):
    id: int
    title: str
    subtitle: Optional[str] = None
    boss: Optional[str] = None
    start_time: datetime
    created_by: int
    created_by_name: Optional[str] = None
    created_at: datetime


class SignupRequest(ApiModel):
    """Request body for POST /raids/{id}/signup."""

    character_id: int


class SignupResponse(ApiModel):
    """Signup with character and owner details."""

    id: int
    raid_id: int
    character_id: int
    character_name: str
    character_job: Optional[str] = None
    character_level: Optional[int] = None
    user_id: int
    user_display_name: str
    user_picture_url: Optional[str] = None
    status: str
    created_at: datetime


class RaidCreateResponse(RaidResponse):
    """Created raid; signup is null when no creator signup was confirmed."""

    signup: Optional[SignupResponse] = None


# ============================================================================
# Errors
# ============================================================================


class ProblemDetail(BaseModel):
    """RFC 9457 Problem Details for HTTP API errors.

    ``code`` is the machine-readable extension member clients branch on.
    RFC 9457: detail can be either a string or a structured object (dict).
    """

    type: str = Field(..., description="URI reference identifying the problem type")
    title: str = Field(..., description="Short, human-readable summary")
    status: int = Field(..., description="HTTP status code")
    detail: str | dict[str, Any] = Field(..., description="Human-readable explanation or structured error details")
    instance: Optional[str] = Field(None, description="URI reference identifying the specific occurrence")
    code: Optional[str] = Field(None, description="Stable machine-readable error code")
    errors: Optional[list[dict[str, Any]]] = Field(None, description="Field errors (request validation only)")
