"""Stateless signed identity tokens (HS256 JWT).

A token carries (identity_id, external_id, issued_at, expires_at). Validity is
signature + expiry only: no database round trip, no revocation list.

Claims:
    sub          identity id, as a decimal string
    external_id  identity-provider id
    iat, exp     issue / expiry instants (epoch seconds)
"""

import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import jwt
from jwt.exceptions import ExpiredSignatureError, InvalidSignatureError, InvalidTokenError

from raid_api.config.settings import AuthSettings
from raid_api.errors import AuthError, AuthFailure

_DIGITS = re.compile(r"[0-9]+")


@dataclass(frozen=True)
class TokenIdentity:
    """Identity resolved from a valid token."""

    identity_id: int
    external_id: str


@dataclass(frozen=True)
class IssuedToken:
    token: str
    issued_at: datetime
    expires_at: datetime


def coerce_identity_id(value: Any) -> int:
    """Normalize the identity id claim to an int.

    Accepted representations:
    - int (bool excluded)
    - str of ASCII decimal digits, surrounding whitespace tolerated

    Raises:
        AuthError: token_malformed for anything else
    """
    if isinstance(value, bool):
        raise AuthError(AuthFailure.MALFORMED, "Token identity is not an integer")

    if isinstance(value, int):
        return value

    if isinstance(value, str):
        stripped = value.strip()
        if _DIGITS.fullmatch(stripped):
            return int(stripped)

    raise AuthError(AuthFailure.MALFORMED, "Token identity is not an integer")


class TokenService:
    """Issues and validates identity tokens with the process-wide signing secret."""

    def __init__(self, settings: AuthSettings):
        self._settings = settings

    @property
    def default_ttl(self) -> timedelta:
        return self._settings.token_ttl

    def issue(
        self,
        identity_id: int,
        external_id: str,
        ttl: Optional[timedelta] = None,
        now: Optional[datetime] = None,
    ) -> IssuedToken:
        """Sign a token for an identity.

        Args:
            identity_id: Numeric identity id
            external_id: Identity-provider id
            ttl: Lifetime (defaults to the configured TTL)
            now: Issue instant (defaults to current UTC time)

        Returns:
            IssuedToken with the compact token and its instants

        Raises:
            ValueError: If ttl is not positive
        """
        ttl = ttl if ttl is not None else self._settings.token_ttl
        if ttl <= timedelta(0):
            raise ValueError(f"Token ttl must be positive, got {ttl}")

        now = now or datetime.now(timezone.utc)
        issued_at = now.replace(microsecond=0)
        expires_at = now + ttl
        if expires_at.microsecond:
            # exp is whole epoch seconds; round up so the token lives at least ttl
            expires_at = expires_at.replace(microsecond=0) + timedelta(seconds=1)

        payload = {
            "sub": str(identity_id),
            "external_id": external_id,
            "iat": int(issued_at.timestamp()),
            "exp": int(expires_at.timestamp()),
        }
        token = jwt.encode(payload, self._settings.jwt_secret, algorithm=self._settings.algorithm)
        return IssuedToken(token=token, issued_at=issued_at, expires_at=expires_at)

    def validate(self, token: str) -> TokenIdentity:
        """Verify signature and expiry, then extract the identity.

        Raises:
            AuthError: token_invalid_signature, token_expired or token_malformed
        """
        try:
            claims = jwt.decode(
                token,
                self._settings.jwt_secret,
                algorithms=[self._settings.algorithm],
                options={"require": ["exp", "sub"], "verify_sub": False},
            )
        except ExpiredSignatureError:
            raise AuthError(AuthFailure.EXPIRED)
        except InvalidSignatureError:
            # Subclass of DecodeError, so it must be caught first
            raise AuthError(AuthFailure.INVALID_SIGNATURE)
        except InvalidTokenError:
            raise AuthError(AuthFailure.MALFORMED)

        identity_id = coerce_identity_id(claims.get("sub"))

        external_id = claims.get("external_id")
        if not isinstance(external_id, str) or not external_id:
            raise AuthError(AuthFailure.MALFORMED, "Token is missing external_id")

        return TokenIdentity(identity_id=identity_id, external_id=external_id)
