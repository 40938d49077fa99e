"""Per-request authentication gate.

The gate runs once per request (see the middleware in main.py), before any
route code:

- no Authorization header, or one without the "Bearer " prefix: request
  proceeds unauthenticated
- bearer token present and valid: identity attached to request.state
- bearer token present and invalid: request rejected with 401

Whether an endpoint needs an identity is decided by its route via the
``require_identity`` dependency, not by the gate.
"""

import logging
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from raid_api.auth.tokens import TokenIdentity, TokenService
from raid_api.errors import AuthError, AuthFailure

logger = logging.getLogger(__name__)

BEARER_PREFIX = "Bearer "

# OpenAPI docs only; extraction is done by the gate itself
bearer_scheme = HTTPBearer(auto_error=False, description="Signed identity token (Bearer)")


class AuthenticationGate:
    """Resolves the caller identity from a raw Authorization header."""

    def __init__(self, token_service: TokenService):
        self._tokens = token_service

    def resolve(self, raw_header: Optional[str]) -> Optional[TokenIdentity]:
        """Resolve identity from the header value.

        Args:
            raw_header: Authorization header value, or None when absent

        Returns:
            TokenIdentity, or None when no bearer token was supplied

        Raises:
            AuthError: If a bearer token is present but fails validation
        """
        if not raw_header or not raw_header.startswith(BEARER_PREFIX):
            return None

        token = raw_header[len(BEARER_PREFIX):].strip()
        if not token:
            return None

        return self._tokens.validate(token)


def get_token_service(request: Request) -> TokenService:
    return request.app.state.token_service


def get_optional_identity(request: Request) -> Optional[TokenIdentity]:
    """Identity attached by the gate for this request, if any."""
    return getattr(request.state, "identity", None)


def require_identity(
    identity: Optional[TokenIdentity] = Depends(get_optional_identity),
    _credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> TokenIdentity:
    """Route dependency for endpoints that need an authenticated caller.

    Raises:
        AuthError: token_missing when the gate resolved no identity
    """
    if identity is None:
        raise AuthError(AuthFailure.MISSING)
    return identity
