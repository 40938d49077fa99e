"""Process-wide immutable settings.

AuthSettings is resolved once at startup and handed to TokenService.
There is no runtime mutation path: the dataclass is frozen and the loader
is cached for the lifetime of the process.
"""

from dataclasses import dataclass
from datetime import timedelta
from functools import lru_cache

from raid_api.config.env import get_jwt_secret, get_token_ttl_seconds


@dataclass(frozen=True)
class AuthSettings:
    """Token signing configuration."""

    jwt_secret: str
    token_ttl: timedelta
    algorithm: str = "HS256"

    def __repr__(self) -> str:
        # Keep the secret out of logs and tracebacks.
        return f"AuthSettings(jwt_secret='***', token_ttl={self.token_ttl!r}, algorithm={self.algorithm!r})"


@lru_cache(maxsize=1)
def get_auth_settings() -> AuthSettings:
    """Load AuthSettings from the environment (once per process)."""
    return AuthSettings(
        jwt_secret=get_jwt_secret(),
        token_ttl=timedelta(seconds=get_token_ttl_seconds()),
    )
