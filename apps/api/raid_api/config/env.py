"""Environment variable resolution utilities.

Canonical env names + fail-fast validation. Every lookup lives here so the
rest of the package never reads os.environ directly.
"""

import os
from typing import Optional

DEV_DATABASE_URL = "sqlite:///./data/raid.db"

# Development-only signing secret. Never accepted in production.
DEV_JWT_SECRET = "raid-signup-local-development-secret-do-not-deploy"

DEFAULT_TOKEN_TTL_SECONDS = 86400  # 24 hours
MIN_PROD_SECRET_BYTES = 32


def get_raid_env() -> str:
    """Get environment name.

    Returns:
        Environment name (lowercase), "local" when RAID_ENV is unset
    """
    return (os.getenv("RAID_ENV") or "local").lower()


def is_production_env() -> bool:
    """Determine if running in production (RAID_ENV in {"prod", "production"})."""
    return get_raid_env() in {"prod", "production"}


def get_database_url() -> str:
    """Get database URL from environment.

    Production fail-fast: DATABASE_URL is mandatory in prod/production.
    Development/CI: falls back to a local SQLite file.

    Raises:
        RuntimeError: If DATABASE_URL is missing in production
    """
    url = os.getenv("DATABASE_URL")
    if url:
        return url

    if is_production_env():
        raise RuntimeError(
            "DATABASE_URL environment variable is required in production (RAID_ENV=prod/production). "
            "Check deployment configuration and secrets injection."
        )
    return DEV_DATABASE_URL


def get_jwt_secret() -> str:
    """Get the token signing secret.

    Raises:
        RuntimeError: If JWT_SECRET is missing or too short in production
    """
    secret = os.getenv("JWT_SECRET")

    if is_production_env():
        if not secret:
            raise RuntimeError(
                "JWT_SECRET is required in production. "
                "Generate with: python -c 'import secrets; print(secrets.token_urlsafe(48))'"
            )
        if len(secret.encode("utf-8")) < MIN_PROD_SECRET_BYTES:
            raise RuntimeError(
                f"JWT_SECRET must be at least {MIN_PROD_SECRET_BYTES} bytes in production."
            )
        return secret

    return secret or DEV_JWT_SECRET


def get_token_ttl_seconds() -> int:
    """Get token lifetime in seconds (TOKEN_TTL_SECONDS, default 24h).

    Raises:
        ValueError: If the value is not a positive integer
    """
    raw = os.getenv("TOKEN_TTL_SECONDS")
    if not raw:
        return DEFAULT_TOKEN_TTL_SECONDS

    try:
        ttl = int(raw)
    except ValueError as e:
        raise ValueError(f"TOKEN_TTL_SECONDS must be an integer, got {raw!r}") from e

    if ttl <= 0:
        raise ValueError(f"TOKEN_TTL_SECONDS must be positive, got {ttl}")
    return ttl


def get_log_level() -> str:
    return os.getenv("LOG_LEVEL", "INFO").upper()


def json_logs_enabled() -> bool:
    """Set RAID_JSON_LOGS=false to disable (defaults to true)."""
    return os.getenv("RAID_JSON_LOGS", "true").lower() != "false"


def get_cors_origins() -> list[str]:
    """Get CORS allowlist.

    Production: explicit allowlist (comma-separated CORS_ALLOWED_ORIGINS).
    Dev fallback: localhost variants.
    """
    raw: Optional[str] = os.getenv("CORS_ALLOWED_ORIGINS", "")
    if raw:
        return [origin.strip() for origin in raw.split(",") if origin.strip()]

    return [
        "http://localhost:3000",
        "http://localhost:5173",
        "http://127.0.0.1:3000",
        "http://127.0.0.1:5173",
    ]


def get_db_pool_mode() -> str:
    """Get pool mode for the engine builder: "queuepool" (default) | "nullpool"."""
    return os.getenv("RAID_DB_POOL", "queuepool").lower()
