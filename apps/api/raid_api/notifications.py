"""Fire-and-forget notification port.

The core announces raid and signup activity after the unit of work has
committed. Delivery (chat push, email, ...) belongs to whoever implements
Notifier; the core never waits on or inspects the outcome.

Sinks:
  LoggingNotifier   → structured log line per event (default)
  FailingNotifier   → always raises RuntimeError (test helper)

``dispatch`` is the only way the core calls a notifier: any exception from
the sink is logged and dropped, so a broken channel cannot undo or fail a
committed operation.
"""

import logging
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Callable, Optional, Protocol, TypeVar, runtime_checkable

logger = logging.getLogger(__name__)


# ── Events ────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class RaidCreated:
    raid_id: int
    raid_title: str
    subtitle: Optional[str]
    start_time: datetime
    creator_name: str


@dataclass(frozen=True)
class RaidCreatedWithSignup:
    raid_id: int
    raid_title: str
    subtitle: Optional[str]
    start_time: datetime
    creator_name: str
    character_name: str
    character_job: Optional[str]
    character_level: Optional[int]


@dataclass(frozen=True)
class SignupCreated:
    raid_id: int
    raid_title: str
    user_name: str
    character_name: str
    character_job: Optional[str]
    character_level: Optional[int]
    current_count: int
    max_count: int
    creator_name: str


@dataclass(frozen=True)
class SignupCancelled:
    raid_id: int
    raid_title: str
    user_name: str
    character_name: str
    current_count: int
    max_count: int
    creator_name: str


# ── Protocol ──────────────────────────────────────────────────────────────────

@runtime_checkable
class Notifier(Protocol):
    """Outbound announcements. Implementations may raise; callers never see it."""

    def raid_created(self, event: RaidCreated) -> None: ...

    def raid_created_with_signup(self, event: RaidCreatedWithSignup) -> None: ...

    def signup_created(self, event: SignupCreated) -> None: ...

    def signup_cancelled(self, event: SignupCancelled) -> None: ...


# ── Sinks ─────────────────────────────────────────────────────────────────────

class LoggingNotifier:
    """Writes each event as a structured log record."""

    def _log(self, name: str, event: object) -> None:
        logger.info(f"notify {name}", extra={"event": f"notify.{name}", "payload": asdict(event)})

    def raid_created(self, event: RaidCreated) -> None:
        self._log("raid_created", event)

    def raid_created_with_signup(self, event: RaidCreatedWithSignup) -> None:
        self._log("raid_created_with_signup", event)

    def signup_created(self, event: SignupCreated) -> None:
        self._log("signup_created", event)

    def signup_cancelled(self, event: SignupCancelled) -> None:
        self._log("signup_cancelled", event)


class FailingNotifier:
    """Always raises RuntimeError. Used in tests to simulate a broken channel."""

    def _fail(self, event: object) -> None:
        raise RuntimeError("FailingNotifier: intentional failure for testing")

    raid_created = _fail
    raid_created_with_signup = _fail
    signup_created = _fail
    signup_cancelled = _fail


# ── Dispatch ──────────────────────────────────────────────────────────────────

E = TypeVar("E")


def dispatch(send: Callable[[E], None], event: E) -> None:
    """Deliver one event, logging (never raising) on sink failure."""
    try:
        send(event)
    except Exception as e:
        logger.warning(
            f"Notification failed: {type(e).__name__}: {e}",
            extra={"event": "notify.failed", "notification": type(event).__name__},
            exc_info=True,
        )
