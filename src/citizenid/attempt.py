"""Per-attempt authentication context.

Every authentication attempt gets its own ``AuthAttempt``: it carries the
CSRF state, the PKCE verifier and, once the code is exchanged, the captured
id_token that profile loading consumes. Attempts are passed explicitly from
the exchange step to the profile step, so a single strategy instance can
serve overlapping attempts.

Pending attempts wait in an ``AttemptStore`` between the redirect and the
callback; they are consumed exactly once.
"""

from __future__ import annotations

import logging
import secrets
import threading
import time
from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

from citizenid.models import AttemptStatus

logger = logging.getLogger(__name__)

ATTEMPT_TTL_SECONDS = 600


def _new_attempt_id() -> str:
    return secrets.token_urlsafe(24)


@dataclass(slots=True)
class AuthAttempt:
    """Mutable state of one in-flight authentication attempt.

    Attributes:
        attempt_id: Store key; equals ``state`` when state is enabled.
        state: CSRF state sent with the redirect, None when disabled.
        code_verifier: PKCE verifier, None when PKCE is disabled.
        nonce: Nonce sent with the redirect, if any.
        created_at: Creation time (epoch seconds).
        status: PENDING until the code exchange finishes.
        id_token: id_token captured from the token response.
        diagnostics: Non-fatal events recorded during the attempt.
    """

    attempt_id: str = field(default_factory=_new_attempt_id)
    state: str | None = None
    code_verifier: str | None = None
    nonce: str | None = None
    created_at: float = field(default_factory=time.time)
    status: AttemptStatus = AttemptStatus.PENDING
    id_token: str | None = None
    diagnostics: list[str] = field(default_factory=list)

    @property
    def completed(self) -> bool:
        """Return True once the code exchange has finished."""
        return self.status is AttemptStatus.COMPLETED

    def complete(self, id_token: str | None = None) -> None:
        """Mark the exchange finished, keeping the id_token when one was issued."""
        self.status = AttemptStatus.COMPLETED
        if id_token:
            self.id_token = id_token

    def record(self, message: str) -> None:
        """Record a diagnostic event for this attempt."""
        self.diagnostics.append(message)

    def age(self, now: float | None = None) -> float:
        """Return the attempt age in seconds."""
        return (now if now is not None else time.time()) - self.created_at


@runtime_checkable
class AttemptStore(Protocol):
    """Storage for attempts waiting for their callback."""

    def save(self, attempt: AuthAttempt) -> None:
        """Store a pending attempt under its ``attempt_id``."""
        ...

    def pop(self, attempt_id: str) -> AuthAttempt | None:
        """Remove and return the attempt, or None if unknown or expired."""
        ...


class MemoryAttemptStore:
    """Thread-safe in-memory attempt store.

    Args:
        max_age: Seconds after which a pending attempt is discarded.

    Examples:
        >>> store = MemoryAttemptStore()
        >>> attempt = AuthAttempt(attempt_id="abc")
        >>> store.save(attempt)
        >>> store.pop("abc") is attempt
        True
        >>> store.pop("abc") is None
        True
    """

    def __init__(self, max_age: float = ATTEMPT_TTL_SECONDS) -> None:
        self._max_age = max_age
        self._attempts: dict[str, AuthAttempt] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._attempts)

    def save(self, attempt: AuthAttempt) -> None:
        with self._lock:
            self._purge_expired()
            self._attempts[attempt.attempt_id] = attempt

    def pop(self, attempt_id: str) -> AuthAttempt | None:
        with self._lock:
            attempt = self._attempts.pop(attempt_id, None)

        if attempt is None:
            return None
        if attempt.age() > self._max_age:
            logger.debug("Discarding expired attempt %s", attempt_id[:8])
            return None
        return attempt

    def _purge_expired(self) -> None:
        """Drop expired attempts; caller holds the lock."""
        now = time.time()
        expired = [key for key, a in self._attempts.items() if a.age(now) > self._max_age]
        for key in expired:
            del self._attempts[key]
        if expired:
            logger.debug("Purged %d expired attempt(s)", len(expired))


__all__ = [
    "ATTEMPT_TTL_SECONDS",
    "AttemptStore",
    "AuthAttempt",
    "MemoryAttemptStore",
]
