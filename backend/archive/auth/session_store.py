"""Bearer-token sessions for signed-in members.

Tokens only exist in process memory, so a restart signs everyone out.
Each session carries its own deadline; a periodic sweep evicts stale ones
and subscribers hear about every sign-in and sign-out, expiry included.
"""
from __future__ import annotations

import asyncio
import logging
import secrets
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from .schemas import Session, SessionEvent

logger = logging.getLogger(__name__)

SessionListener = Callable[[SessionEvent], None]


@dataclass
class _StoredSession:
    session:    Session
    stored_at:  float = field(default_factory=time.monotonic)
    expires_at: float = 0.0   # absolute monotonic deadline

    def is_expired(self) -> bool:
        return time.monotonic() >= self.expires_at


class SessionStore:
    """asyncio-safe in-memory store of sessions keyed by token."""

    def __init__(self, default_ttl_seconds: int = 7 * 24 * 3600) -> None:
        self._store: Dict[str, _StoredSession] = {}
        self._lock  = asyncio.Lock()
        self._default_ttl = default_ttl_seconds
        self._listeners: List[SessionListener] = []
        self._sweep_task: Optional[asyncio.Task] = None  # type: ignore[type-arg]

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Start background sweep task."""
        self._sweep_task = asyncio.create_task(self._sweep_loop())
        logger.info("SessionStore sweep task started (TTL=%ss)", self._default_ttl)

    async def stop(self) -> None:
        """Cancel sweep task and drop all sessions."""
        if self._sweep_task:
            self._sweep_task.cancel()
            try:
                await self._sweep_task
            except asyncio.CancelledError:
                pass
            self._sweep_task = None
        async with self._lock:
            self._store.clear()
        logger.info("SessionStore stopped; all sessions dropped.")

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        """Register *listener* for session changes; returns an unsubscribe callable."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _publish(self, kind: str, session: Session) -> None:
        event = SessionEvent(kind=kind, session=session)
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as exc:  # pylint: disable=broad-except
                logger.error("Session listener failed on %s: %s", kind, exc)

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------

    async def open(
        self,
        user_id: str,
        email: str,
        display_name: str = "",
        client_id: str = "default",
        ttl_seconds: Optional[int] = None,
    ) -> Session:
        """Create a session for a freshly authenticated user."""
        session = Session(
            token=secrets.token_urlsafe(32),
            user_id=user_id,
            email=email,
            display_name=display_name,
            client_id=client_id,
        )
        ttl = ttl_seconds if ttl_seconds is not None else self._default_ttl
        async with self._lock:
            self._store[session.token] = _StoredSession(
                session=session,
                expires_at=time.monotonic() + ttl,
            )
        logger.debug("Session opened for user %s (TTL=%ss)", user_id, ttl)
        self._publish("signed_in", session)
        return session

    async def get(self, token: str) -> Optional[Session]:
        """Return the session if present and not expired, else *None*."""
        async with self._lock:
            entry = self._store.get(token)
        if entry is None:
            return None
        if entry.is_expired():
            await self.close(token)
            logger.warning("Session for user %s expired", entry.session.user_id)
            return None
        return entry.session

    async def close(self, token: str) -> Optional[Session]:
        """Remove the session for *token* (no-op if absent)."""
        async with self._lock:
            entry = self._store.pop(token, None)
        if entry is None:
            return None
        logger.debug("Session closed for user %s", entry.session.user_id)
        self._publish("signed_out", entry.session)
        return entry.session

    # ------------------------------------------------------------------
    # Background sweep
    # ------------------------------------------------------------------

    async def _sweep_loop(self) -> None:
        sweep_interval = max(60, self._default_ttl // 4)
        while True:
            await asyncio.sleep(sweep_interval)
            await self._sweep_once()

    async def _sweep_once(self) -> None:
        """Evict all expired entries."""
        now = time.monotonic()
        async with self._lock:
            expired = [k for k, v in self._store.items() if now >= v.expires_at]
            evicted = [self._store.pop(k).session for k in expired]
        for session in evicted:
            self._publish("signed_out", session)
        if evicted:
            logger.info("SessionStore sweep: evicted %d expired sessions", len(evicted))
