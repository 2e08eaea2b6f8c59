"""
Session Manager - Creates, finds and reclaims game sessions.

LIFECYCLE:
1. A player hosts → a session is created (in-memory only)
2. Players join, reconnect and play through the session engine
3. When nobody is connected and nothing has happened for the idle
   timeout, the periodic sweep reclaims the session

PERSISTENCE RULES:
- NO database; a process restart loses every session
- A session with any connected participant is never reclaimed

LOCKING:
- Each session has its own ReadWriteLock
- Mutations on one session are serialized; different sessions never
  wait on each other
"""

from __future__ import annotations
from dataclasses import dataclass, field
import asyncio
import logging
import random
import time
import uuid

from .engine import SessionEngine
from .locks import ReadWriteLock

logger = logging.getLogger(__name__)

DEFAULT_IDLE_SECONDS = 300


@dataclass
class Session:
    """
    An ephemeral game session.

    Contains:
    - The session engine (game state, roster, chat)
    - The session's lock
    - Timestamps for idle reclamation
    """
    session_id: str
    engine: SessionEngine
    created_at: float
    last_activity: float
    lock: ReadWriteLock = field(default_factory=ReadWriteLock)

    def touch(self, now: float | None = None) -> None:
        """Record progress; resets the idle clock."""
        self.last_activity = time.time() if now is None else now

    def is_active(self) -> bool:
        """Any participant currently connected."""
        return self.engine.has_connections

    def is_idle(self, max_idle_seconds: float, now: float | None = None) -> bool:
        now = time.time() if now is None else now
        return not self.is_active() and now - self.last_activity > max_idle_seconds


class SessionManager:
    """
    Registry of sessions keyed by session id.

    Constructed once by the application and passed to whoever needs it.
    """

    def __init__(self, rng: random.Random | None = None):
        self._sessions: dict[str, Session] = {}
        self._rng = rng

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._sessions

    def create_session(self) -> Session:
        """Create a new empty session in the lobby phase."""
        session_id = str(uuid.uuid4())
        rng = random.Random(self._rng.random()) if self._rng else None
        now = time.time()
        session = Session(
            session_id=session_id,
            engine=SessionEngine(session_id, rng=rng),
            created_at=now,
            last_activity=now,
        )
        self._sessions[session_id] = session
        logger.info("[%s] session created", session_id)
        return session

    def get_session(self, session_id: str | None) -> Session | None:
        """Get a session by ID."""
        if session_id is None:
            return None
        return self._sessions.get(session_id)

    def end_session(self, session_id: str, reason: str = "completed") -> bool:
        """Remove a session from memory."""
        session = self._sessions.pop(session_id, None)
        if session is None:
            return False
        logger.info("[%s] session ended (%s)", session_id, reason)
        return True

    def list_sessions(self) -> list[str]:
        return list(self._sessions)

    def list_active_sessions(self) -> list[str]:
        """IDs of sessions with at least one connected participant."""
        return [
            sid for sid, session in self._sessions.items()
            if session.is_active()
        ]

    def cleanup_stale_sessions(
        self,
        max_idle_seconds: float = DEFAULT_IDLE_SECONDS,
        now: float | None = None,
    ) -> list[str]:
        """
        Reclaim sessions idle for longer than max_idle_seconds.

        Returns the reclaimed session ids.
        """
        now = time.time() if now is None else now
        stale = [
            sid for sid, session in self._sessions.items()
            if session.is_idle(max_idle_seconds, now)
        ]
        for session_id in stale:
            self.end_session(session_id, reason="idle")
        return stale

    async def sweep_forever(
        self,
        interval_seconds: float,
        max_idle_seconds: float = DEFAULT_IDLE_SECONDS,
    ) -> None:
        """Periodically reclaim idle sessions. Runs until cancelled."""
        while True:
            await asyncio.sleep(interval_seconds)
            reclaimed = self.cleanup_stale_sessions(max_idle_seconds)
            if reclaimed:
                logger.info("reclaimed %d idle session(s)", len(reclaimed))
