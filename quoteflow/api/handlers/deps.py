from __future__ import annotations

from dataclasses import dataclass, field
import logging

from quoteflow.clients.local_memory import InMemoryLocalMemory
from quoteflow.domain.contracts import Geocoder, LeadRepository
from quoteflow.domain.controller import Clock, SubmissionController, system_clock_ms
from quoteflow.settings import DEFAULT_MAX_SESSIONS, DEFAULT_SESSION_TTL_MS, FormSettings

logger = logging.getLogger("runtime")


@dataclass
class FormSession:
    session_id: str
    device_id: str
    controller: SubmissionController
    last_seen_ms: int = 0


@dataclass
class SessionRegistry:
    """Open form sessions, least recently used first.

    Sessions idle for longer than ``idle_ttl_ms`` are dropped on the next
    access, and opening a session beyond ``max_sessions`` drops the least
    recently used one.
    """

    idle_ttl_ms: int = DEFAULT_SESSION_TTL_MS
    max_sessions: int = DEFAULT_MAX_SESSIONS
    sessions: dict[str, FormSession] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self.sessions

    def add(self, session: FormSession, *, now_ms: int) -> None:
        self.sweep(now_ms=now_ms)
        while len(self.sessions) >= self.max_sessions:
            oldest = next(iter(self.sessions))
            self._evict(oldest, reason="capacity")
        session.last_seen_ms = now_ms
        self.sessions[session.session_id] = session

    def get(self, session_id: str, *, now_ms: int) -> FormSession | None:
        self.sweep(now_ms=now_ms)
        session = self.sessions.pop(session_id, None)
        if session is None:
            return None
        session.last_seen_ms = now_ms
        self.sessions[session_id] = session
        return session

    def sweep(self, *, now_ms: int) -> int:
        evicted = 0
        while self.sessions:
            session_id, session = next(iter(self.sessions.items()))
            if now_ms - session.last_seen_ms <= self.idle_ttl_ms:
                break
            self._evict(session_id, reason="idle")
            evicted += 1
        return evicted

    def _evict(self, session_id: str, *, reason: str) -> None:
        session = self.sessions.pop(session_id)
        logger.info(
            "form session evicted: %s",
            reason,
            extra={"session_id": session_id, "business_id": session.controller.business_id},
        )


@dataclass(frozen=True)
class ApiDeps:
    repository: LeadRepository
    geocoder: Geocoder
    local_memory: InMemoryLocalMemory
    settings: FormSettings
    sessions: SessionRegistry = field(default_factory=SessionRegistry)
    clock: Clock = system_clock_ms
