# backend/booking_workflow/services/registry.py
from __future__ import annotations

import logging
import time
from typing import Any, Callable, Dict, Optional

from ..core.config import settings
from .session import WorkflowSession

logger = logging.getLogger(__name__)


class SessionRegistry:
    """
    Process-local map session_id -> WorkflowSession with an idle TTL.

    Expired sessions are cancelled (their searches aborted) when evicted.
    Eviction runs lazily on create()/get().
    """

    def __init__(
        self,
        ttl_seconds: Optional[float] = None,
        factory: Optional[Callable[..., WorkflowSession]] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_seconds = settings.SESSION_TTL_SECONDS if ttl_seconds is None else ttl_seconds
        self._factory = factory or WorkflowSession
        self._clock = clock
        self._sessions: Dict[str, WorkflowSession] = {}
        self._seen: Dict[str, float] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    def create(self, **kwargs: Any) -> WorkflowSession:
        self.evict_expired()
        session = self._factory(**kwargs)
        self._sessions[session.id] = session
        self._seen[session.id] = self._clock()
        logger.info("[sessions] created %s (%d live)", session.id[:8], len(self._sessions))
        return session

    def get(self, session_id: str) -> Optional[WorkflowSession]:
        self.evict_expired()
        session = self._sessions.get(session_id)
        if session is None:
            return None
        if session.closed:
            # submitted or cancelled: nothing left to serve
            self._drop(session_id)
            return None
        self._seen[session_id] = self._clock()
        session.touch()
        return session

    def discard(self, session_id: str) -> bool:
        session = self._sessions.get(session_id)
        if session is None:
            return False
        session.cancel()
        self._drop(session_id)
        return True

    def evict_expired(self) -> int:
        if self.ttl_seconds <= 0:
            return 0
        now = self._clock()
        expired = [sid for sid, seen in self._seen.items() if now - seen > self.ttl_seconds]
        for sid in expired:
            logger.info("[sessions] %s idle for more than %ss, evicting", sid[:8], self.ttl_seconds)
            self.discard(sid)
        return len(expired)

    def clear(self) -> None:
        for sid in list(self._sessions):
            self.discard(sid)

    def _drop(self, session_id: str) -> None:
        self._sessions.pop(session_id, None)
        self._seen.pop(session_id, None)


registry = SessionRegistry()
