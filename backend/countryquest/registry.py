import logging
import time
from typing import Dict, Optional

from countryquest.models import Session

logger = logging.getLogger(__name__)


class SessionRegistry:
    """In-memory map of live sessions plus the connection -> session index."""

    def __init__(self, retention_sec: float = 1800):
        self.retention_sec = retention_sec
        self._sessions: Dict[str, Session] = {}
        self._sid_to_session: Dict[str, str] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._sessions

    def get(self, session_id: str) -> Optional[Session]:
        return self._sessions.get(session_id)

    def get_or_create(self, session_id: str, now: float = None) -> Session:
        session = self._sessions.get(session_id)
        if session is None:
            session = Session(session_id, now=now)
            self._sessions[session_id] = session
            logger.info(f"[session-create] session={session_id}")
        return session

    def session_for(self, sid: str) -> Optional[Session]:
        session_id = self._sid_to_session.get(sid)
        return self._sessions.get(session_id) if session_id else None

    def bind(self, sid: str, session: Session) -> None:
        self._sid_to_session[sid] = session.session_id

    def unbind(self, sid: str) -> None:
        self._sid_to_session.pop(sid, None)

    def remove(self, session_id: str) -> Optional[Session]:
        session = self._sessions.pop(session_id, None)
        if session is None:
            return None
        session.stop()
        for sid in session.occupants:
            self._sid_to_session.pop(sid, None)
        logger.info(f"[session-delete] session={session_id}")
        return session

    def sweep(self, now: float = None) -> int:
        """Delete empty sessions older than the retention window."""
        now = time.time() if now is None else now
        stale = [
            sid for sid, session in self._sessions.items()
            if session.is_empty and now - session.created_at > self.retention_sec
        ]
        for session_id in stale:
            self.remove(session_id)
        if stale:
            logger.info(f"[sweep] removed={len(stale)} remaining={len(self._sessions)}")
        return len(stale)

    def clear(self) -> None:
        for session_id in list(self._sessions):
            self.remove(session_id)
        self._sid_to_session.clear()
