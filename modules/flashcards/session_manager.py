import os
import threading
import time
import uuid
from typing import Optional, Dict, Any, Tuple

from modules.kana import CatalogProvider
from modules.progress import AccuracyStore
from modules.utils import get_logger, log_session_event

from .session import FlashcardSession

LOG = get_logger()

SESSION_TTL_SECONDS = int(os.getenv('SESSION_TTL_SECONDS', '3600'))
SESSION_MAX_PER_USER = int(os.getenv('SESSION_MAX_PER_USER', '10'))


class SessionNotFound(Exception):
    pass


class SessionManager:
    """Registry of live practice sessions for the HTTP layer.

    Sessions hold locks and random state, so they live in process memory
    only. Each entry is owned by one user; lookups by any other user behave
    as if the session did not exist. Idle sessions expire after
    ``SESSION_TTL_SECONDS`` and a user keeps at most ``SESSION_MAX_PER_USER``.
    """

    _instance = None
    _lock = threading.Lock()

    def __init__(self, ttl_seconds: Optional[int] = None, max_per_user: Optional[int] = None):
        self.ttl = ttl_seconds if ttl_seconds is not None else SESSION_TTL_SECONDS
        self.max_per_user = max_per_user if max_per_user is not None else SESSION_MAX_PER_USER
        self._sessions: Dict[str, Dict[str, Any]] = {}
        self._guard = threading.Lock()

    @classmethod
    def get_instance(cls) -> 'SessionManager':
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = SessionManager()
        return cls._instance

    def create_session(self, user_id: str, accuracy_store: AccuracyStore, catalog_provider: CatalogProvider, kana_type: Any = None, interaction_mode: Any = 'typing', rng=None) -> Tuple[str, FlashcardSession]:
        session = FlashcardSession(user_id, accuracy_store, catalog_provider, kana_type=kana_type, interaction_mode=interaction_mode, rng=rng)
        session_id = uuid.uuid4().hex
        now = time.time()
        with self._guard:
            self._purge_locked(now)
            owned = sorted(((e['last_seen'], sid) for sid, e in self._sessions.items() if e['user_id'] == user_id), key=lambda item: item[0])
            while owned and len(owned) >= self.max_per_user:
                _, oldest = owned.pop(0)
                self._sessions.pop(oldest, None)
                log_session_event(oldest, 'evicted', user_id=user_id)
            self._sessions[session_id] = {'session': session, 'user_id': user_id, 'created_at': now, 'last_seen': now}
        log_session_event(session_id, 'created', user_id=user_id, kana_type=session.kana_type.value if session.kana_type else 'all', interaction_mode=session.state.interaction_mode.value)
        return session_id, session

    def get_session(self, session_id: str, user_id: Optional[str]) -> FlashcardSession:
        now = time.time()
        with self._guard:
            self._purge_locked(now)
            entry = self._sessions.get(session_id)
            if entry is None or entry['user_id'] != user_id:
                raise SessionNotFound(f'session {session_id} not found')
            entry['last_seen'] = now
            return entry['session']

    def discard(self, session_id: str, user_id: Optional[str] = None) -> bool:
        with self._guard:
            entry = self._sessions.get(session_id)
            if entry is None or (user_id is not None and entry['user_id'] != user_id):
                return False
            del self._sessions[session_id]
        log_session_event(session_id, 'discarded', user_id=entry['user_id'])
        return True

    def purge_expired(self, now: Optional[float] = None) -> int:
        with self._guard:
            return self._purge_locked(now if now is not None else time.time())

    def _purge_locked(self, now: float) -> int:
        expired = [sid for sid, e in self._sessions.items() if now - e['last_seen'] > self.ttl]
        for sid in expired:
            entry = self._sessions.pop(sid)
            log_session_event(sid, 'expired', user_id=entry['user_id'])
        return len(expired)

    def count(self) -> int:
        with self._guard:
            return len(self._sessions)
