import threading
from typing import Dict, Optional

from ...application.ports.session_repo import OtpSession, SessionStore


class InMemorySessionStore(SessionStore):
    """Process-local map of pending OTP sessions.

    Entries are not swept; expiry is detected when a session is next touched.
    """

    def __init__(self) -> None:
        self._store: Dict[str, OtpSession] = {}
        self._lock = threading.Lock()

    def put(self, session_id: str, session: OtpSession) -> None:
        with self._lock:
            self._store[session_id] = session

    def get(self, session_id: str) -> Optional[OtpSession]:
        with self._lock:
            return self._store.get(session_id)

    def delete(self, session_id: str) -> None:
        with self._lock:
            self._store.pop(session_id, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._store)
