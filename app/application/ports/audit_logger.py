from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol

from .session_repo import OtpSession, OtpStatus


class AuditLogger(Protocol):
    def record(self, session: OtpSession) -> None:
        ...

    def update_status(self, session_id: str, status: OtpStatus, verified_at: Optional[datetime] = None) -> None:
        ...

    def list_recent(self, limit: int) -> List[Dict[str, Any]]:
        ...
