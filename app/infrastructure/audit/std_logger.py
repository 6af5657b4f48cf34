import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from ...application.ports.audit_logger import AuditLogger
from ...application.ports.session_repo import OtpSession, OtpStatus
from ...exceptions import PersistenceError
from ...utils import hash_phone_number


class StdAuditLogger(AuditLogger):
    """Audit sink used when no database is configured: lifecycle goes to the log only."""

    def __init__(self) -> None:
        self._logger = logging.getLogger(__name__)

    def _emit(self, action: str, request_id: str, details: Dict[str, Any], phone: Optional[str] = None) -> None:
        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "action": action,
            "phone_hash": hash_phone_number(phone) if phone else None,
            "request_id": request_id,
            "details": details,
        }
        self._logger.info(f"AUDIT: {json.dumps(entry, default=str)}")

    def record(self, session: OtpSession) -> None:
        self._emit(
            "otp_requested",
            session.session_id,
            {"provider": session.provider.value, "status": session.status.value, "expires_at": session.expires_at},
            phone=session.phone,
        )

    def update_status(self, session_id: str, status: OtpStatus, verified_at: Optional[datetime] = None) -> None:
        self._emit(f"otp_{status.value}", session_id, {"verified_at": verified_at})

    def list_recent(self, limit: int) -> List[Dict[str, Any]]:
        raise PersistenceError("Durable audit store is not configured")
