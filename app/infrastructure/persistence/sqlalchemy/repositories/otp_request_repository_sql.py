from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from .....db.models import OtpRequestRecord
from .....application.ports.audit_logger import AuditLogger
from .....application.ports.session_repo import OtpSession, OtpStatus
from .....exceptions import PersistenceError


class SqlOtpRequestRepository(AuditLogger):
    """Durable mirror of OTP session lifecycle in the ``otp_requests`` table."""

    def __init__(self, engine: Engine):
        self.engine = engine

    def _to_dict(self, rec: OtpRequestRecord) -> Dict[str, Any]:
        return {
            "request_id": rec.request_id,
            "phone": rec.phone,
            "provider": rec.provider,
            "status": rec.status,
            "qr_payload": rec.qr_payload,
            "qr_data_url": rec.qr_data_url,
            "created_at": rec.created_at,
            "expires_at": rec.expires_at,
            "verified_at": rec.verified_at,
            "metadata": rec.meta or {},
        }

    def record(self, session: OtpSession) -> None:
        rec = OtpRequestRecord(
            request_id=session.session_id,
            phone=session.phone,
            provider=session.provider.value,
            status=session.status.value,
            code=session.secret,
            qr_payload=session.qr_payload,
            qr_data_url=session.qr_image,
            expires_at=session.expires_at,
            verified_at=session.verified_at,
            created_at=session.created_at,
            meta=dict(session.metadata),
        )
        try:
            with Session(self.engine) as db:
                db.merge(rec)
                db.commit()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to store OTP request: {e}") from e

    def update_status(self, session_id: str, status: OtpStatus, verified_at: Optional[datetime] = None) -> None:
        try:
            with Session(self.engine) as db:
                rec = db.get(OtpRequestRecord, session_id)
                if not rec:
                    return
                rec.status = status.value
                if verified_at is not None:
                    rec.verified_at = verified_at
                db.add(rec)
                db.commit()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to update OTP request: {e}") from e

    def list_recent(self, limit: int) -> List[Dict[str, Any]]:
        try:
            with Session(self.engine) as db:
                rows = db.exec(
                    select(OtpRequestRecord)
                    .order_by(OtpRequestRecord.created_at.desc())
                    .limit(limit)
                ).all()
                return [self._to_dict(r) for r in rows]
        except SQLAlchemyError as e:
            raise PersistenceError() from e
