import asyncio
import json
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional

from ..ports.otp_provider import OTPProvider
from ..ports.qr_renderer import QRRenderer
from ..ports.session_repo import OtpSession, OtpStatus, SessionStore
from .audit_dispatcher import AuditDispatcher
from .identity_service import IdentityService, ProvisionedIdentity
from .provider_selector import ProviderConfig
from ...exceptions import (
    ClientInputError,
    PersistenceError,
    SessionExpiredError,
    SessionNotFoundError,
)
from ...utils import normalize_phone_to_e164

logger = logging.getLogger(__name__)

DEFAULT_LIST_LIMIT = 50
MAX_LIST_LIMIT = 200


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _iso(ts: datetime) -> str:
    return ts.isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass(frozen=True)
class OtpRequestResult:
    session: OtpSession
    expires_in_seconds: int
    mock: bool
    mock_code: Optional[str] = None


@dataclass(frozen=True)
class OtpVerifyResult:
    session: OtpSession
    identity: Optional[ProvisionedIdentity] = None

    @property
    def phone(self) -> str:
        return self.session.phone


def sanitize_limit(limit: Any) -> int:
    try:
        value = int(limit)
    except (TypeError, ValueError):
        value = 0
    if value == 0:
        value = DEFAULT_LIST_LIMIT
    return max(1, min(value, MAX_LIST_LIMIT))


class _SessionLock:
    def __init__(self) -> None:
        self.lock = asyncio.Lock()
        self.holders = 0


@dataclass
class OTPService:
    config: ProviderConfig
    otp_provider: OTPProvider
    session_store: SessionStore
    audit: AuditDispatcher
    identity_service: Optional[IdentityService] = None
    qr_renderer: Optional[QRRenderer] = None
    report_max_bytes: int = 8 * 1024
    clock: Callable[[], datetime] = field(default=_utcnow)
    _verify_locks: Dict[str, _SessionLock] = field(default_factory=dict, init=False, repr=False)

    # ------------------------
    # Request
    # ------------------------
    def _check_report(self, report: Any) -> Optional[Dict[str, Any]]:
        if report is None:
            return None
        if not isinstance(report, dict):
            raise ClientInputError("report must be a JSON object")
        size = len(json.dumps(report, ensure_ascii=False).encode("utf-8"))
        if size > self.report_max_bytes:
            raise ClientInputError(f"report is too large (max {self.report_max_bytes} bytes)")
        return report

    def build_qr_payload(self, session_id: str, phone: str, generated_at: datetime, report: Optional[Dict[str, Any]] = None) -> str:
        payload = {
            "sessionId": session_id,
            "phone": phone,
            "provider": self.config.provider.value,
            "brand": self.config.brand,
            "generatedAt": _iso(generated_at),
        }
        if report is not None:
            payload["report"] = report
        return json.dumps(payload, ensure_ascii=False, separators=(",", ":"))

    def _render_qr(self, payload: str) -> Optional[str]:
        if self.qr_renderer is None:
            return None
        try:
            return self.qr_renderer.render(payload)
        except Exception:
            logger.exception("QR code generation error")
            return None

    async def request_otp(self, phone: Any, report: Any = None) -> OtpRequestResult:
        if not phone:
            raise ClientInputError("phone is required")
        normalized = normalize_phone_to_e164(phone)
        if not normalized:
            raise ClientInputError("invalid phone number")
        report = self._check_report(report)

        issued = await self.otp_provider.issue(normalized)

        created_at = self.clock()
        expires_at = created_at + timedelta(seconds=self.config.ttl_seconds)
        qr_payload = self.build_qr_payload(issued.session_id, normalized, created_at, report)
        qr_image = self._render_qr(qr_payload)

        metadata: Dict[str, Any] = {"provider": self.config.provider.value, "brand": self.config.brand}
        if report is not None:
            metadata["report"] = report

        session = OtpSession(
            session_id=issued.session_id,
            phone=normalized,
            provider=self.config.provider,
            created_at=created_at,
            expires_at=expires_at,
            secret=issued.secret if self.config.provider.is_self_managed else None,
            qr_payload=qr_payload,
            qr_image=qr_image,
            metadata=metadata,
        )
        self.session_store.put(session.session_id, session)
        self.audit.created(session)
        logger.info(f"OTP session {session.session_id} issued via {session.provider.value}")

        return OtpRequestResult(
            session=session,
            expires_in_seconds=self.config.ttl_seconds,
            mock=self.config.is_mock,
            mock_code=session.secret if self.config.is_mock else None,
        )

    # ------------------------
    # Verify
    # ------------------------
    @asynccontextmanager
    async def _session_lock(self, session_id: str):
        """Serialize verifiers of one session; the entry is dropped when nobody holds or awaits it."""
        entry = self._verify_locks.get(session_id)
        if entry is None:
            entry = self._verify_locks[session_id] = _SessionLock()
        entry.holders += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.holders -= 1
            if entry.holders == 0:
                self._verify_locks.pop(session_id, None)

    async def verify_otp(self, session_id: Any, code: Any) -> OtpVerifyResult:
        if not session_id or not code:
            raise ClientInputError("requestId and code are required")
        session_id = str(session_id)
        code = str(code)

        # Verifiers of the same id queue here; the session stays in the store
        # until a terminal transition, so waiting callers see it or its absence.
        async with self._session_lock(session_id):
            session = self.session_store.get(session_id)
            if session is None:
                raise SessionNotFoundError()

            if session.is_expired(self.clock()):
                self.session_store.delete(session_id)
                self.audit.expired(session_id)
                logger.info(f"OTP session {session_id} expired")
                raise SessionExpiredError()

            # raises on a wrong code; the session stays verifiable until expiry
            await self.otp_provider.verify(session, code)

            self.session_store.delete(session_id)
            verified_at = self.clock()
            verified = replace(session, status=OtpStatus.VERIFIED, verified_at=verified_at)
            self.audit.verified(session_id, verified_at)
            logger.info(f"OTP session {session_id} verified")

        identity = await self._ensure_identity(verified.phone)
        return OtpVerifyResult(session=verified, identity=identity)

    async def _ensure_identity(self, phone: str) -> Optional[ProvisionedIdentity]:
        if self.identity_service is None:
            return None
        try:
            return await asyncio.to_thread(self.identity_service.ensure, phone)
        except Exception as e:
            # the code is already accepted; a missing identity is reported as null
            logger.exception(f"Identity ensure error: {e}")
            return None

    # ------------------------
    # History
    # ------------------------
    async def list_recent(self, limit: Any = DEFAULT_LIST_LIMIT) -> List[Dict[str, Any]]:
        try:
            return await self.audit.list_recent(sanitize_limit(limit))
        except PersistenceError as e:
            logger.error(f"Load OTP requests error: {e.__cause__ or e.message}")
            raise
