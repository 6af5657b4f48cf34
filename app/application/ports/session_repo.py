from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Protocol


class OtpProviderName(str, Enum):
    TWILIO = "twilio"
    SMSRU = "smsru"
    MOCK = "mock"

    @property
    def is_self_managed(self) -> bool:
        return self is not OtpProviderName.TWILIO


class OtpStatus(str, Enum):
    PENDING = "pending"
    VERIFIED = "verified"
    EXPIRED = "expired"


@dataclass(frozen=True)
class OtpSession:
    session_id: str
    phone: str
    provider: OtpProviderName
    created_at: datetime
    expires_at: datetime
    secret: Optional[str] = None
    status: OtpStatus = OtpStatus.PENDING
    verified_at: Optional[datetime] = None
    qr_payload: Optional[str] = None
    qr_image: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at


class SessionStore(Protocol):
    def put(self, session_id: str, session: OtpSession) -> None:
        ...

    def get(self, session_id: str) -> Optional[OtpSession]:
        ...

    def delete(self, session_id: str) -> None:
        ...
