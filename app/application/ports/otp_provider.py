from dataclasses import dataclass
from typing import Optional, Protocol

from .session_repo import OtpProviderName, OtpSession


@dataclass(frozen=True)
class IssuedCode:
    session_id: str
    secret: Optional[str] = None


class OTPProvider(Protocol):
    name: OtpProviderName

    async def issue(self, phone: str) -> IssuedCode:
        ...

    async def verify(self, session: OtpSession, code: str) -> None:
        ...


class SmsTransport(Protocol):
    async def send(self, phone: str, message: str) -> None:
        ...
