import hmac
import uuid

from ...application.ports.otp_provider import OTPProvider, IssuedCode, SmsTransport
from ...application.ports.session_repo import OtpProviderName, OtpSession
from ...exceptions import InvalidCodeError
from ...utils import generate_otp


class LocalCodeProvider(OTPProvider):
    """Generates the code in-process and hands it to an SMS transport."""

    def __init__(self, name: OtpProviderName, transport: SmsTransport, message_template: str = "{code}"):
        self.name = name
        self.transport = transport
        self.message_template = message_template

    async def issue(self, phone: str) -> IssuedCode:
        session_id = str(uuid.uuid4())
        code = generate_otp()
        await self.transport.send(phone, self.message_template.format(code=code))
        return IssuedCode(session_id=session_id, secret=code)

    async def verify(self, session: OtpSession, code: str) -> None:
        if not session.secret or not hmac.compare_digest(session.secret.encode(), str(code).encode()):
            raise InvalidCodeError()
