import logging

from ...application.ports.otp_provider import SmsTransport

logger = logging.getLogger(__name__)


class LogSmsTransport(SmsTransport):
    """Mock delivery: the message only goes to the log."""

    async def send(self, phone: str, message: str) -> None:
        logger.info(f"[OTP MOCK] {phone} -> {message}")
