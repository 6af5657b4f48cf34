import asyncio
import logging
from typing import Any, Callable, Dict, Optional

import aiohttp

from ...application.ports.otp_provider import SmsTransport
from ...exceptions import UpstreamDeliveryError

logger = logging.getLogger(__name__)

SMSRU_SEND_URL = "https://sms.ru/sms/send"


class SmsRuTransport(SmsTransport):
    def __init__(
        self,
        api_id: str,
        sender: Optional[str] = None,
        url: str = SMSRU_SEND_URL,
        timeout_seconds: float = 15,
        session_factory: Optional[Callable[[], aiohttp.ClientSession]] = None,
    ):
        if not api_id:
            raise ValueError("SMS.RU is not configured")
        self.api_id = api_id
        self.sender = sender
        self.url = url
        self.timeout_seconds = timeout_seconds
        self._session_factory = session_factory or self._default_session

    def _default_session(self) -> aiohttp.ClientSession:
        return aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=self.timeout_seconds))

    async def send(self, phone: str, message: str) -> None:
        to = phone.lstrip("+")
        form = {
            "api_id": self.api_id,
            "to": to,
            "msg": message,
            "json": "1",
        }
        if self.sender:
            form["from"] = self.sender

        try:
            async with self._session_factory() as session:
                async with session.post(self.url, data=form) as response:
                    if not response.ok:
                        logger.error(f"SMS.RU HTTP error: {response.status}")
                        raise UpstreamDeliveryError("SMS.RU request failed")
                    payload = await response.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            logger.error(f"SMS.RU request error: {e!r}")
            raise UpstreamDeliveryError("SMS.RU request failed") from e

        self._check_payload(payload, to)
        logger.info(f"SMS.RU accepted message for {to[-4:].rjust(len(to), '*')}")

    @staticmethod
    def _check_payload(payload: Dict[str, Any], to: str) -> None:
        if not isinstance(payload, dict) or payload.get("status") != "OK":
            text = payload.get("status_text") if isinstance(payload, dict) else None
            raise UpstreamDeliveryError(text or "Failed to send SMS")

        sms = payload.get("sms")
        if not isinstance(sms, dict):
            sms = {}
        status = sms.get(to)
        if status is None and sms:
            status = next(iter(sms.values()))
        if status is None:
            return
        if not isinstance(status, dict):
            raise UpstreamDeliveryError("SMS was not delivered")
        if status.get("status") != "OK":
            raise UpstreamDeliveryError(status.get("status_text") or "SMS was not delivered")
