import asyncio
import logging
from typing import Optional

import requests
from twilio.rest import Client
from twilio.http.http_client import TwilioHttpClient
from twilio.base.exceptions import TwilioException, TwilioRestException

from ...application.ports.otp_provider import OTPProvider, IssuedCode
from ...application.ports.session_repo import OtpProviderName, OtpSession
from ...application.services.provider_selector import ProviderConfig
from ...exceptions import UpstreamDeliveryError

logger = logging.getLogger(__name__)


class TwilioOTPProvider(OTPProvider):
    """Twilio Verify owns both code generation and checking.

    The verification SID returned on send becomes the session id.
    """
    name = OtpProviderName.TWILIO

    def __init__(self, config: ProviderConfig, client: Optional[Client] = None):
        self.client = client or Client(
            config.twilio_account_sid,
            config.twilio_auth_token,
            http_client=TwilioHttpClient(timeout=config.gateway_timeout_seconds),
        )
        self.verify_sid = config.twilio_verify_service_sid

    def _service(self):
        if not self.verify_sid:
            raise RuntimeError("Twilio Verify Service SID not configured")
        return self.client.verify.v2.services(self.verify_sid)

    def _start(self, phone: str):
        try:
            return self._service().verifications.create(to=phone, channel="sms")
        except TwilioRestException as e:
            logger.error(f"Twilio verify error: {e.code} {e.msg}")
            raise UpstreamDeliveryError(e.msg or "Failed to request verification code") from e
        except (TwilioException, requests.RequestException) as e:
            logger.error(f"Twilio verify unreachable: {e!r}")
            raise UpstreamDeliveryError("Failed to request verification code") from e

    def _check(self, verification_sid: str, code: str):
        try:
            return self._service().verification_checks.create(verification_sid=verification_sid, code=code)
        except TwilioRestException as e:
            logger.error(f"Twilio verify check error: {e.code} {e.msg}")
            raise UpstreamDeliveryError(e.msg or "Invalid verification code") from e
        except (TwilioException, requests.RequestException) as e:
            logger.error(f"Twilio verify check unreachable: {e!r}")
            raise UpstreamDeliveryError("Failed to check verification code") from e

    async def issue(self, phone: str) -> IssuedCode:
        verification = await asyncio.to_thread(self._start, phone)
        return IssuedCode(session_id=verification.sid)

    async def verify(self, session: OtpSession, code: str) -> None:
        check = await asyncio.to_thread(self._check, session.session_id, code)
        if check.status != "approved":
            logger.warning(f"Twilio verify check for {session.session_id} returned status {check.status}")
            raise UpstreamDeliveryError("Invalid verification code")
