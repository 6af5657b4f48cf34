import asyncio
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import aiohttp
import pytest
import requests
from twilio.base.exceptions import TwilioRestException

from app.application.ports.session_repo import OtpProviderName, OtpSession
from app.application.services.provider_selector import ProviderConfig
from app.exceptions import InvalidCodeError, UpstreamDeliveryError
from app.infrastructure.otp.local_code_provider import LocalCodeProvider
from app.infrastructure.otp.log_transport import LogSmsTransport
from app.infrastructure.otp.smsru_transport import SmsRuTransport
from app.infrastructure.otp.twilio_provider import TwilioOTPProvider


def make_session(session_id="s1", provider=OtpProviderName.MOCK, secret="123456"):
    now = datetime.now(timezone.utc)
    return OtpSession(
        session_id=session_id,
        phone="+79991234567",
        provider=provider,
        created_at=now,
        expires_at=now + timedelta(minutes=5),
        secret=secret,
    )


# ------------------------
# SMS.RU
# ------------------------
class FakeResponse:
    def __init__(self, payload, status=200):
        self.payload = payload
        self.status = status
        self.ok = status < 400

    async def json(self, content_type=None):
        return self.payload

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False


class FakeSession:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.posts = []

    def post(self, url, data=None):
        self.posts.append((url, data))
        if self.error:
            raise self.error
        return self.response

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False


def make_transport(session, sender=None):
    return SmsRuTransport(api_id="api-1", sender=sender, session_factory=lambda: session)


@pytest.mark.asyncio
async def test_smsru_sends_form_without_plus():
    session = FakeSession(FakeResponse({"status": "OK", "sms": {"79991234567": {"status": "OK"}}}))
    await make_transport(session, sender="Brand").send("+79991234567", "Code: 123456")

    url, form = session.posts[0]
    assert url == "https://sms.ru/sms/send"
    assert form == {"api_id": "api-1", "to": "79991234567", "msg": "Code: 123456", "json": "1", "from": "Brand"}


@pytest.mark.asyncio
async def test_smsru_top_level_error_uses_status_text():
    session = FakeSession(FakeResponse({"status": "ERROR", "status_text": "Invalid api_id"}))
    with pytest.raises(UpstreamDeliveryError) as exc:
        await make_transport(session).send("+79991234567", "x")
    assert exc.value.message == "Invalid api_id"


@pytest.mark.asyncio
async def test_smsru_per_number_error():
    session = FakeSession(FakeResponse({
        "status": "OK",
        "sms": {"79991234567": {"status": "ERROR", "status_text": "Number is blacklisted"}},
    }))
    with pytest.raises(UpstreamDeliveryError) as exc:
        await make_transport(session).send("+79991234567", "x")
    assert exc.value.message == "Number is blacklisted"


@pytest.mark.asyncio
async def test_smsru_http_and_network_errors():
    with pytest.raises(UpstreamDeliveryError):
        await make_transport(FakeSession(FakeResponse({}, status=502))).send("+79991234567", "x")
    with pytest.raises(UpstreamDeliveryError):
        await make_transport(FakeSession(error=aiohttp.ClientConnectionError("reset"))).send("+79991234567", "x")


@pytest.mark.asyncio
async def test_smsru_timeout_is_an_upstream_error():
    with pytest.raises(UpstreamDeliveryError) as exc:
        await make_transport(FakeSession(error=asyncio.TimeoutError())).send("+79991234567", "x")
    assert exc.value.message == "SMS.RU request failed"


@pytest.mark.asyncio
async def test_smsru_malformed_per_number_entry():
    session = FakeSession(FakeResponse({"status": "OK", "sms": {"79991234567": "ERROR"}}))
    with pytest.raises(UpstreamDeliveryError) as exc:
        await make_transport(session).send("+79991234567", "x")
    assert exc.value.message == "SMS was not delivered"


def test_smsru_requires_api_id():
    with pytest.raises(ValueError):
        SmsRuTransport(api_id="")


# ------------------------
# Local code provider
# ------------------------
@pytest.mark.asyncio
async def test_local_provider_issues_uuid_session_and_numeric_code():
    provider = LocalCodeProvider(OtpProviderName.MOCK, LogSmsTransport(), "Code: {code}")
    issued = await provider.issue("+79991234567")
    assert len(issued.session_id) == 36
    assert issued.secret.isdigit() and len(issued.secret) == 6


@pytest.mark.asyncio
async def test_local_provider_compares_exactly():
    provider = LocalCodeProvider(OtpProviderName.MOCK, LogSmsTransport())
    await provider.verify(make_session(secret="123456"), "123456")
    with pytest.raises(InvalidCodeError):
        await provider.verify(make_session(secret="123456"), "123457")
    with pytest.raises(InvalidCodeError):
        await provider.verify(make_session(secret=None), "123456")


# ------------------------
# Twilio Verify
# ------------------------
class FakeTwilioService:
    def __init__(self, check_status="approved", error=None):
        self.created = []
        self.checked = []
        self.check_status = check_status
        self.error = error
        self.verifications = SimpleNamespace(create=self._create)
        self.verification_checks = SimpleNamespace(create=self._check)

    def _create(self, to, channel):
        if self.error:
            raise self.error
        self.created.append((to, channel))
        return SimpleNamespace(sid="VE123", status="pending")

    def _check(self, verification_sid, code):
        if self.error:
            raise self.error
        self.checked.append((verification_sid, code))
        return SimpleNamespace(status=self.check_status)


def make_twilio(service):
    client = SimpleNamespace(verify=SimpleNamespace(v2=SimpleNamespace(services=lambda sid: service)))
    config = ProviderConfig(
        provider=OtpProviderName.TWILIO, brand="Support", ttl_seconds=300,
        twilio_account_sid="AC1", twilio_auth_token="tok", twilio_verify_service_sid="VA1",
    )
    return TwilioOTPProvider(config, client=client)


@pytest.mark.asyncio
async def test_twilio_issue_uses_verification_sid():
    service = FakeTwilioService()
    issued = await make_twilio(service).issue("+79991234567")
    assert issued.session_id == "VE123"
    assert issued.secret is None
    assert service.created == [("+79991234567", "sms")]


@pytest.mark.asyncio
async def test_twilio_verify_checks_by_sid():
    service = FakeTwilioService()
    await make_twilio(service).verify(make_session("VE123", OtpProviderName.TWILIO, None), "424242")
    assert service.checked == [("VE123", "424242")]


@pytest.mark.asyncio
async def test_twilio_rejections_become_upstream_errors():
    with pytest.raises(UpstreamDeliveryError):
        await make_twilio(FakeTwilioService(check_status="pending")).verify(
            make_session("VE123", OtpProviderName.TWILIO, None), "000000"
        )

    error = TwilioRestException(400, "https://verify.twilio.com", msg="Invalid parameter `To`", code=60200)
    with pytest.raises(UpstreamDeliveryError) as exc:
        await make_twilio(FakeTwilioService(error=error)).issue("+7")
    assert exc.value.message == "Invalid parameter `To`"


@pytest.mark.asyncio
async def test_twilio_network_failures_become_upstream_errors():
    session = make_session("VE123", OtpProviderName.TWILIO, None)

    with pytest.raises(UpstreamDeliveryError) as exc:
        await make_twilio(FakeTwilioService(error=requests.Timeout("read timed out"))).issue("+79991234567")
    assert exc.value.message == "Failed to request verification code"

    with pytest.raises(UpstreamDeliveryError) as exc:
        await make_twilio(FakeTwilioService(error=requests.ConnectionError("reset"))).verify(session, "424242")
    assert exc.value.message == "Failed to check verification code"
