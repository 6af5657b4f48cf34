from dataclasses import dataclass

from ..ports.session_repo import OtpProviderName
from ...config import Settings


@dataclass(frozen=True)
class ProviderConfig:
    """Delivery configuration decided once at startup and injected where needed."""
    provider: OtpProviderName
    brand: str
    ttl_seconds: int
    sms_template: str = "{code}"
    smsru_api_id: str = ""
    smsru_from: str = ""
    smsru_url: str = "https://sms.ru/sms/send"
    twilio_account_sid: str = ""
    twilio_auth_token: str = ""
    twilio_verify_service_sid: str = ""
    gateway_timeout_seconds: float = 15

    @property
    def is_mock(self) -> bool:
        return self.provider is OtpProviderName.MOCK


def select_provider(settings: Settings) -> ProviderConfig:
    """SMS.RU wins over Twilio Verify; with neither configured codes are mocked."""
    twilio_configured = bool(
        settings.TWILIO_ACCOUNT_SID and settings.TWILIO_AUTH_TOKEN and settings.TWILIO_VERIFY_SERVICE_SID
    )
    if settings.SMSRU_API_ID:
        provider = OtpProviderName.SMSRU
        timeout = settings.SMSRU_TIMEOUT_SECONDS
    elif twilio_configured:
        provider = OtpProviderName.TWILIO
        timeout = settings.TWILIO_TIMEOUT_SECONDS
    else:
        provider = OtpProviderName.MOCK
        timeout = 0

    return ProviderConfig(
        provider=provider,
        brand=settings.OTP_BRAND_NAME,
        ttl_seconds=settings.OTP_TTL_SECONDS,
        sms_template=settings.OTP_SMS_TEMPLATE,
        smsru_api_id=settings.SMSRU_API_ID,
        smsru_from=settings.SMSRU_FROM,
        smsru_url=settings.SMSRU_URL,
        twilio_account_sid=settings.TWILIO_ACCOUNT_SID,
        twilio_auth_token=settings.TWILIO_AUTH_TOKEN,
        twilio_verify_service_sid=settings.TWILIO_VERIFY_SERVICE_SID,
        gateway_timeout_seconds=timeout,
    )
