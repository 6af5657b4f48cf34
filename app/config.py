#config.py
import os
from pydantic_settings import BaseSettings
from pydantic_settings import SettingsConfigDict
from typing import List
from functools import lru_cache

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")
    # Application Settings
    APP_NAME: str = "Phone OTP API"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    DOCS_ENABLED: bool = True

    # Server Settings
    HOST: str = "0.0.0.0"
    PORT: int = int(os.environ.get("OTP_SERVER_PORT", 4000))

    # Database Settings (empty disables the durable audit trail and identity provisioning)
    DATABASE_URL: str = "sqlite:///./otp_service.db"

    # CORS Settings (accept comma-separated strings to avoid JSON parsing in env)
    ALLOWED_ORIGINS: str = os.environ.get("CLIENT_ORIGIN", "*")

    # OTP Settings
    OTP_TTL_SECONDS: int = 5 * 60
    OTP_BRAND_NAME: str = "Поддержка++"
    OTP_REPORT_MAX_BYTES: int = 8 * 1024
    OTP_SMS_TEMPLATE: str = "Код подтверждения: {code}"

    # SMS.RU Settings
    SMSRU_API_ID: str = ""
    SMSRU_FROM: str = ""
    SMSRU_URL: str = "https://sms.ru/sms/send"
    SMSRU_TIMEOUT_SECONDS: float = 15

    # Twilio Settings
    TWILIO_ACCOUNT_SID: str = ""
    TWILIO_AUTH_TOKEN: str = ""
    TWILIO_VERIFY_SERVICE_SID: str = ""
    TWILIO_TIMEOUT_SECONDS: float = 15

    # Logging Settings
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    # Accept comma-separated strings for list envs in addition to JSON arrays
    def _split_csv(self, value: str) -> List[str]:
        if value is None:
            return []
        value = value.strip()
        if value == "":
            return []
        return [item.strip() for item in value.split(",")]

    @property
    def allowed_origins_list(self) -> List[str]:
        if self.ALLOWED_ORIGINS.strip() == "*":
            return ["*"]
        return self._split_csv(self.ALLOWED_ORIGINS)


@lru_cache()
def get_settings() -> Settings:
    return Settings()

settings: Settings = get_settings()
