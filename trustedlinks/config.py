# trustedlinks/config.py
import os
from pydantic_settings import BaseSettings
from pydantic import Field
from pydantic_settings import SettingsConfigDict
from typing import Optional, List
from functools import lru_cache

from .exceptions import ConfigurationError

DEFAULT_SECRET_KEY = "change-me-in-prod"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore", populate_by_name=True)

    # Application Settings
    APP_NAME: str = "Trusted Links API"
    APP_VERSION: str = "1.0.0"
    ENV: str = "development"
    DEBUG: bool = False
    DOCS_ENABLED: bool = True

    # Server Settings
    HOST: str = "0.0.0.0"
    PORT: int = int(os.environ.get("PORT", 5175))

    # Storage Settings
    DATABASE_URL: str = "sqlite:///./trustedlinks.db"
    REDIS_URL: Optional[str] = None
    BUSINESS_STORE_BACKEND: str = "sql"  # sql | json
    BUSINESS_JSON_PATH: str = "data.json"

    # Security Settings
    SECRET_KEY: str = Field(default=DEFAULT_SECRET_KEY, alias="JWT_SECRET_KEY")
    ALGORITHM: str = "HS256"
    PROOF_TOKEN_EXPIRE_MINUTES: int = 15

    # CORS Settings
    ALLOWED_ORIGINS: str = "*"

    # OTP Settings
    OTP_TTL_SECONDS: int = 300
    OTP_LENGTH: int = 6
    OTP_STORE_BACKEND: str = "sql"  # sql | redis | memory
    OTP_RATE_LIMIT: int = 3
    OTP_RATE_WINDOW_SECONDS: int = 600
    OTP_DEFAULT_PURPOSE: str = "business_signup"

    # Messaging Settings
    MESSAGING_PROVIDER: str = "whatsapp_cloud"  # whatsapp_cloud | twilio
    WHATSAPP_API_BASE_URL: str = "https://graph.facebook.com/v19.0"
    WHATSAPP_PHONE_ID: str = ""
    WHATSAPP_TOKEN: str = ""
    WHATSAPP_OTP_TEMPLATE: str = ""
    WHATSAPP_TIMEOUT_SECONDS: float = 15.0
    WHATSAPP_SIMULATED_SEND: bool = False

    # Twilio Settings
    TWILIO_ACCOUNT_SID: str = ""
    TWILIO_AUTH_TOKEN: str = ""
    TWILIO_WHATSAPP_FROM: str = ""

    # Business activation policy
    REQUIRE_META_VERIFICATION: bool = False
    META_SANDBOX_NUMBERS: str = ""

    # Logging Settings
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    def _split_csv(self, value: str) -> List[str]:
        if value is None:
            return []
        value = value.strip()
        if value == "":
            return []
        return [item.strip() for item in value.split(",") if item.strip()]

    @property
    def allowed_origins_list(self) -> List[str]:
        return self._split_csv(self.ALLOWED_ORIGINS)

    @property
    def meta_sandbox_numbers_list(self) -> List[str]:
        return ["".join(ch for ch in n if ch.isdigit()) for n in self._split_csv(self.META_SANDBOX_NUMBERS)]

    @property
    def is_production(self) -> bool:
        return self.ENV.lower() in ("production", "prod")

    @property
    def messaging_configured(self) -> bool:
        if self.MESSAGING_PROVIDER == "twilio":
            return bool(self.TWILIO_ACCOUNT_SID and self.TWILIO_AUTH_TOKEN and self.TWILIO_WHATSAPP_FROM)
        return bool(self.WHATSAPP_TOKEN and self.WHATSAPP_PHONE_ID)


def validate_settings(s: Settings) -> None:
    """Fail fast on configurations the OTP flow cannot run with."""
    if s.MESSAGING_PROVIDER not in ("whatsapp_cloud", "twilio"):
        raise ConfigurationError(f"Unknown MESSAGING_PROVIDER: {s.MESSAGING_PROVIDER}")
    if s.WHATSAPP_SIMULATED_SEND and s.is_production:
        raise ConfigurationError("WHATSAPP_SIMULATED_SEND cannot be enabled in production")
    if s.is_production and s.SECRET_KEY == DEFAULT_SECRET_KEY:
        raise ConfigurationError("JWT_SECRET_KEY must be set in production")
    if not s.messaging_configured and not s.WHATSAPP_SIMULATED_SEND:
        raise ConfigurationError(
            f"Messaging provider '{s.MESSAGING_PROVIDER}' has no credentials and simulated send is disabled"
        )
    if not 4 <= s.OTP_LENGTH <= 10:
        raise ConfigurationError("OTP_LENGTH must be between 4 and 10")
    if s.OTP_TTL_SECONDS <= 0:
        raise ConfigurationError("OTP_TTL_SECONDS must be positive")
    if s.OTP_STORE_BACKEND not in ("sql", "redis", "memory"):
        raise ConfigurationError(f"Unknown OTP_STORE_BACKEND: {s.OTP_STORE_BACKEND}")
    if s.OTP_STORE_BACKEND == "redis" and not s.REDIS_URL:
        raise ConfigurationError("OTP_STORE_BACKEND=redis requires REDIS_URL")
    if s.BUSINESS_STORE_BACKEND not in ("sql", "json"):
        raise ConfigurationError(f"Unknown BUSINESS_STORE_BACKEND: {s.BUSINESS_STORE_BACKEND}")


@lru_cache()
def get_settings() -> Settings:
    return Settings()


settings: Settings = get_settings()
