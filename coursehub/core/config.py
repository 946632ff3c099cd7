# coursehub/core/config.py
import os
from pydantic_settings import BaseSettings
from pydantic_settings import SettingsConfigDict
from typing import Optional, List
from functools import lru_cache

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    # Application Settings
    APP_NAME: str = "CourseHub API"
    APP_VERSION: str = "1.0.0"
    ENV: str = "development"
    DEBUG: bool = False
    DOCS_ENABLED: bool = True

    # Server Settings
    HOST: str = "0.0.0.0"
    PORT: int = int(os.environ.get("PORT", 8000))
    API_PREFIX: str = "/api/v1/user"

    # Database Settings
    DATABASE_URL: str = "sqlite:///./coursehub.db"

    # Security Settings
    JWT_SECRET: Optional[str] = None
    JWT_ALGORITHM: str = "HS256"
    STANDARD_SESSION_DAYS: int = 7
    VERIFIED_SESSION_DAYS: int = 30
    SESSION_COOKIE_NAME: str = "token"
    BCRYPT_ROUNDS: int = 10

    # OTP Settings
    OTP_EXPIRY_MINUTES: int = 10
    OTP_LENGTH: int = 6
    PHONE_COUNTRY_CODE: str = "91"

    # Twilio Settings
    TWILIO_ACCOUNT_SID: str = ""
    TWILIO_AUTH_TOKEN: str = ""
    TWILIO_PHONE_NUMBER: str = ""
    TWILIO_TIMEOUT: int = 15

    # CORS Settings (comma-separated)
    ALLOWED_ORIGINS: str = "http://localhost:5173"

    # Logging Settings
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    def _split_csv(self, value: str) -> List[str]:
        if value is None:
            return []
        value = value.strip()
        if value == "":
            return []
        return [item.strip() for item in value.split(",")]

    @property
    def allowed_origins_list(self) -> List[str]:
        return self._split_csv(self.ALLOWED_ORIGINS)

    @property
    def is_production(self) -> bool:
        return self.ENV.lower() == "production"

    @property
    def twilio_configured(self) -> bool:
        return bool(self.TWILIO_ACCOUNT_SID and self.TWILIO_AUTH_TOKEN and self.TWILIO_PHONE_NUMBER)

@lru_cache()
def get_settings() -> Settings:
    return Settings()
