from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # reads .env and ignores variables we don't declare
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # external booking API (search + booking creation)
    BOOKING_API_BASE_URL: str = Field(default="http://localhost:5000")
    BOOKING_API_TOKEN: str = Field(default="")
    PROVIDERS: str = Field(default="dummy")  # dummy | http

    DEFAULT_CURRENCY: str = "USD"

    # timeouts (seconds) and debounce windows (milliseconds)
    SEARCH_TIMEOUT_SECONDS: float = 20.0
    SUBMIT_TIMEOUT_SECONDS: float = 30.0
    SEARCH_DEBOUNCE_MS: int = 800
    LOOKUP_DEBOUNCE_MS: int = 800

    SEARCH_CACHE_TTL: int = 120
    SESSION_TTL_SECONDS: int = 1800

    LOG_LEVEL: str = "INFO"
    ALLOWED_ORIGINS: List[str] = Field(
        default_factory=lambda: [
            "http://localhost:3000",
            "http://localhost:5173",
            "http://127.0.0.1:3000",
        ]
    )

    @property
    def search_debounce_seconds(self) -> float:
        return max(0, self.SEARCH_DEBOUNCE_MS) / 1000.0

    @property
    def lookup_debounce_seconds(self) -> float:
        return max(0, self.LOOKUP_DEBOUNCE_MS) / 1000.0


settings = Settings()
