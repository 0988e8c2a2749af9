from typing import List, Optional

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load environment variables from .env file
load_dotenv()


class Settings(BaseSettings):
    APP_NAME: str = Field("release-orchestrator", alias="APP_NAME")

    # Record store (PostgREST-compatible)
    RECORD_STORE_URL: Optional[str] = Field(None, alias="RECORD_STORE_URL")
    RECORD_STORE_ANON_KEY: Optional[str] = Field(None, alias="RECORD_STORE_ANON_KEY")
    RECORD_STORE_SERVICE_KEY: Optional[str] = Field(None, alias="RECORD_STORE_SERVICE_KEY")

    # Outbound email
    EMAIL_API_KEY: Optional[str] = Field(None, alias="EMAIL_API_KEY")
    EMAIL_API_URL: str = Field("https://api.resend.com/emails", alias="EMAIL_API_URL")
    ALERT_EMAIL_FROM: str = Field("alerts@example.com", alias="ALERT_EMAIL_FROM")
    ALERT_EMAIL_TO: str = Field("admin@example.com", alias="ALERT_EMAIL_TO")

    # CI/CD executor - checked lazily when a dispatch actually runs
    EXECUTOR_ACCESS_TOKEN: Optional[str] = Field(None, alias="EXECUTOR_ACCESS_TOKEN")
    EXECUTOR_REPO_OWNER: Optional[str] = Field(None, alias="EXECUTOR_REPO_OWNER")
    EXECUTOR_REPO_NAME: Optional[str] = Field(None, alias="EXECUTOR_REPO_NAME")
    EXECUTOR_API_URL: str = Field("https://api.github.com", alias="EXECUTOR_API_URL")
    EXECUTOR_EVENT_TYPE: str = Field("trigger-deployment", alias="EXECUTOR_EVENT_TYPE")

    # Monitoring and validation
    MONITOR_POLL_INTERVAL_SECONDS: float = Field(10.0, alias="MONITOR_POLL_INTERVAL_SECONDS")
    DEFAULT_HEALTH_CHECK_TIMEOUT_MS: int = Field(300_000, alias="DEFAULT_HEALTH_CHECK_TIMEOUT_MS")
    PERFORMANCE_BASELINE_THRESHOLD: float = Field(80.0, alias="PERFORMANCE_BASELINE_THRESHOLD")

    HTTP_TIMEOUT_SECONDS: float = Field(30.0, alias="HTTP_TIMEOUT_SECONDS")
    ALLOWED_CORS_ORIGINS: str = Field("*", alias="ALLOWED_CORS_ORIGINS")
    LOG_LEVEL: str = Field("INFO", alias="LOG_LEVEL")

    # Keys the validate action requires to be present
    REQUIRED_CONFIG_KEYS: List[str] = [
        "RECORD_STORE_URL",
        "RECORD_STORE_ANON_KEY",
        "EMAIL_API_KEY",
    ]

    model_config = SettingsConfigDict(env_file=".env", populate_by_name=True, extra="ignore")

    @property
    def cors_origins_list(self) -> list[str]:
        if self.ALLOWED_CORS_ORIGINS == "*":
            return ["*"]
        return [origin.strip() for origin in self.ALLOWED_CORS_ORIGINS.split(",")]

    @property
    def alert_recipients(self) -> list[str]:
        return [address.strip() for address in self.ALERT_EMAIL_TO.split(",") if address.strip()]

    @property
    def store_api_key(self) -> Optional[str]:
        """Service key when available, anon key otherwise."""
        return self.RECORD_STORE_SERVICE_KEY or self.RECORD_STORE_ANON_KEY

    def missing_config(self, keys: Optional[List[str]] = None) -> List[str]:
        """Return the names of required keys that are unset or empty."""
        return [key for key in (keys or self.REQUIRED_CONFIG_KEYS) if not getattr(self, key, None)]


settings = Settings()
