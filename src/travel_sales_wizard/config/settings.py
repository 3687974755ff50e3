from __future__ import annotations

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from travel_sales_wizard.config.paths import env_file_path

_UNSET = object()


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=str(env_file_path()),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    app_env: str = "dev"
    log_level: str = "INFO"

    # Back-office REST API
    api_base_url: str | None = Field(default=None, alias="SALES_API_URL")
    api_token: str | None = Field(default=None, alias="SALES_API_TOKEN")
    api_timeout_seconds: float = Field(default=120.0, gt=0, alias="SALES_API_TIMEOUT")

    # Wizard reference lists
    reference_refresh_seconds: float = Field(default=30.0, gt=0, alias="REFERENCE_REFRESH_SECONDS")
    search_limit: int = Field(default=50, ge=1, alias="SEARCH_LIMIT")

    @field_validator("log_level")
    @classmethod
    def _upper_level(cls, v: str) -> str:
        return v.strip().upper() or "INFO"


def require_api_base_url(value: object = _UNSET) -> str:
    """
    Returns the API base URL without a trailing slash.

    Pass `value` (even None) to check it instead of settings.api_base_url, so
    tests do not depend on a local .env file.
    """
    url = settings.api_base_url if value is _UNSET else value

    if not isinstance(url, str) or not url.strip():
        raise RuntimeError(
            "SALES_API_URL is not set. Add it to .env or export it before starting the wizard."
        )

    return url.strip().rstrip("/")


settings = Settings()
