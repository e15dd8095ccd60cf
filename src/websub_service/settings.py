"""Application settings."""
from __future__ import annotations

from functools import lru_cache
from typing import Literal, cast

from pydantic import AnyHttpUrl, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Core configuration for the WebSub subscriber service."""

    model_config = SettingsConfigDict(env_file=(".env", "env.example"), env_file_encoding="utf-8")

    env: Literal["development", "staging", "production"] = "development"
    app_name: str = "websub-service"
    host: str = "0.0.0.0"
    port: int = 8004
    log_level: str = "INFO"

    hub_url: AnyHttpUrl = Field(
        default=cast(AnyHttpUrl, "https://api.twitch.tv/helix/webhooks/hub")
    )
    hub_request_timeout_seconds: float = 10.0

    oauth2_token_url: AnyHttpUrl = Field(
        default=cast(AnyHttpUrl, "https://id.twitch.tv/oauth2/token")
    )
    oauth2_client_id: str = ""
    oauth2_client_secret: str = ""

    # Public URL the hub calls back; must route to ``callback_path``
    callback_base_url: AnyHttpUrl = Field(
        default=cast(AnyHttpUrl, "http://localhost:8004/webhooks/callbacks")
    )
    callback_path: str = "/webhooks/callbacks"

    default_lease_seconds: int = 864000  # 10 days, the hub maximum
    secret_bytes: int = 64
    accept_unsigned_notifications: bool = False
    rearm_on_confirmed_lease: bool = False

    @model_validator(mode="after")
    def _normalize_callback_path(self) -> "Settings":
        path = "/" + self.callback_path.strip("/")
        self.callback_path = path
        return self


@lru_cache
def get_settings() -> Settings:
    """Cached settings instance."""
    return Settings()


settings = get_settings()
