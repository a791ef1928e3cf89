from functools import lru_cache
from pathlib import Path
from typing import Annotated, List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    app_name: str = Field(default="Huddle API", description="Human readable service name")
    environment: str = Field(default="development", description="Deployment environment name")
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Root log level")

    cors_origins: Annotated[List[str], NoDecode] = Field(
        default_factory=lambda: [
            "http://localhost",
            "http://localhost:3000",
            "http://localhost:5173",
            "http://127.0.0.1",
            "http://127.0.0.1:5173",
        ],
        description="List of allowed CORS origins",
    )
    cors_allow_origin_regex: str | None = Field(
        default=r"^https?://(localhost|127\.0\.0\.1|\[::1\])(:\d+)?$",
        description="Optional regular expression that matches allowed CORS origins",
    )

    database_url: str = Field(default="sqlite:///./huddle.db")

    jwt_secret_key: str = Field(default="changeme")
    jwt_algorithm: str = Field(default="HS256")
    access_token_expire_minutes: int = Field(default=7 * 24 * 60)

    token_revocation_url: str | None = Field(
        default=None,
        description="Redis URL for token revocation; in-process memory when unset",
    )

    chat_message_max_length: int = Field(default=2000)
    report_reason_max_length: int = Field(default=1000)

    websocket_path: str = Field(default="/ws")
    websocket_require_auth: bool = Field(
        default=True,
        description="Refuse realtime connections that do not present a valid token",
    )
    websocket_keepalive_timeout_seconds: float = Field(default=30.0)
    websocket_keepalive_ping_interval_seconds: float = Field(default=25.0)

    model_config = SettingsConfigDict(
        env_file=str(Path(__file__).resolve().parents[2] / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @field_validator("cors_origins", mode="before")
    @classmethod
    def assemble_cors_origins(cls, v):  # type: ignore[override]
        if v in (None, "", Ellipsis):
            return []
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        if isinstance(v, (list, tuple, set)):
            return list(v)
        return v

    @field_validator("websocket_path")
    @classmethod
    def ensure_leading_slash(cls, value: str) -> str:
        return value if value.startswith("/") else f"/{value}"


@lru_cache
def get_settings() -> Settings:
    return Settings()
