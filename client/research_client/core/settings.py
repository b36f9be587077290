"""Application configuration utilities."""

from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic import Field, HttpUrl
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Strongly typed settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        populate_by_name=True,
        extra="ignore",
    )

    app_name: str = Field(
        default="Research Run Client",
        description="Human-readable application name.",
    )
    environment: Literal["local", "staging", "production"] = Field(
        default="local",
        description="Deployment environment indicator used for logging.",
    )
    log_level: str = Field(
        default="INFO",
        validation_alias="LOG_LEVEL",
        description="Python logging level for the client.",
    )

    api_base_url: HttpUrl = Field(
        alias="RESEARCH_API_BASE_URL",
        default="http://localhost:8000",
        description="Base URL of the research backend serving the /api routes.",
    )
    stream_base_url: Optional[str] = Field(
        alias="RESEARCH_STREAM_BASE_URL",
        default=None,
        description="WebSocket base URL for run event streams; derived from the API URL when unset.",
    )
    request_timeout: float = Field(
        alias="RESEARCH_REQUEST_TIMEOUT",
        default=30.0,
        gt=0,
        description="Timeout in seconds for history and export requests; run submission and streams never time out.",
    )
    user_id: str = Field(
        alias="RESEARCH_USER_ID",
        default="anonymous",
        description="User identifier sent along with stream subscriptions.",
    )

    # Identity collaborator
    auth_audience: str = Field(
        alias="AUTH0_AUDIENCE",
        default="",
        description="Audience the bearer credential must be scoped to.",
    )
    auth_domain: str = Field(
        alias="AUTH0_DOMAIN",
        default="",
        description="Identity provider domain used for the client-credentials grant.",
    )
    auth_client_id: str = Field(alias="AUTH0_CLIENT_ID", default="")
    auth_client_secret: str = Field(alias="AUTH0_CLIENT_SECRET", default="")
    access_token: str = Field(
        alias="RESEARCH_ACCESS_TOKEN",
        default="",
        description="Pre-issued bearer token; takes precedence over the client-credentials grant.",
    )

    # Local run registry
    store_dir: Path = Field(
        alias="RESEARCH_STORE_DIR",
        default=Path.home() / ".research_client",
        description="Directory holding the persisted run registry.",
    )
    store_key: str = Field(
        alias="RESEARCH_STORE_KEY",
        default="ai_research_runs",
        description="Key under which the run registry is persisted.",
    )

    @property
    def api_base(self) -> str:
        return str(self.api_base_url).rstrip("/")

    @property
    def stream_base(self) -> str:
        if self.stream_base_url:
            return self.stream_base_url.rstrip("/")
        base = self.api_base
        if base.startswith("https://"):
            return "wss://" + base[len("https://"):]
        if base.startswith("http://"):
            return "ws://" + base[len("http://"):]
        return base


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached Settings instance to share across the client."""

    return Settings()
