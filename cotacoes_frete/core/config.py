import os
from pathlib import Path
from typing import Annotated, Any, List, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=(".env.production", ".env"),
        case_sensitive=False,
        extra="allow",
    )

    port: int = int(os.getenv("PORT", 5000))
    api_prefix: str = "/api"

    # Database
    database_url: Optional[str] = None
    postgres_host: Optional[str] = None
    postgres_port: Optional[int] = None
    postgres_user: Optional[str] = None
    postgres_password: Optional[str] = None
    postgres_db: Optional[str] = None
    postgres_ssl: Optional[bool] = True
    cloud_sql_connection_name: Optional[str] = None

    # Cache (optional)
    redis_url: Optional[str] = None
    cache_ttl: int = 300
    cache_key_prefix: str = "cotacoes_"

    # Firebase
    auth_required: bool = True
    fb_project_id: Optional[str] = None
    fb_client_email: Optional[str] = None
    fb_private_key: Optional[str] = None

    # CORS
    cors_origins: Annotated[List[str], NoDecode] = ["*"]

    @field_validator("cors_origins", mode="before")
    @classmethod
    def _split_origins(cls, value: Any) -> Any:
        """Accept CORS origins as a comma-separated string."""
        if isinstance(value, str):
            return [v.strip() for v in value.split(",") if v.strip()]
        return value

    def build_db_url(self) -> Optional[str]:
        if self.database_url:
            return self.database_url

        if not self.postgres_db:
            return None

        user = self.postgres_user or ""
        password = self.postgres_password or ""

        # Cloud SQL with Unix socket
        if self.cloud_sql_connection_name:
            host_path = f"/cloudsql/{self.cloud_sql_connection_name}"
            return f"postgresql://{user}:{password}@/{self.postgres_db}?host={host_path}"

        host = self.postgres_host or "127.0.0.1"
        port = self.postgres_port or 5432
        return f"postgresql://{user}:{password}@{host}:{port}/{self.postgres_db}"


class ClientSettings(BaseSettings):
    """Settings for the sync client that sits behind a front end."""

    model_config = SettingsConfigDict(
        env_prefix="COTACOES_",
        env_file=(".env.production", ".env"),
        case_sensitive=False,
        extra="ignore",
    )

    api_url: str = "http://127.0.0.1:5000/api/cotacoes"
    health_url: Optional[str] = None
    poll_interval: float = 3.0
    probe_interval: float = 15.0
    request_timeout: float = 10.0
    local_cache_path: Path = Path.home() / ".cotacoes_frete" / "cotacoes.json"
    # Opaque Authorization header value, e.g. "Bearer <firebase id token>"
    authorization: Optional[str] = None

    def resolved_health_url(self) -> str:
        if self.health_url:
            return self.health_url
        base = self.api_url.rstrip("/")
        for suffix in ("/api/cotacoes", "/cotacoes"):
            if base.endswith(suffix):
                return base[: -len(suffix)] + "/health"
        return base + "/health"


settings = Settings()
