from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from core_config.constants import (
    OUTBOUND_TIMEOUT_MS,
    OUTBOUND_TIMEOUT_MAX_MS,
    RDF_STREAM_BUFFER,
    HEALTH_PORT,
)

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    environment: str = Field(default="dev", alias="ENVIRONMENT")
    service_name: str = Field(default="fetcher", alias="SERVICE_NAME")
    service_log_level: str = Field(default="INFO", alias="SERVICE_LOG_LEVEL")
    port: int = Field(default=HEALTH_PORT, alias="PORT")

    # Comma/space separated origins allowed to call the entry points
    cors_origins: str | None = Field(default=None, alias="CORS_ORIGINS")

    # ── Outbound calls ──────────────────────────────────────────────
    outbound_timeout_ms: int = Field(default=OUTBOUND_TIMEOUT_MS, alias="OUTBOUND_TIMEOUT_MS")
    outbound_timeout_max_ms: int = Field(default=OUTBOUND_TIMEOUT_MAX_MS, alias="OUTBOUND_TIMEOUT_MAX_MS")
    outbound_follow_redirects: bool = Field(default=True, alias="OUTBOUND_FOLLOW_REDIRECTS")
    outbound_user_agent: str = Field(default="fetch-gateway/1", alias="OUTBOUND_USER_AGENT")
    # 0 disables the cap
    outbound_max_body_bytes: int = Field(default=0, alias="OUTBOUND_MAX_BODY_BYTES")

    # ── Parsing ─────────────────────────────────────────────────────
    rdf_stream_buffer: int = Field(default=RDF_STREAM_BUFFER, alias="RDF_STREAM_BUFFER")

def get_settings() -> "Settings":
    return Settings()  # type: ignore
