"""
Configuration settings for PodForge
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Google Gemini
    gemini_api_key: Optional[str] = Field(default=None, validation_alias="GEMINI_API_KEY")
    text_model: str = Field(default="gemini-2.5-flash", validation_alias="TEXT_MODEL")
    writer_model: str = Field(default="gemini-2.5-pro", validation_alias="WRITER_MODEL")
    image_model: str = Field(default="imagen-3.0-generate-002", validation_alias="IMAGE_MODEL")
    embedding_model: str = Field(default="text-embedding-004", validation_alias="EMBEDDING_MODEL")

    # Google Cloud Text-to-Speech
    google_tts_api_key: Optional[str] = Field(default=None, validation_alias="GOOGLE_TTS_API_KEY")
    google_credentials_path: Optional[str] = Field(
        default=None, validation_alias="GOOGLE_APPLICATION_CREDENTIALS"
    )

    # Supabase
    supabase_url: Optional[str] = Field(default=None, validation_alias="SUPABASE_URL")
    supabase_service_key: Optional[str] = Field(default=None, validation_alias="SUPABASE_SERVICE_KEY")
    storage_bucket: str = Field(default="podcasts", validation_alias="STORAGE_BUCKET")

    # Local persistence (used when Supabase is not configured)
    database_url: str = Field(default="sqlite:///podforge.sqlite", validation_alias="DATABASE_URL")
    asset_dir: str = Field(default="output/assets", validation_alias="ASSET_DIR")
    asset_base_url: Optional[str] = Field(default=None, validation_alias="ASSET_BASE_URL")

    # Fan-out dispatch
    dispatch_mode: str = Field(default="inline", validation_alias="DISPATCH_MODE")  # inline, http
    worker_base_url: str = Field(default="http://localhost:8000", validation_alias="WORKER_BASE_URL")
    worker_auth_token: Optional[str] = Field(default=None, validation_alias="WORKER_AUTH_TOKEN")
    worker_timeout_seconds: float = Field(default=300.0, validation_alias="WORKER_TIMEOUT_SECONDS")

    # Speech synthesis
    speech_chunk_size: int = Field(default=4500, validation_alias="SPEECH_CHUNK_SIZE")
    speech_bytes_per_second: int = Field(default=4000, validation_alias="SPEECH_BYTES_PER_SECOND")

    # Realtime sync
    realtime_settle_seconds: float = Field(default=0.5, validation_alias="REALTIME_SETTLE_SECONDS")

    # Stalled record sweeper
    stale_after_seconds: int = Field(default=600, validation_alias="STALE_AFTER_SECONDS")
    max_redispatch_attempts: int = Field(default=2, validation_alias="MAX_REDISPATCH_ATTEMPTS")

    # Server
    host: str = Field(default="0.0.0.0", validation_alias="HOST")
    port: int = Field(default=8000, validation_alias="PORT")
    debug: bool = Field(default=False, validation_alias="DEBUG")

    # Logging
    log_dir: str = Field(default="logs", validation_alias="LOG_DIR")
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

    @property
    def use_supabase(self) -> bool:
        return bool(self.supabase_url and self.supabase_service_key)


@lru_cache
def get_settings() -> Settings:
    """Get application settings (constructed once per process)"""
    return Settings()
