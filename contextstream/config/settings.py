from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="CONTEXT_STREAM_",
        extra="ignore"
    )

    # Stream defaults (see StreamConfig for the runtime copy)
    enabled: bool = True
    buffer_size: int = 100
    flush_interval_ms: int = 1000
    max_context_age_ms: int = 3_600_000
    enable_realtime: bool = True
    enable_contextualization: bool = True
    enable_personalization: bool = True
    privacy_filter: bool = True
    compression_enabled: bool = True
    max_events_per_context: int = 50
    relevance_threshold: float = 0.3

    api_host: str = "0.0.0.0"
    api_port: int = 8000
    log_level: str = "INFO"

settings = Settings()
