"""Configuration management backed by pydantic-settings."""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    db_host: str = "db"
    db_port: int = 5432
    db_user: str = "chaos"
    db_password: str = "chaos"
    db_name: str = "chaosdb"

    # Redis
    redis_host: str = "redis"
    redis_port: int = 6379
    redis_queue_chaos: str = "q:chaos-tests"

    # Worker / broker
    worker_concurrency: int = Field(default=2, ge=1)
    job_max_retries: int = Field(default=3, ge=0)
    job_backoff_seconds: int = Field(default=2, ge=0)
    job_timeout_seconds: int = 900
    job_result_ttl_seconds: int = 86400

    # Models - Ollama
    ollama_base: str = "http://ollama:11434"
    text_llm_model: str = "qwen2.5:7b-instruct-q4_K_M"
    ollama_context_length: int = 4096
    report_llm_enabled: bool = False
    report_llm_temperature: float = 0.7
    report_llm_max_tokens: int = 2000

    # Scenarios
    latency_request_count: int = 20
    latency_max_jitter_ms: int = 500
    latency_timeout_seconds: float = 10.0
    request_timeout_seconds: float = 10.0
    rate_limit_request_count: int = 50
    rate_limit_timeout_seconds: float = 15.0

    # Application
    log_level: str = "INFO"

    @property
    def database_url(self) -> str:
        """Build PostgreSQL connection string."""
        return f"postgresql://{self.db_user}:{self.db_password}@{self.db_host}:{self.db_port}/{self.db_name}"

    @property
    def redis_url(self) -> str:
        """Build Redis connection string."""
        return f"redis://{self.redis_host}:{self.redis_port}"


# Global settings instance
settings = Settings()
