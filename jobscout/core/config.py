"""Application configuration management."""

from typing import Literal

from pydantic import AnyUrl, ConfigDict, Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    database_url: AnyUrl

    # LLM Configuration
    llm_provider: Literal["ollama", "openai", "deepseek"] = "ollama"
    ollama_base_url: str = "http://localhost:11434"
    ollama_model: str = "llama3.2"
    openai_api_key: str | None = None
    openai_model: str = "gpt-4o-mini"
    deepseek_api_key: str | None = None
    deepseek_base_url: str = "https://api.deepseek.com"
    deepseek_model: str = "deepseek-chat"
    llm_request_timeout: float = Field(default=120.0, gt=0)

    # Job boards
    jsearch_api_key: str | None = None
    jsearch_base_url: str = "https://jsearch.p.rapidapi.com"
    jsearch_host: str = "jsearch.p.rapidapi.com"
    job_board_timeout: float = Field(default=30.0, gt=0)
    job_board_max_retries: int = Field(default=3, ge=0, le=10)
    job_board_bucket_capacity: int = Field(default=5, ge=1)
    job_board_refill_ms: int = Field(default=1000, ge=1)

    # Scheduler
    scheduler_enabled: bool = True
    scheduler_cron: str = "0 * * * *"
    scheduler_timezone: str = "UTC"
    scheduler_default_hour: int = Field(default=8, ge=0, le=23)

    # Automation runs
    automation_max_jobs_per_run: int = Field(default=10, ge=1, le=100)
    automation_max_search_pages: int = Field(default=1, ge=1, le=10)
    automation_matching_mode: Literal["simple", "collaborative"] = "collaborative"

    # Rate limits
    manual_run_limit: int = Field(default=5, ge=1)
    manual_run_window_seconds: int = Field(default=3600, ge=1)
    ai_rate_limit_requests: int = Field(default=5, ge=1)
    ai_rate_limit_window_seconds: int = Field(default=60, ge=1)

    # Run log store
    log_store_max_entries: int = Field(default=500, ge=1)
    log_store_retention_seconds: int = Field(default=3600, ge=0)
    log_stream_interval_seconds: float = Field(default=1.0, gt=0)
    log_stream_max_seconds: int = Field(default=600, ge=1)

    # Multi-agent matching
    ai_overall_timeout_seconds: float = Field(default=180.0, gt=0)
    ai_synthesis_timeout_seconds: float = Field(default=60.0, gt=0)
    ai_stage_timeout_seconds: float = Field(default=120.0, gt=0)
    ai_stage_max_retries: int = Field(default=1, ge=0, le=5)

    model_config = ConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


settings = Settings()
