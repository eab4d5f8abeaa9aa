"""Application Configuration: environment-driven settings via pydantic-settings.

Invariants:
    - All secrets come from environment variables (never hardcoded)
    - get_settings() is cached (lru_cache), single instance per process
    - Each loop's stuck threshold is strictly greater than its job timeout
    - Empty provider keys are valid: they select placeholder / unavailable modes

Design Decisions:
    - pydantic-settings over raw os.environ: validation, type coercion, .env file support (ADR: developer UX)
    - Defaults provided for all non-secret settings: works out-of-the-box with docker-compose
    - Per-loop settings flattened with preview_/upgrade_ prefixes: one env var each, no nesting
"""

from typing import Literal

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache

from jewelpreview.core.domain_types import JobFamily


class Settings(BaseSettings):
    """Application settings from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)

    # Database
    database_url: str = (
        "postgresql+asyncpg://jewel:jewel@db:5432/jewel_preview"
    )

    @field_validator("database_url", mode="before")
    @classmethod
    def convert_postgres_url(cls, v: str) -> str:
        """Hosted Postgres URLs use postgresql:// but asyncpg needs postgresql+asyncpg://."""
        if isinstance(v, str) and v.startswith("postgresql://"):
            return v.replace("postgresql://", "postgresql+asyncpg://", 1)
        return v

    database_pool_size: int = 20
    database_max_overflow: int = 10

    # Preview loop (single image + multi-frame)
    preview_poll_interval_seconds: float = 10.0
    preview_processing_delay_seconds: float = 2.0
    preview_batch_size: int = 3
    preview_job_timeout_seconds: float = 120.0
    preview_stuck_threshold_seconds: float = 180.0

    # Upgrade-preview loop
    upgrade_poll_interval_seconds: float = 5.0
    upgrade_processing_delay_seconds: float = 1.0
    upgrade_batch_size: int = 2
    upgrade_job_timeout_seconds: float = 120.0
    upgrade_stuck_threshold_seconds: float = 180.0

    # Worker host
    run_workers_in_api: bool = True
    worker_heartbeat_seconds: float = 30.0
    worker_shutdown_grace_seconds: float = 10.0

    # Submission
    guest_free_preview_limit: int = 5  # <= 0 disables the check
    default_frame_count: int = 12

    # Image provider
    image_provider: Literal["ideogram", "openai", "leonardo"] = "ideogram"
    ideogram_api_key: str = ""
    ideogram_base_url: str = "https://api.ideogram.ai"
    ideogram_timeout_seconds: float = 60.0
    openai_api_key: str = ""
    openai_base_url: str = "https://api.openai.com/v1"
    openai_image_model: str = "dall-e-3"
    openai_timeout_seconds: float = 120.0
    leonardo_api_key: str = ""
    leonardo_base_url: str = "https://cloud.leonardo.ai/api/rest/v1"
    leonardo_model_id: str = "aa77f04e-3eec-4034-9c07-d0f619684628"
    leonardo_poll_interval_seconds: float = 5.0
    leonardo_max_poll_attempts: int = 36
    leonardo_timeout_seconds: float = 30.0

    # Vision analysis (Anthropic)
    anthropic_api_key: str = ""
    vision_model: str = "claude-sonnet-4-5"
    vision_max_tokens: int = 2048
    vision_temperature: float = 0.3
    vision_max_retries: int = 2
    vision_base_delay_ms: int = 2000
    vision_max_delay_ms: int = 30_000
    vision_timeout_seconds: int = 60

    # Object storage (S3 compatible)
    s3_service_url: str = ""
    s3_bucket_name: str = "jewel-previews"
    s3_access_key: str = ""
    s3_secret_key: str = ""
    s3_region: str = "us-east-1"
    s3_force_path_style: bool = True
    s3_public_base_url: str = ""

    # API
    cors_origins: list[str] = ["http://localhost:5173"]

    # Observability
    log_level: str = "INFO"
    log_format: str = "json"

    @model_validator(mode="after")
    def check_stuck_thresholds(self) -> "Settings":
        """Reaper must never fail a job the worker could still legitimately finish."""
        for family in JobFamily:
            timeout = getattr(self, f"{family.value}_job_timeout_seconds")
            threshold = getattr(self, f"{family.value}_stuck_threshold_seconds")
            if threshold <= timeout:
                raise ValueError(
                    f"{family.value}_stuck_threshold_seconds ({threshold}) must be "
                    f"greater than {family.value}_job_timeout_seconds ({timeout})",
                )
        return self


@lru_cache
def get_settings() -> Settings:
    return Settings()
