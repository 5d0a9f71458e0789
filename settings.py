"""
Configuration settings, read from VOCAB_REVIEW_* environment variables or .env.
"""

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    database_url: str = "sqlite:///reviews.db"

    # View counter
    seen_debounce_seconds: float = Field(1.0, gt=0)

    # Review batches
    drill_recency_window: int = Field(50, ge=1)
    default_batch_limit: int = Field(20, ge=1)
    max_batch_limit: int = Field(100, ge=1)

    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="VOCAB_REVIEW_",
        env_file=".env",
        extra="ignore",
    )

    @model_validator(mode="after")
    def check_batch_limits(self) -> "Settings":
        if self.default_batch_limit > self.max_batch_limit:
            raise ValueError(
                f"default_batch_limit ({self.default_batch_limit}) exceeds max_batch_limit ({self.max_batch_limit})"
            )
        return self


def get_settings() -> Settings:
    return Settings()
