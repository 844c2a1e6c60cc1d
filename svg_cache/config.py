"""Configuration using pydantic-settings."""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Process configuration, read once at startup and never mutated."""

    host: str = "0.0.0.0"  # nosec B104 - Required for container deployment
    port: int = 3000
    log_level: str = "INFO"
    log_file: str | None = None

    static_path: Path = Path("./static")
    secret_key: str | None = None

    openai_api_key: str | None = None
    llm_model: str = "gpt-4o"
    llm_fast_model: str = "gpt-3.5-turbo"
    llm_timeout: int = 60
    generation_max_attempts: int = Field(default=1, ge=1)

    rate_limit: str = "30/minute"
    rate_limit_enabled: bool = True
    redis_url: str | None = None

    @field_validator("secret_key", "openai_api_key", mode="before")
    @classmethod
    def empty_as_unset(cls, value: str | None) -> str | None:
        """Treat an empty variable the same as a missing one."""
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @property
    def generation_protected(self) -> bool:
        """Whether generating new images requires the shared secret."""
        return self.secret_key is not None

    class Config:
        """Pydantic config."""

        env_file = ".env"
        extra = "ignore"
        frozen = True


@lru_cache
def get_settings() -> Settings:
    """Get the process-wide settings instance."""
    return Settings()
