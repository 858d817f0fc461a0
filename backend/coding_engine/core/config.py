"""Application configuration using pydantic-settings."""

import logging

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Application
    app_name: str = "Clinical Coding Rules Engine"
    debug: bool = False
    log_level: str = "INFO"

    # API
    api_v1_prefix: str = "/api/v1"
    cors_origins: list[str] = ["http://localhost:3000"]
    max_batch_size: int = 100

    # Code metadata dictionary (defaults to the bundled fixture)
    code_metadata_path: str | None = None
    prewarm_metadata: bool = True

    @property
    def logging_level(self) -> int:
        """Numeric logging level, INFO when log_level is not a known level name."""
        return logging.getLevelNamesMapping().get(self.log_level.upper(), logging.INFO)


settings = Settings()
