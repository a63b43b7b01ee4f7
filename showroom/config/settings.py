"""Configuration settings for the showroom recommendation service."""

from typing import Optional

from pydantic_settings import BaseSettings
from pydantic import Field
from pathlib import Path


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # OpenAI
    openai_api_key: Optional[str] = Field(
        default=None,
        description="OpenAI API key (required for recommendation generation)",
    )
    openai_model: str = Field(
        default="gpt-4o",
        description="Vision-capable model used for recommendation answers",
    )
    openai_fast_model: str = Field(
        default="gpt-4o-mini",
        description="Cheaper model used for extraction and summarization",
    )
    openai_temperature: float = Field(default=0.7, description="Generation temperature")
    openai_max_tokens: int = Field(default=2500, description="Max tokens per answer")

    # Database
    database_url: Optional[str] = Field(
        default=None,
        description="PostgreSQL URL (falls back to SQLite when unset)",
    )
    database_path: Path = Field(
        default=Path("data/showroom.db"),
        description="Path to SQLite database",
    )

    # API
    api_host: str = Field(default="0.0.0.0", description="API host")
    api_port: int = Field(default=8000, description="API port")
    environment: str = Field(
        default="development",
        description="Environment: 'development' or 'production'",
    )

    # Recommendation pipeline
    image_fetch_timeout_seconds: float = Field(
        default=5.0, description="Timeout for probing and downloading seed images"
    )
    summarize_threshold: int = Field(
        default=10, description="Summarize once a thread holds more messages than this"
    )
    summarize_keep_recent: int = Field(
        default=5, description="Messages kept verbatim after summarization"
    )
    max_recommended_products: int = Field(
        default=8, description="Ranked products returned to the caller"
    )
    max_prompt_products: int = Field(
        default=15, description="Products embedded in the generation prompt"
    )
    search_limit: int = Field(default=10, description="Results per catalog search")

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    @property
    def is_postgres(self) -> bool:
        """Whether a PostgreSQL database is configured."""
        return bool(self.database_url) and self.database_url.startswith(("postgres://", "postgresql"))


settings = Settings()
