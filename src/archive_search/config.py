"""Centralized configuration for archive-search using Pydantic Settings."""

from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Strictly typed configuration loaded from ``ARCHIVE_SEARCH_*`` variables.

    Command-line flags override these values; everything is validated once at
    startup so a bad value fails fast instead of at the first request.
    """

    model_config = SettingsConfigDict(
        env_prefix="ARCHIVE_SEARCH_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        validate_default=True,
        extra="ignore",
    )

    # Index source
    data_file: Path | None = Field(default=None, description="JSONL file of archive listings to index")
    record_limit: int | None = Field(default=None, ge=0, description="Stop indexing after this many records")
    snapshot_path: Path | None = Field(
        default=None,
        description="Binary snapshot loaded at startup when present and written after a build",
    )

    # Scoring
    scoring: Literal["overlap", "bm25"] = Field(default="overlap", description="Scoring strategy for /search")
    bm25_k1: float = Field(default=1.2, gt=0.0, description="BM25 term-frequency saturation")
    bm25_b: float = Field(default=0.75, ge=0.0, le=1.0, description="BM25 document-length normalization")
    warmup_terms: str = Field(
        default="lombok,AUTHORS,README.md",
        description="Comma-separated terms searched once after startup to log query latency",
    )

    # Server settings
    host: str = Field(default="127.0.0.1", description="HTTP bind host")
    port: int = Field(default=8000, ge=1, le=65535, description="HTTP bind port")
    uvicorn_limit_concurrency: int = Field(default=100, ge=1, description="Uvicorn concurrency limit")
    dashboard_dir: Path = Field(default=Path("static"), description="Static files served under /dashboard")

    # Logging
    log_level: str = Field(default="info", description="Logging level")
    json_logs: bool = Field(default=False, description="Emit structured JSON logs")

    @field_validator("log_level")
    @classmethod
    def _check_log_level(cls, value: str) -> str:
        normalized = value.strip().lower()
        if normalized not in {"critical", "error", "warning", "info", "debug"}:
            raise ValueError(f"Unsupported log level: {value}")
        return normalized

    def get_warmup_terms(self) -> list[str]:
        """Return the warm-up query terms (comma-separated)."""
        if not self.warmup_terms:
            return []
        return [term.strip() for term in self.warmup_terms.split(",") if term.strip()]
