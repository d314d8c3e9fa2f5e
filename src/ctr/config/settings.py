"""Configuration management using Pydantic Settings."""

from datetime import date
from pathlib import Path
from typing import Optional
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Registry API
    api_base_url: str = Field(
        "https://clinicaltrials.gov/api/query/study_fields",
        description="Field-projection endpoint of the registry search API",
    )
    request_timeout: float = Field(30.0, gt=0)
    request_delay: float = Field(2.0, ge=0, description="Seconds slept before every request after the first")
    page_size: int = Field(1000, ge=1, le=1000)
    user_agent: str = "ClinicalTrialsReport/0.1.0"

    # Acquisition window (inclusive)
    window_start: date = date(2010, 1, 1)
    window_end: date = date(2021, 12, 31)

    # Lookup tables (fall back to the built-in tables when unset)
    topics_file: Optional[Path] = None
    sponsor_aliases_file: Optional[Path] = None
    condition_aliases_file: Optional[Path] = None

    # Directories
    output_dir: Path = Field(Path("output"))
    cache_dir: Path = Field(Path(".cache"))

    # Logging
    log_level: str = Field("INFO")
    log_format: str = Field("json", pattern="^(json|text)$")

    @field_validator("output_dir", "cache_dir")
    @classmethod
    def _create_dirs(cls, v: Path) -> Path:
        v.mkdir(parents=True, exist_ok=True)
        return v

    @model_validator(mode="after")
    def _check_window(self) -> "Settings":
        if self.window_start > self.window_end:
            raise ValueError("window_start must not be after window_end")
        return self


# Instantiate global settings
settings = Settings()
