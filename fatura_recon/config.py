"""
Configuration management using Pydantic Settings.
All parameters are loaded from environment variables with sensible defaults.
"""

from functools import lru_cache
from pathlib import Path
import os

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


APP_BASE_PATH = Path(os.environ.get(
    "FATURA_BASE_PATH",
    Path.home() / "Documents" / "fatura_recon",
))
ENV_FILE_PATH = APP_BASE_PATH / ".env"
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="FATURA_",
        env_file=str(ENV_FILE_PATH),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_env: str = Field(default="development")
    app_log_level: str = Field(default="INFO")

    # Similarity scoring, in hundredths of a point so sums stay exact
    score_weight_date: int = Field(default=30, ge=0, le=100)
    score_weight_amount: int = Field(default=40, ge=0, le=100)
    score_weight_description: int = Field(default=30, ge=0, le=100)

    # Matching
    match_threshold: float = Field(default=0.7, ge=0.0, le=1.0)

    # Balance checks (cents). 1 cent == R$ 0,01
    balance_tolerance_cents: int = Field(default=1, ge=1)

    # Fatura comparison
    comparison_key_length: int = Field(default=10, ge=1)

    # Storage
    reports_dir: Path = Field(default=Path("./data/reports"))

    @field_validator("app_log_level")
    @classmethod
    def _known_log_level(cls, value: str) -> str:
        level = value.strip().upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"Unknown log level {value!r}, expected one of {LOG_LEVELS}")
        return level

    @model_validator(mode="after")
    def _weights_add_up(self) -> "Settings":
        if self.score_weight_total != 100:
            raise ValueError(
                f"Score weights must add up to 100, got {self.score_weight_total}"
            )
        return self

    @property
    def score_weight_total(self) -> int:
        return (
            self.score_weight_date
            + self.score_weight_amount
            + self.score_weight_description
        )

    @property
    def match_threshold_points(self) -> int:
        """Threshold expressed in the same hundredths used by the scorer."""
        return int(round(self.match_threshold * 100))

    def within_tolerance(self, difference_cents: int) -> bool:
        """True when a monetary difference is below the balance tolerance."""
        return abs(difference_cents) < self.balance_tolerance_cents

    def exceeds_tolerance(self, difference_cents: int) -> bool:
        """
        True when a monetary difference is large enough to warn about.

        Warnings fire on ``|diff| > 0.01``: a single cent of difference is
        still accepted silently.
        """
        return abs(difference_cents) > self.balance_tolerance_cents

    @property
    def is_production(self) -> bool:
        return self.app_env.lower() == "production"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
