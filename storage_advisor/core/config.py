"""Application Configuration using Pydantic Settings."""

import os
from pathlib import Path
from typing import Annotated, List

from pydantic import field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


def get_env_file() -> str:
    """
    Determine which .env file to load based on APP_ENV.

    Returns:
        Path to the .env file to load
    """
    app_env = os.getenv("APP_ENV", "development")
    base_dir = Path(__file__).parent.parent.parent  # repository root

    if app_env == "test":
        env_file = base_dir / ".env.test"
        if env_file.exists():
            return str(env_file)

    if app_env == "production":
        env_file = base_dir / ".env.production"
        if env_file.exists():
            return str(env_file)

    # Default to .env
    return str(base_dir / ".env")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=get_env_file(),
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Application
    APP_NAME: str = "Storage Advisor"
    APP_ENV: str = "development"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    API_V1_PREFIX: str = "/api/v1"

    # CORS
    ALLOWED_ORIGINS: Annotated[List[str], NoDecode] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]
    CORS_ALLOW_CREDENTIALS: bool = True
    CORS_MAX_AGE: int = 600  # Preflight cache duration in seconds

    # Analysis
    ANALYSIS_WINDOW_DAYS: int = 30
    UTILIZATION_THRESHOLD_PERCENT: float = 30.0
    LOW_USAGE_CAPACITY_GB: float = 10.0
    TARGET_REGION: str = "auto"  # "auto" = price each resource in its own region
    DEFAULT_PRICING_REGION: str = "eastus"
    CAPACITY_DISK_CLASS: str = "standard_hdd"
    MAX_WORKERS: int = 8

    # Storage account rules
    COOL_TIER_MAX_TRANSACTIONS_PER_GB: float = 10.0  # per month
    LIFECYCLE_POLICY_MIN_GB: float = 100.0
    RESERVED_CAPACITY_MIN_GB: float = 102400.0  # 100 TiB reservation unit
    RESERVED_CAPACITY_MIN_MONTHLY_COST: float = 1000.0
    RESERVED_CAPACITY_DISCOUNT: float = 0.17  # 1-year reservation
    REQUIRED_TAGS: Annotated[List[str], NoDecode] = ["owner", "environment", "cost-center"]
    CRITICAL_TAG_VALUES: Annotated[List[str], NoDecode] = [
        "critical",
        "high",
        "high-availability",
        "mission-critical",
    ]

    # Azure Service Principal (used by the background worker)
    AZURE_TENANT_ID: str = ""
    AZURE_CLIENT_ID: str = ""
    AZURE_CLIENT_SECRET: str = ""
    AZURE_RESOURCE_GROUPS: Annotated[List[str], NoDecode] = []

    # Celery
    CELERY_BROKER_URL: str = "redis://localhost:6379/0"
    CELERY_RESULT_BACKEND: str = "redis://localhost:6379/0"

    # Error Tracking (Sentry)
    SENTRY_DSN: str = ""
    SENTRY_ENVIRONMENT: str = "development"
    SENTRY_TRACES_SAMPLE_RATE: float = 0.1

    @field_validator(
        "ALLOWED_ORIGINS",
        "REQUIRED_TAGS",
        "CRITICAL_TAG_VALUES",
        "AZURE_RESOURCE_GROUPS",
        mode="before",
    )
    @classmethod
    def parse_comma_separated(cls, v: str | List[str]) -> List[str]:
        """Parse a list setting from a comma separated string or list."""
        if isinstance(v, str):
            return [item.strip() for item in v.split(",") if item.strip()]
        return v

    @field_validator("ANALYSIS_WINDOW_DAYS")
    @classmethod
    def validate_window(cls, v: int) -> int:
        """Azure Monitor retains platform metrics for 93 days."""
        if not 1 <= v <= 90:
            raise ValueError(f"ANALYSIS_WINDOW_DAYS must be between 1 and 90, got {v}")
        return v

    @field_validator("UTILIZATION_THRESHOLD_PERCENT")
    @classmethod
    def validate_threshold(cls, v: float) -> float:
        """Reject thresholds outside 0-100%."""
        if not 0 < v <= 100:
            raise ValueError(
                f"UTILIZATION_THRESHOLD_PERCENT must be in (0, 100], got {v}"
            )
        return v

    @field_validator("CAPACITY_DISK_CLASS")
    @classmethod
    def validate_capacity_class(cls, v: str) -> str:
        """Only the standard disk classes can serve as a capacity tier."""
        if v not in ("standard_hdd", "standard_ssd"):
            raise ValueError(
                f"CAPACITY_DISK_CLASS must be 'standard_hdd' or 'standard_ssd', got '{v}'"
            )
        return v


# Create global settings instance
settings = Settings()
