import os
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from au_payroll.models import PenaltyBasePolicy

PACKAGE_DIR = Path(__file__).resolve().parent.parent
BASE_DIR = Path.cwd()


class Settings(BaseSettings):
    env: str = Field(default="dev", description="Deployment environment")
    app_name: str = "AU Payroll Engine"
    log_level: str = "INFO"
    database_url: str = Field(
        default="sqlite:///./au_payroll.db",
        description="Database connection string for the result sink",
    )
    data_dir: Path = Field(default=PACKAGE_DIR / "data", description="Tax tables and statutory rates")
    store_path: Path = Field(default=PACKAGE_DIR / "data" / "sample_store.json")
    sentry_dsn: str | None = Field(default=None, description="Sentry DSN for error monitoring")
    otlp_endpoint: str | None = Field(default=None, description="OTLP/HTTP collector base URL")

    daily_overtime_threshold: float = 8.0
    weekly_overtime_threshold: float = 38.0
    max_daily_hours: float = 12.0
    meal_break_after_hours: float = 5.0
    minimum_hourly_wage: float = 24.10
    default_super_rate_percent: float = 11.5
    withhold_employee_levies: bool = False
    super_base: Literal["ote", "gross"] = "ote"
    penalty_base_policy: PenaltyBasePolicy = PenaltyBasePolicy.ADDITIVE
    max_workers: int = Field(default=1, ge=1)

    model_config = SettingsConfigDict(env_prefix="AU_PAYROLL_", extra="ignore")

    @field_validator("super_base", mode="before")
    @classmethod
    def normalise_super_base(cls, value: str) -> str:
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @property
    def tax_table_dir(self) -> Path:
        return self.data_dir / "tax_tables"

    @property
    def statutory_rates_path(self) -> Path:
        return self.data_dir / "statutory_rates.json"


@lru_cache
def get_settings() -> Settings:
    return Settings(_env_file=get_settings_env_file())


def get_settings_env_file() -> str | None:
    """Resolve environment-specific env file if it exists."""
    env = os.getenv("AU_PAYROLL_ENV", "dev")
    env_file = BASE_DIR / f".env.{env}"
    default_file = BASE_DIR / ".env"
    if env_file.exists():
        return str(env_file)
    if default_file.exists():
        return str(default_file)
    return None


settings = get_settings()
