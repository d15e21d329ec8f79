"""Settings for the dashboard, read from NETWORTH_* environment variables or a .env file."""
from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from networth.segmentation import Density


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="NETWORTH_",
        env_file=".env",
        extra="ignore",
    )

    seed_path: Path = Field(default=Path("data/seed.json"), description="JSON ledger seed")
    reference_currency: str | None = Field(
        default=None,
        description="Currency id values are shown in; the seed's own choice when unset",
    )
    density: Density = Density.LIGHT
    history_days: int = Field(default=365, gt=0, description="Default chart range, ending today")
    chart_width: int = Field(default=1000, gt=0)
    chart_height: int = Field(default=500, gt=0)
    log_level: str = "INFO"
    log_json: bool = False

    @field_validator("log_level")
    @classmethod
    def _upper(cls, v: str) -> str:
        return v.upper()


@lru_cache
def get_settings() -> Settings:
    return Settings()
