"""
Runtime settings.

Values come from MYCAMPUS_* environment variables or a local .env file,
e.g.  MYCAMPUS_DATA_PATH=/tmp/campus.json  MYCAMPUS_OPEN_CALENDAR=1
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


def _default_data_path() -> Path:
    """
    Default snapshot location inside the package, next to the code,
    so a fresh checkout works without any setup.
    """
    base_dir = Path(__file__).resolve().parent
    return base_dir / "data" / "campus.json"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="MYCAMPUS_", env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    data_path: Path = _default_data_path()
    open_calendar: bool = False  # let students add calendar events too
    feed_limit: int = 5
    log_level: str = "WARNING"


@lru_cache
def get_settings() -> Settings:
    return Settings()
