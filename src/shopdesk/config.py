from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
import logging
import os
import sys

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


@dataclass(frozen=True)
class AppPaths:
    base_dir: Path
    logs_dir: Path
    exports_dir: Path


def _windows_appdata() -> Path:
    return Path(os.environ.get("APPDATA", str(Path.home() / "AppData" / "Roaming")))


def _mac_app_support() -> Path:
    return Path.home() / "Library" / "Application Support"


def get_app_paths(app_name: str = "ShopDesk") -> AppPaths:
    if sys.platform.startswith("win"):
        base = _windows_appdata() / app_name
    elif sys.platform == "darwin":
        base = _mac_app_support() / app_name
    else:
        base = Path.home() / f".{app_name.lower()}"

    logs = base / "logs"
    exports = base / "exports"

    base.mkdir(parents=True, exist_ok=True)
    logs.mkdir(parents=True, exist_ok=True)
    exports.mkdir(parents=True, exist_ok=True)

    return AppPaths(base_dir=base, logs_dir=logs, exports_dir=exports)



class Settings(BaseSettings):
    """Runtime settings read from ``SHOPDESK_*`` environment variables or a ``.env`` file."""

    model_config = SettingsConfigDict(
        env_prefix="SHOPDESK_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
    )

    api_url: str = Field(default="http://localhost:8080")
    http_timeout: float = Field(default=10.0, gt=0)
    poll_interval_ms: int = Field(default=20_000, gt=0)
    debounce_ms: int = Field(default=120, gt=0)
    log_level: int = Field(default=logging.INFO)

    @field_validator("api_url")
    @classmethod
    def _strip_url(cls, v: str) -> str:
        return v.strip().rstrip("/")

    @field_validator("log_level", mode="before")
    @classmethod
    def _level_by_name(cls, v):
        if isinstance(v, str):
            name = v.strip().upper()
            if name.isdigit():
                return int(name)
            level = logging.getLevelName(name)
            if not isinstance(level, int):
                raise ValueError(f"not a logging level: {v!r}")
            return level
        return v


def load_settings() -> Settings:
    return Settings()
