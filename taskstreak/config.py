"""Settings loaded from environment variables (+ optional .env file)."""
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

ENV_PREFIX = "TASKSTREAK"

DEFAULT_HEATMAP_WEEKS = 53


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True)
class Settings:
    data_dir: Path
    heatmap_weeks: int
    log_level: str

    @property
    def log_dir(self) -> Path:
        return self.data_dir / "logs"


def load_settings(*, use_dotenv: bool = True) -> Settings:
    """Read settings from the environment; a local .env never overrides real env vars."""
    if use_dotenv:
        load_dotenv(override=False)
    weeks = _env_int(_k("HEATMAP_WEEKS"), DEFAULT_HEATMAP_WEEKS)
    return Settings(
        data_dir=_env_path(_k("HOME"), Path.home() / ".taskstreak"),
        heatmap_weeks=weeks if weeks > 0 else DEFAULT_HEATMAP_WEEKS,
        log_level=(os.getenv(_k("LOG_LEVEL")) or "WARNING").strip().upper(),
    )
