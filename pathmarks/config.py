from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import yaml

BEGIN_MODES = ("DEFERRED", "IMMEDIATE", "EXCLUSIVE")


def _env_int(name: str, default: int) -> int:
    v = os.getenv(name)
    if v is None or v == "":
        return default
    try:
        return int(v)
    except ValueError:
        return default


def _env_bool(name: str, default: bool) -> bool:
    v = os.getenv(name)
    if v is None or v == "":
        return default
    return v.strip().lower() in ("1", "true", "yes", "y", "on")


def _env_str(name: str, default: str) -> str:
    v = os.getenv(name)
    return default if v is None else v


@dataclass
class Settings:
    # Store
    db_path: str = "pathmarks.sqlite"
    busy_timeout_ms: int = 5000
    begin_mode: str = "DEFERRED"  # DEFERRED | IMMEDIATE | EXCLUSIVE
    default_owner: str = ""

    # Favicons
    favicon_dir: str = "favicons"
    fetch_timeout_s: int = 10
    fetch_jobs: int = 8
    fetch_user_agent: str = "pathmarks/0.3 (+https://example.invalid)"
    fetch_max_bytes: int = 350_000

    # Logging / UX
    log_level: str = "INFO"
    no_color: bool = False

    @staticmethod
    def from_env() -> "Settings":
        s = Settings()
        s.db_path = _env_str("PATHMARKS_DB", s.db_path)
        s.busy_timeout_ms = _env_int("PATHMARKS_BUSY_TIMEOUT_MS", s.busy_timeout_ms)
        s.begin_mode = _env_str("PATHMARKS_BEGIN_MODE", s.begin_mode)
        s.default_owner = _env_str("PATHMARKS_USER", s.default_owner)

        s.favicon_dir = _env_str("PATHMARKS_FAVICON_DIR", s.favicon_dir)
        s.fetch_timeout_s = _env_int("PATHMARKS_FETCH_TIMEOUT_S", s.fetch_timeout_s)
        s.fetch_jobs = _env_int("PATHMARKS_FETCH_JOBS", s.fetch_jobs)
        s.fetch_user_agent = _env_str("PATHMARKS_FETCH_UA", s.fetch_user_agent)
        s.fetch_max_bytes = _env_int("PATHMARKS_FETCH_MAX_BYTES", s.fetch_max_bytes)

        s.log_level = _env_str("PATHMARKS_LOG_LEVEL", s.log_level)
        s.no_color = _env_bool("PATHMARKS_NO_COLOR", s.no_color)
        return s

    @staticmethod
    def from_file(path: Path) -> "Settings":
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        s = Settings.from_env()
        for k, v in data.items():
            if hasattr(s, k):
                setattr(s, k, v)
        return s

    def resolved_begin_mode(self) -> str:
        mode = (self.begin_mode or "").strip().upper()
        return mode if mode in BEGIN_MODES else "DEFERRED"


def load_settings(config_path: Optional[str]) -> Settings:
    if config_path:
        return Settings.from_file(Path(config_path))
    return Settings.from_env()
