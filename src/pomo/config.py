# src/pomo/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app, built once and passed around.
- Every path lives under a single data dir that can be moved with --path.
"""

from __future__ import annotations

import os
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

ENV_PREFIX = "POMO"

load_dotenv(override=False)


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- Paths ----
    data_dir: Path
    db_path: Path
    socket_path: Path

    # ---- Logging ----
    log_level: str

    # ---- Task defaults ----
    default_duration: str
    default_pomodoros: int

    # ---- Output / runtime ----
    json: bool
    client_timeout: float
    poll_interval: float

    @staticmethod
    def from_env(data_dir: str | Path | None = None) -> "Settings":
        if data_dir is not None:
            base = Path(data_dir).expanduser()
        else:
            base = _env_path(_k("DATA_DIR"), Path("~/.pomo").expanduser())

        db_path = _env_path(_k("DB_PATH"), base / "pomo.db")
        socket_path = _env_path(_k("SOCKET_PATH"), base / "pomo.sock")

        log_level = _env(_k("LOG_LEVEL"), "WARNING")

        default_duration = _env(_k("DEFAULT_DURATION"), "25m")
        default_pomodoros = _env_int(_k("DEFAULT_POMODOROS"), 4)

        as_json = _env_bool(_k("JSON"), False)
        client_timeout = max(0.1, _env_float(_k("CLIENT_TIMEOUT"), 2.0))
        # The timer loop never sleeps longer than a second between checks.
        poll_interval = min(1.0, max(0.05, _env_float(_k("POLL_INTERVAL"), 1.0)))

        return Settings(
            data_dir=base,
            db_path=db_path,
            socket_path=socket_path,
            log_level=log_level,
            default_duration=default_duration,
            default_pomodoros=default_pomodoros,
            json=as_json,
            client_timeout=client_timeout,
            poll_interval=poll_interval,
        )

    def to_dict(self) -> dict[str, Any]:
        out = asdict(self)
        for key, value in out.items():
            if isinstance(value, Path):
                out[key] = str(value)
        return out


_SETTINGS: Settings | None = None


def get_settings() -> Settings:
    global _SETTINGS
    if _SETTINGS is None:
        _SETTINGS = Settings.from_env()
    return _SETTINGS
