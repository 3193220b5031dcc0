"""Configuration helpers for Task Tracker."""
from __future__ import annotations

from dataclasses import dataclass
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv


DEFAULT_STORE_DIR = Path.home() / ".task_tracker" / "task_store"


class ConfigError(RuntimeError):
    """Raised when required configuration is missing or invalid."""


@dataclass(slots=True)
class Settings:
    """Runtime configuration shared by the CLI and API."""

    environment: str = "local"
    store_backend: str = "firestore"
    store_dir: Path = DEFAULT_STORE_DIR
    firestore_collection: str = "users"
    firestore_project: Optional[str] = None
    reminder_lead_hours: float = 12.0
    reminder_window_hours: float = 0.1
    reminder_interval_seconds: float = 300.0
    reminder_account: Optional[str] = None
    timezone: str = "America/New_York"
    log_level: str = "INFO"

    @property
    def reminder_window_seconds(self) -> float:
        """Full width of the eligibility window around the lead time."""
        return self.reminder_window_hours * 2 * 3600


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be a number, got {raw!r}.") from exc


def validate_reminder_timing(settings: Settings) -> None:
    """Ensure the reminder scan cannot step over the eligibility window.

    Raises:
        ConfigError: if the window is not wider than the poll interval.
    """

    if settings.reminder_lead_hours <= 0:
        raise ConfigError("TT_REMINDER_LEAD_HOURS must be positive.")
    if settings.reminder_interval_seconds <= 0:
        raise ConfigError("TT_REMINDER_INTERVAL_SECONDS must be positive.")
    if settings.reminder_window_seconds <= settings.reminder_interval_seconds:
        raise ConfigError(
            "Reminder window "
            f"({settings.reminder_window_seconds:.0f}s) must be wider than the "
            f"scan interval ({settings.reminder_interval_seconds:.0f}s) or "
            "reminders can be skipped."
        )


def load_settings(*, use_dotenv: bool = True) -> Settings:
    """Load settings from environment variables.

    Args:
        use_dotenv: Read a local ``.env`` file before the environment.

    Returns:
        Settings with every value resolved.

    Raises:
        ConfigError: if a value is malformed or the reminder timing is unsafe.
    """

    if use_dotenv:
        load_dotenv()

    backend = os.getenv("TT_STORE_BACKEND", "firestore").strip().lower() or "firestore"
    if backend not in ("firestore", "file"):
        raise ConfigError(
            f"TT_STORE_BACKEND must be 'firestore' or 'file', got {backend!r}."
        )

    store_dir = os.getenv("TT_STORE_DIR", "").strip()

    settings = Settings(
        environment=os.getenv("TT_ENV", "local"),
        store_backend=backend,
        store_dir=Path(store_dir) if store_dir else DEFAULT_STORE_DIR,
        firestore_collection=os.getenv("TT_FIRESTORE_COLLECTION", "users").strip() or "users",
        firestore_project=os.getenv("TT_FIRESTORE_PROJECT", "").strip() or None,
        reminder_lead_hours=_float_env("TT_REMINDER_LEAD_HOURS", 12.0),
        reminder_window_hours=_float_env("TT_REMINDER_WINDOW_HOURS", 0.1),
        reminder_interval_seconds=_float_env("TT_REMINDER_INTERVAL_SECONDS", 300.0),
        reminder_account=os.getenv("TT_REMINDER_ACCOUNT", "").strip() or None,
        timezone=os.getenv("TT_TIMEZONE", "America/New_York").strip() or "America/New_York",
        log_level=os.getenv("TT_LOG_LEVEL", "INFO").strip().upper() or "INFO",
    )
    validate_reminder_timing(settings)
    return settings
