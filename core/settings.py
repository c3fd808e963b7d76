# core/settings.py
# ==============================
# Application settings with environment-driven defaults
# (database, image storage, identification API, diagnosis limits)
# ==============================

import os
from pathlib import Path

from core.errors import ConfigError

DEFAULT_DATABASE_PATH = "plant_care.db"
DEFAULT_MAX_DIAGNOSIS_STEPS = 8
DEFAULT_USER = "local-user"


def require_env(key: str) -> str:
    """
    Get a required environment variable.

    Args:
        key: Variable name.

    Returns:
        The variable's value.

    Raises:
        ConfigError: If the variable is unset or empty.
    """
    value = os.environ.get(key, "").strip()
    if not value:
        raise ConfigError(f"Missing required environment variable: {key}")
    return value


def get_database_path() -> str:
    """SQLite file path from DATABASE_PATH (default: plant_care.db)."""
    return os.environ.get("DATABASE_PATH", DEFAULT_DATABASE_PATH)


def get_storage_dir() -> Path:
    """
    Directory where plant images are stored.

    Uses STORAGE_DIR if set, otherwise the per-user data directory
    (e.g. ~/.local/share/plant-care/images).
    """
    configured = os.environ.get("STORAGE_DIR")
    if configured:
        return Path(configured)
    data_home = os.environ.get("XDG_DATA_HOME") or str(Path.home() / ".local" / "share")
    return Path(data_home) / "plant-care" / "images"


def get_plant_id_api_key() -> str:
    return require_env("PLANT_ID_API_KEY")


def get_max_diagnosis_steps() -> int:
    """
    Maximum AI calls per start/update before the cycle gives up.

    Reads DIAGNOSIS_MAX_STEPS; falls back to the default on bad values.
    """
    raw = os.environ.get("DIAGNOSIS_MAX_STEPS", "")
    try:
        value = int(raw)
    except ValueError:
        return DEFAULT_MAX_DIAGNOSIS_STEPS
    return value if value > 0 else DEFAULT_MAX_DIAGNOSIS_STEPS


def get_default_user() -> str:
    return os.environ.get("PLANT_CARE_USER", DEFAULT_USER)
