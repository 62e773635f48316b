"""File path resolution using platformdirs.

AUTOFLOW_DATA_DIR overrides everything. Otherwise paths use the
platform-appropriate user data directory:
  macOS: ~/Library/Application Support/autoflow/
  Linux: ~/.local/share/autoflow/
  Windows: %LOCALAPPDATA%/autoflow/
"""

import os
from pathlib import Path

import platformdirs

APP_NAME = "autoflow"


def get_data_dir() -> Path:
    """Return the directory for persistent data (DB, config)."""
    override = os.environ.get("AUTOFLOW_DATA_DIR", "").strip()
    if override:
        return Path(override)
    return Path(platformdirs.user_data_dir(APP_NAME, appauthor=False))


def get_config_dir() -> Path:
    """Return the directory searched for autoflow.yaml after the CWD."""
    return Path(platformdirs.user_config_dir(APP_NAME, appauthor=False))


def get_default_db_path() -> Path:
    """Return the default SQLite database file path."""
    return get_data_dir() / "autoflow.db"


def ensure_dirs_exist() -> None:
    """Create all required directories if they don't exist."""
    for d in [get_data_dir(), get_config_dir()]:
        d.mkdir(parents=True, exist_ok=True)
