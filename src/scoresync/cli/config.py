"""Configuration utilities for the scoresync CLI.

This module provides shared configuration functions used across CLI commands.
"""

from __future__ import annotations

import json
import logging
import os
import socket
import sys
from pathlib import Path

CONFIG_DIR_ENV = "SCORESYNC_HOME"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def get_config_dir() -> Path:
    """Get the configuration directory for scoresync.

    Returns:
        Path from SCORESYNC_HOME, or ~/.scoresync.
    """
    override = os.environ.get(CONFIG_DIR_ENV)
    if override:
        return Path(override).expanduser()
    return Path.home() / ".scoresync"


def get_config_file() -> Path:
    """Get the path to the config file."""
    return get_config_dir() / "config.json"


def get_store_path() -> Path:
    """Get the path to the record database."""
    return get_config_dir() / "records.db"


def load_config() -> dict[str, str]:
    """Load configuration from config file."""
    config_file = get_config_file()
    if config_file.exists():
        return dict(json.loads(config_file.read_text()))
    return {}


def save_config(config: dict[str, str]) -> None:
    """Save configuration to config file."""
    config_file = get_config_file()
    config_file.parent.mkdir(parents=True, exist_ok=True)
    config_file.write_text(json.dumps(config, indent=2))


def get_device_name() -> str:
    """Get the label this device presents to peers.

    Returns:
        Configured device name, or the hostname.
    """
    return load_config().get("device_name") or socket.gethostname()


def setup_logging(verbose: bool = False) -> None:
    """Configure the scoresync logger for CLI use.

    Args:
        verbose: Log DEBUG and up instead of WARNING and up.
    """
    root_logger = logging.getLogger("scoresync")
    root_logger.setLevel(logging.DEBUG if verbose else logging.WARNING)

    if not any(getattr(h, "_scoresync_cli", False) for h in root_logger.handlers):
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._scoresync_cli = True  # type: ignore[attr-defined]
        root_logger.addHandler(handler)
