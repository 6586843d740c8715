"""API key and .env loading.

Keys are read from the environment with this priority:
  1. Environment variables (highest, already set by the workflow)
  2. .env in the working directory (local runs)
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

logger = logging.getLogger(__name__)


def load_env_files(paths: list[Path] | None = None) -> list[Path]:
    """Load KEY=VALUE files into os.environ without overwriting set vars.

    Returns:
        The files that were read.
    """
    files = paths if paths is not None else [Path.cwd() / ".env"]
    loaded: list[Path] = []
    for env_file in files:
        if env_file.is_file() and _load_env_file(env_file):
            loaded.append(env_file)
    return loaded


def _load_env_file(path: Path) -> bool:
    """Parse a simple KEY=VALUE .env file and set vars that aren't already set."""
    try:
        text = path.read_text(encoding="utf-8")
    except OSError:
        logger.debug("Could not read %s", path)
        return False

    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        if line.startswith("export "):
            line = line[len("export "):]
        if "=" not in line:
            continue
        key, _, value = line.partition("=")
        key = key.strip()
        value = value.strip().strip("'\"")
        # Don't overwrite existing env vars
        if key and not os.environ.get(key):
            os.environ[key] = value
            logger.debug("Loaded %s from %s", key, path)
    return True


def mask(value: str) -> str:
    """Hide all but the last four characters of a secret."""
    if not value:
        return ""
    if len(value) <= 8:
        return "*" * len(value)
    return "*" * (len(value) - 4) + value[-4:]

