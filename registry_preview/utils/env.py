from __future__ import annotations

"""Helpers for loading environment configuration."""

import logging
import os
from pathlib import Path
from typing import Optional, Tuple, Union

_ENV_LOADED = False

_LOGGER = logging.getLogger(__name__)


def load_dotenv(dotenv_path: Union[str, Path] = ".env") -> None:
    """Load environment variables from a simple ``.env`` file if present.

    Variables already present in the process environment are left alone.
    """
    global _ENV_LOADED
    if _ENV_LOADED:
        return

    path = Path(dotenv_path)
    if path.exists():
        for line in path.read_text(encoding="utf-8").splitlines():
            parsed = _parse_line(line)
            if parsed:
                key, value = parsed
                os.environ.setdefault(key, value)

    _ENV_LOADED = True


def _parse_line(line: str) -> Optional[Tuple[str, str]]:
    stripped = line.strip()
    if not stripped or stripped.startswith("#"):
        return None

    if stripped.startswith("export "):
        stripped = stripped[len("export "):].lstrip()

    if "=" not in stripped:
        return None

    key, value = stripped.split("=", 1)
    value = value.strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in {"'", '"'}:
        value = value[1:-1]
    return (key.strip(), value)


def env_str(name: str) -> Optional[str]:
    """Return a stripped environment value, treating blanks as unset."""

    load_dotenv()
    value = os.environ.get(name, "").strip()
    return value or None


def env_int(name: str, default: int, *, minimum: int = 0) -> int:
    """Read an integer setting, keeping ``default`` for malformed values."""

    raw = env_str(name)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError:
        _LOGGER.warning(
            "Ignoring non-integer %s=%r; using default %d", name, raw, default
        )
        return default
    if value < minimum:
        _LOGGER.warning(
            "Ignoring %s=%d below minimum %d; using default %d",
            name,
            value,
            minimum,
            default,
        )
        return default
    return value


def env_float(name: str, default: float, *, minimum: float = 0.0) -> float:
    """Read a float setting, keeping ``default`` for malformed values."""

    raw = env_str(name)
    if raw is None:
        return default
    try:
        value = float(raw)
    except ValueError:
        _LOGGER.warning(
            "Ignoring non-numeric %s=%r; using default %s", name, raw, default
        )
        return default
    if value < minimum:
        _LOGGER.warning(
            "Ignoring %s=%s below minimum %s; using default %s",
            name,
            value,
            minimum,
            default,
        )
        return default
    return value
