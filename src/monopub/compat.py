"""TOML reading across supported Python versions."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Any

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib  # type: ignore[import-not-found]

from monopub.errors import ConfigurationError

__all__ = ["read_toml", "tomllib"]


def read_toml(path: Path) -> dict[str, Any]:
    """Parse a TOML file.

    Raises:
        ConfigurationError: If the file is missing or not valid TOML.
    """
    try:
        with path.open("rb") as f:
            return tomllib.load(f)
    except FileNotFoundError as e:
        raise ConfigurationError(f"{path.name} not found", path=path) from e
    except tomllib.TOMLDecodeError as e:
        raise ConfigurationError(f"Invalid {path.name}: {e}", path=path) from e
