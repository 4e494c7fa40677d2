"""Load monopub.yaml."""

from __future__ import annotations

from pathlib import Path

import yaml
from pydantic import ValidationError

from monopub.config.schema import MonopubConfig
from monopub.errors import ConfigurationError

CONFIG_FILENAME = "monopub.yaml"


def find_config(start: Path | None = None) -> Path | None:
    """Walk up from ``start`` looking for monopub.yaml."""
    current = (start or Path.cwd()).resolve()
    for directory in (current, *current.parents):
        candidate = directory / CONFIG_FILENAME
        if candidate.is_file():
            return candidate
    return None


def load_config(path: Path) -> MonopubConfig:
    """Load and validate a configuration file.

    Args:
        path: Path to monopub.yaml.

    Returns:
        Parsed configuration. An empty file yields the defaults.

    Raises:
        ConfigurationError: If the file cannot be read or is invalid.
    """
    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise ConfigurationError(f"Cannot read configuration: {e}", path=path) from e
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML: {e}", path=path) from e

    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ConfigurationError("Configuration must be a mapping", path=path)

    try:
        return MonopubConfig.model_validate(raw)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}", path=path) from e
