"""Configuration models and loading."""

from monopub.config.loader import CONFIG_FILENAME, find_config, load_config
from monopub.config.schema import DEFAULT_STATE_FILE, MonopubConfig, PublishConfig, RetryConfig

__all__ = [
    "CONFIG_FILENAME",
    "DEFAULT_STATE_FILE",
    "MonopubConfig",
    "PublishConfig",
    "RetryConfig",
    "find_config",
    "load_config",
]
