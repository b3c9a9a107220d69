"""Configuration layer: packaged YAML defaults, user overrides, env flags."""

from archsetup.config.loader import (
    CONFIG_ENV_VAR,
    CONFIG_FILENAME,
    deep_merge,
    env_flag,
    load_config,
)

__all__ = [
    "CONFIG_ENV_VAR",
    "CONFIG_FILENAME",
    "deep_merge",
    "env_flag",
    "load_config",
]
