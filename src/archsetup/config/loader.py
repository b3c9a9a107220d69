"""Configuration loading for archsetup.

The packaged ``archsetup.conf.yml`` provides every default. An optional
user file (``--config`` or ``ARCHSETUP_CONFIG``) is deep-merged over it
and the result is exposed as a :class:`box.Box` for attribute access.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from importlib import resources
from pathlib import Path
from typing import Any

import yaml
from box import Box

from archsetup.exceptions import ConfigError
from archsetup.pipeline.exceptions import PipelineConfigError
from archsetup.pipeline.validators import validate_package_names, validate_service_name

logger = logging.getLogger(__name__)

#: Name of the packaged defaults file.
CONFIG_FILENAME = "archsetup.conf.yml"

#: Environment variable pointing at a user config file.
CONFIG_ENV_VAR = "ARCHSETUP_CONFIG"

#: Values treated as true in boolean environment variables.
TRUTHY_VALUES = frozenset({"1", "true", "yes", "on"})

#: Package groups every config must define (possibly empty).
PACKAGE_GROUPS = ("essentials", "desktop", "driver", "gaming", "aur")


def env_flag(name: str, environ: Mapping[str, str] | None = None) -> bool:
    """Return whether a boolean environment variable is set to a truthy value.

    Examples:
        >>> env_flag("X", {"X": "True"})
        True
        >>> env_flag("X", {"X": "0"})
        False
        >>> env_flag("X", {})
        False
    """
    environ = os.environ if environ is None else environ
    return environ.get(name, "").strip().lower() in TRUTHY_VALUES


def deep_merge(base: Mapping[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    """Merge ``override`` into a copy of ``base``.

    Mappings merge recursively; any other value in ``override``
    replaces the one in ``base``.

    Examples:
        >>> deep_merge({"a": {"x": 1, "y": 2}, "l": [1]}, {"a": {"y": 3}, "l": [2]})
        {'a': {'x': 1, 'y': 3}, 'l': [2]}
    """
    merged: dict[str, Any] = dict(base)
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(current, Mapping) and isinstance(value, Mapping):
            merged[key] = deep_merge(current, value)
        else:
            merged[key] = value
    return merged


def _read_yaml(text: str, source: str) -> dict[str, Any]:
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML: {exc}", source) from exc
    if data is None:
        return {}
    if not isinstance(data, Mapping):
        raise ConfigError(f"Top level must be a mapping, got {type(data).__name__}", source)
    return dict(data)


def load_default_config() -> dict[str, Any]:
    """Load the packaged defaults as a plain dict."""
    text = resources.files("archsetup").joinpath(CONFIG_FILENAME).read_text(encoding="utf-8")
    return _read_yaml(text, CONFIG_FILENAME)


def load_config(path: str | os.PathLike[str] | None = None) -> Box:
    """Load and validate the configuration.

    Args:
        path: User config file. Falls back to ``ARCHSETUP_CONFIG``;
            defaults alone are used when neither is set.

    Returns:
        The merged configuration.

    Raises:
        ConfigError: If the file is missing, unreadable or invalid.
    """
    data = load_default_config()

    if path is None and os.environ.get(CONFIG_ENV_VAR):
        path = os.environ[CONFIG_ENV_VAR]

    if path is not None:
        config_path = Path(path).expanduser()
        if not config_path.is_file():
            raise ConfigError("Config file not found", str(config_path))
        try:
            text = config_path.read_text(encoding="utf-8")
        except OSError as exc:
            raise ConfigError(f"Cannot read config: {exc}", str(config_path)) from exc
        data = deep_merge(data, _read_yaml(text, str(config_path)))
        logger.debug("Loaded config overrides from %s", config_path)

    validate_config(data, source=str(path) if path is not None else CONFIG_FILENAME)
    return Box(data, frozen_box=True)


def validate_config(data: Mapping[str, Any], source: str | None = None) -> None:
    """Check sections, types and every name that reaches a command line.

    Raises:
        ConfigError: On the first problem found.
    """
    packages = _section(data, "packages", source)
    for group in PACKAGE_GROUPS:
        names = packages.get(group, [])
        if not isinstance(names, list):
            raise ConfigError(f"packages.{group} must be a list", source)
        try:
            validate_package_names(names)
        except PipelineConfigError as exc:
            raise ConfigError(f"packages.{group}: {exc}", source) from exc

    services = _section(data, "services", source)
    for scope in ("system", "user"):
        units = services.get(scope, [])
        if not isinstance(units, list):
            raise ConfigError(f"services.{scope} must be a list", source)
        for unit in units:
            try:
                validate_service_name(unit)
            except PipelineConfigError as exc:
                raise ConfigError(f"services.{scope}: {exc}", source) from exc

    shell = _section(data, "shell", source)
    if not str(shell.get("path", "")).startswith("/"):
        raise ConfigError("shell.path must be an absolute path", source)

    for name in ("aur_helper", "dotfiles", "editor", "driver", "snapshot", "mirrors", "keepalive"):
        _section(data, name, source)

    for name in ("snapshot", "mirrors"):
        command = data[name].get("command", [])
        if not isinstance(command, list) or not all(isinstance(part, str) for part in command):
            raise ConfigError(f"{name}.command must be a list of strings", source)

    interval = data["keepalive"].get("interval", 50)
    if not isinstance(interval, (int, float)) or interval <= 0:
        raise ConfigError(f"keepalive.interval must be a positive number, got {interval!r}", source)

    if not isinstance(data["dotfiles"].get("tracked", []), list):
        raise ConfigError("dotfiles.tracked must be a list", source)


def _section(data: Mapping[str, Any], name: str, source: str | None) -> Mapping[str, Any]:
    section = data.get(name)
    if not isinstance(section, Mapping):
        raise ConfigError(f"Missing or invalid section '{name}'", source)
    return section


__all__ = [
    "CONFIG_ENV_VAR",
    "CONFIG_FILENAME",
    "PACKAGE_GROUPS",
    "TRUTHY_VALUES",
    "deep_merge",
    "env_flag",
    "load_config",
    "load_default_config",
    "validate_config",
]
