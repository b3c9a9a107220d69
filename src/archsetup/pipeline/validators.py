"""Input validation for the archsetup.pipeline module.

Everything that ends up on a command line (package names, service
units, user names) passes through here first, so a typo in a config
file fails fast with a readable message instead of reaching pacman.
"""

from __future__ import annotations

import re
from collections.abc import Iterable

from archsetup.pipeline.exceptions import PipelineConfigError

# ============================================================================
# Constants - Hard Limits
# ============================================================================

#: Maximum step name length.
MAX_STEP_NAME_LENGTH = 64

#: Pattern for valid step names (kebab or snake case, starts with a letter).
STEP_NAME_PATTERN = re.compile(r"^[a-zA-Z][a-zA-Z0-9_-]*$")

#: Maximum number of steps in a single pipeline.
MAX_PIPELINE_STEPS = 50

#: Pattern for pacman/AUR package names (see PKGBUILD(5)).
PACKAGE_NAME_PATTERN = re.compile(r"^[a-z0-9@_+][a-z0-9@._+-]*$")

#: Pattern for systemd unit names, with or without the suffix.
SERVICE_NAME_PATTERN = re.compile(r"^[a-zA-Z0-9:_.@-]+$")

#: Pattern for POSIX login names as accepted by useradd(8).
USERNAME_PATTERN = re.compile(r"^[a-z_][a-z0-9_-]*\$?$")

#: Maximum login name length.
MAX_USERNAME_LENGTH = 32


# ============================================================================
# Validation Functions
# ============================================================================


def validate_step_name(name: str) -> str:
    """Validate and return a step name.

    Rules:
    - Cannot be empty
    - Max 64 characters (hard limit)
    - Must start with a letter
    - Only alphanumeric, underscore, hyphen allowed

    Args:
        name: Step name to validate.

    Returns:
        The validated step name (unchanged).

    Raises:
        PipelineConfigError: If name is invalid.

    Examples:
        >>> validate_step_name("install-essentials")
        'install-essentials'
        >>> validate_step_name("")
        Traceback (most recent call last):
            ...
        archsetup.pipeline.exceptions.PipelineConfigError: Step name cannot be empty
    """
    if not name:
        raise PipelineConfigError("Step name cannot be empty")
    if len(name) > MAX_STEP_NAME_LENGTH:
        raise PipelineConfigError(f"Step name too long (max {MAX_STEP_NAME_LENGTH} chars)")
    if not STEP_NAME_PATTERN.match(name):
        raise PipelineConfigError(
            "Step name must start with a letter and contain only alphanumeric, underscore, or hyphen characters"
        )
    return name


def validate_package_names(names: Iterable[str]) -> tuple[str, ...]:
    """Validate a collection of package names.

    Args:
        names: Package names as listed in configuration.

    Returns:
        The names as a tuple, order preserved.

    Raises:
        PipelineConfigError: If any name is not a valid package name.

    Examples:
        >>> validate_package_names(["git", "base-devel", "ttf-firacode-nerd"])
        ('git', 'base-devel', 'ttf-firacode-nerd')
    """
    validated = tuple(names)
    for name in validated:
        if not isinstance(name, str) or not PACKAGE_NAME_PATTERN.match(name):
            raise PipelineConfigError(f"Invalid package name: {name!r}")
    return validated


def validate_service_name(name: str) -> str:
    """Validate a systemd unit name.

    Args:
        name: Unit name such as ``NetworkManager`` or ``greetd.service``.

    Returns:
        The validated name (unchanged).

    Raises:
        PipelineConfigError: If the name contains characters systemd rejects.
    """
    if not name or not SERVICE_NAME_PATTERN.match(name):
        raise PipelineConfigError(f"Invalid service name: {name!r}")
    return name


def validate_username(name: str) -> str:
    """Validate a login name.

    Args:
        name: Login name of the target user.

    Returns:
        The validated name (unchanged).

    Raises:
        PipelineConfigError: If the name is empty, too long or malformed.

    Examples:
        >>> validate_username("sb74")
        'sb74'
    """
    if not name:
        raise PipelineConfigError("User name cannot be empty")
    if len(name) > MAX_USERNAME_LENGTH:
        raise PipelineConfigError(f"User name too long (max {MAX_USERNAME_LENGTH} chars)")
    if not USERNAME_PATTERN.match(name):
        raise PipelineConfigError(f"Invalid user name: {name!r}")
    return name


def validate_pipeline_size(step_count: int) -> None:
    """Validate the number of registered steps.

    Args:
        step_count: Number of steps about to be registered.

    Raises:
        PipelineConfigError: If the pipeline would exceed the hard limit.
    """
    if step_count > MAX_PIPELINE_STEPS:
        raise PipelineConfigError(f"Too many steps (max {MAX_PIPELINE_STEPS})")


__all__ = [
    "MAX_PIPELINE_STEPS",
    "MAX_STEP_NAME_LENGTH",
    "MAX_USERNAME_LENGTH",
    "PACKAGE_NAME_PATTERN",
    "SERVICE_NAME_PATTERN",
    "STEP_NAME_PATTERN",
    "USERNAME_PATTERN",
    "validate_package_names",
    "validate_pipeline_size",
    "validate_service_name",
    "validate_step_name",
    "validate_username",
]
