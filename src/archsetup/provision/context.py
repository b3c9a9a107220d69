"""Build the run-wide :class:`ExecutionContext` from flags and environment.

Precedence for every setting: explicit CLI flag, then environment,
then configuration file.
"""

from __future__ import annotations

import logging
import os
import pwd
from collections.abc import Callable, Mapping
from pathlib import Path
from typing import Any

from archsetup.config.loader import env_flag
from archsetup.pipeline.exceptions import PipelineConfigError, PreconditionError
from archsetup.pipeline.models import ExecutionContext, TargetUser

logger = logging.getLogger(__name__)

#: Environment variables read at startup.
ENV_USER = "ARCHSETUP_USER"
ENV_SUDO_USER = "SUDO_USER"
ENV_DOTFILES_REPO = "DOTFILES_REPO"
ENV_DRY_RUN = "DRY_RUN"
ENV_UNATTENDED = "UNATTENDED"
ENV_CI = "CI"


def require_root(euid: int | None = None) -> int:
    """Fail unless the process runs with root privileges.

    Args:
        euid: Effective uid to check (the current one by default).

    Returns:
        The effective uid.

    Raises:
        PreconditionError: If not running as root.
    """
    euid = os.geteuid() if euid is None else euid
    if euid != 0:
        raise PreconditionError("archsetup must run as root: re-run it with sudo")
    return euid


def resolve_target_user(
    name: str | None,
    *,
    lookup: Callable[[str], Any] = pwd.getpwnam,
) -> TargetUser:
    """Resolve the unprivileged account to configure.

    Args:
        name: Login name (``None`` or empty when undetectable).
        lookup: passwd lookup returning an object with ``pw_dir``,
            ``pw_uid`` and ``pw_gid``.

    Returns:
        The resolved target user.

    Raises:
        PreconditionError: If no name was given or the account is unusable.
    """
    if not name:
        raise PreconditionError(
            "Cannot determine the target user: run through sudo or pass --user"
        )
    try:
        entry = lookup(name)
    except KeyError:
        raise PreconditionError(f"User {name!r} does not exist") from None
    try:
        return TargetUser(name=name, home=Path(entry.pw_dir), uid=entry.pw_uid, gid=entry.pw_gid)
    except PipelineConfigError as exc:
        raise PreconditionError(str(exc)) from exc


def build_context(
    config: Any,
    *,
    user: str | None = None,
    dry_run: bool | None = None,
    unattended: bool | None = None,
    dotfiles_repo: str | None = None,
    environ: Mapping[str, str] | None = None,
    euid: int | None = None,
    lookup: Callable[[str], Any] = pwd.getpwnam,
) -> ExecutionContext:
    """Check preconditions and assemble the execution context.

    ``CI`` forces dry-run mode regardless of flags.

    Args:
        config: Loaded configuration.
        user: Target user override.
        dry_run: ``--dry-run`` flag (``None`` means not given).
        unattended: ``--unattended`` flag (``None`` means not given).
        dotfiles_repo: Dotfiles remote override.
        environ: Environment mapping (``os.environ`` by default).
        euid: Effective uid (the current one by default).
        lookup: passwd lookup function.

    Returns:
        The frozen execution context.

    Raises:
        PreconditionError: If not root or the target user cannot be resolved.
    """
    environ = os.environ if environ is None else environ
    elevated_uid = require_root(euid)

    name = user or environ.get(ENV_USER) or environ.get(ENV_SUDO_USER)
    target = resolve_target_user(name, lookup=lookup)

    simulate = bool(dry_run) or env_flag(ENV_DRY_RUN, environ) or env_flag(ENV_CI, environ)
    if env_flag(ENV_CI, environ) and not dry_run:
        logger.info("CI environment detected, forcing dry-run mode")

    repo = dotfiles_repo or environ.get(ENV_DOTFILES_REPO) or config.dotfiles.get("repo") or None

    context = ExecutionContext(
        target_user=target,
        dry_run=simulate,
        unattended=bool(unattended) or env_flag(ENV_UNATTENDED, environ),
        elevated_uid=elevated_uid,
        dotfiles_repo=repo,
    )
    logger.debug("Execution context: %s", context)
    return context


__all__ = [
    "ENV_CI",
    "ENV_DOTFILES_REPO",
    "ENV_DRY_RUN",
    "ENV_SUDO_USER",
    "ENV_UNATTENDED",
    "ENV_USER",
    "build_context",
    "require_root",
    "resolve_target_user",
]
