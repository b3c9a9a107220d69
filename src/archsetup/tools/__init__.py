"""External tool interfaces and their shell-out implementations."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from archsetup.pipeline.runner import CommandRunner
from archsetup.tools.base import (
    Accounts,
    AurHelper,
    DotfilesManager,
    PackageManager,
    ServiceManager,
    VersionControl,
)
from archsetup.tools.system import DEFAULT_LINGER_DIR, Chezmoi, Git, Pacman, PasswdAccounts, Systemd, Yay


@dataclass(frozen=True, slots=True)
class Toolbox:
    """The set of collaborators provisioning steps are built from.

    Attributes:
        runner: Command runner for anything without a dedicated interface.
        packages: System package manager.
        aur: AUR helper.
        services: Service and session manager.
        vcs: Version-control client.
        dotfiles: Dotfiles manager.
        accounts: User account database.
    """

    runner: CommandRunner
    packages: PackageManager
    aur: AurHelper
    services: ServiceManager
    vcs: VersionControl
    dotfiles: DotfilesManager
    accounts: Accounts


def system_toolbox(
    runner: CommandRunner,
    user: str,
    *,
    aur_helper: str = "yay",
    linger_dir: Path = DEFAULT_LINGER_DIR,
) -> Toolbox:
    """Build the toolbox backed by the real system binaries.

    Args:
        runner: Runner every tool shells out through.
        user: Target user the AUR helper builds as.
        aur_helper: AUR helper binary name.
        linger_dir: logind linger marker directory.

    Returns:
        A toolbox of shell-out implementations.
    """
    return Toolbox(
        runner=runner,
        packages=Pacman(runner),
        aur=Yay(runner, user, binary=aur_helper),
        services=Systemd(runner, linger_dir=linger_dir),
        vcs=Git(runner),
        dotfiles=Chezmoi(runner),
        accounts=PasswdAccounts(runner),
    )


__all__ = [
    "Accounts",
    "AurHelper",
    "DotfilesManager",
    "PackageManager",
    "ServiceManager",
    "Toolbox",
    "VersionControl",
    "system_toolbox",
]
