"""Side-effect-free "already done?" predicates.

Every provisioning step starts with one of these. They are re-evaluated
on every run; nothing is cached between runs.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from pathlib import Path

from archsetup.tools.base import Accounts, AurHelper, DotfilesManager, PackageManager, ServiceManager

#: An uncommented ``MODULES=(...)`` assignment in mkinitcpio.conf.
MODULES_LINE_PATTERN = re.compile(r"^(?P<indent>\s*)MODULES=\((?P<body>[^)]*)\)(?P<rest>.*)$", re.MULTILINE)


def shell_is_set(accounts: Accounts, user: str, shell: str) -> bool:
    """Return whether ``user`` already logs in with ``shell``."""
    return accounts.login_shell(user) == shell


def aur_helper_available(aur: AurHelper) -> bool:
    """Return whether the AUR helper binary already resolves."""
    return aur.available()


def dotfiles_initialized(dotfiles: DotfilesManager, home: Path) -> bool:
    """Return whether the dotfiles tool's state directory exists."""
    return dotfiles.state_dir(home).is_dir()


def editor_configured(config_dir: Path) -> bool:
    """Return whether the editor configuration directory exists."""
    return config_dir.exists()


def missing_packages(packages: PackageManager, names: Iterable[str]) -> list[str]:
    """Return the packages from ``names`` that are not installed, in order."""
    return [name for name in names if not packages.is_installed(name)]


def disabled_units(services: ServiceManager, units: Iterable[str], *, user: str | None = None) -> list[str]:
    """Return the units from ``units`` that are not enabled yet."""
    return [unit for unit in units if not services.is_enabled(unit, user=user)]


def configured_modules(conf_text: str) -> list[str]:
    """Return the modules listed on the last ``MODULES=(...)`` line.

    Examples:
        >>> configured_modules("MODULES=(btrfs nvidia)\\n")
        ['btrfs', 'nvidia']
        >>> configured_modules("# MODULES=(nvidia)\\n")
        []
    """
    matches = list(MODULES_LINE_PATTERN.finditer(conf_text))
    if not matches:
        return []
    return matches[-1].group("body").split()


def missing_modules(conf_text: str, required: Sequence[str]) -> list[str]:
    """Return the required modules absent from the ``MODULES`` line.

    Examples:
        >>> missing_modules("MODULES=(nvidia)", ["nvidia", "nvidia_drm"])
        ['nvidia_drm']
    """
    present = set(configured_modules(conf_text))
    return [module for module in required if module not in present]


def line_present(text: str, line: str) -> bool:
    """Return whether ``line`` appears as a whole line in ``text``.

    Examples:
        >>> line_present("a\\noptions nvidia_drm modeset=1\\n", "options nvidia_drm modeset=1")
        True
    """
    wanted = line.strip()
    return any(candidate.strip() == wanted for candidate in text.splitlines())


__all__ = [
    "MODULES_LINE_PATTERN",
    "aur_helper_available",
    "configured_modules",
    "disabled_units",
    "dotfiles_initialized",
    "editor_configured",
    "line_present",
    "missing_modules",
    "missing_packages",
    "shell_is_set",
]
