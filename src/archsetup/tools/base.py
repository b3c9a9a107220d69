"""Protocols for the external tools provisioning steps depend on.

Steps only ever see these narrow interfaces, so the idempotent
pipeline logic can be exercised against in-memory fakes while the
shell-out mechanics live in :mod:`archsetup.tools.system`.
"""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path
from typing import Protocol, runtime_checkable


@runtime_checkable
class PackageManager(Protocol):
    """System package manager (pacman)."""

    def is_installed(self, name: str) -> bool:
        """Return whether a package is installed."""
        ...

    def install(self, names: Sequence[str]) -> None:
        """Install packages, leaving already-installed ones untouched."""
        ...

    def upgrade(self) -> None:
        """Refresh the package index and upgrade the system."""
        ...


@runtime_checkable
class AurHelper(Protocol):
    """AUR helper (yay) building community packages as the target user."""

    name: str

    def available(self) -> bool:
        """Return whether the helper binary is on the search path."""
        ...

    def install(self, names: Sequence[str]) -> None:
        """Install AUR packages, leaving already-installed ones untouched."""
        ...


@runtime_checkable
class ServiceManager(Protocol):
    """Service and login-session manager (systemd, loginctl)."""

    def is_enabled(self, unit: str, *, user: str | None = None) -> bool:
        """Return whether a system unit (or a user unit of ``user``) is enabled."""
        ...

    def enable(self, unit: str, *, user: str | None = None) -> None:
        """Enable a system unit, or a user unit of ``user``."""
        ...

    def linger_enabled(self, user: str) -> bool:
        """Return whether persistent user sessions are enabled for ``user``."""
        ...

    def enable_linger(self, user: str) -> None:
        """Enable persistent user sessions for ``user``."""
        ...


@runtime_checkable
class VersionControl(Protocol):
    """Version-control client (git)."""

    def clone(self, url: str, destination: Path, *, as_user: str | None = None) -> None:
        """Clone ``url`` into ``destination``."""
        ...


@runtime_checkable
class DotfilesManager(Protocol):
    """Dotfiles-management tool (chezmoi) acting for one user."""

    def state_dir(self, home: Path) -> Path:
        """Return the tool's source/state directory under ``home``."""
        ...

    def init(self, user: str, repo: str | None = None) -> None:
        """Initialize from ``repo``, or an empty local source when ``None``."""
        ...

    def apply(self, user: str) -> None:
        """Write the managed files into the user's home."""
        ...

    def managed(self, user: str) -> frozenset[Path]:
        """Return the absolute target paths already under management."""
        ...

    def add(self, user: str, path: Path) -> None:
        """Start managing ``path``."""
        ...


@runtime_checkable
class Accounts(Protocol):
    """User account database (passwd, chsh)."""

    def login_shell(self, user: str) -> str:
        """Return the configured login shell of ``user``."""
        ...

    def set_login_shell(self, user: str, shell: str) -> None:
        """Change the login shell of ``user``."""
        ...


__all__ = [
    "Accounts",
    "AurHelper",
    "DotfilesManager",
    "PackageManager",
    "ServiceManager",
    "VersionControl",
]
