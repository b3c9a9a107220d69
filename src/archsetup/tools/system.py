"""Shell-out implementations of the tool protocols.

Each class wraps a :class:`~archsetup.pipeline.runner.CommandRunner`:
state-changing calls go through ``runner.run`` (simulated in dry-run
mode), read-only queries through ``runner.query`` (always executed).
"""

from __future__ import annotations

import logging
import pwd
import shutil
from collections.abc import Sequence
from pathlib import Path

from archsetup.pipeline.runner import CommandRunner
from archsetup.pipeline.validators import validate_package_names, validate_service_name

logger = logging.getLogger(__name__)

#: Where systemd-logind keeps one marker file per lingering user.
DEFAULT_LINGER_DIR = Path("/var/lib/systemd/linger")


class Pacman:
    """``pacman`` as the system package manager."""

    def __init__(self, runner: CommandRunner, binary: str = "pacman") -> None:
        """Initialize Pacman."""
        self._runner = runner
        self._binary = binary

    def is_installed(self, name: str) -> bool:
        """Return whether ``pacman -Q`` knows the package."""
        return self._runner.query(self._binary, ["-Q", name]).ok

    def install(self, names: Sequence[str]) -> None:
        """Install packages with ``--needed`` so present ones are skipped."""
        packages = validate_package_names(names)
        if not packages:
            return
        self._runner.run(self._binary, ["-S", "--needed", "--noconfirm", *packages])

    def upgrade(self) -> None:
        """Synchronize the package databases and upgrade everything."""
        self._runner.run(self._binary, ["-Syu", "--noconfirm"])


class Yay:
    """``yay`` as the AUR helper, always invoked as the target user.

    makepkg refuses to run as root, and builds must not leave root-owned
    files in the user's cache.
    """

    def __init__(self, runner: CommandRunner, user: str, binary: str = "yay") -> None:
        """Initialize Yay."""
        self._runner = runner
        self._user = user
        self.name = binary

    def available(self) -> bool:
        """Return whether the binary resolves on the search path."""
        return shutil.which(self.name) is not None

    def install(self, names: Sequence[str]) -> None:
        """Install AUR packages with ``--needed``."""
        packages = validate_package_names(names)
        if not packages:
            return
        self._runner.run(self.name, ["-S", "--needed", "--noconfirm", *packages], as_user=self._user)


class Systemd:
    """``systemctl`` and ``loginctl``."""

    def __init__(self, runner: CommandRunner, linger_dir: Path = DEFAULT_LINGER_DIR) -> None:
        """Initialize Systemd."""
        self._runner = runner
        self._linger_dir = Path(linger_dir)

    @staticmethod
    def _scope(user: str | None) -> list[str]:
        return ["--user"] if user else []

    def is_enabled(self, unit: str, *, user: str | None = None) -> bool:
        """Return whether ``systemctl is-enabled`` reports the unit enabled."""
        validate_service_name(unit)
        result = self._runner.query("systemctl", [*self._scope(user), "is-enabled", unit], as_user=user)
        return result.ok and result.stdout.strip() in ("enabled", "enabled-runtime", "static", "alias")

    def enable(self, unit: str, *, user: str | None = None) -> None:
        """Enable a unit; systemd treats enabling an enabled unit as a no-op."""
        validate_service_name(unit)
        self._runner.run("systemctl", [*self._scope(user), "enable", unit], as_user=user)

    def linger_enabled(self, user: str) -> bool:
        """Return whether logind has a linger marker for ``user``."""
        return (self._linger_dir / user).exists()

    def enable_linger(self, user: str) -> None:
        """Enable persistent sessions for ``user``."""
        self._runner.run("loginctl", ["enable-linger", user])


class Git:
    """``git`` as the version-control client."""

    def __init__(self, runner: CommandRunner, binary: str = "git") -> None:
        """Initialize Git."""
        self._runner = runner
        self._binary = binary

    def clone(self, url: str, destination: Path, *, as_user: str | None = None) -> None:
        """Shallow-clone ``url`` into ``destination``."""
        self._runner.run(self._binary, ["clone", "--depth", "1", url, str(destination)], as_user=as_user)


class Chezmoi:
    """``chezmoi`` as the dotfiles manager."""

    def __init__(self, runner: CommandRunner, binary: str = "chezmoi") -> None:
        """Initialize Chezmoi."""
        self._runner = runner
        self._binary = binary

    def state_dir(self, home: Path) -> Path:
        """Return chezmoi's default source directory."""
        return home / ".local" / "share" / "chezmoi"

    def init(self, user: str, repo: str | None = None) -> None:
        """Run ``chezmoi init`` (with ``repo`` when given)."""
        args = ["init", repo] if repo else ["init"]
        self._runner.run(self._binary, args, as_user=user, capture=True)

    def apply(self, user: str) -> None:
        """Run ``chezmoi apply``."""
        self._runner.run(self._binary, ["apply"], as_user=user)

    def managed(self, user: str) -> frozenset[Path]:
        """List managed targets as absolute paths (empty if the query fails)."""
        result = self._runner.query(self._binary, ["managed", "--path-style", "absolute"], as_user=user)
        if not result.ok:
            return frozenset()
        return frozenset(Path(line) for line in result.stdout.splitlines() if line.strip())

    def add(self, user: str, path: Path) -> None:
        """Run ``chezmoi add`` on one path."""
        self._runner.run(self._binary, ["add", str(path)], as_user=user)


class PasswdAccounts:
    """Login shells from the passwd database, changed with ``chsh``."""

    def __init__(self, runner: CommandRunner) -> None:
        """Initialize PasswdAccounts."""
        self._runner = runner

    def login_shell(self, user: str) -> str:
        """Return the shell field of the user's passwd entry."""
        return pwd.getpwnam(user).pw_shell

    def set_login_shell(self, user: str, shell: str) -> None:
        """Run ``chsh -s``."""
        self._runner.run("chsh", ["-s", shell, user])


__all__ = [
    "DEFAULT_LINGER_DIR",
    "Chezmoi",
    "Git",
    "Pacman",
    "PasswdAccounts",
    "Systemd",
    "Yay",
]
