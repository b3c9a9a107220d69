"""Shared pytest fixtures for the archsetup test suite.

The fakes below implement the tool protocols in memory and keep enough
state that running a step twice shows whether it is idempotent.
"""

from __future__ import annotations

# Disable Rich colors and force wide terminal BEFORE any imports
# Rich checks these at import time
import os

os.environ["NO_COLOR"] = "1"
os.environ["TERM"] = "dumb"
os.environ["COLUMNS"] = "200"

import logging
from collections.abc import Callable, Iterator, Sequence
from pathlib import Path
from typing import Any

import pytest
from box import Box

from archsetup.config.loader import deep_merge, load_default_config
from archsetup.logging.manager import LOGGER_NAME
from archsetup.pipeline.exceptions import CommandError
from archsetup.pipeline.models import CommandResult, ExecutionContext, TargetUser
from archsetup.pipeline.runner import CommandRunner
from archsetup.tools import Toolbox

# pylint: disable=redefined-outer-name


# ============================================================================
# Recording runner
# ============================================================================


Handler = Callable[[tuple[str, ...]], "tuple[int, str]"]


class RecordingRunner(CommandRunner):
    """CommandRunner that never spawns processes.

    ``handlers`` maps an executable name (after the impersonation
    prefix) to a callable returning ``(exit_code, stdout)``; anything
    without a handler succeeds with empty output.
    """

    def __init__(self, *, dry_run: bool = False) -> None:
        super().__init__(dry_run=dry_run)
        self.executed: list[tuple[str, ...]] = []
        self.handlers: dict[str, Handler] = {}

    def _execute(self, argv, *, capture, cwd, env):  # type: ignore[override]
        self.executed.append(argv)
        command = argv[argv.index("--") + 1 :] if "--" in argv else argv
        handler = self.handlers.get(command[0])
        exit_code, stdout = handler(command) if handler else (0, "")
        return CommandResult(command=argv, exit_code=exit_code, stdout=stdout)

    def commands(self) -> list[str]:
        """Return every transcript entry as a command line."""
        return [entry.command_line for entry in self.transcript.entries]


# ============================================================================
# Fake tools
# ============================================================================


class FakePackages:
    def __init__(self, installed: Sequence[str] = ()) -> None:
        self.installed: set[str] = set(installed)
        self.calls: list[tuple[str, tuple[str, ...]]] = []
        self.fail_install = False

    def is_installed(self, name: str) -> bool:
        return name in self.installed

    def install(self, names: Sequence[str]) -> None:
        self.calls.append(("install", tuple(names)))
        if self.fail_install:
            raise CommandError(("pacman", "-S", *names), 1, "error: target not found")
        self.installed.update(names)

    def upgrade(self) -> None:
        self.calls.append(("upgrade", ()))


class FakeAur:
    def __init__(self, packages: FakePackages, *, available: bool = False) -> None:
        self.name = "yay"
        self.is_available = available
        self.packages = packages
        self.calls: list[tuple[str, ...]] = []

    def available(self) -> bool:
        return self.is_available

    def install(self, names: Sequence[str]) -> None:
        self.calls.append(tuple(names))
        self.packages.installed.update(names)


class FakeServices:
    def __init__(self) -> None:
        self.enabled: set[tuple[str, str | None]] = set()
        self.lingering: set[str] = set()
        self.calls: list[tuple[str, str | None]] = []

    def is_enabled(self, unit: str, *, user: str | None = None) -> bool:
        return (unit, user) in self.enabled

    def enable(self, unit: str, *, user: str | None = None) -> None:
        self.calls.append((unit, user))
        self.enabled.add((unit, user))

    def linger_enabled(self, user: str) -> bool:
        return user in self.lingering

    def enable_linger(self, user: str) -> None:
        self.calls.append(("linger", user))
        self.lingering.add(user)


class FakeVcs:
    def __init__(self) -> None:
        self.clones: list[tuple[str, Path, str | None]] = []
        self.fail_urls: set[str] = set()

    def clone(self, url: str, destination: Path, *, as_user: str | None = None) -> None:
        self.clones.append((url, destination, as_user))
        if url in self.fail_urls:
            raise CommandError(("git", "clone", url, str(destination)), 128, "fatal: repository not found")
        destination.mkdir(parents=True)
        (destination / ".git").mkdir()


class FakeDotfiles:
    def __init__(self) -> None:
        self.unreachable: set[str] = set()
        self.tracked: set[Path] = set()
        self.calls: list[tuple[str, ...]] = []
        self.homes: dict[str, Path] = {}

    def state_dir(self, home: Path) -> Path:
        return home / ".local" / "share" / "chezmoi"

    def init(self, user: str, repo: str | None = None) -> None:
        self.calls.append(("init", repo or ""))
        if repo in self.unreachable:
            raise CommandError(("chezmoi", "init", repo), 1, "fatal: could not read Username")
        self.state_dir(self.homes[user]).mkdir(parents=True)

    def apply(self, user: str) -> None:
        self.calls.append(("apply",))

    def managed(self, user: str) -> frozenset[Path]:
        return frozenset(self.tracked)

    def add(self, user: str, path: Path) -> None:
        self.calls.append(("add", str(path)))
        self.tracked.add(path)


class FakeAccounts:
    def __init__(self, shells: dict[str, str]) -> None:
        self.shells = dict(shells)
        self.calls: list[tuple[str, str]] = []

    def login_shell(self, user: str) -> str:
        return self.shells[user]

    def set_login_shell(self, user: str, shell: str) -> None:
        self.calls.append((user, shell))
        self.shells[user] = shell


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture(autouse=True)
def _reset_package_logger() -> Iterator[None]:
    """Undo configure_logging so caplog keeps seeing package records."""
    yield
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.NOTSET)
    logger.propagate = True


@pytest.fixture
def target_user(tmp_path: Path) -> TargetUser:
    """A target user whose home lives in the pytest temp directory."""
    home = tmp_path / "home" / "sb74"
    (home / ".config").mkdir(parents=True)
    return TargetUser(name="sb74", home=home, uid=1000, gid=1000)


@pytest.fixture
def context(target_user: TargetUser) -> ExecutionContext:
    """A non-dry-run execution context with a dotfiles remote."""
    return ExecutionContext(target_user=target_user, dotfiles_repo="https://example.invalid/dotfiles.git")


@pytest.fixture
def make_config(tmp_path: Path) -> Callable[..., Box]:
    """Build a config from the packaged defaults plus overrides.

    Driver files are redirected into the temp directory.
    """
    etc = tmp_path / "etc"
    etc.mkdir(exist_ok=True)
    mkinitcpio = etc / "mkinitcpio.conf"
    if not mkinitcpio.exists():
        mkinitcpio.write_text("MODULES=()\nHOOKS=(base udev autodetect modconf block filesystems fsck)\n")

    def _make(overrides: dict[str, Any] | None = None) -> Box:
        data = deep_merge(
            load_default_config(),
            {
                "driver": {
                    "mkinitcpio_conf": str(mkinitcpio),
                    "modprobe_conf": str(etc / "modprobe.d" / "nvidia.conf"),
                },
                "transcript": {"path": ""},
            },
        )
        return Box(deep_merge(data, overrides or {}), frozen_box=True)

    return _make


@pytest.fixture
def config(make_config: Callable[..., Box]) -> Box:
    """The default configuration with driver files in the temp directory."""
    return make_config()


@pytest.fixture
def runner() -> RecordingRunner:
    """A runner that records instead of spawning, with fish/makepkg handlers."""
    return RecordingRunner()


@pytest.fixture
def toolbox(runner: RecordingRunner, target_user: TargetUser) -> Toolbox:
    """An in-memory toolbox for a fresh system."""
    packages = FakePackages()
    aur = FakeAur(packages)
    dotfiles = FakeDotfiles()
    dotfiles.homes[target_user.name] = target_user.home
    fish_vars: dict[str, str] = {}

    def fish(argv: tuple[str, ...]) -> tuple[int, str]:
        script = argv[-1]
        if script.startswith("set -Ux "):
            _, _, name, value = script.split(" ", 3)
            fish_vars[name] = value
            return 0, ""
        if script.startswith("echo $"):
            return 0, fish_vars.get(script[len("echo $") :], "") + "\n"
        return 0, ""

    def makepkg(argv: tuple[str, ...]) -> tuple[int, str]:
        aur.is_available = True
        return 0, ""

    runner.handlers["fish"] = fish
    runner.handlers["makepkg"] = makepkg

    return Toolbox(
        runner=runner,
        packages=packages,
        aur=aur,
        services=FakeServices(),
        vcs=FakeVcs(),
        dotfiles=dotfiles,
        accounts=FakeAccounts({target_user.name: "/bin/bash"}),
    )


@pytest.fixture
def scripted_input() -> Callable[[Sequence[str]], Callable[[str], str]]:
    """Build a reader returning canned answers and recording prompts."""

    def _build(answers: Sequence[str]) -> Callable[[str], str]:
        pending = list(answers)
        prompts: list[str] = []

        def reader(prompt: str) -> str:
            prompts.append(prompt)
            if not pending:
                raise EOFError
            return pending.pop(0)

        reader.prompts = prompts  # type: ignore[attr-defined]
        return reader

    return _build
