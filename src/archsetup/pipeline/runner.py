"""Privileged command runner.

Every external tool the provisioning steps touch goes through
:class:`CommandRunner`. It executes commands as the elevated identity
or, via ``sudo -u``, as the target user; in dry-run mode it records the
fully-resolved command line and returns a synthetic success instead.
Every invocation ends up in the run transcript.
"""

from __future__ import annotations

import logging
import os
import shlex
import subprocess
import time
from collections.abc import Mapping, Sequence

from archsetup.pipeline.exceptions import CommandError
from archsetup.pipeline.models import CommandResult
from archsetup.pipeline.transcript import Transcript

logger = logging.getLogger(__name__)

#: Exit status reported when the executable cannot be found (as a shell would).
EXIT_NOT_FOUND = 127

#: Prefix used to impersonate the target user. ``-H`` sets HOME to theirs.
DEFAULT_IMPERSONATE_PREFIX: tuple[str, ...] = ("sudo", "-H", "-u")


class CommandRunner:
    """Execute external commands with transcript logging and dry-run support.

    Args:
        dry_run: Record state-changing commands instead of executing them.
        transcript: Destination for command records (in-memory if omitted).
        impersonate_prefix: argv prefix followed by the user name to run
            a command as another identity.

    Examples:
        >>> runner = CommandRunner(dry_run=True)
        >>> result = runner.run("pacman", ["-Syu", "--noconfirm"])
        >>> result.simulated, result.exit_code
        (True, 0)
        >>> runner.transcript.entries[0].command_line
        'pacman -Syu --noconfirm'
    """

    def __init__(
        self,
        *,
        dry_run: bool = False,
        transcript: Transcript | None = None,
        impersonate_prefix: Sequence[str] = DEFAULT_IMPERSONATE_PREFIX,
    ) -> None:
        """Initialize CommandRunner."""
        self._dry_run = dry_run
        self._transcript = transcript if transcript is not None else Transcript()
        self._impersonate_prefix = tuple(impersonate_prefix)

    @property
    def dry_run(self) -> bool:
        """Whether state-changing commands are simulated."""
        return self._dry_run

    @property
    def transcript(self) -> Transcript:
        """Return the transcript commands are recorded to."""
        return self._transcript

    def resolve(self, command: str, args: Sequence[str] = (), *, as_user: str | None = None) -> tuple[str, ...]:
        """Build the argv that would be executed.

        Args:
            command: Executable name or path.
            args: Arguments.
            as_user: Run as this user instead of the elevated identity.

        Returns:
            The complete argv.

        Examples:
            >>> CommandRunner().resolve("git", ["clone", "url"], as_user="sb74")
            ('sudo', '-H', '-u', 'sb74', '--', 'git', 'clone', 'url')
        """
        argv = (command, *args)
        if as_user:
            return (*self._impersonate_prefix, as_user, "--", *argv)
        return argv

    def run(
        self,
        command: str,
        args: Sequence[str] = (),
        *,
        as_user: str | None = None,
        check: bool = True,
        capture: bool = False,
        cwd: str | os.PathLike[str] | None = None,
        env: Mapping[str, str] | None = None,
    ) -> CommandResult:
        """Run a state-changing command.

        Output is streamed to the terminal unless ``capture`` is set.

        Args:
            command: Executable name or path.
            args: Arguments.
            as_user: Run as this user instead of the elevated identity.
            check: Raise :class:`CommandError` on a non-zero exit code.
            capture: Capture stdout/stderr instead of streaming them.
            cwd: Working directory.
            env: Extra environment variables.

        Returns:
            The command result (synthetic success in dry-run mode).

        Raises:
            CommandError: If ``check`` is set and the command fails.
        """
        argv = self.resolve(command, args, as_user=as_user)

        if self._dry_run:
            logger.info("[DRY RUN] %s", shlex.join(argv))
            self._transcript.record(argv, 0, mode="dry-run")
            return CommandResult(command=argv, exit_code=0, simulated=True)

        result = self._execute(argv, capture=capture, cwd=cwd, env=env)
        self._transcript.record(argv, result.exit_code, mode="run")

        if not result.ok:
            logger.warning("Command failed (rc=%d): %s", result.exit_code, shlex.join(argv))
            if check:
                raise CommandError(argv, result.exit_code, result.stderr)
        return result

    def query(
        self,
        command: str,
        args: Sequence[str] = (),
        *,
        as_user: str | None = None,
        cwd: str | os.PathLike[str] | None = None,
    ) -> CommandResult:
        """Run a read-only query, even in dry-run mode.

        Queries back the idempotency checks, so they must reflect the real
        system. They never raise on a non-zero exit code.

        Args:
            command: Executable name or path.
            args: Arguments.
            as_user: Run as this user instead of the elevated identity.
            cwd: Working directory.

        Returns:
            The command result with captured output.
        """
        argv = self.resolve(command, args, as_user=as_user)
        result = self._execute(argv, capture=True, cwd=cwd, env=None)
        self._transcript.record(argv, result.exit_code, mode="query")
        return result

    def _execute(
        self,
        argv: tuple[str, ...],
        *,
        capture: bool,
        cwd: str | os.PathLike[str] | None,
        env: Mapping[str, str] | None,
    ) -> CommandResult:
        """Spawn the process and wait for it."""
        full_env = {**os.environ, **env} if env else None
        logger.debug("exec: %s", shlex.join(argv))
        start = time.monotonic()
        try:
            proc = subprocess.run(  # noqa: S603
                argv,
                capture_output=capture,
                text=True,
                check=False,
                cwd=cwd,
                env=full_env,
            )
        except FileNotFoundError as exc:
            logger.debug("exec: %s not found", argv[0])
            return CommandResult(command=argv, exit_code=EXIT_NOT_FOUND, stderr=str(exc))
        except OSError as exc:
            logger.exception("exec: OS error running %s", argv[0])
            return CommandResult(command=argv, exit_code=1, stderr=str(exc))

        logger.debug("exec: rc=%d in %.3fs", proc.returncode, time.monotonic() - start)
        return CommandResult(
            command=argv,
            exit_code=proc.returncode,
            stdout=proc.stdout or "",
            stderr=proc.stderr or "",
        )


__all__ = [
    "DEFAULT_IMPERSONATE_PREFIX",
    "EXIT_NOT_FOUND",
    "CommandRunner",
]
