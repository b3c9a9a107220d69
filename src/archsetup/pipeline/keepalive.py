"""Keep the sudo credential cache warm during long runs.

Package builds can take longer than the sudo timestamp timeout. makepkg
and the AUR helper run as the target user and call sudo themselves, so
the ticket that matters is that user's, not root's. The
:class:`SessionKeepalive` thread silently re-validates it every
``interval`` seconds so those builds never stall on a password prompt.

The loop owns an explicit stop event and is joined on :meth:`stop`;
it also exits by itself once the main thread is gone, and runs as a
daemon thread so it never outlives the process.
"""

from __future__ import annotations

import logging
import subprocess
import threading
from collections.abc import Callable, Sequence
from types import TracebackType

from archsetup.pipeline.exceptions import KeepaliveError
from archsetup.pipeline.runner import DEFAULT_IMPERSONATE_PREFIX

logger = logging.getLogger(__name__)

# Hard limits
MIN_INTERVAL = 1.0
MAX_INTERVAL = 240.0
DEFAULT_INTERVAL = 50.0

#: Interactive validation, may prompt for a password.
AUTHENTICATE_COMMAND: tuple[str, ...] = ("sudo", "-v")

#: Non-interactive refresh, fails instead of prompting.
REFRESH_COMMAND: tuple[str, ...] = ("sudo", "-n", "-v")


def credential_command(command: Sequence[str], user: str | None = None) -> tuple[str, ...]:
    """Return ``command`` as run for ``user`` (unchanged when ``user`` is None).

    Examples:
        >>> credential_command(REFRESH_COMMAND, "sb74")
        ('sudo', '-H', '-u', 'sb74', '--', 'sudo', '-n', '-v')
    """
    if user is None:
        return tuple(command)
    return (*DEFAULT_IMPERSONATE_PREFIX, user, "--", *command)


def _run_quiet(command: Sequence[str]) -> bool:
    """Run a command without output and report whether it succeeded."""
    try:
        proc = subprocess.run(  # noqa: S603
            list(command),
            stdin=subprocess.DEVNULL,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            check=False,
        )
    except OSError:
        return False
    return proc.returncode == 0


class SessionKeepalive:
    """Background loop refreshing the elevated-privilege grant.

    Args:
        interval: Seconds between refreshes, clamped to [1, 240].
        user: Account whose sudo ticket is kept warm (the invoking identity if None).
        refresher: Callable performing one refresh, returning success.
        authenticator: Callable performing the initial interactive validation.
        on_missed: Called with the consecutive failure count when a refresh fails.

    Examples:
        >>> keepalive = SessionKeepalive(interval=0.1)
        >>> keepalive.interval
        1.0
    """

    def __init__(
        self,
        interval: float = DEFAULT_INTERVAL,
        *,
        user: str | None = None,
        refresher: Callable[[], bool] | None = None,
        authenticator: Callable[[], bool] | None = None,
        on_missed: Callable[[int], None] | None = None,
    ) -> None:
        """Initialize SessionKeepalive."""
        self._interval = max(MIN_INTERVAL, min(MAX_INTERVAL, float(interval)))
        self._user = user
        self._refresher = refresher or (lambda: _run_quiet(self.refresh_command))
        self._authenticator = authenticator or (lambda: _run_quiet(self.authenticate_command))
        self._on_missed = on_missed
        self._authenticated = False
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._missed = 0
        self._refreshes = 0

    @property
    def interval(self) -> float:
        """Return the refresh interval in seconds."""
        return self._interval

    @property
    def user(self) -> str | None:
        """Return the account whose ticket is refreshed."""
        return self._user

    @property
    def authenticate_command(self) -> tuple[str, ...]:
        """Return the argv of the initial validation."""
        return credential_command(AUTHENTICATE_COMMAND, self._user)

    @property
    def refresh_command(self) -> tuple[str, ...]:
        """Return the argv of one silent refresh."""
        return credential_command(REFRESH_COMMAND, self._user)

    @property
    def is_running(self) -> bool:
        """Whether the background thread is alive."""
        return self._thread is not None and self._thread.is_alive()

    @property
    def refreshes(self) -> int:
        """Number of successful refreshes so far."""
        return self._refreshes

    def authenticate(self) -> bool:
        """Perform the initial explicit authentication.

        Returns:
            True if the credential was validated.
        """
        self._authenticated = bool(self._authenticator())
        if not self._authenticated:
            logger.warning("Initial privilege validation failed")
        return self._authenticated

    def refresh(self) -> bool:
        """Refresh the grant once.

        Failures are best-effort: they are counted and reported to
        ``on_missed`` but never raised.
        """
        if self._refresher():
            self._missed = 0
            self._refreshes += 1
            return True

        self._missed += 1
        logger.debug("Keepalive refresh failed (%d in a row)", self._missed)
        if self._on_missed is not None:
            try:
                self._on_missed(self._missed)
            except Exception:  # noqa: BLE001
                logger.debug("on_missed callback raised", exc_info=True)
        return False

    def start(self) -> None:
        """Start the background loop.

        Raises:
            KeepaliveError: If not authenticated yet or already running.
        """
        if not self._authenticated:
            raise KeepaliveError("Keepalive requires a successful authenticate() first")
        if self.is_running:
            raise KeepaliveError("Keepalive already running")

        self._stop_event.clear()
        self._thread = threading.Thread(target=self._loop, name="archsetup-keepalive", daemon=True)
        self._thread.start()
        logger.debug("Keepalive started (interval=%.1fs)", self._interval)

    def stop(self, timeout: float | None = None) -> None:
        """Signal the loop to stop and wait for it.

        Safe to call when not running or more than once.

        Args:
            timeout: Maximum seconds to wait for the thread (default: one interval).
        """
        self._stop_event.set()
        thread = self._thread
        if thread is not None:
            thread.join(timeout if timeout is not None else self._interval)
            if thread.is_alive():
                logger.warning("Keepalive thread did not stop within timeout")
            else:
                logger.debug("Keepalive stopped after %d refreshes", self._refreshes)
        self._thread = None

    def _loop(self) -> None:
        """Refresh until stopped or until the main thread has exited."""
        main = threading.main_thread()
        while not self._stop_event.wait(self._interval):
            if not main.is_alive():
                logger.debug("Main thread gone, keepalive exiting")
                return
            self.refresh()

    def __enter__(self) -> SessionKeepalive:
        """Authenticate if needed and start the loop."""
        if not self._authenticated and not self.authenticate():
            raise KeepaliveError("Privilege validation failed, keepalive not started")
        self.start()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        """Stop the loop on every exit path."""
        self.stop()


__all__ = [
    "AUTHENTICATE_COMMAND",
    "DEFAULT_INTERVAL",
    "MAX_INTERVAL",
    "MIN_INTERVAL",
    "REFRESH_COMMAND",
    "SessionKeepalive",
    "credential_command",
]
