"""Append-only transcript of every external command issued during a run.

One line per command::

    2026-10-19T08:15:02+00:00 run rc=0 pacman -Syu --noconfirm

The mode column is ``run`` for executed state-changing commands,
``query`` for read-only queries and ``dry-run`` for simulated ones.
"""

from __future__ import annotations

import logging
import shlex
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class TranscriptEntry:
    """A single recorded command.

    Attributes:
        timestamp: ISO-8601 UTC timestamp.
        mode: ``run``, ``query`` or ``dry-run``.
        exit_code: Exit status (0 for simulated commands).
        command: The argv as issued.
    """

    timestamp: str
    mode: str
    exit_code: int
    command: tuple[str, ...]

    @property
    def command_line(self) -> str:
        """The shell-quoted command line."""
        return shlex.join(self.command)

    def format(self) -> str:
        """Render the entry as one transcript line."""
        return f"{self.timestamp} {self.mode} rc={self.exit_code} {self.command_line}"


class Transcript:
    """Collect command entries in memory and append them to a file.

    Args:
        path: Transcript file. ``None`` keeps entries in memory only.

    Examples:
        >>> transcript = Transcript()
        >>> _ = transcript.record(("pacman", "-Syu"), 0, mode="dry-run")
        >>> transcript.entries[0].command_line
        'pacman -Syu'
    """

    def __init__(self, path: Path | str | None = None) -> None:
        """Initialize Transcript."""
        self._path = Path(path) if path is not None else None
        self._entries: list[TranscriptEntry] = []

    @property
    def path(self) -> Path | None:
        """Return the transcript file path, if any."""
        return self._path

    @property
    def entries(self) -> tuple[TranscriptEntry, ...]:
        """Return the entries recorded during this run."""
        return tuple(self._entries)

    def record(self, command: tuple[str, ...], exit_code: int, *, mode: str = "run") -> TranscriptEntry:
        """Record one command.

        Args:
            command: The argv as issued.
            exit_code: Exit status.
            mode: ``run``, ``query`` or ``dry-run``.

        Returns:
            The stored entry.
        """
        entry = TranscriptEntry(
            timestamp=datetime.now(tz=timezone.utc).isoformat(timespec="seconds"),
            mode=mode,
            exit_code=exit_code,
            command=command,
        )
        self._entries.append(entry)
        if self._path is not None:
            self._append(entry)
        return entry

    def _append(self, entry: TranscriptEntry) -> None:
        """Append one line to the transcript file.

        A transcript that cannot be written is logged, not fatal.
        """
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)  # type: ignore[union-attr]
            with self._path.open("a", encoding="utf-8") as handle:  # type: ignore[union-attr]
                handle.write(entry.format() + "\n")
        except OSError as exc:
            logger.warning("Cannot write transcript %s: %s", self._path, exc)


__all__ = [
    "Transcript",
    "TranscriptEntry",
]
