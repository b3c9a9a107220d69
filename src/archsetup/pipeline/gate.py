"""Yes/no confirmation gate in front of pipeline steps."""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from functools import partial

from rich.console import Console

logger = logging.getLogger(__name__)

#: The only affirmative answer: a single ``y``, either case.
AFFIRMATIVE_PATTERN = re.compile(r"^y$", re.IGNORECASE)


def is_affirmative(answer: str) -> bool:
    """Return whether an operator answer means yes.

    Surrounding whitespace is ignored; everything except ``y``/``Y``
    (including an empty answer) means no.

    Examples:
        >>> is_affirmative("Y")
        True
        >>> is_affirmative("yes")
        False
        >>> is_affirmative("")
        False
    """
    return bool(AFFIRMATIVE_PATTERN.match(answer.strip()))


class ConfirmationGate:
    """Ask the operator before a step runs.

    Args:
        unattended: Treat every prompt as answered yes without reading input.
        reader: Callable that displays a prompt and returns one line.
            Defaults to :meth:`rich.console.Console.input`.
        console: Console used by the default reader.

    Examples:
        >>> gate = ConfirmationGate(reader=lambda prompt: "n")
        >>> gate.confirm("Install gaming tools?")
        False
    """

    def __init__(
        self,
        *,
        unattended: bool = False,
        reader: Callable[[str], str] | None = None,
        console: Console | None = None,
    ) -> None:
        """Initialize ConfirmationGate."""
        self._unattended = unattended
        if reader is None:
            reader = partial((console or Console()).input, markup=False)
        self._reader = reader

    @property
    def unattended(self) -> bool:
        """Whether prompts are bypassed."""
        return self._unattended

    def confirm(self, prompt: str) -> bool:
        """Ask a yes/no question.

        Args:
            prompt: The question, without the ``[y/N]`` suffix.

        Returns:
            True only for an affirmative answer (or in unattended mode).
        """
        if self._unattended:
            logger.debug("Unattended: auto-confirmed %r", prompt)
            return True
        try:
            answer = self._reader(f"{prompt} [y/N]: ")
        except EOFError:
            answer = ""
        confirmed = is_affirmative(answer)
        logger.debug("Prompt %r answered %r -> %s", prompt, answer, confirmed)
        return confirmed


__all__ = [
    "AFFIRMATIVE_PATTERN",
    "ConfirmationGate",
    "is_affirmative",
]
