"""Root exception types shared by every archsetup subpackage.

Exception hierarchy::

    ArchSetupError
        ConfigError (invalid or unreadable configuration, also ValueError)
        PipelineError (see ``archsetup.pipeline.exceptions``)
"""

from __future__ import annotations


class ArchSetupError(Exception):
    """Base exception for all archsetup errors."""


class ConfigError(ArchSetupError, ValueError):
    """Configuration could not be loaded or failed validation.

    Attributes:
        source: File the bad value came from, if known.
    """

    def __init__(self, message: str, source: str | None = None) -> None:
        """Initialize ConfigError.

        Args:
            message: Description of the problem.
            source: Optional path of the offending config file.
        """
        if source:
            message = f"{message} (in {source})"
        super().__init__(message)
        self.source = source


__all__ = [
    "ArchSetupError",
    "ConfigError",
]
