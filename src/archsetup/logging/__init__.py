"""Logging setup (rich console handler, optional run log file)."""

from archsetup.logging.manager import (
    LOGGER_NAME,
    SUCCESS_LEVEL,
    configure_logging,
    log_success,
)

__all__ = [
    "LOGGER_NAME",
    "SUCCESS_LEVEL",
    "configure_logging",
    "log_success",
]
