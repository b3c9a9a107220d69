"""Scoped scratch directory for source builds."""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from archsetup.pipeline.models import TargetUser

logger = logging.getLogger(__name__)


@contextmanager
def scratch_directory(owner: TargetUser | None = None, *, prefix: str = "archsetup-") -> Iterator[Path]:
    """Create a private build directory and remove it on every exit path.

    Args:
        owner: Hand the directory to this user so unprivileged builds can
            write into it. Ownership is only changed when running as root.
        prefix: Directory name prefix.

    Yields:
        Path of the new directory.

    Examples:
        >>> with scratch_directory() as path:
        ...     path.is_dir()
        True
        >>> path.exists()
        False
    """
    path = Path(tempfile.mkdtemp(prefix=prefix))
    logger.debug("Created scratch directory %s", path)
    try:
        if owner is not None and owner.uid >= 0 and os.geteuid() == 0:
            os.chown(path, owner.uid, owner.gid)
        yield path
    finally:
        shutil.rmtree(path, ignore_errors=True)
        if path.exists():
            logger.warning("Scratch directory %s could not be fully removed", path)
        else:
            logger.debug("Removed scratch directory %s", path)


__all__ = [
    "scratch_directory",
]
