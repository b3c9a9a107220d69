"""Bootstrap an Arch Linux desktop through an ordered, idempotent pipeline.

The heavy lifting lives in three layers:

- :mod:`archsetup.pipeline`: generic step registry, command runner,
  confirmation gate, progress reporting and sudo keepalive.
- :mod:`archsetup.tools`: narrow interfaces over pacman, the AUR helper,
  systemd, git and chezmoi.
- :mod:`archsetup.provision`: the ordered catalog of provisioning steps.

Examples:
    >>> from archsetup.pipeline import ConfirmationGate
    >>> ConfirmationGate(unattended=True).confirm("Install everything?")
    True
"""

from archsetup.exceptions import ArchSetupError, ConfigError
from archsetup.meta import __version__

__all__ = [
    "ArchSetupError",
    "ConfigError",
    "__version__",
]
