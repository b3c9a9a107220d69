"""Project metadata for archsetup."""

__app_name__ = "archsetup"
__version__ = "0.4.0"
__description__ = "Resumable, idempotent bootstrap pipeline for an Arch Linux Hyprland desktop"
__license_type__ = "MIT"

__all__ = [
    "__app_name__",
    "__description__",
    "__license_type__",
    "__version__",
]
