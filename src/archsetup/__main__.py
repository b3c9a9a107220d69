"""Entry point for ``python -m archsetup``."""

from __future__ import annotations

from archsetup.cli.app import app


def main() -> None:
    """Run the archsetup CLI."""
    app()


if __name__ == "__main__":  # pragma: no cover
    main()
