"""Command-line interface for archsetup.

The Typer application lives in :mod:`archsetup.cli.app`; it is not
re-exported here so that ``archsetup.cli.app`` always names the module.
"""
