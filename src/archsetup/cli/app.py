"""Typer application: ``archsetup run``, ``archsetup steps``."""

from __future__ import annotations

import contextlib
import logging
import os
import pwd
from pathlib import Path
from typing import Annotated, Any, Optional

import typer
from rich.table import Table

from archsetup import meta
from archsetup.cli.common import (
    EXIT_CONFIG,
    EXIT_FAILURE,
    EXIT_INTERRUPTED,
    EXIT_OK,
    console,
    err_console,
    exit_error,
)
from archsetup.config.loader import load_config
from archsetup.exceptions import ConfigError
from archsetup.logging import configure_logging, log_success
from archsetup.pipeline import (
    CommandRunner,
    ConfirmationGate,
    ExecutionContext,
    KeepaliveError,
    Pipeline,
    PipelineAbortedError,
    PipelineConfigError,
    PipelineResult,
    PreconditionError,
    ProgressReporter,
    RunMode,
    SessionKeepalive,
    TargetUser,
    Transcript,
)
from archsetup.provision import build_context, build_pipeline
from archsetup.tools import system_toolbox

logger = logging.getLogger("archsetup.cli")

app = typer.Typer(
    name=meta.__app_name__,
    help=meta.__description__,
    no_args_is_help=True,
    add_completion=False,
)


def _lookup_user(name: str) -> Any:
    return pwd.getpwnam(name)


def _euid() -> int:
    return os.geteuid()


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"{meta.__app_name__} {meta.__version__}")
        raise typer.Exit(EXIT_OK)


@app.callback()
def main(
    version: Annotated[
        Optional[bool],  # noqa: UP007
        typer.Option("--version", callback=_version_callback, is_eager=True, help="Show the version and exit."),
    ] = None,
) -> None:
    """Bootstrap an Arch Linux Hyprland desktop, one idempotent step at a time."""


def _load(config_path: Path | None) -> Any:
    try:
        return load_config(config_path)
    except ConfigError as exc:
        exit_error(str(exc), EXIT_CONFIG)


@app.command("steps")
def list_steps(
    config_path: Annotated[
        Optional[Path],  # noqa: UP007
        typer.Option("--config", "-c", help="Configuration file merged over the defaults."),
    ] = None,
) -> None:
    """List the provisioning steps in execution order."""
    config = _load(config_path)
    placeholder = ExecutionContext(target_user=TargetUser(name="nobody", home=Path("/nonexistent")), dry_run=True)
    pipeline = build_pipeline(placeholder, system_toolbox(CommandRunner(dry_run=True), "nobody"), config)

    table = Table(title="Provisioning steps")
    table.add_column("#", justify="right")
    table.add_column("Step")
    table.add_column("Description")
    table.add_column("On error")
    table.add_column("Confirm")
    for index, step in enumerate(pipeline.steps, start=1):
        table.add_row(
            str(index),
            step.name,
            step.description,
            "continue" if step.optional else "abort",
            "yes" if step.requires_confirmation else "",
        )
    console.print(table)


@app.command("run")
def run(  # noqa: PLR0913
    dry_run: Annotated[
        bool, typer.Option("--dry-run", help="Record commands instead of executing them.")
    ] = False,
    unattended: Annotated[
        bool, typer.Option("--unattended", "-y", help="Answer yes to every prompt.")
    ] = False,
    interactive: Annotated[
        bool, typer.Option("--interactive", "-i", help="Confirm every step individually.")
    ] = False,
    user: Annotated[
        Optional[str],  # noqa: UP007
        typer.Option("--user", "-u", help="Target user (default: $SUDO_USER)."),
    ] = None,
    dotfiles_repo: Annotated[
        Optional[str],  # noqa: UP007
        typer.Option("--dotfiles-repo", help="Remote the dotfiles manager initializes from."),
    ] = None,
    steps: Annotated[
        Optional[list[str]],  # noqa: UP007
        typer.Option("--step", "-s", help="Run only this step (repeatable)."),
    ] = None,
    config_path: Annotated[
        Optional[Path],  # noqa: UP007
        typer.Option("--config", "-c", help="Configuration file merged over the defaults."),
    ] = None,
    transcript_path: Annotated[
        Optional[Path],  # noqa: UP007
        typer.Option("--transcript", help="Command transcript file (default from config)."),
    ] = None,
    log_level: Annotated[str, typer.Option("--log-level", help="Console log level.")] = "",
    keepalive: Annotated[
        bool, typer.Option("--keepalive/--no-keepalive", help="Keep the sudo credential cache warm.")
    ] = True,
) -> None:
    """Run the provisioning pipeline."""
    config = _load(config_path)
    configure_logging(log_level or config.logging.level, log_file=config.logging.get("file") or None)

    try:
        context = build_context(
            config,
            user=user,
            dry_run=dry_run,
            unattended=unattended,
            dotfiles_repo=dotfiles_repo,
            euid=_euid(),
            lookup=_lookup_user,
        )
    except PreconditionError as exc:
        exit_error(str(exc), EXIT_FAILURE)

    transcript = Transcript(transcript_path or config.transcript.get("path") or None)
    runner = CommandRunner(dry_run=context.dry_run, transcript=transcript)
    tools = system_toolbox(runner, context.target_user.name, aur_helper=config.aur_helper.name)

    try:
        pipeline = build_pipeline(context, tools, config)
        if steps:
            pipeline = pipeline.select(steps)
    except PipelineConfigError as exc:
        exit_error(str(exc), EXIT_CONFIG, hint="List valid names with: archsetup steps")

    gate = ConfirmationGate(unattended=context.unattended, console=console)
    reporter = ProgressReporter(console)

    console.rule(f"Arch setup for {context.target_user.name}{' (dry run)' if context.dry_run else ''}")

    keepalive_cm: contextlib.AbstractContextManager[Any] = contextlib.nullcontext()
    if keepalive and not context.dry_run:
        keepalive_cm = SessionKeepalive(interval=config.keepalive.interval, user=context.target_user.name)

    try:
        mode = _select_mode(gate, interactive=interactive, explicit_steps=bool(steps))
        with keepalive_cm:
            result = pipeline.run(gate, mode=mode, reporter=reporter)
    except PipelineAbortedError as exc:
        if isinstance(exc.result, PipelineResult):
            reporter.summary(exc.result)
        exit_error(
            exc.reason,
            EXIT_FAILURE,
            hint=f"Step '{exc.step_name}' failed. Fix the cause and re-run it with: archsetup run --step {exc.step_name}",
        )
    except KeyboardInterrupt:
        _report_interrupt(pipeline)
        raise typer.Exit(EXIT_INTERRUPTED) from None
    except KeepaliveError as exc:
        exit_error(str(exc), EXIT_FAILURE, hint="Check that sudo works for this session.")

    reporter.summary(result)
    if transcript.path is not None:
        console.print(f"[dim]Command transcript: {transcript.path}[/]")
    if mode == RunMode.FULL and not steps:
        log_success(logger, "Install complete")
        console.print("[green]Install complete![/] Reboot and enjoy your greetd + Hyprland system.")
    else:
        console.print("[green]Partial install complete.[/] Reboot when ready.")


def _select_mode(gate: ConfirmationGate, *, interactive: bool, explicit_steps: bool) -> RunMode:
    """Pick the run mode, asking the operator when it is not implied."""
    if interactive:
        return RunMode.INTERACTIVE
    if explicit_steps or gate.unattended:
        return RunMode.FULL
    return RunMode.FULL if gate.confirm("Run full setup?") else RunMode.INTERACTIVE


def _report_interrupt(pipeline: Pipeline) -> None:
    result = pipeline.result
    last = result.last_completed if result is not None else None
    logger.warning("Interrupted by operator")
    err_console.print("\n[bold red]Interrupted.[/]")
    if last:
        err_console.print(f"Last completed step: [bold]{last}[/]. Re-run archsetup to resume; finished steps are detected.")
    else:
        err_console.print("No step completed. Re-run archsetup to start over.")


__all__ = [
    "app",
]
