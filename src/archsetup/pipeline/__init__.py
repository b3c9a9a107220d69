"""Ordered, resumable, idempotent step pipeline.

This package is independent of Arch Linux: it knows about steps,
progress, confirmation, external commands and the sudo keepalive, but
not about pacman or dotfiles.

Examples:
    >>> from archsetup.pipeline import ConfirmationGate, Pipeline, Step, StepOutcome
    >>> pipeline = Pipeline("demo")
    >>> pipeline.register(Step(name="noop", description="Nothing to do", action=lambda: StepOutcome(changed=False)))
    >>> result = pipeline.run(ConfirmationGate(unattended=True))  # doctest: +SKIP
"""

from archsetup.pipeline.controller import Pipeline, RunMode
from archsetup.pipeline.exceptions import (
    CommandError,
    KeepaliveError,
    PipelineAbortedError,
    PipelineConfigError,
    PipelineError,
    PreconditionError,
    SoftFailure,
    StepError,
)
from archsetup.pipeline.gate import ConfirmationGate, is_affirmative
from archsetup.pipeline.keepalive import SessionKeepalive
from archsetup.pipeline.models import (
    CommandResult,
    ErrorPolicy,
    ExecutionContext,
    PipelineResult,
    PipelineState,
    Step,
    StepOutcome,
    StepResult,
    StepStatus,
    TargetUser,
)
from archsetup.pipeline.progress import ProgressReporter
from archsetup.pipeline.runner import CommandRunner
from archsetup.pipeline.transcript import Transcript, TranscriptEntry

__all__ = [
    "CommandError",
    "CommandResult",
    "CommandRunner",
    "ConfirmationGate",
    "ErrorPolicy",
    "ExecutionContext",
    "KeepaliveError",
    "Pipeline",
    "PipelineAbortedError",
    "PipelineConfigError",
    "PipelineError",
    "PipelineResult",
    "PipelineState",
    "PreconditionError",
    "ProgressReporter",
    "RunMode",
    "SessionKeepalive",
    "SoftFailure",
    "Step",
    "StepError",
    "StepOutcome",
    "StepResult",
    "StepStatus",
    "TargetUser",
    "Transcript",
    "TranscriptEntry",
    "is_affirmative",
]
