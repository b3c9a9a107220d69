"""Specialized exceptions raised by the archsetup.pipeline module.

Exception hierarchy::

    ArchSetupError
        PipelineError (base for all pipeline errors)
            PipelineConfigError (invalid registry use, also ValueError)
            PreconditionError (not elevated, unusable target user)
            PipelineAbortedError (fail_fast abort)
            StepError (step execution error)
                CommandError (external command exited non-zero)
            SoftFailure (anticipated failure, reported and skipped)
            KeepaliveError (keepalive misuse)
"""

from __future__ import annotations

import shlex
from collections.abc import Sequence

from archsetup.exceptions import ArchSetupError


class PipelineError(ArchSetupError):
    """Base exception for all pipeline module errors."""


class PipelineConfigError(PipelineError, ValueError):
    """Pipeline or step definition is invalid.

    Raised for bad step names, duplicate registrations or an
    unknown step requested by name.
    """


class PreconditionError(PipelineError):
    """A fatal precondition does not hold.

    Raised before any step runs, for example when the process is
    not running with root privileges or the target user cannot be
    resolved.
    """


class PipelineAbortedError(PipelineError):
    """Pipeline execution was aborted due to fail_fast policy.

    Attributes:
        step_name: Name of the step that caused the abort.
        reason: Description of why the step failed.
        result: Partial ``PipelineResult`` collected up to the abort.
    """

    def __init__(self, step_name: str, reason: str, result: object = None) -> None:
        """Initialize PipelineAbortedError.

        Args:
            step_name: Name of the step that caused the abort.
            reason: Description of why the step failed.
            result: Partial pipeline result, if available.
        """
        super().__init__(f"Pipeline aborted at step '{step_name}': {reason}")
        self.step_name = step_name
        self.reason = reason
        self.result = result


class StepError(PipelineError):
    """A pipeline step failed during execution.

    Attributes:
        step_name: Name of the step that failed.
        reason: Description of the failure.
    """

    def __init__(self, step_name: str, reason: str) -> None:
        """Initialize StepError.

        Args:
            step_name: Name of the step that failed.
            reason: Description of the failure.
        """
        super().__init__(f"Step '{step_name}' failed: {reason}")
        self.step_name = step_name
        self.reason = reason


class CommandError(StepError):
    """An external command returned a non-zero exit code.

    The step name is unknown at the point the runner raises, so it is
    reported as ``"command"`` until the controller attributes it.

    Attributes:
        command: The argv that was executed.
        exit_code: The process exit status.
        stderr: Captured standard error, possibly empty.
    """

    def __init__(self, command: Sequence[str], exit_code: int, stderr: str = "") -> None:
        """Initialize CommandError.

        Args:
            command: The argv that was executed.
            exit_code: The process exit status.
            stderr: Captured standard error.
        """
        self.command = tuple(command)
        self.exit_code = exit_code
        self.stderr = stderr
        detail = f"`{shlex.join(self.command)}` exited with {exit_code}"
        if stderr.strip():
            detail = f"{detail}: {stderr.strip().splitlines()[-1]}"
        super().__init__("command", detail)


class SoftFailure(PipelineError):
    """An anticipated failure that must not abort the run.

    Step actions raise this when an expected condition prevents them
    from doing their work (AUR helper missing, remote unreachable).
    The controller records the step as skipped and moves on.

    Attributes:
        reason: Operator-facing explanation.
    """

    def __init__(self, reason: str) -> None:
        """Initialize SoftFailure.

        Args:
            reason: Operator-facing explanation.
        """
        super().__init__(reason)
        self.reason = reason


class KeepaliveError(PipelineError):
    """The session keepalive was used incorrectly (e.g. started twice)."""


__all__ = [
    "CommandError",
    "KeepaliveError",
    "PipelineAbortedError",
    "PipelineConfigError",
    "PipelineError",
    "PreconditionError",
    "SoftFailure",
    "StepError",
]
