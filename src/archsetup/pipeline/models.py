"""Data models for the archsetup.pipeline module.

This module defines the core data structures used by the pipeline module:

- ErrorPolicy: Enum for step failure handling (fail_fast, continue)
- StepStatus: Enum for step result status
- Step: Frozen definition of a single provisioning step
- StepOutcome: What a step action reports back (changed or converged)
- PipelineState: Progress counter owned by the pipeline controller
- TargetUser / ExecutionContext: Frozen run-wide context
- CommandResult: Result of one external command
- StepResult / PipelineResult: Mutable execution results
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from archsetup.pipeline.exceptions import PipelineConfigError
from archsetup.pipeline.validators import validate_step_name, validate_username


class ErrorPolicy(str, Enum):
    """Error handling policy for a step.

    Attributes:
        FAIL_FAST: Abort the remaining pipeline when the step fails.
        CONTINUE: Report the failure and proceed with the next step.
    """

    FAIL_FAST = "fail_fast"
    CONTINUE = "continue"


class StepStatus(str, Enum):
    """Result status of a pipeline step.

    Attributes:
        SUCCESS: Step ran and changed the system.
        UNCHANGED: Step's idempotency check found the work already done.
        SKIPPED: Step hit an anticipated condition and did nothing.
        DECLINED: Operator answered no at the confirmation prompt.
        FAILED: Step raised or an external command exited non-zero.
        NOT_RUN: Pipeline aborted before reaching the step.
    """

    SUCCESS = "success"
    UNCHANGED = "unchanged"
    SKIPPED = "skipped"
    DECLINED = "declined"
    FAILED = "failed"
    NOT_RUN = "not_run"


@dataclass(frozen=True, slots=True)
class StepOutcome:
    """Value returned by a step action.

    Attributes:
        changed: False when the idempotency check short-circuited.
        detail: Short human-readable note shown in the summary.
        reboot_required: The change only takes effect after a reboot.

    Examples:
        >>> StepOutcome(changed=False, detail="yay already installed").changed
        False
    """

    changed: bool = True
    detail: str | None = None
    reboot_required: bool = False


#: Signature of a step action. Returning ``None`` means "changed".
StepAction = Callable[[], "StepOutcome | None"]


@dataclass(frozen=True, slots=True)
class Step:
    """Definition of one provisioning step.

    Attributes:
        name: Unique step identifier (used by ``--step``).
        description: Human label shown on the progress line.
        action: Zero-argument callable doing the work.
        requires_confirmation: Ask the operator even in full-setup mode.
        on_error: Failure policy for this step.
        prompt: Question asked by the confirmation gate.

    Examples:
        >>> step = Step(name="update-system", description="Updating base system", action=lambda: None)
        >>> step.prompt
        'Updating base system?'
    """

    name: str
    description: str
    action: StepAction = field(compare=False, repr=False)
    requires_confirmation: bool = False
    on_error: ErrorPolicy = ErrorPolicy.FAIL_FAST
    prompt: str = ""

    def __post_init__(self) -> None:
        """Validate the step definition.

        Raises:
            PipelineConfigError: If the name is invalid or the action is not callable.
        """
        validate_step_name(self.name)
        if not self.description:
            raise PipelineConfigError(f"Step '{self.name}': description cannot be empty")
        if not callable(self.action):
            raise PipelineConfigError(f"Step '{self.name}': action must be callable")
        if not self.prompt:
            object.__setattr__(self, "prompt", f"{self.description}?")

    @property
    def optional(self) -> bool:
        """Whether a failure of this step lets the pipeline continue."""
        return self.on_error == ErrorPolicy.CONTINUE


@dataclass(slots=True)
class PipelineState:
    """Position of the pipeline within its registered steps.

    Only the pipeline controller mutates this value, and only forward.

    Attributes:
        total_steps: Number of registered steps.
        current_index: Number of steps consumed so far.
    """

    total_steps: int = 0
    current_index: int = 0

    def advance(self) -> tuple[int, int]:
        """Consume one progress slot.

        Returns:
            The 1-based position of the step and the total.

        Raises:
            PipelineConfigError: If every slot has already been consumed.
        """
        if self.current_index >= self.total_steps:
            raise PipelineConfigError(
                f"Cannot advance past step {self.total_steps} of {self.total_steps}"
            )
        self.current_index += 1
        return self.current_index, self.total_steps


@dataclass(frozen=True, slots=True)
class TargetUser:
    """The unprivileged account user-scoped configuration is done for.

    Attributes:
        name: Login name.
        home: Home directory.
        uid: Numeric user id.
        gid: Numeric primary group id.
    """

    name: str
    home: Path
    uid: int = -1
    gid: int = -1

    def __post_init__(self) -> None:
        """Validate the login name."""
        validate_username(self.name)
        if self.name == "root":
            raise PipelineConfigError("Target user must be an unprivileged account, not root")


@dataclass(frozen=True, slots=True)
class ExecutionContext:
    """Run-wide settings, built once at startup and read-only afterwards.

    Attributes:
        target_user: Account user-scoped steps act on.
        dry_run: Record commands instead of executing them.
        unattended: Answer every confirmation prompt with yes.
        elevated_uid: Effective uid the process runs with.
        dotfiles_repo: Remote the dotfiles tool initializes from.
    """

    target_user: TargetUser
    dry_run: bool = False
    unattended: bool = False
    elevated_uid: int = 0
    dotfiles_repo: str | None = None


@dataclass(frozen=True, slots=True)
class CommandResult:
    """Result of one external command.

    Attributes:
        command: The fully-resolved argv.
        exit_code: Process exit status (0 for simulated runs).
        stdout: Captured standard output.
        stderr: Captured standard error.
        simulated: True when the command was only recorded (dry run).
    """

    command: tuple[str, ...]
    exit_code: int
    stdout: str = ""
    stderr: str = ""
    simulated: bool = False

    @property
    def ok(self) -> bool:
        """Whether the command exited with status 0."""
        return self.exit_code == 0


@dataclass(slots=True)
class StepResult:
    """Result of a single pipeline step.

    Attributes:
        name: Step name.
        status: Execution result status.
        detail: Note from the step outcome or failure reason.
        duration: Execution duration in seconds.
        error: Error message if the step failed.
        reboot_required: Step changed something that needs a reboot.

    Examples:
        >>> result = StepResult(name="set-shell", status=StepStatus.UNCHANGED)
        >>> result.status
        <StepStatus.UNCHANGED: 'unchanged'>
    """

    name: str
    status: StepStatus
    detail: str | None = None
    duration: float = 0.0
    error: str | None = None
    reboot_required: bool = False


@dataclass(slots=True)
class PipelineResult:
    """Aggregate result of a pipeline run.

    Attributes:
        name: Pipeline name.
        results: Ordered list of step results.
        duration: Total execution duration in seconds.

    Examples:
        >>> result = PipelineResult(name="desktop")
        >>> result.success
        True
    """

    name: str
    results: list[StepResult] = field(default_factory=list)
    duration: float = 0.0

    @property
    def success(self) -> bool:
        """Whether no step failed.

        Returns:
            True if no step has FAILED status.
        """
        return all(r.status != StepStatus.FAILED for r in self.results)

    @property
    def failed_steps(self) -> list[StepResult]:
        """Steps that failed."""
        return [r for r in self.results if r.status == StepStatus.FAILED]

    @property
    def executed_steps(self) -> list[StepResult]:
        """Steps whose action was invoked (changed, converged or failed)."""
        ran = (StepStatus.SUCCESS, StepStatus.UNCHANGED, StepStatus.SKIPPED, StepStatus.FAILED)
        return [r for r in self.results if r.status in ran]

    @property
    def reboot_required(self) -> bool:
        """Whether any step asked for a reboot."""
        return any(r.reboot_required for r in self.results)

    @property
    def last_completed(self) -> str | None:
        """Name of the last step that finished without failing."""
        done = (StepStatus.SUCCESS, StepStatus.UNCHANGED, StepStatus.SKIPPED, StepStatus.DECLINED)
        for result in reversed(self.results):
            if result.status in done:
                return result.name
        return None


__all__ = [
    "CommandResult",
    "ErrorPolicy",
    "ExecutionContext",
    "PipelineResult",
    "PipelineState",
    "Step",
    "StepAction",
    "StepOutcome",
    "StepResult",
    "StepStatus",
    "TargetUser",
]
