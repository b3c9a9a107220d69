"""Step registry and pipeline controller.

:class:`Pipeline` owns the ordered steps and the progress state. The
same step objects back both run modes: in ``FULL`` mode only steps that
ask for it are confirmed, in ``INTERACTIVE`` mode every step is.

Every registered step consumes exactly one progress slot, whether it
runs, is already converged, is declined or fails softly, so the total
shown to the operator never changes mid-run.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Iterable, Iterator
from enum import Enum

from archsetup.pipeline.exceptions import (
    PipelineAbortedError,
    PipelineConfigError,
    SoftFailure,
    StepError,
)
from archsetup.pipeline.gate import ConfirmationGate
from archsetup.pipeline.models import (
    ErrorPolicy,
    PipelineResult,
    PipelineState,
    Step,
    StepOutcome,
    StepResult,
    StepStatus,
)
from archsetup.pipeline.progress import ProgressReporter
from archsetup.pipeline.validators import validate_pipeline_size

logger = logging.getLogger(__name__)


class RunMode(str, Enum):
    """How the confirmation gate is consulted.

    Attributes:
        FULL: Confirm only steps flagged ``requires_confirmation``.
        INTERACTIVE: Confirm every step.
    """

    FULL = "full"
    INTERACTIVE = "interactive"


class Pipeline:
    """Ordered collection of steps with a single progress counter.

    Args:
        name: Pipeline name shown in logs and the summary.
        steps: Steps to register, in execution order.

    Examples:
        >>> pipeline = Pipeline("demo")
        >>> pipeline.register(Step(name="hello", description="Say hello", action=lambda: None))
        >>> pipeline.describe(1)
        'Say hello'
        >>> pipeline.advance()
        (1, 1)
    """

    def __init__(self, name: str, steps: Iterable[Step] = ()) -> None:
        """Initialize Pipeline."""
        self._name = name
        self._steps: list[Step] = []
        self._state = PipelineState()
        self._started = False
        self._result: PipelineResult | None = None
        for step in steps:
            self.register(step)

    @property
    def name(self) -> str:
        """Return the pipeline name."""
        return self._name

    @property
    def steps(self) -> tuple[Step, ...]:
        """Return the registered steps in execution order."""
        return tuple(self._steps)

    @property
    def state(self) -> PipelineState:
        """Return the progress state."""
        return self._state

    @property
    def result(self) -> PipelineResult | None:
        """Return the (possibly partial) result of the current or last run."""
        return self._result

    def __len__(self) -> int:
        return len(self._steps)

    def __iter__(self) -> Iterator[Step]:
        return iter(self._steps)

    def register(self, step: Step) -> None:
        """Append a step.

        Raises:
            PipelineConfigError: If the name is taken or the run already started.
        """
        if self._started:
            raise PipelineConfigError("Cannot register steps after the pipeline started")
        if any(existing.name == step.name for existing in self._steps):
            raise PipelineConfigError(f"Duplicate step name: {step.name!r}")
        validate_pipeline_size(len(self._steps) + 1)
        self._steps.append(step)
        self._state.total_steps = len(self._steps)

    def get(self, name: str) -> Step:
        """Look up a step by name.

        Raises:
            PipelineConfigError: If no such step is registered.
        """
        for step in self._steps:
            if step.name == name:
                return step
        available = ", ".join(s.name for s in self._steps) or "(none)"
        raise PipelineConfigError(f"Unknown step {name!r}. Available: {available}")

    def select(self, names: Iterable[str]) -> Pipeline:
        """Build a new pipeline with only the named steps, in registry order.

        Args:
            names: Step names to keep.

        Returns:
            A fresh pipeline with its own progress state.

        Raises:
            PipelineConfigError: If a name is unknown.
        """
        wanted = {self.get(name).name for name in names}
        return Pipeline(self._name, (s for s in self._steps if s.name in wanted))

    def describe(self, index: int) -> str:
        """Return the label of the step at a 1-based position.

        Raises:
            PipelineConfigError: If the index is out of range.
        """
        if not 1 <= index <= len(self._steps):
            raise PipelineConfigError(f"Step index {index} out of range 1..{len(self._steps)}")
        return self._steps[index - 1].description

    def advance(self) -> tuple[int, int]:
        """Consume one progress slot and return ``(index, total)``."""
        return self._state.advance()

    def run(
        self,
        gate: ConfirmationGate,
        *,
        mode: RunMode = RunMode.FULL,
        reporter: ProgressReporter | None = None,
    ) -> PipelineResult:
        """Execute every registered step in order.

        Args:
            gate: Confirmation gate consulted per ``mode``.
            mode: Which steps need confirmation.
            reporter: Progress output (a default console reporter if omitted).

        Returns:
            The pipeline result. Optional steps may have FAILED.

        Raises:
            PipelineConfigError: If the pipeline was already run.
            PipelineAbortedError: If a fail-fast step fails.
        """
        if self._started:
            raise PipelineConfigError(f"Pipeline '{self._name}' has already been run")
        self._started = True
        reporter = reporter or ProgressReporter()
        result = PipelineResult(name=self._name)
        self._result = result
        start = time.monotonic()

        logger.info(
            "Pipeline '%s' started (%d steps, mode=%s%s)",
            self._name,
            len(self._steps),
            mode.value,
            ", unattended" if gate.unattended else "",
        )

        for position, step in enumerate(self._steps):
            index, total = self.advance()
            reporter.step(index, total, step.description)

            needs_confirmation = mode == RunMode.INTERACTIVE or step.requires_confirmation
            if needs_confirmation and not gate.confirm(step.prompt):
                logger.info("Step '%s' declined by operator", step.name)
                reporter.note("declined")
                result.results.append(StepResult(name=step.name, status=StepStatus.DECLINED))
                continue

            step_result = self._execute(step, reporter)
            result.results.append(step_result)
            logger.info("Step '%s' -> %s (%.3fs)", step.name, step_result.status.value, step_result.duration)

            if step_result.status != StepStatus.FAILED:
                continue

            if step.on_error == ErrorPolicy.CONTINUE:
                reporter.note(
                    f"{step.name} failed: {step_result.error}. Continuing; re-run it later with --step {step.name}",
                    style="red",
                )
                continue

            for remaining in self._steps[position + 1 :]:
                result.results.append(StepResult(name=remaining.name, status=StepStatus.NOT_RUN))
            result.duration = time.monotonic() - start
            raise PipelineAbortedError(step.name, step_result.error or "failed", result)

        result.duration = time.monotonic() - start
        logger.info(
            "Pipeline '%s' completed in %.3fs (success=%s)",
            self._name,
            result.duration,
            result.success,
        )
        return result

    def _execute(self, step: Step, reporter: ProgressReporter) -> StepResult:
        """Invoke a step action and translate its outcome."""
        start = time.monotonic()
        try:
            outcome = step.action() or StepOutcome()
        except SoftFailure as exc:
            logger.warning("Step '%s' skipped: %s", step.name, exc.reason)
            reporter.note(exc.reason, style="yellow")
            return StepResult(
                name=step.name,
                status=StepStatus.SKIPPED,
                detail=exc.reason,
                duration=time.monotonic() - start,
            )
        except StepError as exc:
            logger.error("Step '%s' failed: %s", step.name, exc.reason)  # noqa: TRY400
            return StepResult(
                name=step.name,
                status=StepStatus.FAILED,
                duration=time.monotonic() - start,
                error=exc.reason,
            )
        except Exception as exc:
            logger.exception("Step '%s' raised", step.name)
            return StepResult(
                name=step.name,
                status=StepStatus.FAILED,
                duration=time.monotonic() - start,
                error=str(exc) or type(exc).__name__,
            )

        status = StepStatus.SUCCESS if outcome.changed else StepStatus.UNCHANGED
        if outcome.detail:
            reporter.note(outcome.detail)
        return StepResult(
            name=step.name,
            status=status,
            detail=outcome.detail,
            duration=time.monotonic() - start,
            reboot_required=outcome.reboot_required,
        )


__all__ = [
    "Pipeline",
    "RunMode",
]
