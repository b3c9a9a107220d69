"""Tests for the archsetup.pipeline.models module."""

from __future__ import annotations

import dataclasses
from pathlib import Path

import pytest

from archsetup.pipeline.exceptions import PipelineConfigError
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


def _noop() -> None:
    return None


# ============================================================================
# Enums
# ============================================================================


class TestEnums:
    """Tests for ErrorPolicy and StepStatus."""

    def test_error_policy_values(self) -> None:
        """Policies serialize to snake case strings."""
        assert ErrorPolicy.FAIL_FAST.value == "fail_fast"
        assert ErrorPolicy("continue") is ErrorPolicy.CONTINUE

    def test_step_status_values(self) -> None:
        """Every status has a stable string value."""
        assert {s.value for s in StepStatus} == {
            "success",
            "unchanged",
            "skipped",
            "declined",
            "failed",
            "not_run",
        }


# ============================================================================
# Step
# ============================================================================


class TestStep:
    """Tests for the Step definition."""

    def test_defaults(self) -> None:
        """A minimal step is fail-fast and needs no confirmation."""
        step = Step(name="update-system", description="Updating base system", action=_noop)
        assert step.on_error == ErrorPolicy.FAIL_FAST
        assert step.requires_confirmation is False
        assert step.optional is False
        assert step.prompt == "Updating base system?"

    def test_explicit_prompt_kept(self) -> None:
        """An explicit prompt is not replaced."""
        step = Step(name="a", description="A", action=_noop, prompt="Really?")
        assert step.prompt == "Really?"

    def test_continue_policy_is_optional(self) -> None:
        """Continue-on-error steps are reported as optional."""
        step = Step(name="gaming", description="Gaming", action=_noop, on_error=ErrorPolicy.CONTINUE)
        assert step.optional is True

    def test_frozen(self) -> None:
        """Steps cannot be mutated after creation."""
        step = Step(name="a", description="A", action=_noop)
        with pytest.raises(dataclasses.FrozenInstanceError):
            step.name = "b"  # type: ignore[misc]

    @pytest.mark.parametrize("name", ["", "1step", "has space", "x" * 65])
    def test_invalid_name(self, name: str) -> None:
        """Invalid names are rejected at construction."""
        with pytest.raises(PipelineConfigError):
            Step(name=name, description="A", action=_noop)

    def test_empty_description(self) -> None:
        """A step needs a progress label."""
        with pytest.raises(PipelineConfigError, match="description cannot be empty"):
            Step(name="a", description="", action=_noop)

    def test_action_must_be_callable(self) -> None:
        """Non-callable actions are rejected."""
        with pytest.raises(PipelineConfigError, match="must be callable"):
            Step(name="a", description="A", action="pacman -Syu")  # type: ignore[arg-type]

    def test_action_ignored_in_equality(self) -> None:
        """Two steps with the same definition compare equal."""
        assert Step(name="a", description="A", action=_noop) == Step(name="a", description="A", action=print)


# ============================================================================
# PipelineState
# ============================================================================


class TestPipelineState:
    """Tests for the progress counter."""

    def test_advance_counts_from_one(self) -> None:
        """advance returns 1-based positions."""
        state = PipelineState(total_steps=2)
        assert state.advance() == (1, 2)
        assert state.advance() == (2, 2)
        assert state.current_index == 2

    def test_advance_past_total(self) -> None:
        """The index never exceeds the total."""
        state = PipelineState(total_steps=1)
        state.advance()
        with pytest.raises(PipelineConfigError, match="Cannot advance past step 1 of 1"):
            state.advance()

    def test_empty_state_cannot_advance(self) -> None:
        """An empty registry has no slot to consume."""
        with pytest.raises(PipelineConfigError):
            PipelineState().advance()


# ============================================================================
# TargetUser / ExecutionContext
# ============================================================================


class TestTargetUser:
    """Tests for TargetUser validation."""

    def test_defaults(self) -> None:
        """uid and gid default to unknown."""
        user = TargetUser(name="sb74", home=Path("/home/sb74"))
        assert user.home == Path("/home/sb74")
        assert (user.uid, user.gid) == (-1, -1)

    def test_root_rejected(self) -> None:
        """root is never a valid target."""
        with pytest.raises(PipelineConfigError, match="not root"):
            TargetUser(name="root", home=Path("/root"))

    @pytest.mark.parametrize("name", ["", "Bad", "a b", "-x", "u" * 33])
    def test_invalid_names(self, name: str) -> None:
        """Malformed login names are rejected."""
        with pytest.raises(PipelineConfigError):
            TargetUser(name=name, home=Path("/home/x"))


class TestExecutionContext:
    """Tests for ExecutionContext."""

    def test_defaults(self) -> None:
        """A context runs for real, attended, without a dotfiles remote."""
        context = ExecutionContext(target_user=TargetUser(name="sb74", home=Path("/home/sb74")))
        assert context.dry_run is False
        assert context.unattended is False
        assert context.elevated_uid == 0
        assert context.dotfiles_repo is None

    def test_frozen(self) -> None:
        """The context is read-only once built."""
        context = ExecutionContext(target_user=TargetUser(name="sb74", home=Path("/home/sb74")))
        with pytest.raises(dataclasses.FrozenInstanceError):
            context.dry_run = True  # type: ignore[misc]


# ============================================================================
# Results
# ============================================================================


class TestCommandResult:
    """Tests for CommandResult."""

    def test_ok(self) -> None:
        """ok reflects a zero exit code."""
        assert CommandResult(command=("true",), exit_code=0).ok is True
        assert CommandResult(command=("false",), exit_code=1).ok is False


class TestStepOutcome:
    """Tests for StepOutcome defaults."""

    def test_defaults(self) -> None:
        """An outcome means changed, no reboot."""
        outcome = StepOutcome()
        assert outcome.changed is True
        assert outcome.detail is None
        assert outcome.reboot_required is False


class TestPipelineResult:
    """Tests for PipelineResult aggregation."""

    def _result(self, *statuses: StepStatus) -> PipelineResult:
        return PipelineResult(
            name="p",
            results=[StepResult(name=f"s{i}", status=status) for i, status in enumerate(statuses)],
        )

    def test_empty_is_success(self) -> None:
        """No steps means nothing failed."""
        assert PipelineResult(name="p").success is True

    def test_failed_steps(self) -> None:
        """A single failure flips success and is listed."""
        result = self._result(StepStatus.SUCCESS, StepStatus.FAILED, StepStatus.NOT_RUN)
        assert result.success is False
        assert [r.name for r in result.failed_steps] == ["s1"]

    def test_executed_steps_exclude_declined_and_not_run(self) -> None:
        """Only steps whose action ran are executed."""
        result = self._result(
            StepStatus.SUCCESS,
            StepStatus.DECLINED,
            StepStatus.UNCHANGED,
            StepStatus.SKIPPED,
            StepStatus.NOT_RUN,
        )
        assert [r.name for r in result.executed_steps] == ["s0", "s2", "s3"]

    def test_last_completed(self) -> None:
        """The last non-failed, run-or-declined step is reported."""
        result = self._result(StepStatus.SUCCESS, StepStatus.DECLINED, StepStatus.FAILED, StepStatus.NOT_RUN)
        assert result.last_completed == "s1"

    def test_last_completed_none(self) -> None:
        """Nothing completed yields None."""
        assert self._result(StepStatus.FAILED).last_completed is None

    def test_reboot_required(self) -> None:
        """Any step asking for a reboot is enough."""
        result = PipelineResult(
            name="p",
            results=[
                StepResult(name="a", status=StepStatus.SUCCESS),
                StepResult(name="b", status=StepStatus.SUCCESS, reboot_required=True),
            ],
        )
        assert result.reboot_required is True
