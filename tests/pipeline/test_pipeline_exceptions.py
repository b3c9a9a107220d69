"""Tests for the archsetup.pipeline.exceptions module."""

from __future__ import annotations

import pytest

from archsetup.exceptions import ArchSetupError
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


class TestExceptionHierarchy:
    """Tests for the exception class hierarchy."""

    def test_pipeline_error_is_archsetup_error(self) -> None:
        """PipelineError inherits from ArchSetupError."""
        assert issubclass(PipelineError, ArchSetupError)

    def test_config_error_is_value_error(self) -> None:
        """PipelineConfigError is also a ValueError."""
        assert issubclass(PipelineConfigError, PipelineError)
        assert issubclass(PipelineConfigError, ValueError)

    @pytest.mark.parametrize(
        "exc_class",
        [PreconditionError, PipelineAbortedError, StepError, SoftFailure, KeepaliveError],
    )
    def test_subclasses_of_pipeline_error(self, exc_class: type) -> None:
        """Every pipeline exception derives from PipelineError."""
        assert issubclass(exc_class, PipelineError)

    def test_command_error_is_step_error(self) -> None:
        """CommandError is caught wherever StepError is."""
        assert issubclass(CommandError, StepError)

    def test_soft_failure_is_not_step_error(self) -> None:
        """SoftFailure must not be mistaken for a real failure."""
        assert not issubclass(SoftFailure, StepError)


class TestPipelineAbortedError:
    """Tests for PipelineAbortedError attributes."""

    def test_attributes_and_message(self) -> None:
        """Step name, reason and partial result are kept."""
        exc = PipelineAbortedError("install-desktop", "pacman exited with 1", result="partial")
        assert exc.step_name == "install-desktop"
        assert exc.reason == "pacman exited with 1"
        assert exc.result == "partial"
        assert str(exc) == "Pipeline aborted at step 'install-desktop': pacman exited with 1"

    def test_result_defaults_to_none(self) -> None:
        """The partial result is optional."""
        assert PipelineAbortedError("x", "y").result is None


class TestStepError:
    """Tests for StepError attributes."""

    def test_attributes_and_message(self) -> None:
        """Step name and reason are exposed."""
        exc = StepError("configure-driver", "/etc/mkinitcpio.conf not found")
        assert exc.step_name == "configure-driver"
        assert exc.reason == "/etc/mkinitcpio.conf not found"
        assert "configure-driver" in str(exc)


class TestCommandError:
    """Tests for CommandError formatting."""

    def test_reason_quotes_command(self) -> None:
        """The reason holds the shell-quoted argv and exit code."""
        exc = CommandError(("pacman", "-S", "hypr land"), 1)
        assert exc.command == ("pacman", "-S", "hypr land")
        assert exc.exit_code == 1
        assert exc.reason == "`pacman -S 'hypr land'` exited with 1"

    def test_reason_includes_last_stderr_line(self) -> None:
        """Only the last non-empty stderr line is appended."""
        exc = CommandError(["git", "clone", "x"], 128, "Cloning into 'x'...\nfatal: repository not found\n")
        assert exc.reason.endswith(": fatal: repository not found")
        assert exc.stderr.startswith("Cloning")

    def test_blank_stderr_is_ignored(self) -> None:
        """Whitespace-only stderr adds nothing to the reason."""
        exc = CommandError(["false"], 1, "  \n")
        assert exc.reason == "`false` exited with 1"


class TestSoftFailure:
    """Tests for SoftFailure."""

    def test_reason(self) -> None:
        """The reason is both the message and an attribute."""
        exc = SoftFailure("yay is not available")
        assert exc.reason == "yay is not available"
        assert str(exc) == "yay is not available"
