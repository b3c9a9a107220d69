"""Tests for the archsetup.provision.scratch module."""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from archsetup.pipeline.models import TargetUser
from archsetup.provision.scratch import scratch_directory


class TestScratchDirectory:
    """Tests for scratch_directory."""

    def test_removed_after_use(self) -> None:
        """The directory and its content disappear on exit."""
        with scratch_directory(prefix="yay-build-") as path:
            assert path.is_dir()
            assert path.name.startswith("yay-build-")
            (path / "yay").mkdir()
            (path / "yay" / "PKGBUILD").write_text("pkgname=yay\n", encoding="utf-8")
        assert not path.exists()

    def test_removed_on_error(self) -> None:
        """A failing build still cleans up."""
        captured: list[Path] = []
        with pytest.raises(RuntimeError, match="makepkg failed"), scratch_directory() as path:
            captured.append(path)
            raise RuntimeError("makepkg failed")
        assert not captured[0].exists()

    def test_owner_without_privileges(self) -> None:
        """Ownership is left alone when not running as root."""
        owner = TargetUser(name="sb74", home=Path("/home/sb74"), uid=os.getuid(), gid=os.getgid())
        with scratch_directory(owner) as path:
            assert path.stat().st_uid == os.getuid()

    def test_owner_chown_as_root(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """As root the directory is handed to the target user."""
        calls: list[tuple[str, int, int]] = []
        monkeypatch.setattr("archsetup.provision.scratch.os.geteuid", lambda: 0)
        monkeypatch.setattr(
            "archsetup.provision.scratch.os.chown",
            lambda path, uid, gid: calls.append((str(path), uid, gid)),
        )
        owner = TargetUser(name="sb74", home=Path("/home/sb74"), uid=1000, gid=1001)
        with scratch_directory(owner) as path:
            pass
        assert calls == [(str(path), 1000, 1001)]

    def test_unknown_uid_not_chowned(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Owners without a resolved uid are skipped."""
        monkeypatch.setattr("archsetup.provision.scratch.os.geteuid", lambda: 0)

        def forbid(*args: object) -> None:
            raise AssertionError("chown must not be called")

        monkeypatch.setattr("archsetup.provision.scratch.os.chown", forbid)
        with scratch_directory(TargetUser(name="sb74", home=Path("/home/sb74"))) as path:
            assert path.is_dir()
