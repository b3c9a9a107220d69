"""Arch Linux provisioning: execution context, idempotency checks and step catalog."""

from archsetup.provision.context import build_context, require_root, resolve_target_user
from archsetup.provision.scratch import scratch_directory
from archsetup.provision.steps import Provisioner, add_modules, build_pipeline

__all__ = [
    "Provisioner",
    "add_modules",
    "build_context",
    "build_pipeline",
    "require_root",
    "resolve_target_user",
    "scratch_directory",
]
