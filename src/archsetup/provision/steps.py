"""The ordered catalog of provisioning steps.

Each step action starts with an idempotency check from
:mod:`archsetup.provision.checks` and only then touches the system, so
re-running the whole catalog on a converged machine changes nothing.
The same :class:`~archsetup.pipeline.models.Step` objects back the
full, interactive and single-step run modes.
"""

from __future__ import annotations

import logging
import shutil
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from archsetup.pipeline.controller import Pipeline
from archsetup.pipeline.exceptions import CommandError, SoftFailure, StepError
from archsetup.pipeline.models import ErrorPolicy, ExecutionContext, Step, StepOutcome
from archsetup.provision.checks import (
    MODULES_LINE_PATTERN,
    aur_helper_available,
    disabled_units,
    dotfiles_initialized,
    editor_configured,
    line_present,
    missing_modules,
    missing_packages,
    shell_is_set,
)
from archsetup.provision.scratch import scratch_directory
from archsetup.tools import Toolbox

logger = logging.getLogger(__name__)

#: Packages makepkg needs before the AUR helper can be built.
AUR_BUILD_PREREQUISITES = ("git", "base-devel")

#: Package providing the dotfiles manager.
DOTFILES_PACKAGE = "chezmoi"


def add_modules(conf_text: str, modules: Sequence[str]) -> str:
    """Return ``conf_text`` with ``modules`` appended to its ``MODULES`` line.

    Modules already listed are not repeated; a ``MODULES`` line is
    added when the file has none.

    Examples:
        >>> add_modules("MODULES=(btrfs)\\nHOOKS=(base)\\n", ["nvidia", "btrfs"])
        'MODULES=(btrfs nvidia)\\nHOOKS=(base)\\n'
        >>> add_modules("HOOKS=(base)\\n", ["nvidia"])
        'HOOKS=(base)\\nMODULES=(nvidia)\\n'
    """
    missing = missing_modules(conf_text, modules)
    if not missing:
        return conf_text

    matches = list(MODULES_LINE_PATTERN.finditer(conf_text))
    if not matches:
        separator = "\n" if conf_text and not conf_text.endswith("\n") else ""
        return f"{conf_text}{separator}MODULES=({' '.join(missing)})\n"

    last = matches[-1]
    body = " ".join([*last.group("body").split(), *missing])
    line = f"{last.group('indent')}MODULES=({body}){last.group('rest')}"
    return conf_text[: last.start()] + line + conf_text[last.end() :]


class Provisioner:
    """Provisioning step actions bound to one execution context.

    Args:
        context: Run-wide execution context.
        tools: Collaborators the steps act through.
        config: Loaded configuration.
    """

    def __init__(self, context: ExecutionContext, tools: Toolbox, config: Any) -> None:
        """Initialize Provisioner."""
        self._context = context
        self._tools = tools
        self._config = config

    @property
    def user(self) -> str:
        """Return the target user's login name."""
        return self._context.target_user.name

    @property
    def home(self) -> Path:
        """Return the target user's home directory."""
        return self._context.target_user.home

    # ------------------------------------------------------------------
    # Catalog
    # ------------------------------------------------------------------

    def catalog(self) -> list[Step]:
        """Return the steps in their fixed execution order.

        Snapshot, mirror ranking and driver configuration are only
        included when enabled in the configuration.
        """
        cfg = self._config
        steps: list[Step] = []
        if cfg.snapshot.get("enabled"):
            steps.append(
                Step(
                    name="snapshot",
                    description="Taking a pre-install filesystem snapshot",
                    action=self.snapshot,
                    on_error=ErrorPolicy.CONTINUE,
                    prompt="Take a filesystem snapshot?",
                )
            )
        if cfg.mirrors.get("enabled"):
            steps.append(
                Step(
                    name="rank-mirrors",
                    description="Ranking package mirrors",
                    action=self.rank_mirrors,
                    on_error=ErrorPolicy.CONTINUE,
                    prompt="Rank package mirrors?",
                )
            )
        steps += [
            Step(
                name="update-system",
                description="Updating base system",
                action=self.update_system,
                prompt="Update system?",
            ),
            Step(
                name="install-essentials",
                description="Installing essential tools",
                action=self.install_essentials,
                prompt="Install essentials?",
            ),
            Step(
                name="set-shell",
                description=f"Setting default shell to {Path(cfg.shell.path).name}",
                action=self.set_shell,
                prompt=f"Set {Path(cfg.shell.path).name} as default shell?",
            ),
            Step(
                name="install-aur-helper",
                description=f"Bootstrapping {cfg.aur_helper.name} (AUR helper)",
                action=self.install_aur_helper,
                prompt=f"Install {cfg.aur_helper.name}?",
            ),
            Step(
                name="install-desktop",
                description="Installing GUI/Wayland stack",
                action=self.install_desktop,
                prompt="Install GUI stack?",
            ),
        ]
        if cfg.driver.get("enabled"):
            steps.append(
                Step(
                    name="configure-driver",
                    description="Configuring NVIDIA driver",
                    action=self.configure_driver,
                    requires_confirmation=True,
                    prompt="Configure the NVIDIA driver (edits mkinitcpio.conf)?",
                )
            )
        steps += [
            Step(
                name="install-gaming",
                description="Installing Steam and gaming tools",
                action=self.install_gaming,
                on_error=ErrorPolicy.CONTINUE,
                prompt="Install gaming tools?",
            ),
            Step(
                name="install-aur-tools",
                description="Installing AUR/optional tools",
                action=self.install_aur_tools,
                on_error=ErrorPolicy.CONTINUE,
                prompt="Install AUR tools?",
            ),
            Step(
                name="enable-services",
                description="Enabling system services",
                action=self.enable_services,
                prompt="Enable services?",
            ),
            Step(
                name="sync-dotfiles",
                description="Setting up dotfiles",
                action=self.sync_dotfiles,
                prompt="Install chezmoi and dotfiles?",
            ),
            Step(
                name="setup-editor",
                description=f"Setting up {cfg.editor.name} as default editor",
                action=self.setup_editor,
                prompt=f"Set {cfg.editor.name} as default editor?",
            ),
        ]
        return steps

    # ------------------------------------------------------------------
    # Step actions
    # ------------------------------------------------------------------

    def snapshot(self) -> StepOutcome:
        """Take a point-in-time filesystem snapshot."""
        return self._run_configured_command("snapshot", self._config.snapshot.command)

    def rank_mirrors(self) -> StepOutcome:
        """Rewrite the mirror list ranked by speed."""
        return self._run_configured_command("rank-mirrors", self._config.mirrors.command)

    def update_system(self) -> StepOutcome:
        """Refresh the package index and upgrade every package."""
        self._tools.packages.upgrade()
        return StepOutcome()

    def install_essentials(self) -> StepOutcome:
        """Install the essentials package set."""
        return self._install_packages(self._config.packages.essentials)

    def install_desktop(self) -> StepOutcome:
        """Install the desktop stack package set."""
        return self._install_packages(self._config.packages.desktop)

    def install_gaming(self) -> StepOutcome:
        """Install the optional gaming package set."""
        return self._install_packages(self._config.packages.gaming)

    def set_shell(self) -> StepOutcome:
        """Make the configured shell the target user's login shell."""
        shell = self._config.shell.path
        if shell_is_set(self._tools.accounts, self.user, shell):
            return StepOutcome(changed=False, detail=f"{shell} is already the login shell of {self.user}")
        self._tools.accounts.set_login_shell(self.user, shell)
        return StepOutcome(detail=f"login shell of {self.user} set to {shell}")

    def install_aur_helper(self) -> StepOutcome:
        """Clone, build and install the AUR helper as the target user.

        The build happens in a scratch directory owned by the target user
        that is removed whether or not the build succeeds.
        """
        helper = self._config.aur_helper
        if aur_helper_available(self._tools.aur):
            return StepOutcome(changed=False, detail=f"{helper.name} already installed")

        missing = missing_packages(self._tools.packages, AUR_BUILD_PREREQUISITES)
        if missing:
            self._tools.packages.install(missing)

        with scratch_directory(self._context.target_user, prefix=f"{helper.name}-build-") as scratch:
            source = scratch / helper.name
            self._tools.vcs.clone(helper.repo, source, as_user=self.user)
            self._tools.runner.run("makepkg", ["-si", "--noconfirm"], as_user=self.user, cwd=source)
        return StepOutcome(detail=f"{helper.name} built and installed")

    def configure_driver(self) -> StepOutcome:
        """Install the driver and add its modules to the initramfs.

        Files are only rewritten when the required entries are missing.
        Changes take effect after a reboot, which is reported, never done.
        """
        driver = self._config.driver
        notes: list[str] = []

        missing = missing_packages(self._tools.packages, self._config.packages.driver)
        if missing:
            self._tools.packages.install(missing)
            notes.append(f"installed {len(missing)} driver package(s)")

        conf_path = Path(driver.mkinitcpio_conf)
        if conf_path.is_file():
            conf_text = conf_path.read_text(encoding="utf-8")
        elif self._context.dry_run:
            logger.info("[DRY RUN] %s not found, planning against an empty file", conf_path)
            conf_text = ""
        else:
            raise StepError("configure-driver", f"{conf_path} not found")

        rebuild = False
        needed = missing_modules(conf_text, list(driver.modules))
        if needed:
            self._write_file(conf_path, add_modules(conf_text, list(driver.modules)))
            notes.append(f"added {' '.join(needed)} to MODULES")
            rebuild = True

        modprobe_path = Path(driver.modprobe_conf)
        modprobe_text = modprobe_path.read_text(encoding="utf-8") if modprobe_path.is_file() else ""
        if not line_present(modprobe_text, driver.modprobe_options):
            separator = "\n" if modprobe_text and not modprobe_text.endswith("\n") else ""
            self._write_file(modprobe_path, f"{modprobe_text}{separator}{driver.modprobe_options}\n")
            notes.append(f"wrote {modprobe_path}")
            rebuild = True

        if rebuild:
            self._tools.runner.run("mkinitcpio", ["-P"])

        if not notes:
            return StepOutcome(changed=False, detail="driver already configured")
        return StepOutcome(detail="; ".join(notes), reboot_required=True)

    def install_aur_tools(self) -> StepOutcome:
        """Install optional AUR packages, skipping when no helper exists."""
        aur = self._tools.aur
        if not aur_helper_available(aur):
            raise SoftFailure(f"{aur.name} is not available, skipping AUR tools (run install-aur-helper first)")
        names = list(self._config.packages.aur)
        missing = missing_packages(self._tools.packages, names)
        if not missing:
            return StepOutcome(changed=False, detail=f"all {len(names)} AUR packages already installed")
        aur.install(missing)
        return StepOutcome(detail=f"installed {len(missing)} AUR package(s)")

    def enable_services(self) -> StepOutcome:
        """Enable system units, user units and lingering for the target user."""
        services = self._tools.services
        cfg = self._config.services
        done: list[str] = []

        for unit in disabled_units(services, cfg.system):
            services.enable(unit)
            done.append(unit)

        if cfg.get("linger") and not services.linger_enabled(self.user):
            services.enable_linger(self.user)
            done.append(f"linger:{self.user}")

        for unit in disabled_units(services, cfg.user, user=self.user):
            services.enable(unit, user=self.user)
            done.append(f"{unit} (user)")

        if not done:
            return StepOutcome(changed=False, detail="all services already enabled")
        return StepOutcome(detail=f"enabled {', '.join(done)}")

    def sync_dotfiles(self) -> StepOutcome:
        """Initialize the dotfiles source and track the configured files.

        An unreachable remote falls back to an empty local source with a
        warning; it never aborts the run.
        """
        dotfiles = self._tools.dotfiles
        notes: list[str] = []

        if not self._tools.packages.is_installed(DOTFILES_PACKAGE):
            aur = self._tools.aur
            if aur_helper_available(aur):
                aur.install([DOTFILES_PACKAGE])
                notes.append(f"installed {DOTFILES_PACKAGE} with {aur.name}")
            else:
                self._tools.packages.install([DOTFILES_PACKAGE])
                notes.append(f"installed {DOTFILES_PACKAGE}")

        if not dotfiles_initialized(dotfiles, self.home):
            repo = self._context.dotfiles_repo
            if repo:
                try:
                    dotfiles.init(self.user, repo)
                except CommandError as exc:
                    logger.warning(
                        "Cannot initialize dotfiles from %s (%s); falling back to an empty local source",
                        repo,
                        exc.reason,
                    )
                    dotfiles.init(self.user)
                    notes.append("remote unreachable, initialized empty source")
                else:
                    dotfiles.apply(self.user)
                    notes.append(f"initialized from {repo}")
            else:
                dotfiles.init(self.user)
                notes.append("initialized empty source")

        managed = dotfiles.managed(self.user)
        for relative in self._config.dotfiles.tracked:
            path = self.home / relative
            if path.is_file() and path not in managed:
                dotfiles.add(self.user, path)
                notes.append(f"tracking {relative}")

        if not notes:
            return StepOutcome(changed=False, detail="dotfiles already in sync")
        return StepOutcome(detail="; ".join(notes))

    def setup_editor(self) -> StepOutcome:
        """Make the editor the default and bootstrap its starter configuration."""
        editor = self._config.editor
        runner = self._tools.runner
        config_dir = self.home / editor.config_dir
        notes: list[str] = []

        if Path(self._config.shell.path).name == "fish":
            current = runner.query("fish", ["-c", "echo $EDITOR"], as_user=self.user)
            if not current.ok or current.stdout.strip() != editor.name:
                runner.run("fish", ["-c", f"set -Ux EDITOR {editor.name}"], as_user=self.user)
                notes.append(f"EDITOR set to {editor.name}")
        else:
            logger.info("Login shell is not fish, leaving EDITOR to the user's shell profile")

        if not editor_configured(config_dir):
            self._tools.vcs.clone(editor.starter_repo, config_dir, as_user=self.user)
            runner.run("rm", ["-rf", str(config_dir / ".git")], as_user=self.user)
            notes.append(f"cloned {editor.starter_repo}")

        dotfiles = self._tools.dotfiles
        if dotfiles_initialized(dotfiles, self.home):
            if config_dir not in dotfiles.managed(self.user):
                dotfiles.add(self.user, config_dir)
                notes.append(f"tracking {editor.config_dir}")
        else:
            logger.info("Dotfiles source not initialized, %s not tracked", config_dir)

        if not notes:
            return StepOutcome(changed=False, detail=f"{editor.name} already configured")
        return StepOutcome(detail="; ".join(notes))

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _install_packages(self, names: Sequence[str]) -> StepOutcome:
        names = list(names)
        missing = missing_packages(self._tools.packages, names)
        if not missing:
            return StepOutcome(changed=False, detail=f"all {len(names)} packages already installed")
        self._tools.packages.install(missing)
        return StepOutcome(detail=f"installed {len(missing)} of {len(names)} package(s)")

    def _run_configured_command(self, step_name: str, command: Sequence[str]) -> StepOutcome:
        argv = list(command)
        if not argv:
            raise SoftFailure(f"{step_name}: no command configured")
        if shutil.which(argv[0]) is None:
            raise SoftFailure(f"{argv[0]} is not installed, skipping {step_name}")
        self._tools.runner.run(argv[0], argv[1:])
        return StepOutcome()

    def _write_file(self, path: Path, text: str) -> None:
        """Write a system file, keeping a one-time backup of the original."""
        if self._context.dry_run:
            logger.info("[DRY RUN] would write %s", path)
            return
        path.parent.mkdir(parents=True, exist_ok=True)
        if path.is_file():
            backup = path.with_name(f"{path.name}.archsetup.bak")
            if not backup.exists():
                shutil.copy2(path, backup)
        path.write_text(text, encoding="utf-8")
        logger.info("Wrote %s", path)


def build_pipeline(
    context: ExecutionContext,
    tools: Toolbox,
    config: Any,
    *,
    name: str = "archsetup",
) -> Pipeline:
    """Register the provisioning catalog on a new pipeline."""
    return Pipeline(name, Provisioner(context, tools, config).catalog())


__all__ = [
    "AUR_BUILD_PREREQUISITES",
    "DOTFILES_PACKAGE",
    "Provisioner",
    "add_modules",
    "build_pipeline",
]
