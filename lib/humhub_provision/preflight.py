from __future__ import annotations

import logging
import stat
from dataclasses import dataclass
from typing import Callable, Iterator

from .accounts import can_invoke_runtime
from .errors import CommandError, HostError
from .layout import DEFAULT_SERVICE_USER, HostLayout
from .manifest import mounts_of
from .runner import CommandRunner

logger = logging.getLogger(__name__)

OK = "ok"
WARN = "warn"
FAIL = "fail"

ACCEPTED_CONFIG_MODES = (0o640, 0o644)
DEFAULT_WORKER_CONTAINER = "humhub-worker"
POLICY_FATAL = "fatal"
POLICY_WARN = "warn"
PERMISSION_POLICIES = (POLICY_FATAL, POLICY_WARN)


@dataclass(frozen=True)
class CheckResult:
    name: str
    status: str
    message: str

    @property
    def fatal(self) -> bool:
        return self.status == FAIL


@dataclass
class PreflightChecker:
    layout: HostLayout
    runner: CommandRunner
    service_user: str = DEFAULT_SERVICE_USER
    worker_container: str = DEFAULT_WORKER_CONTAINER
    permission_policy: str = POLICY_FATAL

    def checks(self) -> list[tuple[str, Callable[[], CheckResult]]]:
        return [
            ("install-config", self.check_install_config),
            ("install-config-mode", self.check_install_config_mode),
            ("database-dir", self.check_database_dir),
            ("config-dir", self.check_config_dir),
            ("worker-container", self.check_worker_stopped),
            ("marker-mount", self.check_marker_not_mounted),
            ("runtime-access", self.check_runtime_access),
        ]

    def run(self) -> Iterator[CheckResult]:
        """Yields results in order and stops after the first fatal one."""
        for name, check in self.checks():
            logger.debug("preflight: %s", name)
            result = check()
            yield result
            if result.fatal:
                return

    def check_install_config(self) -> CheckResult:
        path = self.layout.install_config_path
        if not path.is_file():
            return CheckResult(
                "install-config",
                FAIL,
                f"{path.name} is missing. Run 'humhub-host prepare' first.",
            )
        return CheckResult("install-config", OK, f"Found: {path}")

    def check_install_config_mode(self) -> CheckResult:
        path = self.layout.install_config_path
        mode = stat.S_IMODE(path.stat().st_mode)
        if mode in ACCEPTED_CONFIG_MODES:
            return CheckResult("install-config-mode", OK, f"Permissions are correct ({mode:o}).")
        accepted = " or ".join(f"{m:o}" for m in ACCEPTED_CONFIG_MODES)
        status = WARN if self.permission_policy == POLICY_WARN else FAIL
        return CheckResult(
            "install-config-mode",
            status,
            f"{path.name} must be mode {accepted} (current: {mode:o}).",
        )

    def check_database_dir(self) -> CheckResult:
        db_dir = self.layout.db_dir
        if not db_dir.is_dir():
            return CheckResult(
                "database-dir",
                FAIL,
                f"{db_dir} does not exist. 'humhub-host prepare' did not complete successfully.",
            )
        if any(db_dir.iterdir()):
            return CheckResult(
                "database-dir",
                FAIL,
                "Database directory is NOT empty. A clean installation is not possible.",
            )
        return CheckResult("database-dir", OK, "Database directory is empty.")

    def check_config_dir(self) -> CheckResult:
        config_dir = self.layout.config_dir
        if not config_dir.is_dir():
            return CheckResult("config-dir", FAIL, f"Config directory {config_dir} does not exist.")
        allowed = self.layout.install_config_path.name
        # Timestamped backups of the install-config file are written beside it.
        extra = sorted(
            entry.name
            for entry in config_dir.iterdir()
            if not entry.name.startswith(".") and not entry.name.startswith(allowed)
        )
        if extra:
            return CheckResult(
                "config-dir",
                FAIL,
                f"Config directory contains extra files ({', '.join(extra)}). Remove them before installation.",
            )
        return CheckResult("config-dir", OK, "Config directory is clean.")

    def check_worker_stopped(self) -> CheckResult:
        try:
            names = self.runner.output(["docker", "ps", "--format", "{{.Names}}"]).split()
        except CommandError as exc:
            return CheckResult("worker-container", WARN, f"Could not list running containers: {exc}")
        if self.worker_container in names:
            return CheckResult(
                "worker-container",
                FAIL,
                f"Container '{self.worker_container}' is running. Stop it before the first installation.",
            )
        return CheckResult("worker-container", OK, f"Container '{self.worker_container}' is not running.")

    def check_marker_not_mounted(self) -> CheckResult:
        manifest = self.layout.manifest_path
        marker = self.layout.acme_file
        if not manifest.is_file():
            return CheckResult("marker-mount", WARN, f"{manifest.name} not found; bind-mount check skipped.")
        try:
            mounts = mounts_of(manifest, marker)
        except HostError as exc:
            return CheckResult("marker-mount", FAIL, str(exc))
        if mounts:
            services = ", ".join(sorted({m.service for m in mounts}))
            return CheckResult(
                "marker-mount",
                FAIL,
                f"{marker} is bind-mounted as a single file (service: {services}). Mount {marker.parent} instead.",
            )
        return CheckResult("marker-mount", OK, f"{marker.name} is not bind-mounted as a file.")

    def check_runtime_access(self) -> CheckResult:
        if can_invoke_runtime(self.runner, self.service_user):
            return CheckResult("runtime-access", OK, f"{self.service_user} user can run docker.")
        return CheckResult(
            "runtime-access",
            WARN,
            f"{self.service_user} user cannot run docker yet. Log out/in or reboot after 'humhub-host prepare'.",
        )
