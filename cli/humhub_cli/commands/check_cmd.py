from __future__ import annotations

import typer

from humhub_provision.layout import HostLayout
from humhub_provision.preflight import FAIL, OK, PreflightChecker
from humhub_provision.runner import CommandRunner

from .. import console
from ..config import load_config, normalize_policy

_STEP_TITLES = {
    "install-config": "Checking installation_config.php...",
    "database-dir": "Checking database directory...",
    "config-dir": "Checking HumHub config directory...",
    "worker-container": "Checking background worker container...",
    "marker-mount": "Checking ACME storage mount...",
    "runtime-access": "Checking docker permissions for the service user...",
}


def check(
    base_dir: str | None = typer.Option(None, "--base-dir", help="Installation root (default from settings)."),
    user: str | None = typer.Option(None, "--user", help="Service account that runs the containers."),
    worker_container: str | None = typer.Option(
        None,
        "--worker-container",
        help="Name of the background worker container that must not be running.",
    ),
    permission_policy: str | None = typer.Option(
        None,
        "--permission-policy",
        help="How a wrong installation_config.php mode is reported: fatal or warn.",
    ),
):
    """Verify the host is ready for the first HumHub installation.

    Exits 0 when every fatal check passes; otherwise stops at the first
    failure and prints it as the last line.
    """
    settings = load_config()
    try:
        policy = normalize_policy(permission_policy or settings.permission_policy)
    except ValueError as exc:
        console.err(str(exc))
        raise typer.Exit(code=2)

    checker = PreflightChecker(
        layout=HostLayout(base_dir or settings.base_dir),
        runner=CommandRunner(),
        service_user=user or settings.service_user,
        worker_container=worker_container or settings.worker_container,
        permission_policy=policy,
    )

    console.rule("[bold]HumHub Installation Checker[/]")
    warnings = 0
    for result in checker.run():
        title = _STEP_TITLES.get(result.name)
        if title:
            console.step(title)
        if result.status == OK:
            console.ok(result.message)
        elif result.status == FAIL:
            console.fail(result.message)
            raise typer.Exit(code=1)
        else:
            warnings += 1
            console.warn(result.message)

    console.rule()
    if warnings:
        console.warn(f"{warnings} warning(s) above; review them before starting the full stack.")
    service_user = checker.service_user
    console.print("Start the minimal installation stack:")
    console.print(f"  sudo -u {service_user} docker compose up -d traefik mariadb redis humhub")
    console.print("Watch logs:")
    console.print(f"  sudo -u {service_user} docker compose logs -f humhub")
    console.ok("All checks passed. HumHub is ready for installation.")
