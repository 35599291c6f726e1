from __future__ import annotations

import os
import socket

import typer

from humhub_provision.accounts import can_invoke_runtime, ensure_service_account, user_exists
from humhub_provision.directories import ensure_directories
from humhub_provision.envfile import ProvisionConfig, read_env_file, write_env_file
from humhub_provision.errors import HostError
from humhub_provision.fetch import companion_url, fetch_file, fetch_if_missing
from humhub_provision.firewall import WEB_SERVICES
from humhub_provision.install_config import InstallConfig, write_install_config
from humhub_provision.layout import CHECKER_SCRIPT_NAME, MANIFEST_NAME, RUNTIME_GROUP, HostLayout
from humhub_provision.manifest import apply_staging_toggle
from humhub_provision.platforms import Platform, detect_platform
from humhub_provision.runner import CommandRunner
from humhub_provision.wizard import ScriptedPrompts, collect_config, parse_overrides

from .. import console
from ..config import load_config, resolve_repo_base
from ..interactive import TerminalPrompts

VERSION = "1.3.1"


def _is_root() -> bool:
    return hasattr(os, "geteuid") and os.geteuid() == 0


def prepare(
    base_dir: str | None = typer.Option(None, "--base-dir", help="Installation root (default from settings)."),
    user: str | None = typer.Option(None, "--user", help="Service account that runs the containers."),
    non_interactive: bool = typer.Option(
        False,
        "--non-interactive",
        help="Do not prompt; keep existing values, generate missing secrets.",
    ),
    overrides: list[str] = typer.Option(
        [],
        "--set",
        help="Set a configuration value, e.g. --set HUMHUB_HOST=social.example.com (repeatable).",
    ),
    config_only: bool = typer.Option(
        False,
        "--config-only",
        help="Only run the wizard and write configuration (no packages, account or firewall).",
    ),
    fetch_checker: bool = typer.Option(
        True,
        "--fetch-checker/--no-fetch-checker",
        help="Download the companion checker script.",
    ),
):
    """Prepare this host for the HumHub container stack. Safe to re-run.

    Examples:
      sudo humhub-host prepare
      sudo humhub-host prepare --non-interactive --set SMTP_RELAY_PASSWORD=secret
    """
    console.rule(f"[bold]HumHub Host Preparation v{VERSION}[/]")

    settings = load_config()
    layout = HostLayout(base_dir or settings.base_dir)
    service_user = user or settings.service_user
    repo_base = resolve_repo_base(settings)

    try:
        answers = parse_overrides(overrides)
    except HostError as exc:
        console.err(str(exc))
        raise typer.Exit(code=2)

    is_root = _is_root()
    if not config_only and not is_root:
        console.err("Run as root (or use --config-only to only write configuration).")
        raise typer.Exit(code=2)

    runner = CommandRunner()
    owner = service_user if is_root else None
    if owner is None:
        console.warn("Not running as root; file ownership is left unchanged.")
    elif config_only and not user_exists(runner, service_user):
        console.warn(f"User '{service_user}' does not exist; file ownership is left unchanged.")
        owner = None

    membership_added = False
    try:
        if config_only:
            prepare_directories(layout, owner=owner)
        else:
            platform = detect_platform(runner)
            console.info(f"Detected OS family: {platform.family} (id: {platform.info.id or 'unknown'})")
            install_system(platform)
            membership_added = prepare_account(runner, service_user)
            prepare_directories(layout, owner=owner)
            configure_firewall(platform)
            fetch_manifest(layout, repo_base)
            check_runtime_access(runner, service_user)

        cfg = run_wizard(layout, answers=answers, non_interactive=non_interactive)
        write_configs(layout, cfg, owner=owner)
        update_manifest(layout, cfg.le_use_staging)
        if fetch_checker and not config_only:
            install_checker(layout, repo_base)
    except HostError as exc:
        console.err(str(exc))
        raise typer.Exit(code=2)

    print_summary(layout, cfg, service_user=service_user, membership_added=membership_added)


def install_system(platform: Platform) -> None:
    console.info(f"Installing base packages via {platform.package_manager}...")
    platform.install_base_packages()
    if platform.install_runtime():
        console.ok("Docker CE installed and started.")
    else:
        console.info("Docker already installed.")
    if platform.tune_security():
        console.info("Applied SELinux adjustments for container operation.")


def prepare_account(runner: CommandRunner, service_user: str) -> bool:
    console.info(f"Ensuring user '{service_user}' is a member of '{RUNTIME_GROUP}' group...")
    result = ensure_service_account(runner, service_user)
    if result.user_created:
        console.ok(f"Created system user: {service_user}")
    if result.group_created:
        console.ok(f"Created group: {RUNTIME_GROUP}")
    if result.membership_added:
        console.warn("User must log out/in (or reboot) for docker group membership to activate.")
    return result.membership_added


def prepare_directories(layout: HostLayout, *, owner: str | None) -> None:
    console.info("Creating required directory structure...")
    result = ensure_directories(layout, owner=owner)
    for path in result.created:
        console.info(f"Created {path}")
    console.ok(f"Directory tree ready under {layout.data_dir}")


def configure_firewall(platform: Platform) -> None:
    console.info(f"Configuring {platform.firewall_tool} (HTTP/HTTPS)...")
    result = platform.configure_firewall(WEB_SERVICES)
    if result.skipped:
        console.warn(f"{result.skipped}; skipping firewall configuration.")
        return
    for entry in result.added:
        console.info(f"Allowed {entry}")
    if result.reloaded:
        console.info("Firewall reloaded.")
    console.ok("Firewall rules for HTTP/HTTPS verified.")


def fetch_manifest(layout: HostLayout, repo_base: str) -> None:
    if fetch_if_missing(companion_url(repo_base, MANIFEST_NAME), layout.manifest_path):
        console.ok(f"Downloaded {layout.manifest_path}")


def check_runtime_access(runner: CommandRunner, service_user: str) -> None:
    if can_invoke_runtime(runner, service_user):
        console.ok(f"Confirmed: '{service_user}' can run docker commands.")
    else:
        console.warn(f"'{service_user}' cannot run docker yet. This will work after re-login/reboot.")


def run_wizard(layout: HostLayout, *, answers: dict[str, str], non_interactive: bool) -> ProvisionConfig:
    prior = read_env_file(layout.env_path)
    if prior:
        console.warn("Existing .env detected; defaults will be imported.")
    console.info("Starting configuration wizard...")
    prompts = ScriptedPrompts(answers, fallback=None if non_interactive else TerminalPrompts())
    defaults = ProvisionConfig(smtp_helo_name=socket.getfqdn())
    return collect_config(prior, prompts, defaults=defaults)


def write_configs(layout: HostLayout, cfg: ProvisionConfig, *, owner: str | None) -> None:
    backup = write_env_file(layout.env_path, cfg, owner=owner)
    if backup:
        console.info(f"Previous .env saved as {backup.name}")
    console.ok(f".env written to {layout.env_path}")

    backup = write_install_config(layout.install_config_path, InstallConfig.from_provision(cfg), owner=owner)
    if backup:
        console.info(f"Previous install config saved as {backup.name}")
    console.ok(f"{layout.install_config_path.name} written to {layout.config_dir}")


def update_manifest(layout: HostLayout, staging: bool) -> None:
    if not layout.manifest_path.is_file():
        console.warn(f"{MANIFEST_NAME} not found; ACME update skipped.")
        return
    if apply_staging_toggle(layout.manifest_path, staging):
        mode = "staging" if staging else "production"
        console.ok(f"ACME CA server set to {mode} in {MANIFEST_NAME}.")
    else:
        console.warn(f"No ACME caserver line found in {MANIFEST_NAME}; left unchanged.")


def install_checker(layout: HostLayout, repo_base: str) -> None:
    console.info("Downloading installation checker...")
    try:
        fetch_file(companion_url(repo_base, CHECKER_SCRIPT_NAME), layout.checker_path, mode=0o755)
    except HostError as exc:
        console.warn(f"{exc}. Use 'humhub-host check' instead.")
        return
    console.ok(f"Checker available: {layout.checker_path}")


def print_summary(
    layout: HostLayout,
    cfg: ProvisionConfig,
    *,
    service_user: str,
    membership_added: bool,
) -> None:
    console.rule(f"[bold]HumHub Preparation Complete (v{VERSION})[/]")
    console.print("Recommended next step:")
    console.print(f"  humhub-host check --base-dir {layout.root}")
    console.print("")
    console.print("Initial installation (one-time):")
    console.print(f"  cd {layout.root}")
    console.print(f"  sudo -u {service_user} docker compose up -d traefik mariadb redis humhub")
    console.print(f"  sudo -u {service_user} docker compose logs -f humhub")
    console.print(f"  Then open: {cfg.humhub_base_url}")
    console.print("")
    console.print("After installation is confirmed and admin login works:")
    console.print(f"  sudo -u {service_user} docker compose up -d")
    if membership_added:
        console.print("")
        console.warn(f"'{service_user}' was just added to the docker group; log out and back in or reboot.")
