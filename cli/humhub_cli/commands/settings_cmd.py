from __future__ import annotations

import os

import typer

from .. import console
from ..config import SETTING_KEYS, config_path, default_config, load_config, normalize_policy, save_config

app = typer.Typer(help="Manage local tool settings (~/.config/humhub-host/config.toml).")


@app.command("init")
def init_settings(
        force: bool = typer.Option(False, "--force", help="Overwrite existing config."),
        base_dir: str = typer.Option(
            default_config().base_dir,
            "--base-dir",
            prompt="Installation root",
            help="Directory holding .env, docker-compose.yml and data/.",
        ),
):
    path = config_path()
    if os.path.exists(path) and not force:
        console.info(f"Config already exists: {path}")
        console.info("Use --force to overwrite.")
        return

    cfg = default_config()
    cfg.base_dir = base_dir.strip()
    if not cfg.base_dir:
        console.err("Installation root cannot be empty.")
        raise typer.Exit(code=2)
    saved = save_config(cfg)
    console.ok(f"Config written: {saved}")


@app.command("show")
def show_settings():
    cfg = load_config()
    console.console.print(" ".join(f"{key}={getattr(cfg, key)}" for key in SETTING_KEYS))


@app.command("get")
def get_setting(
        key: str = typer.Argument(..., help=f"Setting key ({', '.join(SETTING_KEYS)})."),
):
    cfg = load_config()
    k = key.strip().lower()
    if k not in SETTING_KEYS:
        console.err(f"Unknown setting: {key}")
        raise typer.Exit(code=2)
    console.console.print(getattr(cfg, k))


@app.command("set")
def set_setting(
        base_dir: str | None = typer.Option(None, "--base-dir", help="Set the installation root."),
        service_user: str | None = typer.Option(None, "--service-user", help="Set the service account."),
        repo_base: str | None = typer.Option(None, "--repo-base", help="Set the companion file base URL."),
        worker_container: str | None = typer.Option(None, "--worker-container", help="Set the worker container name."),
        permission_policy: str | None = typer.Option(
            None,
            "--permission-policy",
            help="Set the install-config mode check policy (fatal or warn).",
        ),
):
    cfg = load_config()
    if base_dir is not None:
        cfg.base_dir = base_dir.strip()
    if service_user is not None:
        cfg.service_user = service_user.strip()
    if repo_base is not None:
        cfg.repo_base = repo_base.strip().rstrip("/")
    if worker_container is not None:
        cfg.worker_container = worker_container.strip()
    if permission_policy is not None:
        try:
            cfg.permission_policy = normalize_policy(permission_policy)
        except ValueError as exc:
            console.err(str(exc))
            raise typer.Exit(code=2)
    saved = save_config(cfg)
    console.ok(f"Settings updated: {saved}")
