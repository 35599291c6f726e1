from __future__ import annotations

import os

import typer

from humhub_provision.install_config import InstallConfig, write_install_config
from humhub_provision.layout import HostLayout

from .. import console
from ..config import load_config


def install_config(
    base_dir: str | None = typer.Option(None, "--base-dir", help="Installation root (default from settings)."),
    admin_email: str = typer.Option("admin@example.com", "--admin-email", prompt="Admin email"),
    admin_password: str = typer.Option(
        ...,
        "--admin-password",
        prompt="Admin password (min 8 chars)",
        hide_input=True,
        confirmation_prompt=True,
    ),
    site_name: str = typer.Option("HumHub Community", "--site-name", prompt="Site name"),
    base_url: str = typer.Option("https://example.com", "--base-url", prompt="Base URL (incl. https://)"),
    timezone: str = typer.Option("Europe/Amsterdam", "--timezone", prompt="Timezone"),
    db_host: str = typer.Option("mariadb", "--db-host", prompt="Database host"),
    db_port: str = typer.Option("3306", "--db-port", prompt="Database port"),
    db_name: str = typer.Option("humhub", "--db-name", prompt="Database name"),
    db_user: str = typer.Option("humhub", "--db-user", prompt="Database username"),
    db_password: str = typer.Option(..., "--db-password", prompt="Database password", hide_input=True),
):
    """Generate only installation_config.php (values usually match the compose environment)."""
    if len(admin_password) < 8:
        console.err("Admin password must be at least 8 characters.")
        raise typer.Exit(code=2)
    if not base_url.startswith(("http://", "https://")):
        console.err("Base URL must include the scheme (https://...).")
        raise typer.Exit(code=2)

    settings = load_config()
    layout = HostLayout(base_dir or settings.base_dir)
    owner = settings.service_user if hasattr(os, "geteuid") and os.geteuid() == 0 else None
    cfg = InstallConfig(
        db_host=db_host,
        db_port=db_port,
        db_name=db_name,
        db_user=db_user,
        db_password=db_password,
        admin_email=admin_email,
        admin_password=admin_password,
        site_name=site_name,
        base_url=base_url.rstrip("/"),
        timezone=timezone,
    )
    backup = write_install_config(layout.install_config_path, cfg, owner=owner)
    if backup:
        console.info(f"Previous install config saved as {backup.name}")
    console.ok(f"Installation config created at {layout.install_config_path}")
    console.print("Start HumHub to auto-install using this config:")
    console.print("  docker compose up -d humhub")
