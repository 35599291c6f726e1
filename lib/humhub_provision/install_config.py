from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from .envfile import ProvisionConfig
from .files import RESTRICTED_MODE, write_with_backup


@dataclass(frozen=True)
class InstallConfig:
    db_name: str
    db_user: str
    db_password: str
    admin_email: str
    admin_password: str
    base_url: str
    timezone: str
    admin_username: str = "admin"
    admin_display_name: str = "Administrator"
    site_name: str = "HumHub"
    db_host: str = "mariadb"
    db_port: str = "3306"

    @classmethod
    def from_provision(cls, cfg: ProvisionConfig) -> "InstallConfig":
        return cls(
            db_name=cfg.mariadb_database,
            db_user=cfg.mariadb_user,
            db_password=cfg.mariadb_password,
            admin_username=cfg.admin_username,
            admin_email=cfg.admin_email,
            admin_password=cfg.admin_password,
            admin_display_name=cfg.admin_display_name,
            site_name=cfg.site_name,
            base_url=cfg.humhub_base_url,
            timezone=cfg.tz,
        )


def php_string(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace("'", "\\'")
    return f"'{escaped}'"


def _section(name: str, items: list[tuple[str, str]]) -> list[str]:
    width = max(len(key) for key, _ in items) + 2
    lines = [f"  '{name}' => ["]
    for key, value in items:
        quoted = f"'{key}'"
        lines.append(f"    {quoted:<{width}} => {php_string(value)},")
    lines.append("  ],")
    return lines


def render_install_config(cfg: InstallConfig) -> str:
    lines = ["<?php", "return ["]
    lines += _section(
        "database",
        [
            ("connection", "mysql"),
            ("hostname", cfg.db_host),
            ("port", cfg.db_port),
            ("database", cfg.db_name),
            ("username", cfg.db_user),
            ("password", cfg.db_password),
        ],
    )
    lines += _section(
        "admin",
        [
            ("username", cfg.admin_username),
            ("email", cfg.admin_email),
            ("password", cfg.admin_password),
            ("displayName", cfg.admin_display_name),
        ],
    )
    lines += _section(
        "settings",
        [
            ("name", cfg.site_name),
            ("baseUrl", cfg.base_url),
            ("timeZone", cfg.timezone),
        ],
    )
    lines.append("];")
    return "\n".join(lines) + "\n"


def write_install_config(
    path: Path,
    cfg: InstallConfig,
    *,
    owner: str | None = None,
    mode: int = RESTRICTED_MODE,
) -> Path | None:
    return write_with_backup(path, render_install_config(cfg), mode=mode, owner=owner)
