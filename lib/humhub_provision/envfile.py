from __future__ import annotations

from dataclasses import dataclass, fields
from datetime import datetime
from pathlib import Path

from .files import RESTRICTED_MODE, write_with_backup

LE_STAGING_CASERVER = "https://acme-staging-v02.api.letsencrypt.org/directory"


@dataclass
class ProvisionConfig:
    tz: str = "Europe/Amsterdam"
    le_email: str = "admin@example.com"
    le_use_staging: bool = False
    humhub_version: str = "1.16"
    humhub_host: str = "humhub.example.com"
    nginx_client_max_body_size: str = "20m"
    nginx_keepalive_timeout: str = "65"
    mariadb_root_password: str = ""
    mariadb_database: str = "humhub"
    mariadb_user: str = "humhub"
    mariadb_password: str = ""
    redis_password: str = ""
    onlyoffice_version: str = "latest"
    onlyoffice_host: str = "docs.example.com"
    onlyoffice_jwt_secret: str = ""
    smtp_relay_host: str = "smtp.eu.mailgun.org"
    smtp_relay_port: str = "587"
    smtp_relay_user: str = "postmaster@example.com"
    smtp_relay_password: str = ""
    smtp_helo_name: str = "localhost"
    backup_schedule: str = "0 3 * * *"
    admin_username: str = "admin"
    admin_email: str = "admin@example.com"
    admin_password: str = ""
    admin_display_name: str = "Administrator"
    site_name: str = "HumHub"

    @property
    def le_caserver(self) -> str:
        return LE_STAGING_CASERVER if self.le_use_staging else ""

    @property
    def humhub_base_url(self) -> str:
        return f"https://{self.humhub_host}"


# Env key per config attribute. Blank tuples separate groups in the rendered file.
ENV_GROUPS: tuple[tuple[tuple[str, str], ...], ...] = (
    (
        ("TZ", "tz"),
        ("LE_EMAIL", "le_email"),
        ("LE_USE_STAGING", "le_use_staging"),
        ("LE_CASERVER", "le_caserver"),
    ),
    (
        ("HUMHUB_VERSION", "humhub_version"),
        ("HUMHUB_HOST", "humhub_host"),
        ("HUMHUB_BASE_URL", "humhub_base_url"),
        ("HUMHUB_SITE_NAME", "site_name"),
    ),
    (
        ("NGINX_CLIENT_MAX_BODY_SIZE", "nginx_client_max_body_size"),
        ("NGINX_KEEPALIVE_TIMEOUT", "nginx_keepalive_timeout"),
    ),
    (
        ("MARIADB_ROOT_PASSWORD", "mariadb_root_password"),
        ("MARIADB_DATABASE", "mariadb_database"),
        ("MARIADB_USER", "mariadb_user"),
        ("MARIADB_PASSWORD", "mariadb_password"),
    ),
    (("REDIS_PASSWORD", "redis_password"),),
    (
        ("ONLYOFFICE_VERSION", "onlyoffice_version"),
        ("ONLYOFFICE_HOST", "onlyoffice_host"),
        ("ONLYOFFICE_JWT_SECRET", "onlyoffice_jwt_secret"),
    ),
    (
        ("SMTP_RELAY_HOST", "smtp_relay_host"),
        ("SMTP_RELAY_PORT", "smtp_relay_port"),
        ("SMTP_RELAY_USER", "smtp_relay_user"),
        ("SMTP_RELAY_PASSWORD", "smtp_relay_password"),
        ("SMTP_HELO_NAME", "smtp_helo_name"),
    ),
    (("BACKUP_SCHEDULE", "backup_schedule"),),
    (
        ("HUMHUB_ADMIN_USERNAME", "admin_username"),
        ("HUMHUB_ADMIN_EMAIL", "admin_email"),
        ("HUMHUB_ADMIN_PASSWORD", "admin_password"),
        ("HUMHUB_ADMIN_DISPLAY_NAME", "admin_display_name"),
    ),
)

ENV_KEYS: dict[str, str] = {key: attr for group in ENV_GROUPS for key, attr in group}

# Derived values are written but never read back.
DERIVED_KEYS = frozenset({"LE_CASERVER", "HUMHUB_BASE_URL"})

# Older files used the short admin names.
_KEY_ALIASES = {
    "ADMIN_USERNAME": "HUMHUB_ADMIN_USERNAME",
    "ADMIN_EMAIL": "HUMHUB_ADMIN_EMAIL",
    "ADMIN_DISPLAY_NAME": "HUMHUB_ADMIN_DISPLAY_NAME",
}


def _strip_quotes(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
        return value[1:-1]
    return value


def read_env_content(content: str) -> dict[str, str]:
    data: dict[str, str] = {}
    for raw in content.splitlines():
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        if line.startswith("export "):
            line = line[len("export ") :].strip()
        if "=" not in line:
            continue
        key, value = line.split("=", 1)
        data[key.strip()] = _strip_quotes(value.strip())
    return data


def read_env_file(path: Path) -> dict[str, str]:
    if not path.is_file():
        return {}
    return read_env_content(path.read_text(encoding="utf-8"))


def config_from_env(values: dict[str, str], base: ProvisionConfig | None = None) -> ProvisionConfig:
    """Overlay env-file values onto base (defaults when omitted)."""
    cfg = base or ProvisionConfig()
    known = {f.name for f in fields(ProvisionConfig)}
    for raw_key, value in values.items():
        key = _KEY_ALIASES.get(raw_key, raw_key)
        if key != raw_key and key in values:
            continue
        if key in DERIVED_KEYS:
            continue
        attr = ENV_KEYS.get(key)
        if attr is None or attr not in known:
            continue
        if attr == "le_use_staging":
            cfg.le_use_staging = value.strip().lower() == "true"
            continue
        setattr(cfg, attr, value)
    return cfg


def _format_value(value: object) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def render_env(cfg: ProvisionConfig, *, now: datetime | None = None) -> str:
    stamp = (now or datetime.now().astimezone()).isoformat(timespec="seconds")
    lines = [f"# Generated {stamp}"]
    for index, group in enumerate(ENV_GROUPS):
        if index:
            lines.append("")
        for key, attr in group:
            lines.append(f"{key}={_format_value(getattr(cfg, attr))}")
    return "\n".join(lines) + "\n"


def write_env_file(
    path: Path,
    cfg: ProvisionConfig,
    *,
    owner: str | None = None,
    mode: int = RESTRICTED_MODE,
) -> Path | None:
    return write_with_backup(path, render_env(cfg), mode=mode, owner=owner)
