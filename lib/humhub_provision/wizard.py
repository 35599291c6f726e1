from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Protocol

from .envfile import ProvisionConfig, config_from_env
from .errors import WizardError
from .passwords import generate_jwt_secret, generate_password


class Prompts(Protocol):
    def text(self, key: str, label: str, default: str) -> str: ...

    def secret(self, key: str, label: str, *, required: bool = False) -> str: ...

    def confirm(self, key: str, label: str, default: bool) -> bool: ...


@dataclass(frozen=True)
class Field:
    attr: str
    key: str
    label: str
    secret: bool = False
    generate: Callable[[], str] | None = None


FIELDS: tuple[Field, ...] = (
    Field("le_email", "LE_EMAIL", "Let's Encrypt email"),
    Field("tz", "TZ", "Timezone (IANA)"),
    Field("admin_username", "HUMHUB_ADMIN_USERNAME", "Admin username"),
    Field("admin_email", "HUMHUB_ADMIN_EMAIL", "Admin email"),
    Field("admin_password", "HUMHUB_ADMIN_PASSWORD", "Admin password", secret=True, generate=generate_password),
    Field("admin_display_name", "HUMHUB_ADMIN_DISPLAY_NAME", "Admin display name"),
    Field("site_name", "HUMHUB_SITE_NAME", "Site name"),
    Field("humhub_host", "HUMHUB_HOST", "HumHub FQDN"),
    Field("onlyoffice_host", "ONLYOFFICE_HOST", "OnlyOffice FQDN"),
    Field("humhub_version", "HUMHUB_VERSION", "HumHub version"),
    Field("onlyoffice_version", "ONLYOFFICE_VERSION", "OnlyOffice version"),
    Field("nginx_client_max_body_size", "NGINX_CLIENT_MAX_BODY_SIZE", "client_max_body_size"),
    Field("nginx_keepalive_timeout", "NGINX_KEEPALIVE_TIMEOUT", "keepalive_timeout"),
    Field("mariadb_database", "MARIADB_DATABASE", "MariaDB database"),
    Field("mariadb_user", "MARIADB_USER", "MariaDB user"),
    Field("mariadb_password", "MARIADB_PASSWORD", "MariaDB password", secret=True, generate=generate_password),
    Field(
        "mariadb_root_password",
        "MARIADB_ROOT_PASSWORD",
        "MariaDB root password",
        secret=True,
        generate=generate_password,
    ),
    Field("redis_password", "REDIS_PASSWORD", "Redis password", secret=True, generate=generate_password),
    Field(
        "onlyoffice_jwt_secret",
        "ONLYOFFICE_JWT_SECRET",
        "OnlyOffice JWT secret",
        secret=True,
        generate=generate_jwt_secret,
    ),
    Field("smtp_relay_host", "SMTP_RELAY_HOST", "SMTP relay host"),
    Field("smtp_relay_port", "SMTP_RELAY_PORT", "SMTP port"),
    Field("smtp_relay_user", "SMTP_RELAY_USER", "SMTP username"),
    # Third-party account credential, never generated.
    Field("smtp_relay_password", "SMTP_RELAY_PASSWORD", "SMTP password", secret=True),
    Field("smtp_helo_name", "SMTP_HELO_NAME", "SMTP HELO name"),
    Field("backup_schedule", "BACKUP_SCHEDULE", "Backup cron schedule"),
)

STAGING_KEY = "LE_USE_STAGING"


def _collect_secret(field: Field, prior: str, prompts: Prompts) -> str:
    if prior:
        entered = prompts.secret(field.key, f"{field.label} (empty = keep existing)")
        return entered or prior
    if field.generate is not None:
        entered = prompts.secret(field.key, f"{field.label} (blank = auto)")
        return entered or field.generate()
    entered = prompts.secret(field.key, field.label, required=True)
    if not entered:
        raise WizardError(f"{field.label} is required ({field.key}).")
    return entered


def collect_config(
    prior: dict[str, str],
    prompts: Prompts,
    *,
    defaults: ProvisionConfig | None = None,
) -> ProvisionConfig:
    """Defaults, then prior env values, then prompt answers."""
    cfg = config_from_env(prior, base=defaults or ProvisionConfig())
    for field in FIELDS:
        current = getattr(cfg, field.attr)
        if field.secret:
            value = _collect_secret(field, current, prompts)
        else:
            value = prompts.text(field.key, field.label, current).strip() or current
        setattr(cfg, field.attr, value)
    cfg.le_use_staging = prompts.confirm(STAGING_KEY, "Use Let's Encrypt staging?", cfg.le_use_staging)
    return cfg


_TRUE_VALUES = {"1", "true", "yes", "y", "on"}


class ScriptedPrompts:
    """Answers from a KEY -> value mapping.

    Unanswered prompts go to `fallback` when one is given, otherwise they take
    their default (an empty secret keeps the prior value or generates one).
    """

    def __init__(self, answers: dict[str, str] | None = None, *, fallback: Prompts | None = None) -> None:
        self.answers = dict(answers or {})
        self.fallback = fallback

    def text(self, key: str, label: str, default: str) -> str:
        if key in self.answers:
            return self.answers[key]
        if self.fallback is not None:
            return self.fallback.text(key, label, default)
        return default

    def secret(self, key: str, label: str, *, required: bool = False) -> str:
        if key in self.answers:
            return self.answers[key]
        if self.fallback is not None:
            return self.fallback.secret(key, label, required=required)
        return ""

    def confirm(self, key: str, label: str, default: bool) -> bool:
        if key in self.answers:
            return self.answers[key].strip().lower() in _TRUE_VALUES
        if self.fallback is not None:
            return self.fallback.confirm(key, label, default)
        return default


def wizard_keys() -> set[str]:
    return {field.key for field in FIELDS} | {STAGING_KEY}


def parse_overrides(items: list[str]) -> dict[str, str]:
    answers: dict[str, str] = {}
    known = wizard_keys()
    for item in items:
        if "=" not in item:
            raise WizardError(f"Override must look like KEY=VALUE: {item}")
        key, value = item.split("=", 1)
        key = key.strip().upper()
        if key not in known:
            raise WizardError(f"Unknown configuration key: {key}")
        answers[key] = value
    return answers
