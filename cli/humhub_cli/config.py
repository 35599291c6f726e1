from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass
from typing import Any

import tomli_w
from platformdirs import user_config_dir

from humhub_provision.fetch import DEFAULT_REPO_BASE
from humhub_provision.layout import DEFAULT_BASE_DIR, DEFAULT_SERVICE_USER
from humhub_provision.preflight import DEFAULT_WORKER_CONTAINER, PERMISSION_POLICIES, POLICY_FATAL

from . import console

APP_NAME = "humhub-host"
CONFIG_FILENAME = "config.toml"
ENV_REPO_BASE = "HUMHUB_HOST_REPO_BASE"

SETTING_KEYS = ("base_dir", "service_user", "repo_base", "worker_container", "permission_policy")


@dataclass
class AppConfig:
    base_dir: str = DEFAULT_BASE_DIR
    service_user: str = DEFAULT_SERVICE_USER
    repo_base: str = DEFAULT_REPO_BASE
    worker_container: str = DEFAULT_WORKER_CONTAINER
    permission_policy: str = POLICY_FATAL


def config_path() -> str:
    return f"{user_config_dir(APP_NAME)}/{CONFIG_FILENAME}"


def default_config() -> AppConfig:
    return AppConfig()


def normalize_policy(raw: str | None) -> str:
    value = (raw or "").strip().lower()
    if value not in PERMISSION_POLICIES:
        raise ValueError(f"permission_policy must be one of: {', '.join(PERMISSION_POLICIES)}")
    return value


def to_toml(cfg: AppConfig) -> dict[str, Any]:
    return {key: getattr(cfg, key) for key in SETTING_KEYS}


def from_toml(data: dict[str, Any]) -> AppConfig:
    cfg = default_config()
    for key in SETTING_KEYS:
        value = str(data.get(key) or "").strip()
        if not value:
            continue
        if key == "permission_policy":
            try:
                value = normalize_policy(value)
            except ValueError as exc:
                console.warn(f"Ignoring setting: {exc}")
                continue
        if key == "repo_base":
            value = value.rstrip("/")
        setattr(cfg, key, value)
    return cfg


def load_config() -> AppConfig:
    path = config_path()
    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
    except FileNotFoundError:
        return default_config()
    return from_toml(data)


def resolve_repo_base(cfg: AppConfig) -> str:
    env_value = os.getenv(ENV_REPO_BASE, "").strip()
    if env_value:
        return env_value.rstrip("/")
    return (cfg.repo_base or DEFAULT_REPO_BASE).strip().rstrip("/")


def save_config(cfg: AppConfig) -> str:
    path = config_path()
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "wb") as f:
        f.write(tomli_w.dumps(to_toml(cfg)).encode("utf-8"))
    os.chmod(path, 0o600)
    return path
