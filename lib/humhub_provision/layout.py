from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

DEFAULT_BASE_DIR = "/local/humhub"
DEFAULT_SERVICE_USER = "humhub"
RUNTIME_GROUP = "docker"

INSTALL_CONFIG_NAME = "installation_config.php"
CHECKER_SCRIPT_NAME = "humhub-install-check.sh"
MANIFEST_NAME = "docker-compose.yml"

# Relative to the data directory.
REQUIRED_SUBDIRS = (
    "db-data",
    "humhub/config",
    "humhub/uploads",
    "humhub/modules",
    "humhub/logs",
    "humhub/themes",
    "onlyoffice/data",
    "onlyoffice/log",
    "backups",
    "traefik/letsencrypt",
    "redis",
)


@dataclass(frozen=True)
class HostLayout:
    base_dir: str = DEFAULT_BASE_DIR

    @property
    def root(self) -> Path:
        return Path(self.base_dir).expanduser()

    @property
    def data_dir(self) -> Path:
        return self.root / "data"

    @property
    def env_path(self) -> Path:
        return self.root / ".env"

    @property
    def manifest_path(self) -> Path:
        return self.root / MANIFEST_NAME

    @property
    def checker_path(self) -> Path:
        return self.root / CHECKER_SCRIPT_NAME

    @property
    def config_dir(self) -> Path:
        return self.data_dir / "humhub" / "config"

    @property
    def install_config_path(self) -> Path:
        return self.config_dir / INSTALL_CONFIG_NAME

    @property
    def db_dir(self) -> Path:
        return self.data_dir / "db-data"

    @property
    def acme_dir(self) -> Path:
        return self.data_dir / "traefik" / "letsencrypt"

    @property
    def acme_file(self) -> Path:
        return self.acme_dir / "acme.json"

    def required_dirs(self) -> list[Path]:
        return [self.data_dir / rel for rel in REQUIRED_SUBDIRS]
