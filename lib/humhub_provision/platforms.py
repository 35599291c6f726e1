from __future__ import annotations

import logging
import re
import shlex
from dataclasses import dataclass, field
from pathlib import Path

import httpx

from .errors import FetchError, HostError, UnsupportedPlatformError
from .firewall import FirewallResult, reconcile_firewalld, reconcile_ufw
from .runner import CommandRunner

logger = logging.getLogger(__name__)

OS_RELEASE_PATH = Path("/etc/os-release")

RHEL = "rhel"
DEBIAN = "debian"

_RHEL_ID_RE = re.compile(r"rhel|centos|rocky|almalinux|fedora")
_RHEL_LIKE_RE = re.compile(r"rhel|fedora")
_DEBIAN_ID_RE = re.compile(r"debian|ubuntu|raspbian")
_DEBIAN_LIKE_RE = re.compile(r"debian|ubuntu")

RUNTIME_PACKAGES = ["docker-ce", "docker-ce-cli", "containerd.io", "docker-compose-plugin"]
DOCKER_DOWNLOAD_BASE = "https://download.docker.com/linux"
APT_KEYRING_DIR = "/etc/apt/keyrings"
APT_KEYRING = f"{APT_KEYRING_DIR}/docker.gpg"
APT_SOURCE_LIST = Path("/etc/apt/sources.list.d/docker.list")


@dataclass(frozen=True)
class OsInfo:
    id: str
    id_like: str = ""
    version_codename: str = ""
    values: dict[str, str] = field(default_factory=dict, compare=False)


def parse_os_release(content: str) -> OsInfo:
    values: dict[str, str] = {}
    for raw in content.splitlines():
        line = raw.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        try:
            parts = shlex.split(value)
        except ValueError:
            parts = [value.strip("\"'")]
        values[key.strip()] = parts[0] if parts else ""
    return OsInfo(
        id=values.get("ID", "").lower(),
        id_like=values.get("ID_LIKE", "").lower(),
        version_codename=values.get("VERSION_CODENAME", ""),
        values=values,
    )


def read_os_release(path: Path = OS_RELEASE_PATH) -> OsInfo:
    try:
        return parse_os_release(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise UnsupportedPlatformError(f"Cannot read {path}: {exc}") from exc


def classify(info: OsInfo) -> str:
    if _RHEL_ID_RE.search(info.id) or _RHEL_LIKE_RE.search(info.id_like):
        return RHEL
    if _DEBIAN_ID_RE.search(info.id) or _DEBIAN_LIKE_RE.search(info.id_like):
        return DEBIAN
    raise UnsupportedPlatformError(
        f"Unsupported or undetected Linux distribution (id: {info.id or 'unknown'})."
    )


class Platform:
    family = ""
    package_manager = ""
    firewall_tool = ""

    def __init__(self, info: OsInfo, runner: CommandRunner) -> None:
        self.info = info
        self.runner = runner

    def runtime_installed(self) -> bool:
        return self.runner.exists("docker")

    def install_base_packages(self) -> None:
        raise NotImplementedError

    def install_runtime(self) -> bool:
        """Install the container runtime when missing. Returns True if installed now."""
        if self.runtime_installed():
            return False
        self._install_runtime()
        self.runner.run(["systemctl", "enable", "--now", "docker"])
        return True

    def _install_runtime(self) -> None:
        raise NotImplementedError

    def tune_security(self) -> bool:
        return False

    def configure_firewall(self, services: dict[str, str]) -> FirewallResult:
        raise NotImplementedError


class RhelPlatform(Platform):
    family = RHEL
    package_manager = "dnf"
    firewall_tool = "firewalld"

    def install_base_packages(self) -> None:
        self.runner.run(["dnf", "-y", "install", "curl", "yum-utils", "firewalld", "openssl"])

    def _install_runtime(self) -> None:
        repo = f"{DOCKER_DOWNLOAD_BASE}/centos/docker-ce.repo"
        self.runner.run(["yum-config-manager", "--add-repo", repo])
        self.runner.run(["dnf", "-y", "install", *RUNTIME_PACKAGES])

    def tune_security(self) -> bool:
        if not self.runner.exists("getenforce"):
            return False
        if self.runner.output(["getenforce"], check=False) == "Disabled":
            return False
        res = self.runner.run(["setsebool", "-P", "container_manage_cgroup", "on"], check=False)
        if res.returncode != 0:
            logger.warning("setsebool container_manage_cgroup failed: %s", (res.stderr or "").strip())
        return True

    def configure_firewall(self, services: dict[str, str]) -> FirewallResult:
        self.runner.run(["systemctl", "enable", "--now", "firewalld"])
        return reconcile_firewalld(self.runner, list(services))


class DebianPlatform(Platform):
    family = DEBIAN
    package_manager = "apt-get"
    firewall_tool = "ufw"

    _apt_env = {"DEBIAN_FRONTEND": "noninteractive"}

    def install_base_packages(self) -> None:
        self.runner.run(["apt-get", "update", "-y"])
        self.runner.run(
            ["apt-get", "install", "-y", "ca-certificates", "curl", "gnupg", "lsb-release", "openssl"],
            env=self._apt_env,
        )
        if not self.runner.exists("ufw"):
            res = self.runner.run(["apt-get", "install", "-y", "ufw"], check=False, env=self._apt_env)
            if res.returncode != 0:
                logger.warning("ufw could not be installed; firewall step will be skipped")

    def codename(self) -> str:
        if self.info.version_codename:
            return self.info.version_codename
        if self.runner.exists("lsb_release"):
            value = self.runner.output(["lsb_release", "-cs"], check=False)
            if value:
                return value
        raise HostError("Could not determine Debian/Ubuntu codename.")

    def _install_runtime(self) -> None:
        distro = self.info.id or "debian"
        codename = self.codename()
        self.runner.run(["install", "-m", "0755", "-d", APT_KEYRING_DIR])
        key_url = f"{DOCKER_DOWNLOAD_BASE}/{distro}/gpg"
        try:
            response = httpx.get(key_url, timeout=30.0, follow_redirects=True)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise FetchError(f"Failed to download {key_url}: {exc}") from exc
        self.runner.run(["gpg", "--batch", "--yes", "--dearmor", "-o", APT_KEYRING], input=response.content)
        self.runner.run(["chmod", "a+r", APT_KEYRING])
        arch = self.runner.output(["dpkg", "--print-architecture"])
        APT_SOURCE_LIST.write_text(
            f"deb [arch={arch} signed-by={APT_KEYRING}] {DOCKER_DOWNLOAD_BASE}/{distro} {codename} stable\n",
            encoding="utf-8",
        )
        self.runner.run(["apt-get", "update", "-y"])
        self.runner.run(["apt-get", "install", "-y", *RUNTIME_PACKAGES], env=self._apt_env)

    def configure_firewall(self, services: dict[str, str]) -> FirewallResult:
        return reconcile_ufw(self.runner, list(services.values()))


_PLATFORMS: dict[str, type[Platform]] = {RHEL: RhelPlatform, DEBIAN: DebianPlatform}


def detect_platform(runner: CommandRunner, info: OsInfo | None = None) -> Platform:
    info = info or read_os_release()
    family = classify(info)
    return _PLATFORMS[family](info, runner)
