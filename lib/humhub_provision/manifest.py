from __future__ import annotations

import os
import re
from dataclasses import dataclass
from pathlib import Path

import yaml

from .envfile import LE_STAGING_CASERVER
from .errors import HostError

CASERVER_DIRECTIVE = "--certificatesresolvers.letsencrypt.acme.caserver"

_CASERVER_LINE_RE = re.compile(
    r"^(?P<indent>[ \t]*)(?P<comment>#[ \t]*)?- " + re.escape(CASERVER_DIRECTIVE) + r"=\S*[ \t]*$"
)


def caserver_line(*, active: bool) -> str:
    line = f"- {CASERVER_DIRECTIVE}={LE_STAGING_CASERVER}"
    return line if active else f"# {line}"


def toggle_staging(content: str, staging: bool) -> tuple[str, bool]:
    """Rewrite the first caserver directive line. Returns (content, found)."""
    lines = content.splitlines(keepends=True)
    for index, raw in enumerate(lines):
        body = raw.rstrip("\r\n")
        match = _CASERVER_LINE_RE.match(body)
        if not match:
            continue
        is_active = match.group("comment") is None
        if is_active == staging:
            return content, True
        ending = raw[len(body) :]
        lines[index] = f"{match.group('indent')}{caserver_line(active=staging)}{ending}"
        return "".join(lines), True
    return content, False


def apply_staging_toggle(path: Path, staging: bool) -> bool:
    """Returns False when the manifest holds no caserver directive line."""
    content = path.read_text(encoding="utf-8")
    updated, found = toggle_staging(content, staging)
    if updated != content:
        path.write_text(updated, encoding="utf-8")
    return found


@dataclass(frozen=True)
class BindMount:
    service: str
    source: str
    target: str


def _is_host_path(value: str) -> bool:
    return value.startswith(("/", ".", "~", "$"))


def _parse_volume(entry: object) -> tuple[str, str] | None:
    if isinstance(entry, str):
        parts = entry.split(":")
        if len(parts) < 2 or not _is_host_path(parts[0]):
            return None
        return parts[0], parts[1]
    if isinstance(entry, dict):
        if str(entry.get("type") or "") != "bind":
            return None
        source = str(entry.get("source") or "")
        if not source:
            return None
        return source, str(entry.get("target") or "")
    return None


def find_bind_mounts(content: str) -> list[BindMount]:
    try:
        data = yaml.safe_load(content)
    except yaml.YAMLError as exc:
        raise HostError(f"Manifest is not valid YAML: {exc}") from exc
    if not isinstance(data, dict):
        return []
    services = data.get("services")
    if not isinstance(services, dict):
        return []
    mounts: list[BindMount] = []
    for name, service in services.items():
        if not isinstance(service, dict):
            continue
        for entry in service.get("volumes") or []:
            parsed = _parse_volume(entry)
            if parsed:
                mounts.append(BindMount(service=str(name), source=parsed[0], target=parsed[1]))
    return mounts


def resolve_source(source: str, manifest_dir: Path) -> Path:
    expanded = os.path.expanduser(source)
    path = Path(expanded)
    if not path.is_absolute():
        path = manifest_dir / path
    return Path(os.path.normpath(path))


def mounts_of(manifest_path: Path, target: Path) -> list[BindMount]:
    """Bind mounts in the manifest whose host source is exactly target."""
    mounts = find_bind_mounts(manifest_path.read_text(encoding="utf-8"))
    wanted = Path(os.path.normpath(target))
    return [m for m in mounts if resolve_source(m.source, manifest_path.parent) == wanted]
