from __future__ import annotations

import logging
import os
import shutil
import tempfile
from datetime import datetime
from pathlib import Path

from .errors import HostError

logger = logging.getLogger(__name__)

RESTRICTED_MODE = 0o640


def backup_suffix(now: datetime | None = None) -> str:
    return (now or datetime.now()).strftime("%Y%m%d-%H%M%S")


def chown_path(path: Path, owner: str) -> None:
    try:
        shutil.chown(path, user=owner, group=owner)
    except (LookupError, OSError) as exc:
        raise HostError(f"Cannot set owner of {path}: {exc}") from exc


def backup_file(path: Path, *, now: datetime | None = None) -> Path | None:
    """Copy an existing file aside as <name>.bak.<timestamp>. Returns the copy path."""
    if not path.is_file():
        return None
    target = path.with_name(f"{path.name}.bak.{backup_suffix(now)}")
    counter = 1
    while target.exists():
        target = path.with_name(f"{path.name}.bak.{backup_suffix(now)}.{counter}")
        counter += 1
    try:
        shutil.copy2(path, target)
    except OSError as exc:
        raise HostError(f"Cannot back up {path}: {exc}") from exc
    logger.debug("backup: %s -> %s", path, target)
    return target


def write_restricted(
    path: Path,
    content: str,
    *,
    mode: int = RESTRICTED_MODE,
    owner: str | None = None,
) -> None:
    """Atomically replace path with content, mode and owner applied before the rename."""
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", dir=str(path.parent))
    except OSError as exc:
        raise HostError(f"Cannot write {path}: {exc}") from exc
    tmp_path = Path(tmp_name)
    try:
        os.fchmod(fd, mode)
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            fh.write(content)
        if owner:
            chown_path(tmp_path, owner)
        os.replace(tmp_path, path)
    except OSError as exc:
        tmp_path.unlink(missing_ok=True)
        raise HostError(f"Cannot write {path}: {exc}") from exc
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise


def write_with_backup(
    path: Path,
    content: str,
    *,
    mode: int = RESTRICTED_MODE,
    owner: str | None = None,
) -> Path | None:
    backup = backup_file(path)
    write_restricted(path, content, mode=mode, owner=owner)
    return backup
