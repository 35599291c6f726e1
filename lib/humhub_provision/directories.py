from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from .errors import HostError
from .files import chown_path
from .layout import HostLayout

logger = logging.getLogger(__name__)

DIR_MODE = 0o755
MARKER_MODE = 0o600


@dataclass
class DirectoryResult:
    created: list[Path] = field(default_factory=list)
    marker_created: bool = False


def _chown(path: Path, owner: str) -> None:
    chown_path(path, owner)


def normalize_tree(root: Path, *, owner: str | None, dir_mode: int = DIR_MODE) -> None:
    """Recursive chown (when owner is set) and uniform mode on every directory.

    Symlinks are left alone, like ``chown -R`` and ``find -type d`` do.
    """
    if owner:
        _chown(root, owner)
    root.chmod(dir_mode)
    for current, dirnames, filenames in os.walk(root):
        base = Path(current)
        for name in dirnames:
            path = base / name
            if path.is_symlink():
                continue
            if owner:
                _chown(path, owner)
            path.chmod(dir_mode)
        if owner:
            for name in filenames:
                path = base / name
                if not path.is_symlink():
                    _chown(path, owner)


def ensure_directories(layout: HostLayout, *, owner: str | None) -> DirectoryResult:
    result = DirectoryResult()
    try:
        for path in layout.required_dirs():
            if not path.is_dir():
                path.mkdir(parents=True, exist_ok=True)
                result.created.append(path)
        marker = layout.acme_file
        if not marker.exists():
            marker.touch()
            result.marker_created = True
        normalize_tree(layout.data_dir, owner=owner)
        marker.chmod(MARKER_MODE)
    except OSError as exc:
        raise HostError(f"Cannot prepare {layout.data_dir}: {exc}") from exc
    logger.debug("directory tree normalized under %s", layout.data_dir)
    return result
