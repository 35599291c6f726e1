from __future__ import annotations

import logging
import os
from pathlib import Path

import httpx

from .errors import FetchError

logger = logging.getLogger(__name__)

DEFAULT_REPO_BASE = "https://raw.githubusercontent.com/martdj/Humhub/main"


def companion_url(repo_base: str, name: str) -> str:
    return f"{repo_base.rstrip('/')}/{name}"


def fetch_file(url: str, dest: Path, *, mode: int | None = None, timeout_s: float = 30.0) -> Path:
    logger.debug("fetch: %s -> %s", url, dest)
    try:
        response = httpx.get(url, timeout=timeout_s, follow_redirects=True)
    except httpx.RequestError as exc:
        raise FetchError(f"Failed to download {url}: {exc}") from exc
    if response.status_code >= 400:
        raise FetchError(f"Failed to download {url}: HTTP {response.status_code}")
    dest.parent.mkdir(parents=True, exist_ok=True)
    tmp = dest.with_name(f".{dest.name}.part")
    tmp.write_bytes(response.content)
    if mode is not None:
        tmp.chmod(mode)
    os.replace(tmp, dest)
    return dest


def fetch_if_missing(url: str, dest: Path, *, mode: int | None = None) -> bool:
    """Returns True when the file was downloaded."""
    if dest.is_file():
        return False
    fetch_file(url, dest, mode=mode)
    return True
