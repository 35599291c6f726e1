from __future__ import annotations

import logging
import os
import shutil
import subprocess

from .errors import CommandError

logger = logging.getLogger(__name__)


class CommandRunner:
    """Synchronous subprocess wrapper. Failing commands raise unless check=False."""

    def run(
        self,
        argv: list[str],
        *,
        check: bool = True,
        input: str | bytes | None = None,
        env: dict[str, str] | None = None,
    ) -> subprocess.CompletedProcess:
        logger.debug("run: %s", " ".join(argv))
        full_env = None
        if env:
            full_env = {**os.environ, **env}
        text = not isinstance(input, bytes)
        try:
            res = subprocess.run(
                argv,
                input=input,
                capture_output=True,
                text=text,
                env=full_env,
                check=False,
            )
        except FileNotFoundError as exc:
            if check:
                raise CommandError(argv, 127, str(exc)) from exc
            return subprocess.CompletedProcess(argv, 127, "", str(exc))
        if check and res.returncode != 0:
            stderr = res.stderr
            if isinstance(stderr, bytes):
                stderr = stderr.decode("utf-8", errors="replace")
            raise CommandError(argv, res.returncode, stderr)
        return res

    def success(self, argv: list[str]) -> bool:
        return self.run(argv, check=False).returncode == 0

    def output(self, argv: list[str], *, check: bool = True) -> str:
        res = self.run(argv, check=check)
        return (res.stdout or "").strip()

    def exists(self, name: str) -> bool:
        return shutil.which(name) is not None
