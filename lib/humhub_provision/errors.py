from __future__ import annotations


class HostError(RuntimeError):
    """Base provisioning error."""


class UnsupportedPlatformError(HostError):
    """Host OS family could not be classified."""


class CommandError(HostError):
    def __init__(self, argv: list[str], returncode: int, stderr: str | None = None):
        self.argv = list(argv)
        self.returncode = returncode
        self.stderr = (stderr or "").strip()
        message = f"Command failed ({returncode}): {' '.join(self.argv)}"
        if self.stderr:
            message = f"{message}: {self.stderr}"
        super().__init__(message)


class FetchError(HostError):
    """Companion file download failed."""


class WizardError(HostError):
    """Required configuration value was not provided."""
