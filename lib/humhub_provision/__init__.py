from .errors import CommandError, FetchError, HostError, UnsupportedPlatformError, WizardError
from .layout import HostLayout
from .runner import CommandRunner

__all__ = [
    "CommandError",
    "CommandRunner",
    "FetchError",
    "HostError",
    "HostLayout",
    "UnsupportedPlatformError",
    "WizardError",
]
