from __future__ import annotations

from dataclasses import dataclass

from .layout import RUNTIME_GROUP
from .runner import CommandRunner


@dataclass
class AccountResult:
    user_created: bool = False
    group_created: bool = False
    membership_added: bool = False


def user_exists(runner: CommandRunner, user: str) -> bool:
    return runner.success(["id", user])


def group_exists(runner: CommandRunner, group: str) -> bool:
    return runner.success(["getent", "group", group])


def user_groups(runner: CommandRunner, user: str) -> list[str]:
    return runner.output(["id", "-nG", user]).split()


def ensure_service_account(runner: CommandRunner, user: str, *, group: str = RUNTIME_GROUP) -> AccountResult:
    result = AccountResult()
    if not user_exists(runner, user):
        runner.run(["useradd", user])
        result.user_created = True
    if not group_exists(runner, group):
        runner.run(["groupadd", group])
        result.group_created = True
    if group not in user_groups(runner, user):
        runner.run(["usermod", "-aG", group, user])
        result.membership_added = True
    return result


def can_invoke_runtime(runner: CommandRunner, user: str) -> bool:
    """Group membership resolves at login, so this may fail right after usermod."""
    return runner.success(["sudo", "-u", user, "docker", "ps"])
