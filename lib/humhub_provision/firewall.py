from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field

from .runner import CommandRunner

logger = logging.getLogger(__name__)

# firewalld service name -> ufw rule
WEB_SERVICES = {"http": "80/tcp", "https": "443/tcp"}


@dataclass
class FirewallResult:
    added: list[str] = field(default_factory=list)
    present: list[str] = field(default_factory=list)
    reloaded: bool = False
    skipped: str | None = None


def missing_entries(desired: list[str], observed_text: str) -> list[str]:
    observed = set(re.split(r"\s+", observed_text.strip())) if observed_text.strip() else set()
    return [entry for entry in desired if entry not in observed]


def reconcile_firewalld(runner: CommandRunner, services: list[str]) -> FirewallResult:
    listed = runner.output(["firewall-cmd", "--permanent", "--list-services"])
    missing = missing_entries(services, listed)
    result = FirewallResult(present=[s for s in services if s not in missing])
    for service in missing:
        runner.run(["firewall-cmd", f"--add-service={service}", "--permanent"])
        result.added.append(service)
    if result.added:
        runner.run(["firewall-cmd", "--reload"])
        result.reloaded = True
    return result


def ufw_active(status_text: str) -> bool:
    first = status_text.strip().splitlines()[0] if status_text.strip() else ""
    parts = first.split()
    return len(parts) >= 2 and parts[1] == "active"


def _ufw_rule_tokens(status_text: str) -> str:
    # First column of each rule row, e.g. "80/tcp" or "443/tcp (v6)".
    tokens = []
    for line in status_text.splitlines()[1:]:
        parts = line.split()
        if parts:
            tokens.append(parts[0])
    return " ".join(tokens)


def reconcile_ufw(runner: CommandRunner, rules: list[str]) -> FirewallResult:
    if not runner.exists("ufw"):
        return FirewallResult(skipped="ufw is not installed")
    res = runner.run(["ufw", "status"], check=False)
    status_text = res.stdout or ""
    if res.returncode != 0 or not ufw_active(status_text):
        return FirewallResult(skipped="ufw is installed but not active")
    missing = missing_entries(rules, _ufw_rule_tokens(status_text))
    result = FirewallResult(present=[r for r in rules if r not in missing])
    for rule in missing:
        runner.run(["ufw", "allow", rule])
        result.added.append(rule)
    return result
