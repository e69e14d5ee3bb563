"""ufw firewall service.

Provides the firewall side of container rule management:
- Route (forwarded traffic) allow-rules tagged with a lookup comment
- Parsing of ``ufw status numbered``
- Comment matching used by list, status and delete
- Numbered deletion
- Dry-run duplicate detection

The comment ``allow <name> <port>/<protocol>`` is the only thing that ties a
ufw rule back to a container across invocations, so its format must never
change.
"""

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Optional

from ufw_docker.core.context import ExecutionContext
from ufw_docker.core.exceptions import ExecutionError, FirewallError
from ufw_docker.core.executor import CommandExecutor
from ufw_docker.core.validation import Protocol


# Canonical container name inside a rule comment
COMMENT_NAME_REGEX = r"[-_.A-Za-z0-9]+"

# "[ 12] 172.17.0.2 80/tcp   ALLOW FWD   Anywhere   # allow web 80/tcp"
NUMBERED_LINE_PATTERN = re.compile(r"^\[\s*(\d+)\]\s+(.*?)\s*$")

ACTIVE_STATUS = "Status: active"

DEFAULT_SKIP_MARKER = "Skipping"


def rule_comment(name: str, port: int, protocol: Protocol) -> str:
    """Build the comment tag identifying a container rule."""
    return f"allow {name} {port}/{protocol.value}"


def comment_pattern(
    name: Optional[str] = None,
    port: Optional[int] = None,
    protocol: Optional[Protocol] = None,
) -> re.Pattern:
    """Compile a matcher for rule comments.

    A missing name matches any container name. A missing port matches any
    numeric port and either protocol, whatever ``protocol`` says.
    """
    name_re = re.escape(name) if name else COMMENT_NAME_REGEX
    if port is None:
        port_re = r"\d+/(?:tcp|udp)"
    else:
        proto_re = re.escape(protocol.value) if protocol else "(?:tcp|udp)"
        port_re = f"{port}/{proto_re}"
    return re.compile(rf"^allow {name_re} {port_re}$")


@dataclass(frozen=True)
class RouteRule:
    """A forwarded-traffic allow rule for one container address and port."""
    name: str
    ip: str
    port: int
    protocol: Protocol = Protocol.TCP

    @property
    def comment(self) -> str:
        return rule_comment(self.name, self.port, self.protocol)

    def to_ufw_args(self) -> list[str]:
        """Convert rule to ufw command arguments."""
        return [
            "route", "allow",
            "proto", self.protocol.value,
            "from", "any",
            "to", self.ip,
            "port", str(self.port),
            "comment", self.comment,
        ]

    def __str__(self) -> str:
        return f"{self.comment} -> {self.ip}"


@dataclass(frozen=True)
class NumberedRule:
    """A rule line from ``ufw status numbered``."""
    num: int
    text: str
    comment: Optional[str] = None

    @property
    def destination(self) -> Optional[str]:
        """First column of the rule (the address for route rules)."""
        parts = self.text.split()
        return parts[0] if parts else None

    @property
    def line(self) -> str:
        """The rule formatted the way ufw prints it."""
        return f"[{self.num:>2}] {self.text}"


def parse_numbered_status(output: str) -> list[NumberedRule]:
    """Parse ``ufw status numbered`` output.

    Header lines are skipped. The comment is whatever follows the first
    `` # `` on the line.
    """
    rules = []
    for line in output.splitlines():
        match = NUMBERED_LINE_PATTERN.match(line.strip())
        if not match:
            continue
        body = match.group(2)
        _, sep, comment = body.partition(" # ")
        rules.append(NumberedRule(
            num=int(match.group(1)),
            text=body,
            comment=comment.strip() if sep else None,
        ))
    return rules


def match_rules(
    rules: list[NumberedRule],
    name: Optional[str] = None,
    port: Optional[int] = None,
    protocol: Optional[Protocol] = None,
) -> list[NumberedRule]:
    """Keep the rules whose full comment matches name/port/protocol."""
    pattern = comment_pattern(name, port, protocol)
    return [r for r in rules if r.comment is not None and pattern.match(r.comment)]


def starts_with_marker(marker: str = DEFAULT_SKIP_MARKER) -> Callable[[str], bool]:
    """Build a duplicate predicate for ``ufw --dry-run`` output."""
    def predicate(output: str) -> bool:
        return any(line.startswith(marker) for line in output.splitlines())
    return predicate


class FirewallBackend(ABC):
    """Operations the rule manager needs from a firewall."""

    @abstractmethod
    def is_active(self) -> bool:
        """Whether the firewall is enabled."""
        ...

    @abstractmethod
    def list_numbered(self) -> list[NumberedRule]:
        """Current rules with their positions."""
        ...

    @abstractmethod
    def dry_run_add(self, rule: RouteRule) -> str:
        """Simulate adding a rule and return the backend's report."""
        ...

    @abstractmethod
    def add(self, rule: RouteRule) -> None:
        """Add a rule."""
        ...

    @abstractmethod
    def delete(self, num: int) -> None:
        """Delete the rule currently at position ``num``."""
        ...


class UfwService(FirewallBackend):
    """ufw command-line backend."""

    def __init__(self, ctx: ExecutionContext, executor: CommandExecutor) -> None:
        self.ctx = ctx
        self.executor = executor

    def is_active(self) -> bool:
        result = self.executor.run(["ufw", "status"], check=False, read_only=True)
        return result.success and ACTIVE_STATUS in result.stdout

    def list_numbered(self) -> list[NumberedRule]:
        try:
            result = self.executor.run(["ufw", "status", "numbered"], read_only=True)
        except ExecutionError as e:
            raise FirewallError(
                "Cannot list ufw rules",
                details=e.details,
            ) from e
        return parse_numbered_status(result.stdout)

    def dry_run_add(self, rule: RouteRule) -> str:
        try:
            result = self.executor.run(
                ["ufw", "--dry-run"] + rule.to_ufw_args(),
                read_only=True,
            )
        except ExecutionError as e:
            raise FirewallError(
                f"ufw dry-run failed for rule: {rule}",
                rule=rule.comment,
                details=e.details,
            ) from e
        return result.stdout

    def add(self, rule: RouteRule) -> None:
        self.ctx.console.step(f"ufw {' '.join(rule.to_ufw_args())}")
        try:
            result = self.executor.run(["ufw"] + rule.to_ufw_args())
        except ExecutionError as e:
            raise FirewallError(
                f"Failed to add rule: {rule}",
                rule=rule.comment,
                details=e.details,
            ) from e
        if result.stdout.strip():
            self.ctx.console.verbose(result.stdout.strip())

    def delete(self, num: int) -> None:
        self.ctx.console.step(f'delete "{num}"')
        try:
            self.executor.run(["ufw", "--force", "delete", str(num)])
        except ExecutionError as e:
            raise FirewallError(
                f"Failed to delete rule {num}",
                details=e.details,
            ) from e
