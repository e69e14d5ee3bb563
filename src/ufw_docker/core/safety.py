"""Precondition checks run before touching the firewall."""

import os
from typing import TYPE_CHECKING

from ufw_docker.core.context import ExecutionContext
from ufw_docker.core.exceptions import PrerequisiteError

if TYPE_CHECKING:
    from ufw_docker.services.ufw import FirewallBackend


def require_root(ctx: ExecutionContext) -> None:
    """Require root privileges unless previewing with --dry-run.

    Raises:
        PrerequisiteError: If not running as root
    """
    if ctx.dry_run:
        return
    if os.geteuid() != 0:
        raise PrerequisiteError(
            "This operation requires root privileges",
            hint="Run with: sudo ufw-docker <command>",
        )


def require_ufw_active(firewall: "FirewallBackend") -> None:
    """Require ufw to report ``Status: active``.

    Raises:
        PrerequisiteError: If ufw is disabled or cannot be queried
    """
    if not firewall.is_active():
        raise PrerequisiteError(
            "UFW is disabled or you are not root user.",
            hint="Enable it with: sudo ufw enable",
        )
