"""Core framework components for ufw-docker."""

from ufw_docker.core.exceptions import (
    UfwDockerError,
    ConfigurationError,
    ValidationError,
    PrerequisiteError,
    ExecutionError,
    FirewallError,
    ContainerLookupError,
    ContainerNotFoundError,
    ContainerNotRunningError,
    NoPublishedPortsError,
)

from ufw_docker.core.context import ExecutionContext, create_context
from ufw_docker.core.output import console, Console, Verbosity
from ufw_docker.core.config import AppConfig, ToolConfig
from ufw_docker.core.safety import require_root, require_ufw_active
from ufw_docker.core.audit import (
    AuditLogger,
    AuditEvent,
    AuditEventType,
    AuditResult,
    audit_logger_from_config,
)
from ufw_docker.core.executor import CommandExecutor, CommandResult

__all__ = [
    # Exceptions
    "UfwDockerError",
    "ConfigurationError",
    "ValidationError",
    "PrerequisiteError",
    "ExecutionError",
    "FirewallError",
    "ContainerLookupError",
    "ContainerNotFoundError",
    "ContainerNotRunningError",
    "NoPublishedPortsError",
    # Context
    "ExecutionContext",
    "create_context",
    # Output
    "console",
    "Console",
    "Verbosity",
    # Config
    "AppConfig",
    "ToolConfig",
    # Safety
    "require_root",
    "require_ufw_active",
    # Audit
    "AuditLogger",
    "AuditEvent",
    "AuditEventType",
    "AuditResult",
    "audit_logger_from_config",
    # Executor
    "CommandExecutor",
    "CommandResult",
]
