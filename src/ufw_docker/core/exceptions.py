"""Custom exceptions for ufw-docker.

All exceptions provide:
- Clear error messages
- Optional hints for resolution
- Optional details for debugging
- An exit code for shell integration

Every fatal error exits with status 1; the hierarchy exists so callers can
tell usage problems, missing prerequisites and lookup failures apart.
"""

from typing import Optional


class UfwDockerError(Exception):
    """Base exception for all ufw-docker errors.

    Attributes:
        message: Human-readable error description
        hint: Suggested action to resolve the error
        details: Additional context for debugging
        exit_code: Shell exit code
    """

    exit_code: int = 1

    def __init__(
        self,
        message: str,
        *,
        hint: Optional[str] = None,
        details: Optional[list[str]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.hint = hint
        self.details = details or []

    def __str__(self) -> str:
        return self.message


class ConfigurationError(UfwDockerError):
    """Configuration file or settings errors.

    Raised when:
    - Config file unreadable
    - Invalid YAML syntax
    - Invalid configuration values
    """


class ValidationError(UfwDockerError):
    """Usage and syntax errors.

    Raised when:
    - Port argument is malformed
    - Container reference is missing
    - Unsupported delete form is used
    """


class PrerequisiteError(UfwDockerError):
    """Missing prerequisites.

    Raised when:
    - ufw is not active
    - Caller is not root
    - Required command not found
    """


class ExecutionError(UfwDockerError):
    """Command execution failures.

    Raised when:
    - Shell command returns non-zero exit code
    - Shell command times out
    """

    def __init__(
        self,
        message: str,
        *,
        command: Optional[str] = None,
        return_code: Optional[int] = None,
        stderr: Optional[str] = None,
        hint: Optional[str] = None,
        details: Optional[list[str]] = None,
    ) -> None:
        if not details:
            details = []
        if return_code is not None:
            details.append(f"Exit code: {return_code}")
        if stderr:
            details.append(f"Error output: {stderr.strip()}")
        super().__init__(message, hint=hint, details=details)
        self.command = command
        self.return_code = return_code
        self.stderr = stderr


class FirewallError(UfwDockerError):
    """ufw errors.

    Raised when:
    - ufw command fails
    - after.rules cannot be read or written
    """

    def __init__(
        self,
        message: str,
        *,
        rule: Optional[str] = None,
        hint: Optional[str] = None,
        details: Optional[list[str]] = None,
    ) -> None:
        super().__init__(message, hint=hint, details=details)
        self.rule = rule


class ContainerLookupError(UfwDockerError):
    """A container reference could not be turned into addresses and ports."""

    def __init__(
        self,
        message: str,
        *,
        container: Optional[str] = None,
        hint: Optional[str] = None,
        details: Optional[list[str]] = None,
    ) -> None:
        super().__init__(message, hint=hint, details=details)
        self.container = container


class ContainerNotFoundError(ContainerLookupError):
    """docker inspect does not know the reference."""


class ContainerNotRunningError(ContainerLookupError):
    """The container exists but has no network address."""


class NoPublishedPortsError(ContainerLookupError):
    """The container publishes no ports."""
