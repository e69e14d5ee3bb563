"""Input validation utilities.

Provides validation for:
- Container references (names and id prefixes)
- Port numbers and ``port[/protocol]`` arguments

All validators return the validated value or raise ValidationError.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from ufw_docker.core.exceptions import ValidationError


class Protocol(str, Enum):
    """Transport protocol of a published port."""
    TCP = "tcp"
    UDP = "udp"


# Identifiers that are worth looking up with docker inspect
LOOKUP_REF_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")

# Canonical container names (docker also allows dots)
CANONICAL_NAME_PATTERN = re.compile(r"^[-_.A-Za-z0-9]+$")

# port[/tcp|udp]
PORT_SPEC_PATTERN = re.compile(r"^(\d+)(?:/(tcp|udp))?$")

MIN_PORT = 1
MAX_PORT = 65535


@dataclass(frozen=True)
class PortSpec:
    """A parsed ``port[/protocol]`` command-line argument.

    ``port`` is None when the argument was omitted, meaning "every
    published port".
    """
    port: Optional[int]
    protocol: Protocol = Protocol.TCP

    def __str__(self) -> str:
        if self.port is None:
            return ""
        return f"{self.port}/{self.protocol.value}"


def validate_port(value: int) -> int:
    """Validate a port number.

    Args:
        value: Port number to validate

    Returns:
        The validated port number

    Raises:
        ValidationError: If port is out of valid range
    """
    if not MIN_PORT <= value <= MAX_PORT:
        raise ValidationError(
            f"Invalid port number: {value}",
            hint=f"Port must be between {MIN_PORT} and {MAX_PORT}",
        )
    return value


def parse_port_spec(
    value: Optional[str],
    default_protocol: Protocol = Protocol.TCP,
) -> PortSpec:
    """Parse a ``port[/tcp|udp]`` argument.

    An empty or missing value selects every port. The protocol falls back
    to ``default_protocol`` unless the argument names one.

    Raises:
        ValidationError: If the value is not ``digits[/tcp|udp]``
    """
    if not value:
        return PortSpec(port=None, protocol=default_protocol)

    match = PORT_SPEC_PATTERN.match(value)
    if not match:
        raise ValidationError(
            f'invalid port syntax: "{value}".',
            hint="Use PORT or PORT/PROTOCOL, e.g. 80 or 53/udp",
        )

    port = validate_port(int(match.group(1)))
    protocol = Protocol(match.group(2)) if match.group(2) else default_protocol
    return PortSpec(port=port, protocol=protocol)


def validate_container_ref(value: Optional[str]) -> str:
    """Require a non-empty container name or id."""
    if not value or not value.strip():
        raise ValidationError(
            "Docker instance name/ID can not be empty.",
            hint="Pass the container name or id, e.g. ufw-docker allow nginx 80",
        )
    return value.strip()


def is_lookup_ref(value: str) -> bool:
    """Check whether a reference is plain enough to inspect."""
    return bool(LOOKUP_REF_PATTERN.match(value))


def is_canonical_name(value: str) -> bool:
    """Check whether a value is a well-formed container name."""
    return bool(CANONICAL_NAME_PATTERN.match(value))
