"""Docker container inspection.

Reads what the firewall needs to know about a container from
``docker inspect``:
- its canonical name
- one IPv4 address per attached network
- the ports it publishes on the host
"""

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional

from ufw_docker.core.context import ExecutionContext
from ufw_docker.core.exceptions import (
    ContainerNotFoundError,
    ContainerNotRunningError,
    ExecutionError,
    NoPublishedPortsError,
)
from ufw_docker.core.executor import CommandExecutor
from ufw_docker.core.validation import Protocol


@dataclass(frozen=True)
class PortBinding:
    """A published container port."""
    port: int
    protocol: Protocol = Protocol.TCP

    def __str__(self) -> str:
        return f"{self.port}/{self.protocol.value}"


@dataclass
class ContainerPorts:
    """Addresses and published ports of one container."""
    name: str
    ip_addresses: list[str] = field(default_factory=list)
    bindings: list[PortBinding] = field(default_factory=list)


def parse_port_key(key: str) -> Optional[PortBinding]:
    """Parse a ``NetworkSettings.Ports`` key such as ``80/tcp``.

    Returns None for protocols the firewall does not handle (e.g. sctp)
    and for malformed keys.
    """
    port_str, _, proto_str = key.partition("/")
    try:
        return PortBinding(port=int(port_str), protocol=Protocol(proto_str or "tcp"))
    except ValueError:
        return None


def extract_container_ports(name: str, data: dict[str, Any]) -> ContainerPorts:
    """Build ContainerPorts from one ``docker inspect`` document.

    Networks without an address are skipped, as are port keys with no host
    binding (exposed but not published).
    """
    settings = data.get("NetworkSettings") or {}

    ips = []
    for network in (settings.get("Networks") or {}).values():
        ip = ((network or {}).get("IPAddress") or "").strip()
        if ip and ip not in ips:
            ips.append(ip)

    bindings = []
    for key, host_bindings in (settings.get("Ports") or {}).items():
        if not host_bindings:
            continue
        binding = parse_port_key(key)
        if binding is not None and binding not in bindings:
            bindings.append(binding)

    return ContainerPorts(name=name, ip_addresses=ips, bindings=bindings)


class ContainerRuntime(ABC):
    """Operations the rule manager needs from a container runtime."""

    @abstractmethod
    def inspect(self, ref: str) -> Optional[dict[str, Any]]:
        """Return the inspect document for ``ref``, or None if unknown."""
        ...

    def canonical_name(self, ref: str) -> Optional[str]:
        """Container name without docker's leading slash."""
        data = self.inspect(ref)
        if not data:
            return None
        name = (data.get("Name") or "").lstrip("/").strip()
        return name or None

    def inspect_published(self, ref: str) -> ContainerPorts:
        """Addresses and published ports of ``ref``.

        Raises:
            ContainerNotFoundError: If the container does not exist
            ContainerNotRunningError: If it has no network address
            NoPublishedPortsError: If it publishes nothing
        """
        data = self.inspect(ref)
        if data is None:
            raise ContainerNotFoundError(
                f'Docker instance "{ref}" doesn\'t exist.',
                container=ref,
                hint="Check the name with: docker ps",
            )

        ports = extract_container_ports(ref, data)
        if not ports.ip_addresses:
            raise ContainerNotRunningError(
                f'Could not find a running instance "{ref}".',
                container=ref,
            )
        if not ports.bindings:
            raise NoPublishedPortsError(
                f'"{ref}" doesn\'t have any published ports.',
                container=ref,
                hint="Publish ports with docker run -p or the ports: key in compose",
            )
        return ports


class DockerService(ContainerRuntime):
    """docker command-line backend."""

    def __init__(self, ctx: ExecutionContext, executor: CommandExecutor) -> None:
        self.ctx = ctx
        self.executor = executor

    def inspect(self, ref: str) -> Optional[dict[str, Any]]:
        result = self.executor.run(
            ["docker", "inspect", "--type", "container", ref],
            check=False,
            read_only=True,
        )
        if not result.success:
            self.ctx.console.debug(f"docker inspect {ref}: {result.stderr.strip()}")
            return None

        try:
            data = json.loads(result.stdout)
        except (json.JSONDecodeError, ValueError) as e:
            raise ExecutionError(
                f"Failed to parse docker inspect output for {ref}",
                details=[str(e)],
            )

        if not data:
            return None
        return data[0]
