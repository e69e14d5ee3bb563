"""Service abstractions for ufw, Docker and ufw's after.rules."""

from ufw_docker.services.after_rules import AfterRulesInstaller
from ufw_docker.services.docker import ContainerRuntime, DockerService
from ufw_docker.services.reconcile import DockerRuleManager
from ufw_docker.services.ufw import FirewallBackend, UfwService

__all__ = [
    "AfterRulesInstaller",
    "ContainerRuntime",
    "DockerService",
    "DockerRuleManager",
    "FirewallBackend",
    "UfwService",
]
