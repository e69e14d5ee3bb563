"""Shared fixtures: in-memory ufw and docker backends."""

import pytest

from fakes import FakeFirewall, FakeRuntime
from ufw_docker.core.audit import AuditLogger
from ufw_docker.core.config import AppConfig, ToolConfig
from ufw_docker.core.context import ExecutionContext


@pytest.fixture
def ctx():
    """Execution context with default configuration."""
    return ExecutionContext(_config=AppConfig(config=ToolConfig()))


@pytest.fixture
def dry_ctx():
    """Execution context in dry-run mode."""
    return ExecutionContext(dry_run=True, _config=AppConfig(config=ToolConfig()))


@pytest.fixture
def audit(tmp_path):
    """Audit logger writing into the test directory."""
    return AuditLogger(log_path=tmp_path / "audit.log")


@pytest.fixture
def firewall():
    return FakeFirewall()


@pytest.fixture
def runtime():
    return FakeRuntime()
