"""Unit tests for the docker service."""

import json

import pytest
from unittest.mock import Mock

from fakes import FakeRuntime, container_doc, published
from ufw_docker.core.exceptions import (
    ContainerLookupError,
    ContainerNotFoundError,
    ContainerNotRunningError,
    ExecutionError,
    NoPublishedPortsError,
)
from ufw_docker.core.executor import CommandResult
from ufw_docker.core.validation import Protocol
from ufw_docker.services.docker import (
    DockerService,
    PortBinding,
    extract_container_ports,
    parse_port_key,
)


class TestParsePortKey:
    """Tests for NetworkSettings.Ports keys."""

    def test_tcp(self):
        assert parse_port_key("80/tcp") == PortBinding(80, Protocol.TCP)

    def test_udp(self):
        assert parse_port_key("53/udp") == PortBinding(53, Protocol.UDP)

    def test_unsupported_protocol(self):
        assert parse_port_key("9000/sctp") is None

    def test_malformed(self):
        assert parse_port_key("http/tcp") is None


class TestExtractContainerPorts:
    """Tests for reading addresses and bindings from inspect output."""

    def test_published_ports_only(self):
        """Exposed-but-unpublished ports are ignored."""
        doc = container_doc("web", ["172.17.0.2"], {
            "80/tcp": published("8080"),
            "443/tcp": None,
            "8443/tcp": [],
        })
        ports = extract_container_ports("web", doc)
        assert ports.bindings == [PortBinding(80, Protocol.TCP)]

    def test_blank_ips_discarded(self):
        doc = container_doc("web", ["172.17.0.2", "", "10.0.1.5"], {"80/tcp": published()})
        ports = extract_container_ports("web", doc)
        assert ports.ip_addresses == ["172.17.0.2", "10.0.1.5"]

    def test_duplicate_ips_collapsed(self):
        doc = container_doc("web", ["172.17.0.2", "172.17.0.2"], {"80/tcp": published()})
        assert extract_container_ports("web", doc).ip_addresses == ["172.17.0.2"]

    def test_missing_network_settings(self):
        ports = extract_container_ports("web", {"Name": "/web"})
        assert ports.ip_addresses == []
        assert ports.bindings == []


class TestInspectPublished:
    """Tests for ContainerRuntime.inspect_published."""

    def test_not_found(self):
        with pytest.raises(ContainerNotFoundError) as exc:
            FakeRuntime().inspect_published("ghost")
        assert "doesn't exist" in exc.value.message
        assert exc.value.container == "ghost"

    def test_not_running(self):
        runtime = FakeRuntime({"web": container_doc("web", [], {"80/tcp": published()})})
        with pytest.raises(ContainerNotRunningError) as exc:
            runtime.inspect_published("web")
        assert "Could not find a running instance" in exc.value.message

    def test_no_published_ports(self):
        runtime = FakeRuntime({"web": container_doc("web", ["172.17.0.2"], {"80/tcp": None})})
        with pytest.raises(NoPublishedPortsError) as exc:
            runtime.inspect_published("web")
        assert "doesn't have any published ports" in exc.value.message

    def test_lookup_errors_share_base(self):
        for cls in (ContainerNotFoundError, ContainerNotRunningError, NoPublishedPortsError):
            assert issubclass(cls, ContainerLookupError)

    def test_success(self):
        runtime = FakeRuntime({"web": container_doc("web", ["172.17.0.2"], {
            "80/tcp": published("8080"),
            "53/udp": published("53"),
        })})
        ports = runtime.inspect_published("web")
        assert ports.ip_addresses == ["172.17.0.2"]
        assert [str(b) for b in ports.bindings] == ["80/tcp", "53/udp"]


class TestCanonicalName:
    """Tests for ContainerRuntime.canonical_name."""

    def test_strips_slash(self):
        runtime = FakeRuntime({"abc123": container_doc("nginx1", ["172.17.0.5"], {})})
        assert runtime.canonical_name("abc123") == "nginx1"

    def test_unknown(self):
        assert FakeRuntime().canonical_name("ghost") is None


class TestDockerService:
    """Tests for DockerService with a mocked executor."""

    @pytest.fixture
    def executor(self):
        return Mock()

    def test_inspect_command(self, ctx, executor):
        doc = container_doc("web", ["172.17.0.2"], {"80/tcp": published()})
        executor.run.return_value = CommandResult(
            command=[], return_code=0, stdout=json.dumps([doc]), stderr="",
        )
        service = DockerService(ctx, executor)

        assert service.inspect("web") == doc
        args, kwargs = executor.run.call_args
        assert args[0] == ["docker", "inspect", "--type", "container", "web"]
        assert kwargs["read_only"] is True
        assert kwargs["check"] is False

    def test_inspect_unknown(self, ctx, executor):
        executor.run.return_value = CommandResult(
            command=[], return_code=1, stdout="[]", stderr="Error: No such container: ghost",
        )
        assert DockerService(ctx, executor).inspect("ghost") is None

    def test_inspect_bad_json(self, ctx, executor):
        executor.run.return_value = CommandResult(
            command=[], return_code=0, stdout="not json", stderr="",
        )
        with pytest.raises(ExecutionError):
            DockerService(ctx, executor).inspect("web")
