"""Unit tests for the ufw-docker CLI."""

import pytest
from unittest.mock import patch
from typer.testing import CliRunner

from fakes import FakeFirewall, FakeRuntime, container_doc, published
from ufw_docker import __version__
from ufw_docker.cli import app, _get_services
from ufw_docker.core.audit import AuditLogger
from ufw_docker.core.config import AppConfig, ToolConfig, UfwConfig
from ufw_docker.core.context import ExecutionContext
from ufw_docker.services.after_rules import BEGIN_MARKER
from ufw_docker.services.reconcile import DockerRuleManager
from ufw_docker.services.ufw import RouteRule


runner = CliRunner()


@pytest.fixture
def firewall():
    return FakeFirewall([
        "22/tcp                     ALLOW IN    Anywhere",
        RouteRule("db", "172.17.0.3", 5432),
    ])


@pytest.fixture
def runtime():
    return FakeRuntime({
        "nginx1": container_doc("nginx1", ["172.17.0.5"], {"80/tcp": published("8080")}),
        "a1b2c3": container_doc("nginx1", ["172.17.0.5"], {"80/tcp": published("8080")}),
    })


@pytest.fixture
def services(ctx, firewall, runtime, tmp_path):
    """Patch service construction with in-memory backends."""
    manager = DockerRuleManager(
        ctx, firewall, runtime, audit=AuditLogger(log_path=tmp_path / "audit.log"),
    )
    with patch("ufw_docker.cli._get_services", return_value=(ctx, manager)) as mock_get, \
            patch("ufw_docker.cli.require_root"):
        yield mock_get


class TestUsage:
    """Tests for usage output and unknown actions."""

    def test_no_arguments(self):
        result = runner.invoke(app, [])
        assert result.exit_code == 0
        assert "Usage:" in result.output

    def test_unknown_action(self, services, firewall):
        """Unknown actions print usage and exit 0 without touching ufw."""
        result = runner.invoke(app, ["frobnicate", "web"])
        assert result.exit_code == 0
        assert "ufw-docker delete allow" in result.output
        services.assert_not_called()
        assert firewall.added == []

    def test_help_action(self):
        result = runner.invoke(app, ["help"])
        assert result.exit_code == 0
        assert "ufw-docker install" in result.output

    def test_version(self):
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output


class TestAllowCommand:
    """Tests for 'ufw-docker allow'."""

    def test_allow(self, services, firewall):
        result = runner.invoke(app, ["allow", "nginx1"])
        assert result.exit_code == 0
        assert RouteRule("nginx1", "172.17.0.5", 80) in firewall.rules
        assert "allow nginx1 80/tcp" in result.output

    def test_allow_by_id(self, services, firewall):
        """A container id is resolved to the name used in the rule comment."""
        result = runner.invoke(app, ["allow", "a1b2c3", "80"])
        assert result.exit_code == 0
        assert "allow nginx1 80/tcp" in firewall.comments()

    def test_bad_port(self, services, firewall):
        result = runner.invoke(app, ["allow", "nginx1", "abc"])
        assert result.exit_code == 1
        assert 'invalid port syntax: "abc"' in result.output
        assert firewall.dry_runs == []
        assert firewall.added == []

    def test_bracketed_port_named_in_error(self, services, firewall):
        """Markup-like input is shown literally, not parsed."""
        result = runner.invoke(app, ["allow", "nginx1", "[/x]"])
        assert result.exit_code == 1
        assert 'invalid port syntax: "[/x]"' in result.output
        assert firewall.added == []

    def test_bracketed_ref(self, services, firewall):
        result = runner.invoke(app, ["allow", "[/x]"])
        assert result.exit_code == 1
        assert "\"[/x]\" doesn't exist" in result.output
        assert firewall.added == []

    def test_without_audit_logger(self, ctx, firewall, runtime):
        manager = DockerRuleManager(ctx, firewall, runtime)
        with patch("ufw_docker.cli._get_services", return_value=(ctx, manager)), \
                patch("ufw_docker.cli.require_root"):
            assert runner.invoke(app, ["allow", "nginx1"]).exit_code == 0
            assert runner.invoke(app, ["delete", "allow", "nginx1"]).exit_code == 0
        assert firewall.comments() == ["allow db 5432/tcp"]

    def test_missing_ref(self, services, firewall):
        result = runner.invoke(app, ["allow"])
        assert result.exit_code == 1
        assert "can not be empty" in result.output

    def test_ufw_inactive(self, services, firewall):
        firewall.active = False
        result = runner.invoke(app, ["allow", "nginx1"])
        assert result.exit_code == 1
        assert "UFW is disabled" in result.output
        assert firewall.added == []

    def test_unknown_container(self, services, firewall):
        result = runner.invoke(app, ["allow", "ghost"])
        assert result.exit_code == 1
        assert "doesn't exist" in result.output

    def test_unpublished_port(self, services, firewall):
        result = runner.invoke(app, ["allow", "nginx1", "443"])
        assert result.exit_code == 1
        assert "Fail to add rule(s)" in result.output

    def test_udp_filter(self, services, firewall):
        """80/udp does not match the published 80/tcp."""
        result = runner.invoke(app, ["allow", "nginx1", "80/udp"])
        assert result.exit_code == 1
        assert firewall.added == []

    def test_options_passed(self, services):
        runner.invoke(app, ["allow", "nginx1", "--dry-run", "-vv", "--no-color"])
        args = services.call_args[0]
        assert args[0] is True
        assert args[1] == 2
        assert args[3] is True


class TestListCommands:
    """Tests for 'ufw-docker list' and 'ufw-docker status'."""

    def test_list(self, services, firewall):
        result = runner.invoke(app, ["list", "db"])
        assert result.exit_code == 0
        assert "[ 2] 172.17.0.3 5432/tcp" in result.output
        assert "22/tcp" not in result.output

    def test_list_other_container(self, services):
        result = runner.invoke(app, ["list", "nginx1"])
        assert result.exit_code == 0
        assert "5432" not in result.output

    def test_status(self, services, firewall):
        firewall.rules.append(RouteRule("nginx1", "172.17.0.5", 80))
        result = runner.invoke(app, ["status"])
        assert result.exit_code == 0
        assert "# allow db 5432/tcp" in result.output
        assert "# allow nginx1 80/tcp" in result.output
        assert "ALLOW IN" not in result.output


class TestDeleteCommand:
    """Tests for 'ufw-docker delete allow'."""

    def test_delete(self, services, firewall):
        result = runner.invoke(app, ["delete", "allow", "db"])
        assert result.exit_code == 0
        assert firewall.deleted == [2]
        assert firewall.comments() == []

    def test_delete_with_port(self, services, firewall):
        result = runner.invoke(app, ["delete", "allow", "db", "80"])
        assert result.exit_code == 0
        assert firewall.deleted == []

    def test_allow_then_delete_nginx1(self, services, firewall):
        """Deleting nginx1 80/tcp leaves nginx10 and every other rule alone."""
        firewall.rules.append(RouteRule("nginx10", "172.17.0.8", 80))

        assert runner.invoke(app, ["allow", "nginx1"]).exit_code == 0
        assert "allow nginx1 80/tcp" in firewall.comments()

        result = runner.invoke(app, ["delete", "allow", "nginx1", "80/tcp"])
        assert result.exit_code == 0
        assert firewall.deleted == [4]
        assert firewall.comments() == ["allow db 5432/tcp", "allow nginx10 80/tcp"]
        assert "22/tcp" in firewall.render(firewall.rules[0])

    def test_unsupported_form(self, services, firewall):
        result = runner.invoke(app, ["delete", "deny", "db"])
        assert result.exit_code == 1
        assert "only support removing allowed rules" in result.output
        services.assert_not_called()

    def test_missing_form(self, services):
        result = runner.invoke(app, ["delete"])
        assert result.exit_code == 1


class TestInstallCommand:
    """Tests for 'ufw-docker install'."""

    @pytest.fixture
    def install_ctx(self, tmp_path):
        path = tmp_path / "after.rules"
        path.write_text("*filter\nCOMMIT\n")
        config = ToolConfig(ufw=UfwConfig(after_rules_path=path))
        return ExecutionContext(_config=AppConfig(config=config))

    @pytest.fixture
    def install_services(self, install_ctx, firewall, runtime, tmp_path):
        manager = DockerRuleManager(
            install_ctx, firewall, runtime, audit=AuditLogger(log_path=tmp_path / "audit.log"),
        )
        with patch("ufw_docker.cli._get_services", return_value=(install_ctx, manager)), \
                patch("ufw_docker.cli.require_root"):
            yield manager

    def test_install(self, install_ctx, install_services):
        result = runner.invoke(app, ["install"])
        assert result.exit_code == 0
        assert BEGIN_MARKER in install_ctx.config.ufw.after_rules_path.read_text()
        assert "sudo systemctl restart ufw" in result.output

    def test_check(self, install_ctx, install_services):
        assert runner.invoke(app, ["install", "--check"]).exit_code == 1
        runner.invoke(app, ["install"])
        assert runner.invoke(app, ["install", "--check"]).exit_code == 0

    def test_missing_after_rules(self, install_ctx, install_services):
        install_ctx.config.ufw.after_rules_path.unlink()
        result = runner.invoke(app, ["install"])
        assert result.exit_code == 1
        assert "Cannot find" in result.output


class TestRootCheck:
    """Tests for the root requirement."""

    def test_non_root_rejected(self, ctx, firewall, runtime):
        manager = DockerRuleManager(ctx, firewall, runtime)
        with patch("ufw_docker.cli._get_services", return_value=(ctx, manager)), \
                patch("ufw_docker.core.safety.os.geteuid", return_value=1000):
            result = runner.invoke(app, ["allow", "nginx1"])
        assert result.exit_code == 1
        assert "requires root privileges" in result.output
        assert firewall.added == []


class TestGetServices:
    """Tests for _get_services factory."""

    def test_builds_manager(self, tmp_path):
        config_path = tmp_path / "config.yaml"
        config_path.write_text(
            "ufw:\n  skip_marker: Ignoring\n"
            f"audit:\n  log_path: {tmp_path / 'audit.log'}\n"
        )
        ctx, manager = _get_services(dry_run=True, config=config_path)
        assert ctx.dry_run is True
        assert manager.audit.log_path == tmp_path / "audit.log"
        assert manager.is_duplicate("Ignoring rule\n")
        assert not manager.is_duplicate("Skipping rule\n")
