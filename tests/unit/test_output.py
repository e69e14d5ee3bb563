"""Unit tests for console output."""

import pytest

from ufw_docker.core.output import Console, Verbosity


@pytest.fixture
def out():
    console = Console()
    console.configure(verbosity=Verbosity.VERBOSE, no_color=True)
    return console


class TestMarkupInMessages:
    """Bracketed text in messages is printed as-is."""

    def test_error_with_closing_tag(self, out, capsys):
        out.error('invalid port syntax: "[/x]".')
        assert 'invalid port syntax: "[/x]".' in capsys.readouterr().err

    def test_warn_keeps_style_names(self, out, capsys):
        out.warn("[bold]web[/bold]")
        assert "[bold]web[/bold]" in capsys.readouterr().err

    def test_hint_with_brackets(self, out, capsys):
        out.hint("ufw-docker delete allow <container> [port[/tcp|/udp]]")
        assert "[port[/tcp|/udp]]" in capsys.readouterr().err

    @pytest.mark.parametrize("method", ["info", "success", "step", "verbose"])
    def test_stdout_methods(self, out, capsys, method):
        getattr(out, method)("[/x] [red]")
        assert "[/x] [red]" in capsys.readouterr().out


class TestVerbosity:
    """Tests for verbosity gating."""

    def test_quiet_hides_info_but_not_errors(self, capsys):
        console = Console()
        console.configure(verbosity=Verbosity.QUIET)
        console.info("hidden")
        console.error("shown")
        captured = capsys.readouterr()
        assert "hidden" not in captured.out
        assert "shown" in captured.err
