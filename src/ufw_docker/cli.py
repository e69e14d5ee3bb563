"""Main CLI entry point using Typer.

Defines the ``ufw-docker`` command and its actions:
- list / allow / delete allow: manage the rules of one container
- status: show the rules of every container
- install: add the DOCKER-USER block to ufw's after.rules
"""

import os
from contextlib import nullcontext
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.markup import escape
from typer.core import TyperGroup

from ufw_docker import __version__
from ufw_docker.core import (
    UfwDockerError,
    PrerequisiteError,
    ValidationError,
    console,
    ExecutionContext,
    create_context,
    CommandExecutor,
    audit_logger_from_config,
    AuditEventType,
    AuditResult,
    require_root,
    require_ufw_active,
)
from ufw_docker.core.config import DEFAULT_CONFIG_PATH, SAFE_PATH
from ufw_docker.core.validation import (
    PortSpec,
    Protocol,
    parse_port_spec,
    validate_container_ref,
)
from ufw_docker.services.after_rules import AfterRulesInstaller
from ufw_docker.services.docker import DockerService
from ufw_docker.services.reconcile import DockerRuleManager
from ufw_docker.services.ufw import UfwService, starts_with_marker


USAGE = """\
Usage:
  ufw-docker <list|allow> [docker-instance-id-or-name [port[/tcp|/udp]]]
  ufw-docker delete allow [docker-instance-id-or-name [port[/tcp|/udp]]]

  ufw-docker status
  ufw-docker install [--check]
  ufw-docker help

Examples:
  ufw-docker help

  ufw-docker install              # only needs to be run once

  ufw-docker status

  ufw-docker list httpd

  ufw-docker allow httpd
  ufw-docker allow httpd 80
  ufw-docker allow httpd 80/tcp

  ufw-docker delete allow httpd
  ufw-docker delete allow httpd 80/tcp

Options (every action):
  --dry-run        Print ufw changes instead of making them
  -v, --verbose    Increase output verbosity (repeatable)
  -q, --quiet      Only show errors
  --no-color       Disable colored output
  -c, --config     Configuration file (default: /etc/ufw-docker/config.yaml)
"""


class UsageGroup(TyperGroup):
    """Command group that answers unknown actions with the usage text.

    ``ufw-docker frobnicate`` prints usage to stderr and exits 0 rather
    than failing with a click usage error.
    """

    def resolve_command(self, ctx: typer.Context, args: list[str]):
        if args and not args[0].startswith("-") and self.get_command(ctx, args[0]) is None:
            console.print_err(USAGE, markup=False, highlight=False)
            ctx.exit(0)
        return super().resolve_command(ctx, args)


# Create the main Typer app
app = typer.Typer(
    name="ufw-docker",
    help="Manage ufw rules for the published ports of Docker containers.",
    cls=UsageGroup,
    invoke_without_command=True,
    no_args_is_help=False,
    rich_markup_mode="rich",
    pretty_exceptions_enable=False,
)


# Type aliases for common options
DryRunOption = Annotated[
    bool,
    typer.Option(
        "--dry-run",
        help="Preview changes without executing. Read-only ufw and docker commands still run.",
        is_flag=True,
    ),
]

VerboseOption = Annotated[
    int,
    typer.Option(
        "--verbose",
        "-v",
        count=True,
        help="Increase output verbosity. Can be repeated (-v, -vv).",
    ),
]

QuietOption = Annotated[
    bool,
    typer.Option(
        "--quiet",
        "-q",
        help="Suppress non-essential output. Only show errors.",
        is_flag=True,
    ),
]

NoColorOption = Annotated[
    bool,
    typer.Option(
        "--no-color",
        help="Disable colored output.",
        is_flag=True,
    ),
]

ConfigOption = Annotated[
    Optional[Path],
    typer.Option(
        "--config",
        "-c",
        help=f"Path to configuration file. Default: {DEFAULT_CONFIG_PATH}",
        exists=False,
        file_okay=True,
        dir_okay=False,
    ),
]

RefArgument = Annotated[
    Optional[str],
    typer.Argument(help="Docker container name or id.", show_default=False),
]

PortArgument = Annotated[
    Optional[str],
    typer.Argument(help="Port with optional protocol, e.g. 80 or 53/udp.", show_default=False),
]


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"ufw-docker version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            "-V",
            callback=version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = False,
) -> None:
    """Manage ufw rules for the published ports of Docker containers.

    Docker publishes container ports through the FORWARD chain, so plain
    ufw rules never apply to them. After a one-time [bold]install[/bold],
    ufw route rules decide which published ports are reachable.

    [bold]Examples:[/bold]
        ufw-docker install
        ufw-docker allow httpd 80
        ufw-docker list httpd
        ufw-docker delete allow httpd 80/tcp
        ufw-docker status
    """
    if ctx.invoked_subcommand is None:
        console.print_err(USAGE, markup=False, highlight=False)


def _get_services(
    dry_run: bool = False,
    verbose: int = 0,
    quiet: bool = False,
    no_color: bool = False,
    config: Optional[Path] = None,
) -> tuple[ExecutionContext, DockerRuleManager]:
    """Create the execution context and rule manager.

    Raises:
        ConfigurationError: If the configuration file is invalid
    """
    ctx = create_context(
        dry_run=dry_run,
        verbose=verbose,
        quiet=quiet,
        no_color=no_color,
        config=config,
    )
    executor = CommandExecutor(ctx)
    audit = audit_logger_from_config(ctx.config.audit)
    manager = DockerRuleManager(
        ctx,
        UfwService(ctx, executor),
        DockerService(ctx, executor),
        audit=audit,
        is_duplicate=starts_with_marker(ctx.config.ufw.skip_marker),
    )
    return ctx, manager


def _handle_error(error: UfwDockerError) -> None:
    """Handle a UfwDockerError by printing formatted error and exiting."""
    console.error(error.message)

    if error.details:
        for detail in error.details:
            console.print_err(f"  [dim]{escape(detail)}[/dim]")

    if error.hint:
        console.hint(error.hint)

    raise typer.Exit(error.exit_code)


def _correlation(manager: DockerRuleManager, operation: str):
    """Group the audit records of one command under a correlation id."""
    if manager.audit is None:
        return nullcontext()
    return manager.audit.correlation(operation)


def _prepare(
    ctx: ExecutionContext,
    manager: DockerRuleManager,
    operation: str,
    ref: Optional[str],
    port: Optional[str],
) -> tuple[str, PortSpec]:
    """Run the checks shared by list, allow and delete.

    Returns:
        The resolved container name and the parsed port filter
    """
    try:
        require_root(ctx)
        require_ufw_active(manager.firewall)
    except PrerequisiteError as e:
        if manager.audit is not None:
            manager.audit.log_blocked(operation, e.message, target_type="container", target_name=ref)
        raise

    ref = validate_container_ref(ref)
    spec = parse_port_spec(port, Protocol(ctx.config.ufw.default_protocol))
    return manager.resolve_name(ref), spec


# =============================================================================
# Rule Commands
# =============================================================================

@app.command("list")
def list_cmd(
    ref: RefArgument = None,
    port: PortArgument = None,
    dry_run: DryRunOption = False,
    verbose: VerboseOption = 0,
    quiet: QuietOption = False,
    no_color: NoColorOption = False,
    config: ConfigOption = None,
) -> None:
    """List the ufw rules of a container.

    [bold]Examples:[/bold]

        ufw-docker list httpd
        ufw-docker list httpd 80/tcp
    """
    try:
        ctx, manager = _get_services(dry_run, verbose, quiet, no_color, config)
        name, spec = _prepare(ctx, manager, "list", ref, port)

        for rule in manager.list_rules(name, spec.port, spec.protocol):
            ctx.console.line(rule.line)

    except UfwDockerError as e:
        _handle_error(e)


@app.command("allow")
def allow_cmd(
    ref: RefArgument = None,
    port: PortArgument = None,
    dry_run: DryRunOption = False,
    verbose: VerboseOption = 0,
    quiet: QuietOption = False,
    no_color: NoColorOption = False,
    config: ConfigOption = None,
) -> None:
    """Allow access to the published ports of a container.

    Adds one ufw route rule per container address and published port.
    Rules left over from an earlier address of the container are replaced.

    [bold]Examples:[/bold]

        ufw-docker allow httpd           # every published port
        ufw-docker allow httpd 80        # 80/tcp only
        ufw-docker allow dns 53/udp
    """
    try:
        ctx, manager = _get_services(dry_run, verbose, quiet, no_color, config)
        name, spec = _prepare(ctx, manager, "allow", ref, port)

        with _correlation(manager, "allow"):
            allowed = manager.allow(name, spec.port, spec.protocol)

    except UfwDockerError as e:
        _handle_error(e)

    if not allowed:
        raise typer.Exit(1)


@app.command("delete")
def delete_cmd(
    kind: Annotated[
        Optional[str],
        typer.Argument(help="Rule kind; only 'allow' is supported.", show_default=False),
    ] = None,
    ref: RefArgument = None,
    port: PortArgument = None,
    dry_run: DryRunOption = False,
    verbose: VerboseOption = 0,
    quiet: QuietOption = False,
    no_color: NoColorOption = False,
    config: ConfigOption = None,
) -> None:
    """Delete the allow rules of a container.

    Without a port, the rules for every port and protocol are deleted.

    [bold]Examples:[/bold]

        ufw-docker delete allow httpd
        ufw-docker delete allow httpd 443/tcp
    """
    try:
        if kind != "allow":
            raise ValidationError(
                '"delete" command only support removing allowed rules',
                hint="Use: ufw-docker delete allow <container> [port[/tcp|/udp]]",
            )

        ctx, manager = _get_services(dry_run, verbose, quiet, no_color, config)
        name, spec = _prepare(ctx, manager, "delete", ref, port)

        with _correlation(manager, "delete"):
            deleted = manager.delete_rules(name, spec.port, spec.protocol)

        if not deleted:
            ctx.console.info(f'No rules to delete for "{name}"')

    except UfwDockerError as e:
        _handle_error(e)


@app.command("status")
def status_cmd(
    dry_run: DryRunOption = False,
    verbose: VerboseOption = 0,
    quiet: QuietOption = False,
    no_color: NoColorOption = False,
    config: ConfigOption = None,
) -> None:
    """Show the ufw rules of every container."""
    try:
        ctx, manager = _get_services(dry_run, verbose, quiet, no_color, config)
        require_root(ctx)

        for rule in manager.list_rules():
            ctx.console.line(rule.line)

    except UfwDockerError as e:
        _handle_error(e)


# =============================================================================
# Setup Commands
# =============================================================================

@app.command("install")
def install_cmd(
    check: Annotated[
        bool,
        typer.Option(
            "--check",
            help="Only report whether the block is installed.",
            is_flag=True,
        ),
    ] = False,
    dry_run: DryRunOption = False,
    verbose: VerboseOption = 0,
    quiet: QuietOption = False,
    no_color: NoColorOption = False,
    config: ConfigOption = None,
) -> None:
    """Add the DOCKER-USER block to ufw's after.rules.

    Only needs to be run once. The original file is backed up next to it
    and ufw has to be restarted afterwards.

    [bold]Examples:[/bold]

        sudo ufw-docker install
        ufw-docker install --check
    """
    try:
        ctx, manager = _get_services(dry_run, verbose, quiet, no_color, config)
        installer = AfterRulesInstaller(ctx, CommandExecutor(ctx))

        if check:
            installed = installer.is_installed()
            if installed:
                ctx.console.success(f"The DOCKER-USER block is installed in {installer.path}")
            else:
                ctx.console.warn(f"The DOCKER-USER block is not installed in {installer.path}")
                ctx.console.hint("Run: sudo ufw-docker install")
            raise typer.Exit(0 if installed else 1)

        require_root(ctx)
        changed = installer.install()
        if changed and manager.audit is not None:
            manager.audit.log_operation(
                AuditEventType.AFTER_RULES_INSTALL,
                AuditResult.DRY_RUN if ctx.dry_run else AuditResult.SUCCESS,
                target_type="file",
                target_name=str(installer.path),
                operation="install",
            )

    except UfwDockerError as e:
        _handle_error(e)


@app.command("help")
def help_cmd() -> None:
    """Show usage and examples."""
    console.print(USAGE, markup=False, highlight=False)


def run() -> None:
    """Console script entry point.

    Pins PATH so ufw and docker are always taken from the system
    directories, whatever the caller's environment holds.
    """
    os.environ["PATH"] = SAFE_PATH
    app()


if __name__ == "__main__":
    run()
