"""One-time installation of the DOCKER-USER block in ufw's after.rules.

Docker publishes ports through the FORWARD chain, where ufw's own INPUT
rules never see the traffic. The block appended here makes DOCKER-USER
consult ufw's route rules (ufw-user-forward) and drop new connections to
private container networks that no route rule allowed.

The block is wrapped in begin/end markers so installation is idempotent.
ufw must be restarted by the operator for the block to take effect.
"""

from pathlib import Path
from typing import Optional

from jinja2 import Environment, PackageLoader, select_autoescape

from ufw_docker.core.context import ExecutionContext
from ufw_docker.core.exceptions import FirewallError
from ufw_docker.core.executor import CommandExecutor


BEGIN_MARKER = "# BEGIN UFW AND DOCKER"
END_MARKER = "# END UFW AND DOCKER"

PRIVATE_CIDRS = ["10.0.0.0/8", "172.16.0.0/12", "192.168.0.0/16"]

# Order of the DROP rules in the block
DROP_CIDRS = ["192.168.0.0/16", "10.0.0.0/8", "172.16.0.0/12"]

BACKUP_SUFFIX = "-ufw-docker"

RESTART_COMMAND = "sudo systemctl restart ufw"

# Jinja2 environment for templates
jinja_env = Environment(
    loader=PackageLoader("ufw_docker", "templates"),
    autoescape=select_autoescape(),
    trim_blocks=True,
    lstrip_blocks=True,
)


def render_block() -> str:
    """Render the after.rules block, ending with a newline."""
    template = jinja_env.get_template("after.rules.j2")
    content = template.render(
        begin_marker=BEGIN_MARKER,
        end_marker=END_MARKER,
        private_cidrs=PRIVATE_CIDRS,
        drop_cidrs=DROP_CIDRS,
    )
    return content.rstrip("\n") + "\n"


class AfterRulesInstaller:
    """Installs the DOCKER-USER block into ufw's after.rules."""

    def __init__(
        self,
        ctx: ExecutionContext,
        executor: CommandExecutor,
        path: Optional[Path] = None,
    ) -> None:
        self.ctx = ctx
        self.executor = executor
        self.path = path or ctx.config.ufw.after_rules_path

    def _read(self) -> str:
        try:
            return self.path.read_text()
        except FileNotFoundError:
            raise FirewallError(
                f"Cannot find {self.path}",
                hint="Is ufw installed? Install it with: apt-get install ufw",
            )
        except PermissionError:
            raise FirewallError(
                f"Cannot read {self.path}",
                hint="Run with: sudo ufw-docker install",
            )

    def is_installed(self) -> bool:
        """Check for the begin marker in after.rules."""
        return any(line.strip() == BEGIN_MARKER for line in self._read().splitlines())

    def install(self) -> bool:
        """Append the block unless it is already there.

        Returns:
            True if the block was appended, False if already installed

        Raises:
            FirewallError: If after.rules cannot be read or written
        """
        current = self._read()
        if any(line.strip() == BEGIN_MARKER for line in current.splitlines()):
            self.ctx.console.info(f"The DOCKER-USER block is already in {self.path}")
            return False

        block = render_block()
        if current and not current.endswith("\n"):
            block = "\n" + block

        try:
            backup = self.executor.backup_file(self.path, suffix=BACKUP_SUFFIX)
            if backup:
                self.ctx.console.info(f"Backed up {self.path} to {backup}")
            self.executor.append_file(
                self.path,
                block,
                description=f"Adding DOCKER-USER rules to {self.path}",
            )
        except OSError as e:
            raise FirewallError(
                f"Cannot update {self.path}",
                details=[str(e)],
            ) from e

        self.ctx.console.success(f"Installed the DOCKER-USER block into {self.path}")
        self.ctx.console.print()
        self.ctx.console.print("Please restart UFW service manually by using the following command:")
        self.ctx.console.print(f"    {RESTART_COMMAND}")
        return True
