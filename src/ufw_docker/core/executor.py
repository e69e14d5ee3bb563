"""Command execution.

Provides:
- Safe command execution with output capture
- Command tracing in debug mode
- Dry-run mode support for mutating commands
- Timestamped file backups
"""

import shlex
import shutil
import subprocess
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from ufw_docker.core.context import ExecutionContext
from ufw_docker.core.exceptions import ExecutionError, PrerequisiteError


@dataclass
class CommandResult:
    """Result of a command execution."""
    command: list[str]
    return_code: int
    stdout: str
    stderr: str

    @property
    def success(self) -> bool:
        """Check if command succeeded."""
        return self.return_code == 0


class CommandExecutor:
    """Safe command execution with dry-run support and output capture.

    Features:
    - Dry-run mode shows what would happen
    - Read-only commands still run in dry-run mode
    - Output capture for processing
    - Timeout support
    """

    def __init__(self, ctx: ExecutionContext) -> None:
        """Initialize executor with context.

        Args:
            ctx: Execution context with flags
        """
        self.ctx = ctx

    def run(
        self,
        command: list[str],
        *,
        check: bool = True,
        read_only: bool = False,
        timeout: Optional[int] = None,
    ) -> CommandResult:
        """Execute a command safely.

        Args:
            command: Command as list of strings
            check: Raise exception on non-zero exit
            read_only: Command has no side effects and runs even in dry-run
            timeout: Command timeout in seconds (defaults to config)

        Returns:
            CommandResult with output

        Raises:
            ExecutionError: If command fails and check=True
            PrerequisiteError: If the program is not installed
        """
        cmd_display = shlex.join(command)
        self.ctx.console.debug(f"Running: {cmd_display}")

        if self.ctx.dry_run and not read_only:
            self.ctx.console.dry_run_msg(f"Run: {cmd_display}")
            return CommandResult(
                command=command,
                return_code=0,
                stdout="",
                stderr="",
            )

        if timeout is None:
            timeout = self.ctx.config.command_timeout

        try:
            result = subprocess.run(
                command,
                capture_output=True,
                text=True,
                timeout=timeout,
            )
        except subprocess.TimeoutExpired:
            raise ExecutionError(
                f"Command timed out after {timeout}s: {cmd_display}",
                command=cmd_display,
            )
        except FileNotFoundError:
            raise PrerequisiteError(
                f"Command not found: {command[0]}",
                hint=f"Install {command[0]} and make sure it is on the search path",
            )

        cmd_result = CommandResult(
            command=command,
            return_code=result.returncode,
            stdout=result.stdout,
            stderr=result.stderr,
        )
        self.ctx.console.debug(f"Exit code {result.returncode}: {cmd_display}")

        if check and result.returncode != 0:
            raise ExecutionError(
                f"Command failed: {cmd_display}",
                command=cmd_display,
                return_code=result.returncode,
                stderr=result.stderr,
            )

        return cmd_result

    def append_file(
        self,
        path: Path,
        content: str,
        *,
        description: Optional[str] = None,
    ) -> None:
        """Append content to an existing file.

        Args:
            path: Destination path
            content: Text to append
            description: Human-readable description
        """
        desc = description or f"Append to {path}"
        self.ctx.console.step(desc)

        if self.ctx.dry_run:
            self.ctx.console.dry_run_msg(f"Append {len(content)} bytes to {path}")
            if self.ctx.is_verbose:
                self.ctx.console.line(content)
            return

        with open(path, "a") as f:
            f.write(content)

    def backup_file(
        self,
        path: Path,
        *,
        suffix: str = ".bak",
    ) -> Optional[Path]:
        """Create a timestamped copy of a file next to it.

        The copy is named ``<name><suffix>~YYYY-MM-DD-HHMMSS~``.

        Args:
            path: File to backup
            suffix: Text inserted between file name and timestamp

        Returns:
            Path to backup file, or None if original doesn't exist
        """
        if not path.exists():
            return None

        timestamp = time.strftime("%Y-%m-%d-%H%M%S")
        backup_path = path.with_name(f"{path.name}{suffix}~{timestamp}~")

        if self.ctx.dry_run:
            self.ctx.console.dry_run_msg(f"Backup {path} to {backup_path}")
            return backup_path

        shutil.copy2(path, backup_path)
        self.ctx.console.debug(f"Backed up {path} to {backup_path}")
        return backup_path
