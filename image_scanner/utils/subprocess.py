"""External command execution with timeouts."""

import subprocess
import shutil
from dataclasses import dataclass
from typing import Optional, List, Sequence

from .logging import get_logger

logger = get_logger(__name__)


@dataclass
class CommandResult:
    """Result of a command execution."""
    returncode: int
    stdout: str
    stderr: str
    timed_out: bool = False

    @property
    def success(self) -> bool:
        """Check if command was successful."""
        return self.returncode == 0 and not self.timed_out

    @property
    def error_message(self) -> str:
        """First non-empty stderr line, for one-line summaries."""
        for line in self.stderr.splitlines():
            if line.strip():
                return line.strip()
        return f"exit code {self.returncode}"


def run_command(
    cmd: Sequence[str],
    timeout: Optional[int] = None,
    cwd: Optional[str] = None,
) -> CommandResult:
    """
    Run a command and capture its output.

    Never raises for command failures: timeouts and missing executables are
    reported through the returned CommandResult.

    Args:
        cmd: Command and arguments
        timeout: Timeout in seconds (None for no timeout)
        cwd: Working directory

    Returns:
        CommandResult with stdout, stderr and return code
    """
    cmd = list(cmd)
    logger.debug(f"Running command: {' '.join(cmd)}")

    try:
        result = subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            timeout=timeout,
            cwd=cwd,
        )
        return CommandResult(
            returncode=result.returncode,
            stdout=result.stdout or "",
            stderr=result.stderr or "",
        )
    except subprocess.TimeoutExpired:
        logger.debug(f"Command timed out after {timeout}s: {cmd[0]}")
        return CommandResult(
            returncode=-1,
            stdout="",
            stderr=f"Command timed out after {timeout} seconds",
            timed_out=True,
        )
    except FileNotFoundError as e:
        logger.debug(f"Command not found: {cmd[0]}")
        return CommandResult(
            returncode=127,
            stdout="",
            stderr=str(e),
        )


def check_tool_available(tool: str) -> bool:
    """Check if a tool is available in PATH."""
    return shutil.which(tool) is not None


def check_prerequisites(tools: List[str]) -> List[str]:
    """
    Check if required tools are available.

    Args:
        tools: List of tool names to check

    Returns:
        List of missing tools
    """
    return [tool for tool in tools if not check_tool_available(tool)]
