"""
Command Executor.

Runs an external process asynchronously with a bounded timeout and captures
its output. Used to re-run a single test file after a fix is applied.
"""

import asyncio
import contextlib
import os
import shlex
import signal
import time
from dataclasses import dataclass
from pathlib import Path

from testmedic.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


@dataclass
class CommandResult:
    """Result of a command execution."""
    command: str
    exit_code: int
    stdout: str
    stderr: str
    duration: float
    is_timeout: bool = False

    @property
    def is_success(self) -> bool:
        """Check if command succeeded."""
        return self.exit_code == 0 and not self.is_timeout


class CommandExecutor:
    """Async subprocess runner. Never raises; failures come back as CommandResult."""

    def __init__(self, default_timeout: float = 120.0, kill_grace: float = 5.0):
        self.default_timeout = default_timeout
        self.kill_grace = kill_grace

    async def run_async(
        self,
        command: str | list[str],
        cwd: str | Path | None = None,
        env: dict[str, str] | None = None,
        timeout: float | None = None,
    ) -> CommandResult:
        """
        Execute a command without a shell.

        Args:
            command: Command string (split with shlex) or argument list
            cwd: Working directory
            env: Extra environment variables merged over os.environ
            timeout: Seconds before the process group is terminated

        Returns:
            CommandResult; exit_code is -1 on timeout and -2 when the
            process could not be started
        """
        start_time = time.perf_counter()
        timeout_val = timeout if timeout is not None else self.default_timeout
        cmd_args = shlex.split(command) if isinstance(command, str) else list(command)
        cmd_str = " ".join(cmd_args)

        run_env = os.environ.copy()
        if env:
            run_env.update(env)

        logger.debug("executing_command", command=cmd_str, cwd=str(cwd or "."), timeout=timeout_val)

        try:
            process = await asyncio.create_subprocess_exec(
                *cmd_args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=cwd,
                env=run_env,
                start_new_session=True,  # own process group, killed as a unit
            )
        except (OSError, ValueError) as e:
            logger.error("command_start_failed", command=cmd_str, error=str(e))
            return CommandResult(
                command=cmd_str,
                exit_code=-2,
                stdout="",
                stderr=f"Execution error: {e!s}",
                duration=time.perf_counter() - start_time,
            )

        try:
            stdout_data, stderr_data = await asyncio.wait_for(process.communicate(), timeout=timeout_val)
        except asyncio.TimeoutError:
            logger.warning("command_timeout", command=cmd_str, timeout=timeout_val)
            await self._terminate(process, cmd_str)
            return CommandResult(
                command=cmd_str,
                exit_code=-1,
                stdout="",
                stderr="Command timed out",
                duration=time.perf_counter() - start_time,
                is_timeout=True,
            )

        duration = time.perf_counter() - start_time
        exit_code = process.returncode
        stderr_str = stderr_data.decode("utf-8", errors="replace")

        if exit_code != 0:
            logger.warning(
                "command_failed",
                command=cmd_str,
                exit_code=exit_code,
                stderr_snippet=stderr_str[:200],
            )
        else:
            logger.debug("command_success", command=cmd_str, duration=duration)

        return CommandResult(
            command=cmd_str,
            exit_code=exit_code,
            stdout=stdout_data.decode("utf-8", errors="replace"),
            stderr=stderr_str,
            duration=duration,
        )

    async def _terminate(self, process: asyncio.subprocess.Process, cmd_str: str) -> None:
        """SIGTERM the process group, then SIGKILL it if it outlives the grace period."""
        # start_new_session makes the child its own group leader
        pgid = process.pid
        with contextlib.suppress(ProcessLookupError):
            os.killpg(pgid, signal.SIGTERM)
        try:
            await asyncio.wait_for(process.wait(), timeout=self.kill_grace)
            return
        except asyncio.TimeoutError:
            logger.warning("command_kill_escalated", command=cmd_str, grace=self.kill_grace)

        with contextlib.suppress(ProcessLookupError):
            os.killpg(pgid, signal.SIGKILL)
        await process.wait()
