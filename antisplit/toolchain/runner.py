"""
Async subprocess runner for external toolchain commands.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from pathlib import Path

from tenacity import AsyncRetrying, retry_if_exception, stop_after_attempt, wait_exponential

from ..core.config import ToolsConfig
from ..core.exceptions import ToolExecutionError
from ..core.logging import get_logger

logger = get_logger(__name__)


@dataclass
class ProcessResult:
    """Captured outcome of one external command."""

    exit_code: int
    stdout: str = ""
    stderr: str = ""
    command: list[str] = field(default_factory=list)

    @property
    def is_success(self) -> bool:
        return self.exit_code == 0


def _is_retryable(error: BaseException) -> bool:
    return isinstance(error, ToolExecutionError) and error.retryable


class ToolRunner:
    """Runs toolchain executables with stdin closed and output captured.

    Timed-out commands are retried up to ``max_attempts`` times in total.
    Non-zero exits are returned as results, never retried.
    """

    def __init__(self, timeout_seconds: float = 120, max_attempts: int = 1) -> None:
        self.timeout_seconds = timeout_seconds
        self.max_attempts = max_attempts

    @classmethod
    def from_config(cls, tools: ToolsConfig) -> ToolRunner:
        return cls(timeout_seconds=tools.tool_timeout_seconds, max_attempts=tools.tool_attempts)

    async def run(
        self,
        executable: Path,
        args: list[str],
        cwd: Path | None = None,
        timeout: float | None = None,
    ) -> ProcessResult:
        """Run ``executable`` with ``args`` and capture its output.

        Raises:
            ToolExecutionError: If the process cannot be started or times out
                on every attempt.
        """
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=0.5, min=0.5, max=5),
            retry=retry_if_exception(_is_retryable),
            reraise=True,
        ):
            with attempt:
                if attempt.retry_state.attempt_number > 1:
                    logger.warning(
                        "Retrying command",
                        tool=executable.name,
                        attempt=attempt.retry_state.attempt_number,
                    )
                result = await self._run_once(executable, args, cwd, timeout)
        return result

    async def _run_once(
        self,
        executable: Path,
        args: list[str],
        cwd: Path | None,
        timeout: float | None,
    ) -> ProcessResult:
        cmd = [str(executable), *args]
        logger.debug("Running command", command=" ".join(cmd), cwd=str(cwd) if cwd else None)

        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=cwd,
            )
        except OSError as e:
            raise ToolExecutionError(
                message=f"Could not start {executable.name}: {e}",
                operation="run",
                tool_name=executable.name,
                cause=e,
            ) from e

        try:
            stdout, stderr = await asyncio.wait_for(
                process.communicate(), timeout=timeout or self.timeout_seconds
            )
        except asyncio.TimeoutError as e:
            process.kill()
            await process.wait()
            raise ToolExecutionError(
                message=f"{executable.name} timed out after {timeout or self.timeout_seconds}s",
                operation="run",
                tool_name=executable.name,
                retryable=True,
                cause=e,
            ) from e

        result = ProcessResult(
            exit_code=process.returncode or 0,
            stdout=stdout.decode("utf-8", errors="replace"),
            stderr=stderr.decode("utf-8", errors="replace"),
            command=cmd,
        )
        logger.debug("Command completed", tool=executable.name, returncode=result.exit_code)
        return result
