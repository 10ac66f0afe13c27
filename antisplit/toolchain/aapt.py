"""
Client for the Android asset packaging tools.

Wraps the three read-only queries the pipeline needs: ``dump badging``,
``list`` and ``dump xmltree``. aapt is preferred; aapt2 is used where it
offers the same command.
"""

from __future__ import annotations

from pathlib import Path

from ..core.exceptions import ToolExecutionError, ToolNotFoundError
from ..core.logging import get_logger
from .location import ToolchainLocation
from .runner import ProcessResult, ToolRunner

logger = get_logger(__name__)


class AaptToolchain:
    """Runs aapt/aapt2 queries against a single APK."""

    def __init__(self, location: ToolchainLocation, runner: ToolRunner | None = None) -> None:
        self.location = location
        self.runner = runner or ToolRunner()

    @property
    def available(self) -> bool:
        return self.location.available

    def _badging_tool(self) -> Path:
        if self.location.aapt is not None:
            return self.location.aapt
        return self.location.require("aapt2")

    def _check(self, result: ProcessResult, tool: Path, operation: str) -> str:
        if not result.is_success:
            raise ToolExecutionError(
                message=f"{tool.name} {operation} failed: {result.stderr.strip()[:500]}",
                operation=operation,
                tool_name=tool.name,
                exit_code=result.exit_code,
            )
        return result.stdout

    async def dump_badging(self, apk_path: Path) -> str:
        tool = self._badging_tool()
        result = await self.runner.run(tool, ["dump", "badging", str(apk_path)])
        return self._check(result, tool, "dump badging")

    async def list_entries(self, apk_path: Path) -> str:
        """Raw ``aapt list`` output; aapt2 has no equivalent command."""
        tool = self.location.require("aapt")
        result = await self.runner.run(tool, ["list", str(apk_path)])
        return self._check(result, tool, "list")

    async def dump_xmltree(self, apk_path: Path, entry: str = "AndroidManifest.xml") -> str:
        if self.location.aapt is not None:
            tool = self.location.aapt
            args = ["dump", "xmltree", str(apk_path), entry]
        elif self.location.aapt2 is not None:
            tool = self.location.aapt2
            args = ["dump", "xmltree", "--file", entry, str(apk_path)]
        else:
            raise ToolNotFoundError(
                message="No aapt or aapt2 available for dump xmltree",
                tool_name="aapt",
                expected_path=str(self.location.build_tools or "PATH"),
            )
        result = await self.runner.run(tool, args)
        return self._check(result, tool, "dump xmltree")
