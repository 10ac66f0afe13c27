"""
Android build-tools location.

The toolchain is discovered once, at process start, and passed explicitly to
every component that needs it. There is no lazily populated module-level cache.
"""

from __future__ import annotations

import os
import re
import shutil
import sys
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from ..core.config import ToolsConfig
from ..core.exceptions import ToolNotFoundError
from ..core.logging import get_logger

logger = get_logger(__name__)

ToolName = Literal["aapt", "aapt2", "apksigner"]
TOOL_NAMES: tuple[ToolName, ...] = ("aapt", "aapt2", "apksigner")


def _default_sdk_roots() -> list[Path]:
    home = Path.home()
    if sys.platform.startswith("win"):
        return [
            home / "AppData" / "Local" / "Android" / "Sdk",
            Path("C:/Android/Sdk"),
            Path("C:/Program Files/Android/Sdk"),
            Path("C:/Program Files (x86)/Android/Sdk"),
        ]
    if sys.platform == "darwin":
        return [
            home / "Library" / "Android" / "sdk",
            home / "Android" / "Sdk",
            Path("/usr/local/android-sdk"),
        ]
    return [
        home / "Android" / "Sdk",
        Path("/opt/android-sdk"),
        Path("/usr/local/android-sdk"),
    ]


def _tool_file_names(tool: str) -> list[str]:
    if sys.platform.startswith("win"):
        return [f"{tool}.exe", f"{tool}.bat", tool]
    return [tool]


def _version_key(version: str) -> tuple[tuple[int, ...], int]:
    """Sort key for build-tools directory names; releases rank above previews."""
    release, _, suffix = version.partition("-")
    numbers = tuple(int(n) for n in re.findall(r"\d+", release))
    return numbers, 0 if suffix else 1


class ToolchainLocation(BaseModel):
    """Resolved locations of the Android SDK tools used by the pipeline."""

    model_config = ConfigDict(frozen=True)

    sdk_root: Path | None = Field(default=None)
    build_tools: Path | None = Field(default=None)
    aapt: Path | None = Field(default=None)
    aapt2: Path | None = Field(default=None)
    apksigner: Path | None = Field(default=None)

    @classmethod
    def unavailable(cls) -> ToolchainLocation:
        """A location with no tools, forcing every fallback path."""
        return cls()

    @classmethod
    def from_build_tools(cls, build_tools: Path, sdk_root: Path | None = None) -> ToolchainLocation:
        """Resolve tools inside one build-tools directory, falling back to PATH."""
        tools: dict[str, Path | None] = {}
        for tool in TOOL_NAMES:
            tools[tool] = _find_in_dir(build_tools, tool) or _find_on_path(tool)
        return cls(sdk_root=sdk_root, build_tools=build_tools, **tools)

    @classmethod
    def discover(
        cls,
        sdk_root: Path | None = None,
        config: ToolsConfig | None = None,
    ) -> ToolchainLocation:
        """Locate the SDK and its newest usable build-tools directory.

        Args:
            sdk_root: Explicit SDK root; takes precedence over everything else.
            config: Tools configuration (SDK override and build-tools pin).

        Returns:
            The resolved location. Tools that cannot be found are left as None.
        """
        config = config or ToolsConfig()
        candidates: list[Path] = []
        for explicit in (sdk_root, config.android_sdk_root):
            if explicit is not None:
                candidates.append(explicit.expanduser())
        for var in ("ANDROID_SDK_ROOT", "ANDROID_HOME"):
            value = os.environ.get(var)
            if value:
                candidates.append(Path(value).expanduser())
        candidates.extend(_default_sdk_roots())

        for root in candidates:
            build_tools_dir = root / "build-tools"
            if not build_tools_dir.is_dir():
                continue
            chosen = _pick_build_tools(build_tools_dir, config.build_tools_version)
            if chosen is not None:
                location = cls.from_build_tools(chosen, sdk_root=root)
                logger.info(
                    "Android SDK found",
                    sdk_root=str(root),
                    build_tools=str(chosen),
                )
                return location

        logger.info("Android SDK not found, looking for tools on PATH")
        return cls(**{tool: _find_on_path(tool) for tool in TOOL_NAMES})

    @property
    def available(self) -> bool:
        """Whether a badging-capable tool (aapt or aapt2) was found."""
        return self.aapt is not None or self.aapt2 is not None

    def tool(self, name: ToolName) -> Path | None:
        return getattr(self, name)

    def require(self, name: ToolName) -> Path:
        """Return the tool path or raise ToolNotFoundError."""
        path = self.tool(name)
        if path is None:
            expected = str(self.build_tools) if self.build_tools else "PATH"
            raise ToolNotFoundError(
                message=f"Tool not found: {name}",
                tool_name=name,
                expected_path=expected,
                install_hint=(
                    "Install the Android SDK build-tools and set ANDROID_SDK_ROOT "
                    "or pass --android-sdk"
                ),
            )
        return path


def _pick_build_tools(build_tools_dir: Path, pinned: str | None) -> Path | None:
    if pinned:
        pinned_dir = build_tools_dir / pinned
        return pinned_dir if pinned_dir.is_dir() else None
    versions = sorted(
        (d for d in build_tools_dir.iterdir() if d.is_dir()),
        key=lambda d: _version_key(d.name),
        reverse=True,
    )
    for version_dir in versions:
        if any(_find_in_dir(version_dir, tool) for tool in TOOL_NAMES):
            return version_dir
    return None


def _find_in_dir(directory: Path, tool: str) -> Path | None:
    for file_name in _tool_file_names(tool):
        candidate = directory / file_name
        if candidate.is_file():
            return candidate
    return None


def _find_on_path(tool: str) -> Path | None:
    found = shutil.which(tool)
    return Path(found) if found else None
