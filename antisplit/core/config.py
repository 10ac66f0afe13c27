"""
Configuration management for antisplit.

Provides centralized, type-safe configuration with environment variable overrides
and sensible defaults for the toolchain, merge engine, signing and workspace.
"""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Literal

from dotenv import load_dotenv
from pydantic import BaseModel, Field, SecretStr

# Load .env file if it exists (looks in cwd and parent directories)
load_dotenv()


def _env_path(*names: str) -> Path | None:
    for name in names:
        value = os.environ.get(name)
        if value:
            return Path(value).expanduser()
    return None


def _env_secret(name: str) -> SecretStr | None:
    value = os.environ.get(name)
    return SecretStr(value) if value else None


class ToolsConfig(BaseModel):
    """External Android toolchain configuration."""

    android_sdk_root: Path | None = Field(
        default=None, description="Android SDK root override (skips discovery)"
    )
    build_tools_version: str | None = Field(
        default=None, description="Pin a build-tools version, e.g. 34.0.0"
    )
    tool_timeout_seconds: int = Field(default=120, ge=5, description="Per-command timeout")
    tool_attempts: int = Field(default=2, ge=1, le=5, description="Attempts for a timed-out command")


class MergeConfig(BaseModel):
    """Merge engine configuration."""

    parallel_classification: bool = Field(
        default=True, description="Classify members concurrently"
    )
    max_workers: int = Field(default=4, ge=1, le=64, description="Concurrent classification tasks")
    compression_level: int = Field(default=6, ge=0, le=9, description="Deflate level for entries")
    store_patterns: list[str] = Field(
        default_factory=lambda: ["resources.arsc", "lib/*/*.so"],
        description="Entry name patterns written uncompressed",
    )


class SigningConfig(BaseModel):
    """apksigner credentials used when a keystore is supplied."""

    keystore_password: SecretStr | None = Field(default=None, description="--ks-pass value")
    key_alias: str | None = Field(default=None, description="--ks-key-alias value")
    key_password: SecretStr | None = Field(default=None, description="--key-pass value")


class WorkspaceConfig(BaseModel):
    """Temporary working area configuration."""

    temp_root: Path | None = Field(
        default=None, description="Parent directory for workspaces (system temp if unset)"
    )
    prefix: str = Field(default="antisplit_", description="Workspace directory prefix")


class Config(BaseModel):
    """Root configuration for antisplit."""

    project_name: str = Field(default="antisplit", description="Project identifier")
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO", description="Logging level"
    )
    tools: ToolsConfig = Field(default_factory=ToolsConfig)
    merge: MergeConfig = Field(default_factory=MergeConfig)
    signing: SigningConfig = Field(default_factory=SigningConfig)
    workspace: WorkspaceConfig = Field(default_factory=WorkspaceConfig)

    model_config = {"extra": "ignore"}

    @classmethod
    def from_env(cls) -> Config:
        """Create configuration from environment variables."""
        return cls(
            log_level=os.environ.get("ANTISPLIT_LOG_LEVEL", "INFO"),  # type: ignore
            tools=ToolsConfig(
                android_sdk_root=_env_path("ANTISPLIT_ANDROID_SDK"),
                build_tools_version=os.environ.get("ANTISPLIT_BUILD_TOOLS") or None,
                tool_timeout_seconds=int(os.environ.get("ANTISPLIT_TOOL_TIMEOUT", "120")),
                tool_attempts=int(os.environ.get("ANTISPLIT_TOOL_ATTEMPTS", "2")),
            ),
            merge=MergeConfig(
                parallel_classification=os.environ.get("ANTISPLIT_PARALLEL", "true").lower() == "true",
                max_workers=int(os.environ.get("ANTISPLIT_MAX_WORKERS", "4")),
            ),
            signing=SigningConfig(
                keystore_password=_env_secret("ANTISPLIT_KS_PASS"),
                key_alias=os.environ.get("ANTISPLIT_KEY_ALIAS") or None,
                key_password=_env_secret("ANTISPLIT_KEY_PASS"),
            ),
            workspace=WorkspaceConfig(
                temp_root=_env_path("ANTISPLIT_TEMP_DIR"),
            ),
        )


@lru_cache(maxsize=1)
def get_config() -> Config:
    """Get cached configuration instance."""
    return Config.from_env()
