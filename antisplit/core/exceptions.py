"""
Custom exception hierarchy for antisplit.

All exceptions inherit from AntiSplitError to enable consistent error handling
across the pipeline. Each exception type includes context for debugging and logging.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class AntiSplitError(Exception):
    """Base exception for all antisplit errors."""

    message: str
    context: dict[str, Any] = field(default_factory=dict)
    cause: Exception | None = None

    def __str__(self) -> str:
        ctx = f" | context: {self.context}" if self.context else ""
        cause = f" | caused by: {self.cause}" if self.cause else ""
        return f"{self.message}{ctx}{cause}"


@dataclass
class ValidationError(AntiSplitError):
    """Raised when input validation fails."""

    field_name: str | None = None

    def __str__(self) -> str:
        base = super().__str__()
        if self.field_name:
            return f"Validation failed for '{self.field_name}': {base}"
        return f"Validation failed: {base}"


@dataclass
class ContainerFormatError(ValidationError):
    """Raised when the input is not a recognized container or holds no members."""

    container_path: str = ""


@dataclass
class ConsistencyError(AntiSplitError):
    """Raised when the member set does not describe one application."""

    member_path: str = ""


@dataclass
class MissingBaseError(ConsistencyError):
    """Raised when no member of the set is classified as the base APK."""


@dataclass
class AmbiguousBaseError(ConsistencyError):
    """Raised when more than one member claims to be the base APK."""

    candidates: list[str] = field(default_factory=list)


@dataclass
class IdentityMismatchError(ConsistencyError):
    """Raised when a member declares a different package name than the base."""

    expected: str = ""
    actual: str = ""

    def __str__(self) -> str:
        return (
            f"Package name mismatch: expected '{self.expected}', "
            f"found '{self.actual}' in {self.member_path}"
        )


@dataclass
class VersionMismatchError(ConsistencyError):
    """Raised when a member declares a different version code than the base."""

    expected: int = 0
    actual: int = 0

    def __str__(self) -> str:
        return (
            f"Version code mismatch: expected {self.expected}, "
            f"found {self.actual} in {self.member_path}"
        )


@dataclass
class InvalidMemberError(ConsistencyError):
    """Raised when a member lacks the entries every package must carry."""

    missing: list[str] = field(default_factory=list)


@dataclass
class MergeError(AntiSplitError):
    """Raised when merged content cannot be produced."""

    destination: str = ""


@dataclass
class NoBaseMemberError(MergeError):
    """Raised when the merge planner is called without a validated base member."""


@dataclass
class RepackageError(AntiSplitError):
    """Raised when the merged archive cannot be written."""

    artifact_path: str = ""

    def __str__(self) -> str:
        return f"Failed to write archive '{self.artifact_path}': {super().__str__()}"


@dataclass
class ServiceError(AntiSplitError):
    """Raised when a service operation fails."""

    service_name: str = ""
    operation: str = ""
    retryable: bool = False

    def __str__(self) -> str:
        base = super().__str__()
        retry_hint = " (retryable)" if self.retryable else " (non-retryable)"
        return f"[{self.service_name}.{self.operation}]{retry_hint}: {base}"


@dataclass
class ToolExecutionError(ServiceError):
    """Raised when an external toolchain command exits unsuccessfully."""

    tool_name: str = ""
    exit_code: int | None = None

    def __post_init__(self) -> None:
        self.service_name = "toolchain"


@dataclass
class ToolNotFoundError(AntiSplitError):
    """Raised when a required external tool is not available."""

    tool_name: str = ""
    expected_path: str = ""
    install_hint: str = ""

    def __str__(self) -> str:
        hint = f" Install hint: {self.install_hint}" if self.install_hint else ""
        return f"Tool '{self.tool_name}' not found at '{self.expected_path}'.{hint}"


@dataclass
class PipelineError(AntiSplitError):
    """Raised when pipeline orchestration fails."""

    stage: str = ""
    pipeline_run_id: str = ""

    def __str__(self) -> str:
        base = super().__str__()
        return f"Pipeline error at stage '{self.stage}' (run: {self.pipeline_run_id}): {base}"
