"""Core infrastructure components for antisplit."""

from .config import Config, get_config
from .exceptions import (
    AmbiguousBaseError,
    AntiSplitError,
    ConsistencyError,
    ContainerFormatError,
    IdentityMismatchError,
    InvalidMemberError,
    MergeError,
    MissingBaseError,
    NoBaseMemberError,
    PipelineError,
    RepackageError,
    ServiceError,
    ToolExecutionError,
    ToolNotFoundError,
    ValidationError,
    VersionMismatchError,
)
from .logging import get_logger, setup_logging
from .types import ArtifactPath, Hash, StageResult, StageStatus
from .workspace import Workspace

__all__ = [
    "Config",
    "get_config",
    "AmbiguousBaseError",
    "AntiSplitError",
    "ConsistencyError",
    "ContainerFormatError",
    "IdentityMismatchError",
    "InvalidMemberError",
    "MergeError",
    "MissingBaseError",
    "NoBaseMemberError",
    "PipelineError",
    "RepackageError",
    "ServiceError",
    "ToolExecutionError",
    "ToolNotFoundError",
    "ValidationError",
    "VersionMismatchError",
    "get_logger",
    "setup_logging",
    "ArtifactPath",
    "Hash",
    "StageResult",
    "StageStatus",
    "Workspace",
]
