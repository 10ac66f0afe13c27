"""
Core type definitions for antisplit.

Type aliases and the per-stage result record used by the pipeline.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field


# Type aliases
ArtifactPath = Path
Hash = str  # SHA-256 hash


class StageStatus(str, Enum):
    """Status of a pipeline stage."""

    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class StageResult(BaseModel):
    """Result of a pipeline stage execution."""

    stage_name: str = Field(description="Name of the pipeline stage")
    status: StageStatus = Field(default=StageStatus.RUNNING, description="Execution status")
    started_at: datetime = Field(default_factory=datetime.utcnow)
    completed_at: datetime | None = Field(default=None)
    duration_seconds: float = Field(default=0.0)
    output_hash: Hash = Field(default="", description="Hash of stage output")
    artifacts: list[ArtifactPath] = Field(default_factory=list, description="Generated artifacts")
    error_message: str | None = Field(default=None)
    warnings: list[str] = Field(default_factory=list)

    def mark_completed(self, output_hash: Hash = "", artifacts: list[ArtifactPath] | None = None) -> None:
        """Mark stage as successfully completed."""
        self.status = StageStatus.COMPLETED
        self.completed_at = datetime.utcnow()
        self.output_hash = output_hash
        self.artifacts = artifacts or []
        if self.started_at:
            self.duration_seconds = (self.completed_at - self.started_at).total_seconds()

    def mark_failed(self, error: str) -> None:
        """Mark stage as failed."""
        self.status = StageStatus.FAILED
        self.completed_at = datetime.utcnow()
        self.error_message = error
        if self.started_at:
            self.duration_seconds = (self.completed_at - self.started_at).total_seconds()
