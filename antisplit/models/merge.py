"""
Merge-related data models.

A MergePlan records, per output path, where the merged content comes from.
Signing outcomes are a typed result rather than an exception so callers can
branch on them without inspecting log text.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field

from ..core.types import StageResult
from .apk import ManifestDescriptor, MemberSet, XapkManifest


class MergeAction(str, Enum):
    """Resolution for one file of one member."""

    COPY = "copy"
    SKIP = "skip"
    RENUMBER = "renumber"


class MergeDecision(BaseModel):
    """Resolution of a single source file against the merge destination."""

    target: str = Field(description="Relative POSIX path inside the merged archive")
    action: MergeAction
    member: str = Field(description="File name of the member the source belongs to")
    source: Path = Field(description="Absolute path of the extracted source file")
    reason: str = Field(default="")

    @property
    def original_name(self) -> str:
        return self.source.name


class MergePlan(BaseModel):
    """Ephemeral merge plan, built once per merge and consumed once."""

    decisions: list[MergeDecision] = Field(default_factory=list)

    @property
    def outputs(self) -> dict[str, MergeDecision]:
        """Target path to the decision that materializes it."""
        return {d.target: d for d in self.decisions if d.action != MergeAction.SKIP}

    @property
    def conflicts(self) -> list[MergeDecision]:
        return [d for d in self.decisions if d.action == MergeAction.SKIP]

    @property
    def renumbered(self) -> list[MergeDecision]:
        return [d for d in self.decisions if d.action == MergeAction.RENUMBER]


class Signed(BaseModel):
    """The artifact was signed by the external toolchain."""

    kind: Literal["signed"] = "signed"
    artifact_path: Path
    keystore_path: Path


class UnsignedFallback(BaseModel):
    """Signing was not possible; the unsigned artifact was delivered instead."""

    kind: Literal["unsigned_fallback"] = "unsigned_fallback"
    artifact_path: Path
    reason: str

    @property
    def caveat(self) -> str:
        return "The APK is unsigned and must be signed manually before installation."


SigningOutcome = Annotated[Union[Signed, UnsignedFallback], Field(discriminator="kind")]


class ContainerReport(BaseModel):
    """Classified and validated view of a container, without merging."""

    container_path: Path
    members: MemberSet
    xapk_manifest: XapkManifest | None = Field(default=None)
    base_manifest: ManifestDescriptor | None = Field(default=None, description="Decoded base manifest (verbose info)")
    warnings: list[str] = Field(default_factory=list)


class MergeResult(BaseModel):
    """Result of a complete merge run."""

    run_id: str
    container_path: Path
    output_path: Path
    started_at: datetime
    completed_at: datetime

    members: MemberSet
    xapk_manifest: XapkManifest | None = Field(default=None)
    conflicts: list[MergeDecision] = Field(default_factory=list)
    renumbered: list[MergeDecision] = Field(default_factory=list)
    signing: SigningOutcome
    stages: list[StageResult] = Field(default_factory=list)

    original_size: int = Field(default=0)
    merged_size: int = Field(default=0)
    warnings: list[str] = Field(default_factory=list)

    @property
    def signed(self) -> bool:
        return isinstance(self.signing, Signed)

    @property
    def size_difference(self) -> int:
        return self.merged_size - self.original_size
