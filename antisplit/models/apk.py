"""
APK-related data models.

These models describe the members of a split application as they are
classified before merging: identity, platform bounds, capabilities and the
role each member plays in the set.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, field_validator


class MemberRole(str, Enum):
    """Role of a package member within a split application."""

    BASE = "base"
    SPLIT = "split"
    CONFIG = "config"


class RoleRule(str, Enum):
    """Row of the role decision table that produced a classification."""

    DECLARED_SPLIT = "declared_split"
    BASE_NAME = "base_name"
    PACKAGE_NAME = "package_name"
    SPLIT_PREFIX = "split_prefix"
    CONFIG_PREFIX = "config_prefix"
    DEFAULT = "default"


class ClassificationConfidence(str, Enum):
    """How much a role assignment can be trusted."""

    CONFIDENT = "confident"
    HEURISTIC = "heuristic"


class MetadataSource(str, Enum):
    """Where a member's identity fields came from."""

    TOOLCHAIN = "toolchain"
    FILENAME = "filename"


class PackageMember(BaseModel):
    """One physical APK file taken from the container."""

    model_config = ConfigDict(frozen=True)

    source_path: Path = Field(description="Location of the APK file")
    file_size: int = Field(default=0, ge=0, description="Size in bytes")

    package_name: str = Field(default="", description="Declared package name")
    version_name: str = Field(default="")
    version_code: int = Field(default=0, ge=0, description="Monotonic identity key")
    min_sdk_version: str = Field(default="")
    target_sdk_version: str = Field(default="")

    permissions: frozenset[str] = Field(default_factory=frozenset)
    features: frozenset[str] = Field(default_factory=frozenset)
    architectures: tuple[str, ...] = Field(
        default=(), description="Native ABIs under lib/, in first-appearance order"
    )

    role: MemberRole = Field(default=MemberRole.BASE)
    split_name: str = Field(default="", description="Empty unless role is split or config")
    rule: RoleRule = Field(default=RoleRule.DEFAULT)
    confidence: ClassificationConfidence = Field(default=ClassificationConfidence.HEURISTIC)
    metadata_source: MetadataSource = Field(default=MetadataSource.TOOLCHAIN)

    @property
    def file_name(self) -> str:
        return self.source_path.name

    @property
    def stem(self) -> str:
        """Lower-cased file name without extension, used by role inference."""
        return self.source_path.stem.lower()

    @property
    def is_base(self) -> bool:
        return self.role == MemberRole.BASE


class MemberSet(BaseModel):
    """Members of one application in canonical order.

    The base member comes first, then split and config members ordered by
    split name. Ordering matters for deterministic output and class-index
    renumbering, not for the correctness of merge decisions.
    """

    model_config = ConfigDict(frozen=True)

    members: tuple[PackageMember, ...] = Field(default=())

    @classmethod
    def from_members(cls, members: list[PackageMember] | tuple[PackageMember, ...]) -> MemberSet:
        ordered = sorted(
            members,
            key=lambda m: (0 if m.is_base else 1, m.split_name, m.file_name),
        )
        return cls(members=tuple(ordered))

    def __len__(self) -> int:
        return len(self.members)

    def __getitem__(self, index: int) -> PackageMember:
        return self.members[index]

    @property
    def bases(self) -> list[PackageMember]:
        return [m for m in self.members if m.is_base]

    @property
    def base(self) -> PackageMember | None:
        """The first base member, or None if the set has none."""
        for member in self.members:
            if member.is_base:
                return member
        return None

    @property
    def splits(self) -> list[PackageMember]:
        return [m for m in self.members if not m.is_base]

    @property
    def total_size(self) -> int:
        return sum(m.file_size for m in self.members)

    @property
    def architectures(self) -> list[str]:
        """Union of member architectures in first-appearance order."""
        seen: list[str] = []
        for member in self.members:
            for arch in member.architectures:
                if arch not in seen:
                    seen.append(arch)
        return seen


class ApplicationDescriptor(BaseModel):
    """The <application> element of a decoded manifest."""

    name: str = Field(default="")
    label: str = Field(default="")
    icon: str = Field(default="")
    theme: str = Field(default="")
    debuggable: bool = Field(default=False)
    allow_backup: bool = Field(default=True)


class ManifestDescriptor(BaseModel):
    """Decoded attributes of a compiled AndroidManifest.xml.

    Used for diagnostic display only; the merged artifact reuses the base
    member's binary manifest verbatim.
    """

    package_name: str = Field(default="")
    version_code: int = Field(default=0)
    version_name: str = Field(default="")
    min_sdk_version: str = Field(default="")
    target_sdk_version: str = Field(default="")
    compile_sdk_version: str = Field(default="")
    split: str = Field(default="", description="Split id declared by a split APK")

    permissions: list[str] = Field(default_factory=list)
    features: list[str] = Field(default_factory=list)
    application: ApplicationDescriptor = Field(default_factory=ApplicationDescriptor)

    activities: list[str] = Field(default_factory=list)
    services: list[str] = Field(default_factory=list)
    receivers: list[str] = Field(default_factory=list)
    providers: list[str] = Field(default_factory=list)


class XapkSplit(BaseModel):
    """A split APK entry of an XAPK manifest.json."""

    model_config = ConfigDict(extra="ignore")

    file: str = Field(default="")
    id: str = Field(default="")


class XapkExpansion(BaseModel):
    """An expansion (OBB) file entry of an XAPK manifest.json."""

    model_config = ConfigDict(extra="ignore")

    file: str = Field(default="")
    install_location: str = Field(default="")
    install_path: str = Field(default="")

    @field_validator("install_location", mode="before")
    @classmethod
    def _coerce_location(cls, value: object) -> str:
        if isinstance(value, bool):
            return "EXTERNAL_STORAGE" if value else "INTERNAL_STORAGE"
        return "" if value is None else str(value)


class XapkManifest(BaseModel):
    """Optional manifest.json at the root of an XAPK container.

    Purely informational: member classification never depends on it.
    """

    model_config = ConfigDict(extra="ignore")

    package_name: str = Field(default="")
    name: str = Field(default="", description="Display name")
    version_name: str = Field(default="")
    version_code: int = Field(default=0)
    split_apks: list[XapkSplit] = Field(default_factory=list)
    expansions: list[XapkExpansion] = Field(default_factory=list)

    @field_validator("version_code", mode="before")
    @classmethod
    def _coerce_version_code(cls, value: object) -> int:
        if value in (None, ""):
            return 0
        return int(value)  # type: ignore[arg-type]
