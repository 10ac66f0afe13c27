"""
antisplit Data Models.

Pydantic models describing package members, the merge plan and the results
of a merge run.
"""

from .apk import (
    ApplicationDescriptor,
    ClassificationConfidence,
    ManifestDescriptor,
    MemberRole,
    MemberSet,
    MetadataSource,
    PackageMember,
    RoleRule,
    XapkExpansion,
    XapkManifest,
    XapkSplit,
)
from .merge import (
    ContainerReport,
    MergeAction,
    MergeDecision,
    MergePlan,
    MergeResult,
    Signed,
    SigningOutcome,
    UnsignedFallback,
)

__all__ = [
    # APK models
    "ApplicationDescriptor",
    "ClassificationConfidence",
    "ManifestDescriptor",
    "MemberRole",
    "MemberSet",
    "MetadataSource",
    "PackageMember",
    "RoleRule",
    "XapkExpansion",
    "XapkManifest",
    "XapkSplit",
    # Merge models
    "ContainerReport",
    "MergeAction",
    "MergeDecision",
    "MergePlan",
    "MergeResult",
    "Signed",
    "SigningOutcome",
    "UnsignedFallback",
]
