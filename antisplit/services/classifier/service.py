"""
Member Classifier Service.

Extracts identity metadata from each member APK and decides the role it plays
in the split application (base, feature split or configuration split).
"""

from __future__ import annotations

import asyncio
import re
import zipfile
from pathlib import Path

from ...core.exceptions import ToolExecutionError, ToolNotFoundError
from ...core.logging import get_logger
from ...models.apk import (
    ClassificationConfidence,
    ManifestDescriptor,
    MemberRole,
    MemberSet,
    MetadataSource,
    PackageMember,
    RoleRule,
)
from ...toolchain.aapt import AaptToolchain
from ...toolchain.parsers import (
    BadgingInfo,
    extract_architectures,
    parse_badging,
    parse_listing,
    parse_xmltree,
)

logger = get_logger(__name__)

# name.version, name_version and name-version, with an optional "v" prefix
FILENAME_PATTERNS = [
    re.compile(r"^(?P<package>[a-z][a-z0-9_]*(?:\.[a-z][a-z0-9_]*)+)\.v?(?P<version>\d+(?:\.\d+)*)$"),
    re.compile(r"^(?P<package>[a-z][a-z0-9_]*(?:\.[a-z][a-z0-9_]*)+)_v?(?P<version>\d+(?:\.\d+)*)$"),
    re.compile(r"^(?P<package>[a-z][a-z0-9_]*(?:\.[a-z][a-z0-9_]*)+)-v?(?P<version>\d+(?:\.\d+)*)$"),
]


def metadata_from_filename(stem: str) -> BadgingInfo:
    """Best-effort identity guess from a lower-cased file stem."""
    for pattern in FILENAME_PATTERNS:
        match = pattern.match(stem)
        if match:
            return BadgingInfo(
                package_name=match.group("package"),
                version_name=match.group("version"),
            )
    return BadgingInfo()


def decide_role(stem: str, info: BadgingInfo) -> tuple[MemberRole, str, RoleRule]:
    """Apply the role decision table; the first matching row wins.

    Returns:
        Tuple of (role, split name, matching rule).
    """
    if info.split:
        role = MemberRole.CONFIG if info.split.startswith("config.") else MemberRole.SPLIT
        return role, info.split, RoleRule.DECLARED_SPLIT
    if stem == "base":
        return MemberRole.BASE, "", RoleRule.BASE_NAME
    if info.package_name and stem == info.package_name.lower():
        return MemberRole.BASE, "", RoleRule.PACKAGE_NAME
    if stem.startswith(("split.", "split_")):
        return MemberRole.SPLIT, stem, RoleRule.SPLIT_PREFIX
    if stem.startswith("config."):
        return MemberRole.CONFIG, stem, RoleRule.CONFIG_PREFIX
    return MemberRole.BASE, "", RoleRule.DEFAULT


class MemberClassifier:
    """Service for classifying member APKs.

    This service:
    1. Reads identity metadata via ``dump badging`` (filename fallback)
    2. Assigns a role through an ordered decision table
    3. Detects native architectures from the archive listing
    4. Elects a single base member for the set
    """

    def __init__(self, toolchain: AaptToolchain) -> None:
        """Initialize the classifier.

        Args:
            toolchain: Client for the discovered Android build tools.
        """
        self.toolchain = toolchain

    async def classify(self, member_path: Path) -> PackageMember:
        """Classify one member APK.

        Extraction failures never propagate; they degrade to the filename
        heuristic and are logged.
        """
        stem = member_path.stem.lower()
        info, source = await self._read_metadata(member_path, stem)
        role, split_name, rule = decide_role(stem, info)
        confidence = (
            ClassificationConfidence.HEURISTIC
            if rule == RoleRule.DEFAULT
            else ClassificationConfidence.CONFIDENT
        )
        if confidence == ClassificationConfidence.HEURISTIC:
            logger.warning(
                "Role assigned by default rule",
                member=member_path.name,
                role=role.value,
            )

        member = PackageMember(
            source_path=member_path,
            file_size=member_path.stat().st_size,
            package_name=info.package_name,
            version_name=info.version_name,
            version_code=info.version_code,
            min_sdk_version=info.min_sdk_version,
            target_sdk_version=info.target_sdk_version,
            permissions=frozenset(info.permissions),
            features=frozenset(info.features),
            architectures=tuple(await self._read_architectures(member_path)),
            role=role,
            split_name=split_name,
            rule=rule,
            confidence=confidence,
            metadata_source=source,
        )
        logger.info(
            "Classified member",
            member=member.file_name,
            role=member.role.value,
            split=member.split_name or None,
            rule=member.rule.value,
            package=member.package_name or None,
        )
        return member

    async def _read_metadata(self, member_path: Path, stem: str) -> tuple[BadgingInfo, MetadataSource]:
        try:
            info = parse_badging(await self.toolchain.dump_badging(member_path))
            if info.package_name:
                return info, MetadataSource.TOOLCHAIN
            logger.warning("Badging output has no package name", member=member_path.name)
        except ToolNotFoundError:
            logger.warning("No badging tool available", member=member_path.name)
        except ToolExecutionError as e:
            logger.warning("Badging failed", member=member_path.name, error=e.message)

        logger.warning("Falling back to filename metadata", member=member_path.name)
        return metadata_from_filename(stem), MetadataSource.FILENAME

    async def _read_architectures(self, member_path: Path) -> list[str]:
        try:
            if self.toolchain.location.aapt is not None:
                entries = parse_listing(await self.toolchain.list_entries(member_path))
            else:
                entries = await asyncio.to_thread(_zip_entries, member_path)
        except (ToolExecutionError, ToolNotFoundError, zipfile.BadZipFile, OSError) as e:
            logger.warning("Could not list member entries", member=member_path.name, error=str(e))
            return []
        return extract_architectures(entries)

    async def classify_all(
        self,
        member_paths: list[Path],
        parallel: bool = True,
        max_workers: int = 4,
    ) -> list[PackageMember]:
        """Classify every member, concurrently when ``parallel`` is set.

        Results come back in input order regardless of completion order.
        """
        if not parallel:
            return [await self.classify(path) for path in member_paths]

        semaphore = asyncio.Semaphore(max(1, max_workers))

        async def bounded(path: Path) -> PackageMember:
            async with semaphore:
                return await self.classify(path)

        return list(await asyncio.gather(*(bounded(path) for path in member_paths)))

    def assemble(self, members: list[PackageMember]) -> MemberSet:
        """Elect a single base member and return the set in canonical order.

        Heuristic base candidates yield to a confident one. When every
        candidate is heuristic the largest file keeps the base role.
        """
        bases = [m for m in members if m.is_base]
        if len(bases) > 1:
            confident = [m for m in bases if m.confidence == ClassificationConfidence.CONFIDENT]
            if confident:
                keep = set(id(m) for m in confident)
            else:
                largest = max(bases, key=lambda m: m.file_size)
                keep = {id(largest)}

            elected: list[PackageMember] = []
            for member in members:
                if member.is_base and id(member) not in keep:
                    logger.warning(
                        "Demoting base candidate to split",
                        member=member.file_name,
                        rule=member.rule.value,
                    )
                    member = member.model_copy(
                        update={"role": MemberRole.SPLIT, "split_name": member.stem}
                    )
                elected.append(member)
            members = elected

        return MemberSet.from_members(members)

    async def inspect_manifest(self, member_path: Path) -> ManifestDescriptor:
        """Decode a member's AndroidManifest.xml for display."""
        return parse_xmltree(await self.toolchain.dump_xmltree(member_path))


def _zip_entries(path: Path) -> list[str]:
    with zipfile.ZipFile(path, "r") as zf:
        return zf.namelist()
