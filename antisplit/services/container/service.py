"""
Container Service.

Opens XAPK/ZIP containers, reads the optional manifest.json descriptor and
discovers the member APKs that will be classified and merged.
"""

from __future__ import annotations

import asyncio
import json
import shutil
import zipfile
from pathlib import Path

import aiofiles
from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from ...core.exceptions import ContainerFormatError
from ...core.logging import get_logger
from ...models.apk import XapkManifest
from ..merge.service import CLASS_INDEX_PATTERN

logger = get_logger(__name__)

CONTAINER_SUFFIXES = (".xapk", ".zip")
MANIFEST_ENTRY = "AndroidManifest.xml"


class ContainerContents(BaseModel):
    """An extracted container ready for classification."""

    container_path: Path
    root: Path = Field(description="Directory the container was extracted into")
    manifest: XapkManifest | None = Field(default=None)
    member_paths: list[Path] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


def safe_extract(archive: zipfile.ZipFile, destination: Path, source: Path) -> None:
    """Extract every entry, refusing entries that resolve outside ``destination``.

    Raises:
        ContainerFormatError: On a path traversal entry.
    """
    destination = destination.resolve()
    for name in archive.namelist():
        target = (destination / name).resolve()
        try:
            target.relative_to(destination)
        except ValueError:
            raise ContainerFormatError(
                message=f"Zip path traversal detected: {name}",
                field_name="entry",
                container_path=str(source),
            ) from None
    archive.extractall(destination)


def list_archive_entries(path: Path) -> list[str]:
    """Entry names of a ZIP archive, directories excluded."""
    with zipfile.ZipFile(path, "r") as zf:
        return [name for name in zf.namelist() if not name.endswith("/")]


def missing_required_entries(entries: list[str], require_code: bool = True) -> list[str]:
    """Names of required package entries absent from ``entries``."""
    missing: list[str] = []
    if MANIFEST_ENTRY not in entries:
        missing.append(MANIFEST_ENTRY)
    if require_code and not any(CLASS_INDEX_PATTERN.match(name) for name in entries):
        missing.append("classes*.dex")
    return missing


class ContainerService:
    """Service for reading split-APK containers.

    This service:
    1. Validates the container file
    2. Extracts it into the caller's workspace
    3. Parses manifest.json when present
    4. Discovers structurally valid member APKs
    """

    async def open(self, container_path: Path, destination: Path) -> ContainerContents:
        """Extract a container and discover its members.

        Args:
            container_path: The .xapk or .zip file.
            destination: Empty directory inside the run's workspace.

        Returns:
            ContainerContents with the member APK paths sorted by relative path.

        Raises:
            ContainerFormatError: If the input is not a readable container or
                holds no package members.
        """
        self.validate_container(container_path)
        logger.info("Extracting container", container=str(container_path))

        try:
            with zipfile.ZipFile(container_path, "r") as zf:
                await asyncio.to_thread(safe_extract, zf, destination, container_path)
        except zipfile.BadZipFile as e:
            raise ContainerFormatError(
                message=f"Container is not a valid ZIP archive: {e}",
                field_name="container_path",
                container_path=str(container_path),
                cause=e,
            ) from e

        manifest = await self.read_manifest(destination / "manifest.json")
        warnings: list[str] = []
        members: list[Path] = []
        for apk in sorted(destination.rglob("*.apk"), key=lambda p: p.relative_to(destination).as_posix()):
            problem = self._member_problem(apk)
            if problem:
                warnings.append(f"{apk.name}: {problem}")
                logger.warning("Skipping container entry", member=apk.name, reason=problem)
                continue
            members.append(apk)

        if not members:
            raise ContainerFormatError(
                message="No valid APK files found in the container",
                field_name="container_path",
                container_path=str(container_path),
            )

        logger.info("Container opened", members=[m.name for m in members], has_manifest=manifest is not None)
        return ContainerContents(
            container_path=container_path,
            root=destination,
            manifest=manifest,
            member_paths=members,
            warnings=warnings,
        )

    def validate_container(self, container_path: Path) -> None:
        """Check existence, extension and ZIP signature of a container."""
        if not container_path.is_file():
            raise ContainerFormatError(
                message=f"Container file not found: {container_path}",
                field_name="container_path",
                container_path=str(container_path),
            )
        if container_path.suffix.lower() not in CONTAINER_SUFFIXES:
            raise ContainerFormatError(
                message=f"File is not an XAPK or ZIP container: {container_path.name}",
                field_name="container_path",
                container_path=str(container_path),
            )
        if not zipfile.is_zipfile(container_path):
            raise ContainerFormatError(
                message=f"Container is not a valid ZIP archive: {container_path.name}",
                field_name="container_path",
                container_path=str(container_path),
            )

    async def read_manifest(self, manifest_path: Path) -> XapkManifest | None:
        """Parse manifest.json if the container has one."""
        if not manifest_path.is_file():
            return None
        try:
            async with aiofiles.open(manifest_path, "r", encoding="utf-8") as f:
                raw = await f.read()
            manifest = XapkManifest.model_validate(json.loads(raw))
        except (json.JSONDecodeError, PydanticValidationError, ValueError) as e:
            raise ContainerFormatError(
                message=f"Failed to parse XAPK manifest: {e}",
                field_name="manifest.json",
                container_path=str(manifest_path),
                cause=e,
            ) from e
        logger.info(
            "Found XAPK manifest",
            package=manifest.package_name,
            version_code=manifest.version_code,
            splits=len(manifest.split_apks),
        )
        return manifest

    def _member_problem(self, apk: Path) -> str | None:
        if not zipfile.is_zipfile(apk):
            return "not a ZIP archive"
        missing = missing_required_entries(list_archive_entries(apk), require_code=False)
        if missing:
            return f"missing {', '.join(missing)}"
        return None

    async def extract_member(self, member_path: Path, destination: Path) -> Path:
        """Unpack one member APK into ``destination``."""
        destination.mkdir(parents=True, exist_ok=True)
        with zipfile.ZipFile(member_path, "r") as zf:
            await asyncio.to_thread(safe_extract, zf, destination, member_path)
        return destination

    def copy_members(self, member_paths: list[Path], output_dir: Path) -> list[Path]:
        """Copy member APKs into ``output_dir`` (extract mode)."""
        output_dir.mkdir(parents=True, exist_ok=True)
        copied: list[Path] = []
        for member in member_paths:
            target = output_dir / member.name
            shutil.copyfile(member, target)
            copied.append(target)
            logger.info("Extracted member", member=member.name, output=str(target))
        return copied
