"""
Archive Repackager.

Writes a merged content tree into a single APK archive with deterministic
entry order. Entries the platform maps directly from the archive (the
resource table and native libraries) are stored uncompressed.
"""

from __future__ import annotations

import fnmatch
import zipfile
from pathlib import Path

from ...core.config import MergeConfig
from ...core.exceptions import RepackageError
from ...core.logging import get_logger
from ..container.service import list_archive_entries, missing_required_entries

logger = get_logger(__name__)


class ArchiveRepackager:
    """Packs a merge root into an (unsigned) APK."""

    def __init__(self, config: MergeConfig | None = None) -> None:
        self.config = config or MergeConfig()

    def should_store(self, entry_name: str) -> bool:
        """True if ``entry_name`` must be written without compression."""
        return any(fnmatch.fnmatchcase(entry_name, pattern) for pattern in self.config.store_patterns)

    def repackage(self, merge_root: Path, destination: Path) -> Path:
        """Write every file under ``merge_root`` into ``destination``.

        Entries are named by their forward-slash relative path and written in
        sorted order, so identical trees give identical entry sequences.

        Raises:
            RepackageError: If the archive cannot be created or written. The
                partial artifact is removed.
        """
        files = sorted(
            ((p.relative_to(merge_root).as_posix(), p) for p in merge_root.rglob("*") if p.is_file()),
            key=lambda item: item[0],
        )
        logger.info("Repackaging merged content", entries=len(files), output=str(destination))

        stored = 0
        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
            with zipfile.ZipFile(
                destination,
                "w",
                compression=zipfile.ZIP_DEFLATED,
                compresslevel=self.config.compression_level,
            ) as zf:
                for name, path in files:
                    if self.should_store(name):
                        zf.write(path, name, compress_type=zipfile.ZIP_STORED)
                        stored += 1
                    else:
                        zf.write(path, name)
        except (OSError, zipfile.BadZipFile, ValueError) as e:
            if destination.is_file():
                destination.unlink()
            raise RepackageError(
                message="Repackaging failed",
                artifact_path=str(destination),
                cause=e,
            ) from e

        logger.info("Repackaged archive", output=str(destination), entries=len(files), stored=stored)
        return destination

    def verify_artifact(self, artifact: Path) -> list[str]:
        """Structural problems of a finished artifact; empty when it looks installable."""
        if not zipfile.is_zipfile(artifact):
            return [f"{artifact.name} is not a ZIP archive"]
        try:
            entries = list_archive_entries(artifact)
        except (zipfile.BadZipFile, OSError) as e:
            return [f"{artifact.name} cannot be read: {e}"]
        return [f"missing {entry}" for entry in missing_required_entries(entries)]
