"""
Per-invocation working area.

Every pipeline run owns one uniquely named temporary directory tree. It is
created fresh and removed on exit whatever the outcome, including entries whose
read-only bits would otherwise block deletion.
"""

from __future__ import annotations

import hashlib
import os
import shutil
import stat
import sys
import tempfile
from pathlib import Path
from types import TracebackType
from typing import Any, Callable

from .logging import get_logger

logger = get_logger(__name__)


class Workspace:
    """Exclusive temporary directory for one merge invocation.

    Layout::

        <root>/container/   extracted container archive
        <root>/extracted/   one directory per member (member_0, member_1, ...)
        <root>/merged/      merge destination, created by the merge planner
    """

    def __init__(self, prefix: str = "antisplit_", parent: Path | None = None) -> None:
        self.prefix = prefix
        self.parent = parent
        self._root: Path | None = None

    @property
    def root(self) -> Path:
        if self._root is None:
            raise RuntimeError("Workspace has not been created")
        return self._root

    @property
    def container_dir(self) -> Path:
        return self.root / "container"

    @property
    def extracted_dir(self) -> Path:
        return self.root / "extracted"

    @property
    def merged_dir(self) -> Path:
        return self.root / "merged"

    def member_dir(self, index: int) -> Path:
        """Extraction directory for the member at ``index`` in canonical order."""
        return self.extracted_dir / f"member_{index}"

    def create(self) -> Path:
        if self.parent is not None:
            self.parent.mkdir(parents=True, exist_ok=True)
        self._root = Path(tempfile.mkdtemp(prefix=self.prefix, dir=self.parent))
        self.container_dir.mkdir()
        self.extracted_dir.mkdir()
        logger.debug("Workspace created", path=str(self._root))
        return self._root

    def cleanup(self) -> None:
        if self._root is None:
            return
        safe_delete_directory(self._root)
        self._root = None

    def __enter__(self) -> Workspace:
        self.create()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.cleanup()


def _clear_readonly_and_retry(func: Callable[..., Any], path: str, _exc: Any) -> None:
    os.chmod(path, stat.S_IWRITE | stat.S_IREAD | stat.S_IEXEC)
    parent = os.path.dirname(path)
    if parent:
        os.chmod(parent, os.stat(parent).st_mode | stat.S_IWRITE | stat.S_IEXEC)
    func(path)


def safe_delete_directory(path: Path) -> bool:
    """Remove a directory tree, clearing read-only bits that block deletion.

    Failures are logged rather than raised so cleanup never masks the error
    that ended the run.

    Returns:
        True if the directory no longer exists.
    """
    if not path.exists():
        return True
    try:
        if sys.version_info >= (3, 12):
            shutil.rmtree(path, onexc=_clear_readonly_and_retry)
        else:
            shutil.rmtree(path, onerror=_clear_readonly_and_retry)
    except OSError as e:
        logger.warning("Could not delete temporary directory", path=str(path), error=str(e))
    return not path.exists()


def format_file_size(size: int) -> str:
    """Render a byte count with binary units, e.g. ``1.5 KB``."""
    units = ["B", "KB", "MB", "GB", "TB"]
    value = float(abs(size))
    order = 0
    while value >= 1024 and order < len(units) - 1:
        order += 1
        value /= 1024
    sign = "-" if size < 0 else ""
    text = f"{value:.2f}".rstrip("0").rstrip(".")
    return f"{sign}{text} {units[order]}"


def file_sha256(path: Path) -> str:
    """SHA-256 of a file, streamed in 8 KiB chunks."""
    digest = hashlib.sha256()
    with open(path, "rb") as f:
        while chunk := f.read(8192):
            digest.update(chunk)
    return digest.hexdigest()
