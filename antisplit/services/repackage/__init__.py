"""Archive repackaging."""

from .service import ArchiveRepackager

__all__ = ["ArchiveRepackager"]
