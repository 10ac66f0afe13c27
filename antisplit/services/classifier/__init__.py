"""Member classification service."""

from .service import MemberClassifier, decide_role, metadata_from_filename

__all__ = ["MemberClassifier", "decide_role", "metadata_from_filename"]
