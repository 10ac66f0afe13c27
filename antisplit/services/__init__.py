"""antisplit pipeline services."""

from .classifier import MemberClassifier
from .container import ContainerContents, ContainerService
from .merge import MergeOutcome, MergePlanner
from .repackage import ArchiveRepackager
from .signing import SigningAdapter
from .validation import ConsistencyValidator

__all__ = [
    "MemberClassifier",
    "ContainerContents",
    "ContainerService",
    "MergeOutcome",
    "MergePlanner",
    "ArchiveRepackager",
    "SigningAdapter",
    "ConsistencyValidator",
]
