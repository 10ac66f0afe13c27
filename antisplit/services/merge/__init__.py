"""Content merge planning and materialization."""

from .service import MergeOutcome, MergePlanner, class_index, class_index_name

__all__ = ["MergeOutcome", "MergePlanner", "class_index", "class_index_name"]
