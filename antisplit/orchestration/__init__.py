"""Orchestration module for antisplit."""

from .flow import antisplit_flow
from .pipeline import MergePipeline, StageTracker, default_output_path, run_pipeline, write_report
from .tasks import (
    classify_members,
    extract_members,
    merge_members,
    open_container,
    repackage_merged,
    sign_artifact,
    validate_members,
    verify_output,
)

__all__ = [
    "antisplit_flow",
    "MergePipeline",
    "StageTracker",
    "default_output_path",
    "run_pipeline",
    "write_report",
    "classify_members",
    "extract_members",
    "merge_members",
    "open_container",
    "repackage_merged",
    "sign_artifact",
    "validate_members",
    "verify_output",
]
