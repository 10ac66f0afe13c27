"""
Prefect flow running the merge pipeline as orchestrated tasks.

Same services, ordering and stage records as MergePipeline; Prefect also
records the task runs.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from pathlib import Path

from prefect import flow, get_run_logger

from ..core.config import Config, get_config
from ..core.logging import bind_context, clear_context
from ..core.workspace import Workspace, file_sha256
from ..models.merge import MergeResult, UnsignedFallback
from ..toolchain.location import ToolchainLocation
from .pipeline import StageTracker, default_output_path, write_report
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


@flow(
    name="antisplit",
    description="Merge a split APK container into a single APK",
    version="1.0.0",
    retries=0,
)
async def antisplit_flow(
    container_path: Path,
    output_path: Path | None = None,
    keystore: Path | None = None,
    report_path: Path | None = None,
    android_sdk: Path | None = None,
    config: Config | None = None,
) -> MergeResult:
    """Execute the complete merge pipeline.

    Args:
        container_path: Input .xapk/.zip container
        output_path: Merged APK path (``<stem>_merged.apk`` by default)
        keystore: Optional keystore for signing
        report_path: Optional JSON report destination
        android_sdk: Optional explicit SDK root
        config: Configuration; the cached environment configuration if omitted

    Returns:
        MergeResult describing the run
    """
    run_id = str(uuid.uuid4())[:8]
    logger = get_run_logger()
    config = config or get_config()
    location = ToolchainLocation.discover(sdk_root=android_sdk, config=config.tools)
    output_path = output_path or default_output_path(container_path)
    started_at = datetime.utcnow()
    tracker = StageTracker(run_id)

    bind_context(run_id=run_id)
    logger.info(f"Starting antisplit flow. Run ID: {run_id}")
    try:
        with Workspace(prefix=config.workspace.prefix, parent=config.workspace.temp_root) as workspace:
            logger.info("Stage 1/6: Reading container")
            with tracker.stage("container"):
                contents = await open_container(container_path, workspace.container_dir)

            logger.info("Stage 2/6: Classifying members")
            with tracker.stage("classify"):
                members = await classify_members(contents.member_paths, location, config)
            with tracker.stage("validate"):
                validate_members(members)

            logger.info("Stage 3/6: Extracting members")
            with tracker.stage("extract"):
                roots = await extract_members(members, workspace.extracted_dir)

            logger.info("Stage 4/6: Merging contents")
            with tracker.stage("merge"):
                outcome = merge_members(members, roots, workspace.merged_dir)

            logger.info("Stage 5/6: Repackaging")
            with tracker.stage("repackage") as stage:
                unsigned = repackage_merged(outcome.merge_root, workspace.root / "unsigned.apk", config)
                stage.mark_completed(output_hash=file_sha256(unsigned))

            logger.info("Stage 6/6: Signing")
            warnings = list(contents.warnings)
            with tracker.stage("sign") as stage:
                signing = await sign_artifact(unsigned, output_path, keystore, location, config)
                if isinstance(signing, UnsignedFallback):
                    stage.warnings.append(signing.reason)
                    warnings.append(f"Unsigned output: {signing.reason}")
                stage.mark_completed(artifacts=[output_path])

            with tracker.stage("verify"):
                warnings.extend(verify_output(output_path, config))

        result = MergeResult(
            run_id=run_id,
            container_path=container_path,
            output_path=output_path,
            started_at=started_at,
            completed_at=datetime.utcnow(),
            members=members,
            xapk_manifest=contents.manifest,
            conflicts=outcome.plan.conflicts,
            renumbered=outcome.plan.renumbered,
            signing=signing,
            stages=tracker.stages,
            original_size=members.total_size,
            merged_size=output_path.stat().st_size,
            warnings=warnings,
        )
        if report_path is not None:
            await write_report(result, report_path)

        duration = (result.completed_at - started_at).total_seconds()
        logger.info(f"Flow completed in {duration:.1f}s. Output: {output_path}")
        return result
    finally:
        clear_context()
