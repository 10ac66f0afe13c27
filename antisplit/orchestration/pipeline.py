"""
Main pipeline orchestration for antisplit.

Runs container reading, classification, validation, merging, repackaging,
signing and post-merge verification in sequence. Every invocation owns a
private workspace that is removed when the run ends, whatever the outcome.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path

import aiofiles

from ..core.config import Config, get_config
from ..core.exceptions import AntiSplitError, PipelineError
from ..core.logging import bind_context, clear_context, get_logger
from ..core.types import StageResult
from ..core.workspace import Workspace, file_sha256
from ..models.apk import MemberSet
from ..models.merge import ContainerReport, MergeResult, UnsignedFallback
from ..services.classifier import MemberClassifier
from ..services.container import ContainerContents, ContainerService
from ..services.merge import MergePlanner
from ..services.repackage import ArchiveRepackager
from ..services.signing import SigningAdapter
from ..services.validation import ConsistencyValidator
from ..toolchain.aapt import AaptToolchain
from ..toolchain.location import ToolchainLocation
from ..toolchain.runner import ToolRunner

logger = get_logger(__name__)


def default_output_path(container_path: Path) -> Path:
    """``<stem>_merged.apk`` next to the container."""
    return container_path.with_name(f"{container_path.stem}_merged.apk")


async def write_report(result: MergeResult, path: Path) -> None:
    """Write a JSON description of a merge run."""
    path.parent.mkdir(parents=True, exist_ok=True)
    async with aiofiles.open(path, "w", encoding="utf-8") as f:
        await f.write(result.model_dump_json(indent=2))
    logger.info("Merge report written", path=str(path))


class StageTracker:
    """Records a StageResult per stage and normalizes stage failures."""

    def __init__(self, run_id: str) -> None:
        self.run_id = run_id
        self.stages: list[StageResult] = []

    @contextmanager
    def stage(self, name: str) -> Iterator[StageResult]:
        result = StageResult(stage_name=name)
        self.stages.append(result)
        logger.info("Stage started", stage=name)
        try:
            yield result
        except AntiSplitError as e:
            result.mark_failed(str(e))
            logger.error("Stage failed", stage=name, error=str(e))
            raise
        except Exception as e:
            result.mark_failed(str(e))
            logger.error("Stage failed", stage=name, error=str(e))
            raise PipelineError(
                message=str(e),
                stage=name,
                pipeline_run_id=self.run_id,
                cause=e,
            ) from e
        if result.completed_at is None:
            result.mark_completed()
        logger.info("Stage completed", stage=name, duration=f"{result.duration_seconds:.2f}s")


class MergePipeline:
    """High-level pipeline interface for programmatic use."""

    def __init__(
        self,
        config: Config | None = None,
        toolchain: AaptToolchain | None = None,
        android_sdk: Path | None = None,
    ) -> None:
        """Initialize the pipeline.

        Args:
            config: Configuration; the cached environment configuration if omitted.
            toolchain: Pre-built toolchain client. Discovered once if omitted.
            android_sdk: Explicit SDK root used for discovery.
        """
        self.config = config or get_config()
        runner = ToolRunner.from_config(self.config.tools)
        if toolchain is None:
            location = ToolchainLocation.discover(sdk_root=android_sdk, config=self.config.tools)
            toolchain = AaptToolchain(location, runner)
        self.toolchain = toolchain

        self.container_service = ContainerService()
        self.classifier = MemberClassifier(toolchain)
        self.validator = ConsistencyValidator()
        self.planner = MergePlanner()
        self.repackager = ArchiveRepackager(self.config.merge)
        self.signer = SigningAdapter(toolchain.location, self.config.signing, runner)

        if not toolchain.available:
            logger.warning("aapt/aapt2 not found, metadata will be inferred from file names")

    def _workspace(self) -> Workspace:
        return Workspace(prefix=self.config.workspace.prefix, parent=self.config.workspace.temp_root)

    async def _classify_and_validate(
        self,
        container_path: Path,
        workspace: Workspace,
        tracker: StageTracker,
    ) -> tuple[ContainerContents, MemberSet]:
        with tracker.stage("container"):
            contents = await self.container_service.open(container_path, workspace.container_dir)

        with tracker.stage("classify") as stage:
            classified = await self.classifier.classify_all(
                contents.member_paths,
                parallel=self.config.merge.parallel_classification,
                max_workers=self.config.merge.max_workers,
            )
            members = self.classifier.assemble(classified)
            stage.mark_completed(artifacts=[m.source_path for m in members.members])

        with tracker.stage("validate"):
            self.validator.validate(members)

        return contents, members

    async def inspect(self, container_path: Path, include_manifest: bool = False) -> ContainerReport:
        """Classify and validate a container without merging it (info mode)."""
        tracker = StageTracker(str(uuid.uuid4())[:8])
        with self._workspace() as workspace:
            contents, members = await self._classify_and_validate(container_path, workspace, tracker)
            warnings = list(contents.warnings)

            base_manifest = None
            if include_manifest and members.base is not None:
                try:
                    base_manifest = await self.classifier.inspect_manifest(members.base.source_path)
                except AntiSplitError as e:
                    warnings.append(f"Could not decode base manifest: {e.message}")
                    logger.warning("Manifest inspection failed", error=e.message)

        return ContainerReport(
            container_path=container_path,
            members=members,
            xapk_manifest=contents.manifest,
            base_manifest=base_manifest,
            warnings=warnings,
        )

    async def extract(self, container_path: Path, output_dir: Path) -> list[Path]:
        """Copy the validated member APKs into ``output_dir`` (extract mode)."""
        tracker = StageTracker(str(uuid.uuid4())[:8])
        with self._workspace() as workspace:
            _, members = await self._classify_and_validate(container_path, workspace, tracker)
            with tracker.stage("extract"):
                return self.container_service.copy_members(
                    [m.source_path for m in members.members], output_dir
                )

    async def run(
        self,
        container_path: Path,
        output_path: Path | None = None,
        keystore: Path | None = None,
        report_path: Path | None = None,
    ) -> MergeResult:
        """Run the complete merge.

        Args:
            container_path: Input .xapk/.zip container.
            output_path: Merged APK path; ``<stem>_merged.apk`` by default.
            keystore: Keystore for apksigner; the artifact stays unsigned without one.
            report_path: Optional JSON report destination.

        Returns:
            MergeResult describing the run.
        """
        run_id = str(uuid.uuid4())[:8]
        output_path = output_path or default_output_path(container_path)
        started_at = datetime.utcnow()
        tracker = StageTracker(run_id)

        bind_context(run_id=run_id)
        logger.info("Starting merge", container=str(container_path), output=str(output_path))
        try:
            with self._workspace() as workspace:
                contents, members = await self._classify_and_validate(container_path, workspace, tracker)
                warnings = list(contents.warnings)

                with tracker.stage("extract"):
                    extracted_roots: dict[Path, Path] = {}
                    for index, member in enumerate(members.members):
                        extracted_roots[member.source_path] = await self.container_service.extract_member(
                            member.source_path, workspace.member_dir(index)
                        )

                with tracker.stage("merge"):
                    outcome = self.planner.merge(members, extracted_roots, workspace.merged_dir)

                with tracker.stage("repackage") as stage:
                    unsigned = self.repackager.repackage(outcome.merge_root, workspace.root / "unsigned.apk")
                    stage.mark_completed(output_hash=file_sha256(unsigned))

                with tracker.stage("sign") as stage:
                    signing = await self.signer.sign(unsigned, output_path, keystore)
                    if isinstance(signing, UnsignedFallback):
                        stage.warnings.append(signing.reason)
                        warnings.append(f"Unsigned output: {signing.reason}")
                    stage.mark_completed(artifacts=[output_path])

                with tracker.stage("verify"):
                    warnings.extend(await self.verify(output_path))

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

            logger.info(
                "Merge completed",
                output=str(output_path),
                signed=result.signed,
                conflicts=len(result.conflicts),
            )
            return result
        finally:
            clear_context()

    async def verify(self, artifact: Path) -> list[str]:
        """Post-merge structural check and diagnostic re-classification.

        Problems are returned as warnings; nothing here fails the run.
        """
        problems = self.repackager.verify_artifact(artifact)
        for problem in problems:
            logger.warning("Merged artifact problem", problem=problem)
        if problems:
            return problems

        merged = await self.classifier.classify(artifact)
        logger.info(
            "Merged artifact summary",
            package=merged.package_name or None,
            version=merged.version_name or None,
            architectures=list(merged.architectures),
        )
        return []


async def run_pipeline(
    container_path: str | Path,
    output_path: str | Path | None = None,
    keystore: str | Path | None = None,
    report_path: str | Path | None = None,
    android_sdk: str | Path | None = None,
) -> MergeResult:
    """Convenience function to run the pipeline.

    Args:
        container_path: Input container.
        output_path: Merged APK path.
        keystore: Optional keystore for signing.
        report_path: Optional JSON report destination.
        android_sdk: Optional explicit SDK root.

    Returns:
        MergeResult describing the run.
    """
    pipeline = MergePipeline(android_sdk=Path(android_sdk) if android_sdk else None)
    return await pipeline.run(
        container_path=Path(container_path),
        output_path=Path(output_path) if output_path else None,
        keystore=Path(keystore) if keystore else None,
        report_path=Path(report_path) if report_path else None,
    )
