"""
Prefect tasks for the antisplit pipeline.

Each task wraps one service operation. Services are rebuilt inside the task
from serializable inputs (configuration sections and the toolchain location).
"""

from __future__ import annotations

from pathlib import Path

from prefect import task
from prefect.cache_policies import NO_CACHE
from prefect.logging import get_run_logger

from ..core.config import Config
from ..models.apk import MemberSet
from ..models.merge import SigningOutcome
from ..services.classifier import MemberClassifier
from ..services.container import ContainerContents, ContainerService
from ..services.merge import MergeOutcome, MergePlanner
from ..services.repackage import ArchiveRepackager
from ..services.signing import SigningAdapter
from ..services.validation import ConsistencyValidator
from ..toolchain.aapt import AaptToolchain
from ..toolchain.location import ToolchainLocation
from ..toolchain.runner import ToolRunner


def build_toolchain(location: ToolchainLocation, config: Config) -> AaptToolchain:
    """Toolchain client for a resolved location."""
    return AaptToolchain(location, ToolRunner.from_config(config.tools))


@task(name="open_container", description="Extract the container and discover members", cache_policy=NO_CACHE)
async def open_container(container_path: Path, destination: Path) -> ContainerContents:
    logger = get_run_logger()
    logger.info(f"Opening container: {container_path}")
    contents = await ContainerService().open(container_path, destination)
    logger.info(f"Found {len(contents.member_paths)} member APKs")
    return contents


@task(name="classify_members", description="Classify members and elect the base", cache_policy=NO_CACHE)
async def classify_members(
    member_paths: list[Path],
    location: ToolchainLocation,
    config: Config,
) -> MemberSet:
    """Classify every member and assemble the canonical member set.

    Args:
        member_paths: Member APKs discovered in the container
        location: Resolved toolchain location
        config: Pipeline configuration

    Returns:
        MemberSet with a single elected base
    """
    logger = get_run_logger()
    classifier = MemberClassifier(build_toolchain(location, config))
    classified = await classifier.classify_all(
        member_paths,
        parallel=config.merge.parallel_classification,
        max_workers=config.merge.max_workers,
    )
    members = classifier.assemble(classified)
    logger.info(f"Classified {len(members)} members")
    return members


@task(name="validate_members", description="Check the member set describes one application", cache_policy=NO_CACHE)
def validate_members(members: MemberSet) -> None:
    ConsistencyValidator().validate(members)
    get_run_logger().info("Member set is consistent")


@task(name="extract_members", description="Unpack every member APK", cache_policy=NO_CACHE)
async def extract_members(members: MemberSet, extracted_dir: Path) -> dict[Path, Path]:
    service = ContainerService()
    roots: dict[Path, Path] = {}
    for index, member in enumerate(members.members):
        roots[member.source_path] = await service.extract_member(
            member.source_path, extracted_dir / f"member_{index}"
        )
    get_run_logger().info(f"Extracted {len(roots)} members")
    return roots


@task(name="merge_members", description="Plan and materialize the merged tree", cache_policy=NO_CACHE)
def merge_members(members: MemberSet, extracted_roots: dict[Path, Path], destination: Path) -> MergeOutcome:
    logger = get_run_logger()
    outcome = MergePlanner().merge(members, extracted_roots, destination)
    logger.info(
        f"Merged {len(outcome.plan.outputs)} files "
        f"({len(outcome.plan.conflicts)} conflicts, {len(outcome.plan.renumbered)} renumbered)"
    )
    return outcome


@task(name="repackage_merged", description="Write the merged tree to an APK", cache_policy=NO_CACHE)
def repackage_merged(merge_root: Path, destination: Path, config: Config) -> Path:
    return ArchiveRepackager(config.merge).repackage(merge_root, destination)


@task(name="sign_artifact", description="Sign the artifact with apksigner", cache_policy=NO_CACHE)
async def sign_artifact(
    unsigned: Path,
    output: Path,
    keystore: Path | None,
    location: ToolchainLocation,
    config: Config,
) -> SigningOutcome:
    logger = get_run_logger()
    adapter = SigningAdapter(
        location,
        config.signing,
        ToolRunner.from_config(config.tools),
    )
    outcome = await adapter.sign(unsigned, output, keystore)
    logger.info(f"Signing outcome: {outcome.kind}")
    return outcome


@task(name="verify_output", description="Structural check of the merged artifact", cache_policy=NO_CACHE)
def verify_output(artifact: Path, config: Config) -> list[str]:
    problems = ArchiveRepackager(config.merge).verify_artifact(artifact)
    logger = get_run_logger()
    for problem in problems:
        logger.warning(f"Merged artifact problem: {problem}")
    return problems
