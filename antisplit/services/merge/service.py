"""
Content Merge Planner.

Combines the extracted trees of all members into a single tree. The base
member is copied unconditionally; split members contribute assets, resources,
native libraries and loose top-level files on a first-writer-wins basis.
Class-index files are renumbered into one contiguous sequence.
"""

from __future__ import annotations

import re
import shutil
from pathlib import Path

from pydantic import BaseModel, Field

from ...core.exceptions import MergeError, NoBaseMemberError
from ...core.logging import get_logger
from ...models.apk import MemberSet, PackageMember
from ...models.merge import MergeAction, MergeDecision, MergePlan

logger = get_logger(__name__)

MERGED_DIRECTORIES = ("assets", "res", "lib")
MANIFEST_ENTRY = "AndroidManifest.xml"
CLASS_INDEX_PATTERN = re.compile(r"^classes(\d*)\.dex$")


def class_index(name: str) -> int | None:
    """Numeric index of a class-index file name, ``classes.dex`` being 1."""
    match = CLASS_INDEX_PATTERN.match(name)
    if not match:
        return None
    return int(match.group(1)) if match.group(1) else 1


def class_index_name(index: int) -> str:
    return "classes.dex" if index == 1 else f"classes{index}.dex"


def _relative_files(root: Path) -> list[tuple[str, Path]]:
    files = [(p.relative_to(root).as_posix(), p) for p in root.rglob("*") if p.is_file()]
    return sorted(files, key=lambda item: item[0])


def _parents(target: str) -> list[str]:
    """``a/b/c.txt`` -> ``["a", "a/b"]``."""
    parts = target.split("/")
    return ["/".join(parts[:i]) for i in range(1, len(parts))]


class MergeOutcome(BaseModel):
    """Materialized merge root and the plan that produced it."""

    merge_root: Path
    plan: MergePlan = Field(default_factory=MergePlan)


class MergePlanner:
    """Plans and materializes the merged content tree."""

    def plan(self, members: MemberSet, extracted_roots: dict[Path, Path]) -> MergePlan:
        """Build the merge plan.

        Args:
            members: Validated member set in canonical order.
            extracted_roots: Member source path to its extracted directory.

        Raises:
            NoBaseMemberError: If there is no base member or it was not extracted.
        """
        base = members.base
        if base is None or base.source_path not in extracted_roots:
            raise NoBaseMemberError(message="Merge requires an extracted base member")

        decisions: list[MergeDecision] = []
        claimed: dict[str, MergeDecision] = {}
        directories: dict[str, MergeDecision] = {}

        def claim(decision: MergeDecision) -> None:
            decisions.append(decision)
            claimed[decision.target] = decision
            for prefix in _parents(decision.target):
                directories.setdefault(prefix, decision)

        def owner(target: str) -> MergeDecision | None:
            # A file and a directory of the same name cannot coexist in the archive tree
            found = claimed.get(target) or directories.get(target)
            if found is not None:
                return found
            for prefix in _parents(target):
                if prefix in claimed:
                    return claimed[prefix]
            return None

        # Base tree, including its manifest and class-index files
        for rel, path in _relative_files(extracted_roots[base.source_path]):
            claim(MergeDecision(
                target=rel,
                action=MergeAction.COPY,
                member=base.file_name,
                source=path,
                reason="base member",
            ))

        class_files: list[tuple[PackageMember, int, Path]] = []
        for member in members.splits:
            root = extracted_roots.get(member.source_path)
            if root is None:
                logger.warning("Member was not extracted, skipping", member=member.file_name)
                continue
            for rel, path in _relative_files(root):
                parts = rel.split("/")
                if len(parts) == 1:
                    if rel == MANIFEST_ENTRY:
                        continue
                    index = class_index(rel)
                    if index is not None:
                        class_files.append((member, index, path))
                        continue
                elif parts[0] not in MERGED_DIRECTORIES:
                    logger.debug("Not merging entry", member=member.file_name, entry=rel)
                    continue

                winner = owner(rel)
                if winner is not None:
                    logger.warning(
                        "Merge conflict",
                        target=rel,
                        kept=winner.member,
                        discarded=member.file_name,
                    )
                    decisions.append(MergeDecision(
                        target=rel,
                        action=MergeAction.SKIP,
                        member=member.file_name,
                        source=path,
                        reason=f"already provided by {winner.member}",
                    ))
                    continue
                claim(MergeDecision(
                    target=rel,
                    action=MergeAction.COPY,
                    member=member.file_name,
                    source=path,
                ))

        for decision in self._renumber(members, class_files, set(claimed) | set(directories)):
            claim(decision)

        plan = MergePlan(decisions=decisions)
        logger.info(
            "Merge plan ready",
            files=len(plan.outputs),
            conflicts=len(plan.conflicts),
            renumbered=len(plan.renumbered),
        )
        return plan

    def _renumber(
        self,
        members: MemberSet,
        class_files: list[tuple[PackageMember, int, Path]],
        taken: set[str],
    ) -> list[MergeDecision]:
        order = {m.source_path: position for position, m in enumerate(members.members)}
        class_files = sorted(class_files, key=lambda item: (order[item[0].source_path], item[1]))

        decisions: list[MergeDecision] = []
        counter = 1
        for member, _, path in class_files:
            while class_index_name(counter) in taken:
                counter += 1
            target = class_index_name(counter)
            taken.add(target)
            counter += 1
            decisions.append(MergeDecision(
                target=target,
                action=MergeAction.RENUMBER if target != path.name else MergeAction.COPY,
                member=member.file_name,
                source=path,
                reason=f"class index {path.name} -> {target}",
            ))
            if target != path.name:
                logger.info("Renumbered class index", member=member.file_name, original=path.name, target=target)
        return decisions

    def materialize(self, plan: MergePlan, destination: Path) -> Path:
        """Copy every non-skipped decision into ``destination``.

        Raises:
            MergeError: If the destination is not empty or a copy fails.
        """
        if destination.exists() and any(destination.iterdir()):
            raise MergeError(
                message="Merge destination is not empty",
                destination=str(destination),
            )
        destination.mkdir(parents=True, exist_ok=True)

        for target, decision in plan.outputs.items():
            output = destination / target
            try:
                output.parent.mkdir(parents=True, exist_ok=True)
                shutil.copyfile(decision.source, output)
            except OSError as e:
                raise MergeError(
                    message=f"Failed to copy {decision.source} to {target}",
                    destination=str(destination),
                    cause=e,
                ) from e
        return destination

    def merge(
        self,
        members: MemberSet,
        extracted_roots: dict[Path, Path],
        destination: Path,
    ) -> MergeOutcome:
        """Plan and materialize in one step."""
        plan = self.plan(members, extracted_roots)
        merge_root = self.materialize(plan, destination)
        logger.info("Merged member contents", destination=str(merge_root))
        return MergeOutcome(merge_root=merge_root, plan=plan)
