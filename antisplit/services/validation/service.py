"""
Consistency Validator Service.

Gate between classification and merging: the member set must describe exactly
one application before any merge work starts.
"""

from __future__ import annotations

import zipfile

from ...core.exceptions import (
    AmbiguousBaseError,
    IdentityMismatchError,
    InvalidMemberError,
    MissingBaseError,
    VersionMismatchError,
)
from ...core.logging import get_logger
from ...models.apk import MemberSet, PackageMember
from ..container.service import list_archive_entries, missing_required_entries

logger = get_logger(__name__)


class ConsistencyValidator:
    """Checks base presence, package identity, version identity and structure."""

    def validate(self, members: MemberSet) -> None:
        """Validate a member set.

        Args:
            members: Classified and assembled members.

        Raises:
            MissingBaseError: No member has the base role.
            AmbiguousBaseError: More than one member has the base role.
            IdentityMismatchError: A member declares another package name.
            VersionMismatchError: A member declares another version code.
            InvalidMemberError: The base lacks a manifest or code.
        """
        bases = members.bases
        if not bases:
            raise MissingBaseError(
                message="No base APK found among the container members",
                context={"members": [m.file_name for m in members.members]},
            )
        if len(bases) > 1:
            raise AmbiguousBaseError(
                message="More than one member is classified as the base APK",
                candidates=[m.file_name for m in bases],
            )

        base = bases[0]
        for member in members.splits:
            self._check_identity(base, member)

        self._check_structure(base)

        logger.info(
            "Member set is consistent",
            package=base.package_name or None,
            version=base.version_name or None,
            members=len(members),
        )

    def _check_identity(self, base: PackageMember, member: PackageMember) -> None:
        if member.package_name and member.package_name != base.package_name:
            raise IdentityMismatchError(
                message="Package name mismatch",
                member_path=str(member.source_path),
                expected=base.package_name,
                actual=member.package_name,
            )
        if member.version_code and member.version_code != base.version_code:
            raise VersionMismatchError(
                message="Version code mismatch",
                member_path=str(member.source_path),
                expected=base.version_code,
                actual=member.version_code,
            )

    def _check_structure(self, base: PackageMember) -> None:
        try:
            missing = missing_required_entries(list_archive_entries(base.source_path))
        except (zipfile.BadZipFile, OSError) as e:
            raise InvalidMemberError(
                message=f"Base APK cannot be read: {e}",
                member_path=str(base.source_path),
                cause=e,
            ) from e
        if missing:
            raise InvalidMemberError(
                message=f"Base APK is missing required entries: {', '.join(missing)}",
                member_path=str(base.source_path),
                missing=missing,
            )
