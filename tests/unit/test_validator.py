"""Unit tests for the consistency validator."""

from pathlib import Path

import pytest

from conftest import build_apk

from antisplit.core.exceptions import (
    AmbiguousBaseError,
    ConsistencyError,
    IdentityMismatchError,
    InvalidMemberError,
    MissingBaseError,
    VersionMismatchError,
)
from antisplit.models.apk import MemberRole, MemberSet, PackageMember
from antisplit.services.validation import ConsistencyValidator


@pytest.fixture
def base_apk(temp_dir):
    return build_apk(temp_dir / "base.apk")


def make_member(
    path: Path,
    role: MemberRole = MemberRole.SPLIT,
    package: str = "com.example.game",
    version_code: int = 42,
) -> PackageMember:
    return PackageMember(
        source_path=path,
        package_name=package,
        version_code=version_code,
        version_name="1.0",
        role=role,
        split_name="" if role == MemberRole.BASE else path.stem,
    )


class TestConsistencyValidator:
    """Tests for the validation gate."""

    def test_consistent_set(self, temp_dir, base_apk):
        split = build_apk(temp_dir / "config.xxhdpi.apk", code=False)
        members = MemberSet.from_members([
            make_member(base_apk, MemberRole.BASE),
            make_member(split, MemberRole.CONFIG),
        ])
        ConsistencyValidator().validate(members)

    def test_missing_base(self, temp_dir):
        members = MemberSet.from_members([make_member(temp_dir / "split_a.apk")])
        with pytest.raises(MissingBaseError):
            ConsistencyValidator().validate(members)

    def test_ambiguous_base(self, temp_dir, base_apk):
        other = build_apk(temp_dir / "other" / "base.apk")
        members = MemberSet.from_members([
            make_member(base_apk, MemberRole.BASE),
            make_member(other, MemberRole.BASE),
        ])
        with pytest.raises(AmbiguousBaseError) as exc_info:
            ConsistencyValidator().validate(members)
        assert exc_info.value.candidates == ["base.apk", "base.apk"]

    def test_identity_mismatch(self, temp_dir, base_apk):
        members = MemberSet.from_members([
            make_member(base_apk, MemberRole.BASE),
            make_member(temp_dir / "split_a.apk", package="com.example.other"),
        ])
        with pytest.raises(IdentityMismatchError) as exc_info:
            ConsistencyValidator().validate(members)
        assert exc_info.value.expected == "com.example.game"
        assert exc_info.value.actual == "com.example.other"
        assert "split_a.apk" in str(exc_info.value)

    def test_version_mismatch(self, temp_dir, base_apk):
        members = MemberSet.from_members([
            make_member(base_apk, MemberRole.BASE, version_code=42),
            make_member(temp_dir / "split_a.apk", version_code=43),
        ])
        with pytest.raises(VersionMismatchError) as exc_info:
            ConsistencyValidator().validate(members)
        assert (exc_info.value.expected, exc_info.value.actual) == (42, 43)

    @pytest.mark.parametrize(
        "package,version_code",
        [("", 42), ("com.example.game", 0), ("", 0)],
    )
    def test_unknown_identity_fields_are_not_compared(self, temp_dir, base_apk, package, version_code):
        """Empty package names and zero version codes come from the filename fallback."""
        members = MemberSet.from_members([
            make_member(base_apk, MemberRole.BASE),
            make_member(temp_dir / "split_a.apk", package=package, version_code=version_code),
        ])
        ConsistencyValidator().validate(members)

    def test_base_without_code(self, temp_dir):
        base = build_apk(temp_dir / "base.apk", code=False)
        members = MemberSet.from_members([make_member(base, MemberRole.BASE)])
        with pytest.raises(InvalidMemberError) as exc_info:
            ConsistencyValidator().validate(members)
        assert exc_info.value.missing == ["classes*.dex"]

    def test_unreadable_base(self, temp_dir):
        base = temp_dir / "base.apk"
        base.write_bytes(b"not a zip")
        with pytest.raises(InvalidMemberError):
            ConsistencyValidator().validate(MemberSet.from_members([make_member(base, MemberRole.BASE)]))

    def test_errors_share_a_root(self, temp_dir):
        with pytest.raises(ConsistencyError):
            ConsistencyValidator().validate(MemberSet())
