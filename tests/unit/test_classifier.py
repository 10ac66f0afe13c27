"""Unit tests for the member classifier."""

import pytest

from conftest import AAPT_XMLTREE, FakeToolchain, badging, build_apk

from antisplit.models.apk import (
    ClassificationConfidence,
    MemberRole,
    MetadataSource,
    RoleRule,
)
from antisplit.services.classifier import MemberClassifier, decide_role, metadata_from_filename
from antisplit.toolchain.parsers import BadgingInfo


class TestRoleDecisionTable:
    """Tests for the ordered role decision table."""

    @pytest.mark.parametrize(
        "stem,info,expected",
        [
            ("base", BadgingInfo(split="config.xxhdpi"), (MemberRole.CONFIG, "config.xxhdpi", RoleRule.DECLARED_SPLIT)),
            ("anything", BadgingInfo(split="feature_maps"), (MemberRole.SPLIT, "feature_maps", RoleRule.DECLARED_SPLIT)),
            ("base", BadgingInfo(package_name="com.example.game"), (MemberRole.BASE, "", RoleRule.BASE_NAME)),
            ("com.example.game", BadgingInfo(package_name="com.example.game"), (MemberRole.BASE, "", RoleRule.PACKAGE_NAME)),
            ("split.feature", BadgingInfo(), (MemberRole.SPLIT, "split.feature", RoleRule.SPLIT_PREFIX)),
            ("split_config.en", BadgingInfo(), (MemberRole.SPLIT, "split_config.en", RoleRule.SPLIT_PREFIX)),
            ("config.arm64_v8a", BadgingInfo(), (MemberRole.CONFIG, "config.arm64_v8a", RoleRule.CONFIG_PREFIX)),
            ("game-release", BadgingInfo(), (MemberRole.BASE, "", RoleRule.DEFAULT)),
        ],
    )
    def test_decision_rows(self, stem, info, expected):
        assert decide_role(stem, info) == expected

    def test_empty_package_name_does_not_match_stem(self):
        assert decide_role("", BadgingInfo())[2] == RoleRule.DEFAULT


class TestFilenameFallback:
    """Tests for identity inference from file names."""

    @pytest.mark.parametrize(
        "stem,package,version",
        [
            ("com.example.game.1.2.3", "com.example.game", "1.2.3"),
            ("com.example.game_v42", "com.example.game", "42"),
            ("com.example.game-2.0", "com.example.game", "2.0"),
        ],
    )
    def test_patterns(self, stem, package, version):
        info = metadata_from_filename(stem)
        assert info.package_name == package
        assert info.version_name == version

    def test_no_match(self):
        info = metadata_from_filename("base")
        assert info.package_name == ""
        assert info.version_code == 0


@pytest.mark.asyncio
class TestMemberClassifier:
    """Tests for member classification."""

    async def test_classify_from_badging(self, temp_dir):
        path = build_apk(temp_dir / "split.config.arm64_v8a.apk", {"lib/arm64-v8a/libgame.so": b"so"}, code=False)
        toolchain = FakeToolchain({path.name: badging("com.example.game", 42, split="config.arm64_v8a")})

        member = await MemberClassifier(toolchain).classify(path)

        assert member.package_name == "com.example.game"
        assert member.version_code == 42
        assert member.role == MemberRole.CONFIG
        assert member.split_name == "config.arm64_v8a"
        assert member.rule == RoleRule.DECLARED_SPLIT
        assert member.confidence == ClassificationConfidence.CONFIDENT
        assert member.metadata_source == MetadataSource.TOOLCHAIN
        assert member.architectures == ("arm64-v8a",)
        assert member.file_size == path.stat().st_size

    async def test_permissions_and_sdk(self, temp_dir):
        path = build_apk(temp_dir / "base.apk")
        toolchain = FakeToolchain({"base.apk": badging("com.example.game", permissions=("android.permission.INTERNET",))})
        member = await MemberClassifier(toolchain).classify(path)
        assert member.is_base
        assert member.rule == RoleRule.BASE_NAME
        assert member.permissions == frozenset({"android.permission.INTERNET"})
        assert member.min_sdk_version == "21"
        assert member.target_sdk_version == "34"

    async def test_fallback_without_toolchain(self, temp_dir):
        """Missing tools degrade to the filename heuristic instead of raising."""
        path = build_apk(temp_dir / "com.example.game-1.0.apk")
        member = await MemberClassifier(FakeToolchain(available=False)).classify(path)
        assert member.metadata_source == MetadataSource.FILENAME
        assert member.package_name == "com.example.game"
        assert member.version_name == "1.0"
        assert member.version_code == 0
        assert member.role == MemberRole.BASE
        assert member.rule == RoleRule.DEFAULT
        assert member.confidence == ClassificationConfidence.HEURISTIC

    async def test_fallback_on_tool_failure(self, temp_dir):
        path = build_apk(temp_dir / "config.xxhdpi.apk", code=False)
        member = await MemberClassifier(FakeToolchain()).classify(path)
        assert member.metadata_source == MetadataSource.FILENAME
        assert member.role == MemberRole.CONFIG
        assert member.rule == RoleRule.CONFIG_PREFIX

    async def test_fallback_on_unparseable_badging(self, temp_dir):
        path = build_apk(temp_dir / "split_feature.apk", code=False)
        member = await MemberClassifier(FakeToolchain({path.name: "garbage\n"})).classify(path)
        assert member.metadata_source == MetadataSource.FILENAME
        assert member.role == MemberRole.SPLIT

    async def test_architectures_unreadable_archive(self, temp_dir):
        path = temp_dir / "base.apk"
        path.write_bytes(b"not a zip")
        member = await MemberClassifier(FakeToolchain({"base.apk": badging("com.example.game")})).classify(path)
        assert member.architectures == ()

    @pytest.mark.parametrize("parallel", [True, False])
    async def test_classify_all_preserves_input_order(self, temp_dir, parallel):
        names = ["split_c.apk", "base.apk", "split_a.apk", "split_b.apk"]
        paths = [build_apk(temp_dir / name) for name in names]
        classifier = MemberClassifier(FakeToolchain({n: badging("com.example.game") for n in names}))

        members = await classifier.classify_all(paths, parallel=parallel, max_workers=2)

        assert [m.file_name for m in members] == names

    async def test_inspect_manifest(self, temp_dir):
        path = build_apk(temp_dir / "base.apk")
        manifest = await MemberClassifier(FakeToolchain(xmltree=AAPT_XMLTREE)).inspect_manifest(path)
        assert manifest.package_name == "com.example.game"
        assert manifest.activities == ["com.example.game.MainActivity"]


@pytest.mark.asyncio
class TestBaseElection:
    """Tests for assembling a member set with a single base."""

    async def test_heuristic_candidate_yields_to_confident_base(self, temp_dir):
        base = build_apk(temp_dir / "base.apk")
        extra = build_apk(temp_dir / "game-assets.apk", {"assets/big.bin": b"x" * 4096})
        classifier = MemberClassifier(FakeToolchain({
            "base.apk": badging("com.example.game"),
            "game-assets.apk": badging("com.example.game"),
        }))

        members = classifier.assemble(await classifier.classify_all([extra, base]))

        assert len(members.bases) == 1
        assert members.base.file_name == "base.apk"
        demoted = members.splits[0]
        assert demoted.role == MemberRole.SPLIT
        assert demoted.split_name == "game-assets"

    async def test_all_heuristic_largest_stays_base(self, temp_dir):
        small = build_apk(temp_dir / "one.apk")
        large = build_apk(temp_dir / "two.apk", {"assets/big.bin": b"x" * 8192})
        classifier = MemberClassifier(FakeToolchain(available=False))

        members = classifier.assemble(await classifier.classify_all([small, large]))

        assert members.base.file_name == "two.apk"
        assert [m.file_name for m in members.splits] == ["one.apk"]

    async def test_two_confident_bases_are_kept_for_validation(self, temp_dir):
        a = build_apk(temp_dir / "a" / "base.apk")
        b = build_apk(temp_dir / "b" / "base.apk")
        classifier = MemberClassifier(FakeToolchain({"base.apk": badging("com.example.game")}))

        members = classifier.assemble(await classifier.classify_all([a, b]))

        assert len(members.bases) == 2
