"""Unit tests for the content merge planner."""

from pathlib import Path

import pytest

from antisplit.core.exceptions import MergeError, NoBaseMemberError
from antisplit.models.apk import MemberRole, MemberSet, PackageMember
from antisplit.models.merge import MergeAction
from antisplit.services.merge import MergePlanner, class_index, class_index_name


def write_tree(root: Path, files: dict[str, bytes]) -> Path:
    for rel, data in files.items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
    return root


def make_member(name: str, role: MemberRole = MemberRole.SPLIT, split: str = "") -> PackageMember:
    return PackageMember(
        source_path=Path("/container") / name,
        package_name="com.example.game",
        version_code=42,
        role=role,
        split_name=split or ("" if role == MemberRole.BASE else Path(name).stem),
    )


@pytest.fixture
def extracted(temp_dir):
    """Build extracted member trees and return (members, roots)."""

    def _build(trees: dict[str, tuple[MemberRole, str, dict[str, bytes]]]):
        members = []
        roots = {}
        for name, (role, split, files) in trees.items():
            m = make_member(name, role, split)
            members.append(m)
            roots[m.source_path] = write_tree(temp_dir / "extracted" / name, files)
        return MemberSet.from_members(members), roots

    return _build


class TestClassIndexNames:
    def test_index_parsing(self):
        assert class_index("classes.dex") == 1
        assert class_index("classes2.dex") == 2
        assert class_index("classes12.dex") == 12
        assert class_index("classes.dex.bak") is None
        assert class_index("resources.arsc") is None

    def test_index_names(self):
        assert class_index_name(1) == "classes.dex"
        assert class_index_name(3) == "classes3.dex"


class TestMergePlanner:
    """Tests for merge planning and materialization."""

    def test_base_tree_copied_unconditionally(self, extracted, temp_dir):
        members, roots = extracted({
            "base.apk": (MemberRole.BASE, "", {
                "AndroidManifest.xml": b"base-manifest",
                "classes.dex": b"base-dex",
                "META-INF/CERT.SF": b"sig",
                "kotlin/kotlin.kotlin_builtins": b"k",
            }),
        })
        outcome = MergePlanner().merge(members, roots, temp_dir / "merged")
        merged = outcome.merge_root
        assert (merged / "META-INF" / "CERT.SF").read_bytes() == b"sig"
        assert (merged / "kotlin" / "kotlin.kotlin_builtins").exists()
        assert (merged / "AndroidManifest.xml").read_bytes() == b"base-manifest"

    def test_split_contributes_assets_res_and_lib(self, extracted, temp_dir):
        members, roots = extracted({
            "base.apk": (MemberRole.BASE, "", {"AndroidManifest.xml": b"base", "classes.dex": b"d"}),
            "split.config.arm64_v8a.apk": (MemberRole.CONFIG, "config.arm64_v8a", {
                "AndroidManifest.xml": b"split-manifest",
                "lib/arm64-v8a/libgame.so": b"so",
                "res/drawable-xxhdpi/icon.png": b"png",
                "assets/level1.dat": b"lvl",
                "META-INF/SPLIT.SF": b"sig",
                "stamp-cert-sha256": b"stamp",
            }),
        })
        merged = MergePlanner().merge(members, roots, temp_dir / "merged").merge_root
        assert (merged / "lib" / "arm64-v8a" / "libgame.so").read_bytes() == b"so"
        assert (merged / "res" / "drawable-xxhdpi" / "icon.png").exists()
        assert (merged / "assets" / "level1.dat").exists()
        assert (merged / "stamp-cert-sha256").read_bytes() == b"stamp"
        assert not (merged / "META-INF").exists()
        assert (merged / "AndroidManifest.xml").read_bytes() == b"base"

    def test_first_writer_wins_base_over_split(self, extracted):
        members, roots = extracted({
            "base.apk": (MemberRole.BASE, "", {"classes.dex": b"d", "res/values/strings.xml": b"base"}),
            "split_a.apk": (MemberRole.SPLIT, "split_a", {"res/values/strings.xml": b"split"}),
        })
        plan = MergePlanner().plan(members, roots)
        assert plan.outputs["res/values/strings.xml"].member == "base.apk"
        conflict = plan.conflicts[0]
        assert conflict.target == "res/values/strings.xml"
        assert conflict.member == "split_a.apk"
        assert "base.apk" in conflict.reason

    def test_first_writer_wins_is_order_sensitive(self, extracted):
        """Between splits, the one earlier in canonical order keeps the path."""
        trees = {
            "base.apk": (MemberRole.BASE, "", {"classes.dex": b"d"}),
            "one.apk": (MemberRole.CONFIG, "config.a", {"assets/shared.bin": b"from-a"}),
            "two.apk": (MemberRole.CONFIG, "config.b", {"assets/shared.bin": b"from-b"}),
        }
        members, roots = extracted(trees)
        assert MergePlanner().plan(members, roots).outputs["assets/shared.bin"].member == "one.apk"

        trees["one.apk"] = (MemberRole.CONFIG, "config.z", trees["one.apk"][2])
        members, roots = extracted(trees)
        assert MergePlanner().plan(members, roots).outputs["assets/shared.bin"].member == "two.apk"

    def test_class_index_renumbering(self, extracted, temp_dir):
        """Split class-index files follow the base sequence byte for byte."""
        members, roots = extracted({
            "base.apk": (MemberRole.BASE, "", {"classes.dex": b"base-1", "classes2.dex": b"base-2"}),
            "split_feature.apk": (MemberRole.SPLIT, "split_feature", {
                "classes.dex": b"feature-1",
                "classes2.dex": b"feature-2",
            }),
        })
        outcome = MergePlanner().merge(members, roots, temp_dir / "merged")
        merged = outcome.merge_root

        assert (merged / "classes.dex").read_bytes() == b"base-1"
        assert (merged / "classes2.dex").read_bytes() == b"base-2"
        assert (merged / "classes3.dex").read_bytes() == b"feature-1"
        assert (merged / "classes4.dex").read_bytes() == b"feature-2"
        assert [(d.original_name, d.target) for d in outcome.plan.renumbered] == [
            ("classes.dex", "classes3.dex"),
            ("classes2.dex", "classes4.dex"),
        ]

    def test_renumbering_never_overwrites(self, extracted):
        members, roots = extracted({
            "base.apk": (MemberRole.BASE, "", {"classes.dex": b"b1"}),
            "split_a.apk": (MemberRole.SPLIT, "split_a", {"classes.dex": b"a1", "classes3.dex": b"a3"}),
            "split_b.apk": (MemberRole.SPLIT, "split_b", {"classes.dex": b"b-split"}),
        })
        plan = MergePlanner().plan(members, roots)
        targets = {d.target: d for d in plan.decisions if d.target.startswith("classes")}
        assert targets["classes.dex"].member == "base.apk"
        assert targets["classes2.dex"].source.read_bytes() == b"a1"
        assert targets["classes3.dex"].source.read_bytes() == b"a3"
        assert targets["classes3.dex"].action == MergeAction.COPY
        assert targets["classes4.dex"].source.read_bytes() == b"b-split"
        assert not plan.conflicts

    def test_top_level_conflict(self, extracted):
        members, roots = extracted({
            "base.apk": (MemberRole.BASE, "", {"classes.dex": b"d", "resources.arsc": b"base"}),
            "config.xxhdpi.apk": (MemberRole.CONFIG, "config.xxhdpi", {"resources.arsc": b"split"}),
        })
        plan = MergePlanner().plan(members, roots)
        assert plan.outputs["resources.arsc"].member == "base.apk"
        assert [c.target for c in plan.conflicts] == ["resources.arsc"]

    def test_file_and_directory_name_clash_is_a_conflict(self, extracted, temp_dir):
        members, roots = extracted({
            "base.apk": (MemberRole.BASE, "", {"classes.dex": b"d", "assets/intro.bin": b"i"}),
            "split_a.apk": (MemberRole.SPLIT, "split_a", {"assets": b"flat", "licenses": b"l"}),
            "split_b.apk": (MemberRole.SPLIT, "split_b", {"licenses/b.txt": b"b"}),
        })
        planner = MergePlanner()
        plan = planner.plan(members, roots)

        assert sorted(c.target for c in plan.conflicts) == ["assets", "licenses/b.txt"]
        assert plan.outputs["licenses"].member == "split_a.apk"

        merge_root = planner.materialize(plan, temp_dir / "merged")
        assert (merge_root / "assets" / "intro.bin").read_bytes() == b"i"
        assert (merge_root / "licenses").read_bytes() == b"l"

    def test_no_base(self, extracted):
        members, roots = extracted({"split_a.apk": (MemberRole.SPLIT, "split_a", {"assets/a": b"a"})})
        with pytest.raises(NoBaseMemberError):
            MergePlanner().plan(members, roots)

    def test_base_not_extracted(self, extracted):
        members, _ = extracted({"base.apk": (MemberRole.BASE, "", {"classes.dex": b"d"})})
        with pytest.raises(NoBaseMemberError):
            MergePlanner().plan(members, {})

    def test_materialize_requires_empty_destination(self, extracted, temp_dir):
        members, roots = extracted({"base.apk": (MemberRole.BASE, "", {"classes.dex": b"d"})})
        destination = write_tree(temp_dir / "merged", {"leftover.txt": b"x"})
        with pytest.raises(MergeError):
            MergePlanner().merge(members, roots, destination)
