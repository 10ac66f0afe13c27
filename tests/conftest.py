"""Test configuration for antisplit."""

import io
import json
import stat
import tempfile
import zipfile
from pathlib import Path

import pytest

from antisplit.core.config import Config, WorkspaceConfig
from antisplit.core.exceptions import ToolExecutionError, ToolNotFoundError
from antisplit.toolchain.location import ToolchainLocation

MANIFEST_BYTES = b"\x03\x00\x08\x00compiled-manifest"
DEX_BYTES = b"dex\n035\x00"

FAKE_APKSIGNER = """#!/bin/sh
out=""
in=""
while [ $# -gt 0 ]; do
  case "$1" in
    sign) shift ;;
    --out) out="$2"; shift 2 ;;
    --ks|--ks-pass|--ks-key-alias|--key-pass) shift 2 ;;
    *) in="$1"; shift ;;
  esac
done
cp "$in" "$out"
"""

FAILING_APKSIGNER = """#!/bin/sh
echo "Failed to load signer: keystore was tampered with" >&2
exit 1
"""

AAPT_XMLTREE = """N: android=http://schemas.android.com/apk/res/android
  E: manifest (line=2)
    A: android:versionCode(0x0101021b)=(type 0x10)0x2a
    A: android:versionName(0x0101021c)="1.0" (Raw: "1.0")
    A: package="com.example.game" (Raw: "com.example.game")
    E: uses-sdk (line=7)
      A: android:minSdkVersion(0x0101020c)=(type 0x10)0x15
      A: android:targetSdkVersion(0x01010270)=(type 0x10)0x22
    E: uses-permission (line=11)
      A: android:name(0x01010003)="android.permission.INTERNET" (Raw: "android.permission.INTERNET")
    E: application (line=13)
      A: android:label(0x01010001)=@0x7f0b0001
      A: android:debuggable(0x0101000f)=(type 0x12)0xffffffff
      A: android:name(0x01010003)="com.example.game.GameApp" (Raw: "com.example.game.GameApp")
      E: activity (line=20)
        A: android:name(0x01010003)="com.example.game.MainActivity" (Raw: "com.example.game.MainActivity")
      E: service (line=30)
        A: android:name(0x01010003)="com.example.game.SyncService" (Raw: "com.example.game.SyncService")
"""

AAPT2_XMLTREE = """N: android=http://schemas.android.com/apk/res/android (line=2)
  E: manifest (line=2)
    A: http://schemas.android.com/apk/res/android:versionCode(0x0101021b)=42
    A: http://schemas.android.com/apk/res/android:versionName(0x0101021c)="1.0"
    A: package="com.example.game"
    A: split="config.arm64_v8a"
      E: application (line=8)
        A: http://schemas.android.com/apk/res/android:hasCode(0x0101000c)=false
"""


def badging(
    package: str,
    version_code: int = 42,
    version_name: str = "1.0",
    split: str | None = None,
    permissions: tuple[str, ...] = (),
) -> str:
    """Canned ``aapt dump badging`` output."""
    split_attr = f" split='{split}'" if split else ""
    lines = [
        f"package: name='{package}' versionCode='{version_code}' versionName='{version_name}'{split_attr}",
        "sdkVersion:'21'",
        "targetSdkVersion:'34'",
    ]
    lines.extend(f"uses-permission: name='{p}'" for p in permissions)
    lines.append("application-label:'Game'")
    return "\n".join(lines) + "\n"


def build_apk(path: Path, files: dict[str, bytes] | None = None, code: bool = True) -> Path:
    """Write a ZIP member with a manifest, optional code and extra entries."""
    entries: dict[str, bytes] = {"AndroidManifest.xml": MANIFEST_BYTES}
    if code:
        entries["classes.dex"] = DEX_BYTES
    entries.update(files or {})
    path.parent.mkdir(parents=True, exist_ok=True)
    with zipfile.ZipFile(path, "w") as zf:
        for name, data in entries.items():
            zf.writestr(name, data)
    return path


def build_container(
    path: Path,
    members: dict[str, bytes],
    manifest: dict | None = None,
) -> Path:
    """Write an XAPK container holding already-built member bytes."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with zipfile.ZipFile(path, "w") as zf:
        for name, data in members.items():
            zf.writestr(name, data)
        if manifest is not None:
            zf.writestr("manifest.json", json.dumps(manifest))
    return path


def write_script(path: Path, content: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
    path.chmod(path.stat().st_mode | stat.S_IEXEC | stat.S_IXGRP | stat.S_IXOTH)
    return path


class FakeToolchain:
    """Toolchain double returning canned badging output keyed by file name.

    Unknown file names raise ToolExecutionError, as aapt does for a file it
    cannot parse. ``available=False`` makes every query raise ToolNotFoundError.
    """

    def __init__(
        self,
        badgings: dict[str, str] | None = None,
        location: ToolchainLocation | None = None,
        available: bool = True,
        xmltree: str = "",
    ) -> None:
        self.badgings = badgings or {}
        self.location = location or ToolchainLocation()
        self._available = available
        self.xmltree = xmltree
        self.calls: list[str] = []

    @property
    def available(self) -> bool:
        return self._available

    async def dump_badging(self, apk_path: Path) -> str:
        self.calls.append(apk_path.name)
        if not self._available:
            raise ToolNotFoundError(message="Tool not found: aapt", tool_name="aapt")
        if apk_path.name not in self.badgings:
            raise ToolExecutionError(
                message=f"aapt dump badging failed for {apk_path.name}",
                operation="dump badging",
                tool_name="aapt",
                exit_code=1,
            )
        return self.badgings[apk_path.name]

    async def list_entries(self, apk_path: Path) -> str:
        raise ToolNotFoundError(message="Tool not found: aapt", tool_name="aapt")

    async def dump_xmltree(self, apk_path: Path, entry: str = "AndroidManifest.xml") -> str:
        if not self.xmltree:
            raise ToolNotFoundError(message="Tool not found: aapt", tool_name="aapt")
        return self.xmltree


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests.

    Yields:
        Path: A Path object pointing to the temporary directory.
            The directory is automatically cleaned up after the test.
    """
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def sample_apk_bytes():
    """Minimal base APK bytes: a manifest and one class-index file."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as zf:
        zf.writestr("AndroidManifest.xml", MANIFEST_BYTES)
        zf.writestr("classes.dex", DEX_BYTES)
    return buffer.getvalue()


@pytest.fixture
def sample_apk(temp_dir, sample_apk_bytes):
    """Create a sample APK file for testing.

    Returns:
        Path: The path to the created sample APK file.
    """
    apk_path = temp_dir / "sample.apk"
    apk_path.write_bytes(sample_apk_bytes)
    return apk_path


@pytest.fixture
def test_config(temp_dir):
    """Configuration with workspaces under the test's temporary directory."""
    return Config(workspace=WorkspaceConfig(temp_root=temp_dir / "work"))


@pytest.fixture
def game_members(temp_dir):
    """Base plus an arm64 configuration split for com.example.game, version 42."""
    members_dir = temp_dir / "members"
    base = build_apk(members_dir / "base.apk", {
        "res/values/strings.xml": b"<resources/>",
        "resources.arsc": b"ARSC-BASE",
    })
    split = build_apk(
        members_dir / "split.config.arm64_v8a.apk",
        {"lib/arm64-v8a/libgame.so": b"\x7fELF-game"},
        code=False,
    )
    return {"base.apk": base.read_bytes(), "split.config.arm64_v8a.apk": split.read_bytes()}


@pytest.fixture
def game_badgings():
    return {
        "base.apk": badging("com.example.game", 42, permissions=("android.permission.INTERNET",)),
        "split.config.arm64_v8a.apk": badging("com.example.game", 42, split="config.arm64_v8a"),
    }


@pytest.fixture
def game_container(temp_dir, game_members):
    return build_container(
        temp_dir / "game.xapk",
        game_members,
        manifest={
            "package_name": "com.example.game",
            "name": "Game",
            "version_code": "42",
            "version_name": "1.0",
            "split_apks": [
                {"file": "base.apk", "id": "base"},
                {"file": "split.config.arm64_v8a.apk", "id": "config.arm64_v8a"},
            ],
        },
    )


@pytest.fixture
def signing_location(temp_dir):
    """Toolchain location whose apksigner copies its input to --out."""
    build_tools = temp_dir / "sdk" / "build-tools" / "34.0.0"
    apksigner = write_script(build_tools / "apksigner", FAKE_APKSIGNER)
    return ToolchainLocation(sdk_root=temp_dir / "sdk", build_tools=build_tools, apksigner=apksigner)


@pytest.fixture
def failing_signing_location(temp_dir):
    build_tools = temp_dir / "sdk-bad" / "build-tools" / "34.0.0"
    apksigner = write_script(build_tools / "apksigner", FAILING_APKSIGNER)
    return ToolchainLocation(build_tools=build_tools, apksigner=apksigner)


@pytest.fixture
def keystore(temp_dir):
    path = temp_dir / "release.jks"
    path.write_bytes(b"not-a-real-keystore")
    return path
