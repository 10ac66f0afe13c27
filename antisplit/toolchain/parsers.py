"""
Parsers for aapt/aapt2 text output.

All parsers are tolerant: absent fields are left at their defaults and
unrecognized lines are ignored.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Iterable

from ..models.apk import ApplicationDescriptor, ManifestDescriptor

_PACKAGE_LINE = re.compile(r"^package:\s*(?P<attrs>.*)$", re.MULTILINE)
_QUOTED_ATTR = re.compile(r"(?P<key>[\w-]+)='(?P<value>[^']*)'")
_MIN_SDK = re.compile(r"^(?:sdkVersion|minSdkVersion):'(\d+)'", re.MULTILINE)
_TARGET_SDK = re.compile(r"^targetSdkVersion:'(\d+)'", re.MULTILINE)
_PERMISSION = re.compile(r"^uses-permission(?:-sdk-23)?:\s*name='([^']+)'", re.MULTILINE)
_FEATURE = re.compile(r"^uses-feature:\s*name='([^']+)'", re.MULTILINE)
_APP_LABEL = re.compile(r"^application-label:'([^']*)'", re.MULTILINE)
_LIB_DIR = re.compile(r"^lib/([^/]+)/")

_ELEMENT = re.compile(r"^E:\s+(?P<name>\S+)")
_ATTRIBUTE = re.compile(
    r"^A:\s+(?:(?P<ns>\S+):)?(?P<name>[\w.-]+)(?:\(0x[0-9a-fA-F]+\))?=(?P<value>.*)$"
)
_TYPED_VALUE = re.compile(r"^\(type (?P<type>0x[0-9a-fA-F]+)\)(?P<raw>0x[0-9a-fA-F]+)")

_BOOLEAN_TYPE = 0x12


@dataclass
class BadgingInfo:
    """Fields read from ``aapt dump badging`` output."""

    package_name: str = ""
    version_code: int = 0
    version_name: str = ""
    split: str = ""
    min_sdk_version: str = ""
    target_sdk_version: str = ""
    application_label: str = ""
    permissions: list[str] = field(default_factory=list)
    features: list[str] = field(default_factory=list)


def parse_badging(output: str) -> BadgingInfo:
    """Parse ``dump badging`` output.

    Every package-line attribute is read on its own, so a missing
    ``versionName`` does not hide the package name.
    """
    info = BadgingInfo()

    package_match = _PACKAGE_LINE.search(output)
    if package_match:
        attrs = dict(
            (m.group("key"), m.group("value"))
            for m in _QUOTED_ATTR.finditer(package_match.group("attrs"))
        )
        info.package_name = attrs.get("name", "")
        info.version_name = attrs.get("versionName", "")
        info.split = attrs.get("split", "")
        version_code = attrs.get("versionCode", "")
        if version_code.isdigit():
            info.version_code = int(version_code)

    if match := _MIN_SDK.search(output):
        info.min_sdk_version = match.group(1)
    if match := _TARGET_SDK.search(output):
        info.target_sdk_version = match.group(1)
    if match := _APP_LABEL.search(output):
        info.application_label = match.group(1)

    info.permissions = _unique(_PERMISSION.findall(output))
    info.features = _unique(_FEATURE.findall(output))
    return info


def parse_listing(output: str) -> list[str]:
    """Parse ``aapt list`` output into archive entry names."""
    return [line.strip() for line in output.splitlines() if line.strip()]


def extract_architectures(entries: Iterable[str]) -> list[str]:
    """Distinct ``<abi>`` tokens of ``lib/<abi>/...`` entries, first appearance first."""
    architectures: list[str] = []
    for entry in entries:
        match = _LIB_DIR.match(entry.replace("\\", "/"))
        if match and match.group(1) not in architectures:
            architectures.append(match.group(1))
    return architectures


def _decode_value(raw: str) -> Any:
    raw = raw.strip()
    if raw.startswith('"'):
        end = raw.find('"', 1)
        return raw[1:end] if end > 0 else raw[1:]
    typed = _TYPED_VALUE.match(raw)
    if typed:
        value = int(typed.group("raw"), 16)
        if int(typed.group("type"), 16) == _BOOLEAN_TYPE:
            return value != 0
        return value
    if raw in ("true", "false"):
        return raw == "true"
    if raw.isdigit():
        return int(raw)
    return raw.split(" ", 1)[0]


def _iter_elements(output: str) -> list[tuple[str, dict[str, Any]]]:
    elements: list[tuple[str, dict[str, Any]]] = []
    for line in output.splitlines():
        stripped = line.strip()
        if element := _ELEMENT.match(stripped):
            elements.append((element.group("name"), {}))
        elif (attribute := _ATTRIBUTE.match(stripped)) and elements:
            elements[-1][1][attribute.group("name")] = _decode_value(attribute.group("value"))
    return elements


def parse_xmltree(output: str) -> ManifestDescriptor:
    """Parse ``dump xmltree ... AndroidManifest.xml`` output (aapt or aapt2 format)."""
    manifest = ManifestDescriptor()
    application = ApplicationDescriptor()
    components: dict[str, list[str]] = {
        "activity": manifest.activities,
        "activity-alias": manifest.activities,
        "service": manifest.services,
        "receiver": manifest.receivers,
        "provider": manifest.providers,
    }

    for name, attrs in _iter_elements(output):
        if name == "manifest":
            manifest.package_name = str(attrs.get("package", ""))
            manifest.split = str(attrs.get("split", ""))
            version_code = attrs.get("versionCode")
            if isinstance(version_code, int) and not isinstance(version_code, bool):
                manifest.version_code = version_code
            elif isinstance(version_code, str) and version_code.isdigit():
                manifest.version_code = int(version_code)
            manifest.version_name = str(attrs.get("versionName", ""))
            if "compileSdkVersion" in attrs:
                manifest.compile_sdk_version = str(attrs["compileSdkVersion"])
        elif name == "uses-sdk":
            if "minSdkVersion" in attrs:
                manifest.min_sdk_version = str(attrs["minSdkVersion"])
            if "targetSdkVersion" in attrs:
                manifest.target_sdk_version = str(attrs["targetSdkVersion"])
        elif name in ("uses-permission", "uses-permission-sdk-23"):
            if "name" in attrs:
                manifest.permissions.append(str(attrs["name"]))
        elif name == "uses-feature":
            if "name" in attrs:
                manifest.features.append(str(attrs["name"]))
        elif name == "application":
            application = ApplicationDescriptor(
                name=str(attrs.get("name", "")),
                label=str(attrs.get("label", "")),
                icon=str(attrs.get("icon", "")),
                theme=str(attrs.get("theme", "")),
                debuggable=bool(attrs.get("debuggable", False)),
                allow_backup=bool(attrs.get("allowBackup", True)),
            )
        elif name in components and "name" in attrs:
            components[name].append(str(attrs["name"]))

    manifest.application = application
    return manifest


def _unique(values: Iterable[str]) -> list[str]:
    seen: list[str] = []
    for value in values:
        if value not in seen:
            seen.append(value)
    return seen
