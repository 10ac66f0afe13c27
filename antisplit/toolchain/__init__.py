"""External Android toolchain boundary."""

from .aapt import AaptToolchain
from .location import ToolchainLocation
from .parsers import BadgingInfo, extract_architectures, parse_badging, parse_listing, parse_xmltree
from .runner import ProcessResult, ToolRunner

__all__ = [
    "AaptToolchain",
    "ToolchainLocation",
    "BadgingInfo",
    "extract_architectures",
    "parse_badging",
    "parse_listing",
    "parse_xmltree",
    "ProcessResult",
    "ToolRunner",
]
