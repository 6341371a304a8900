"""
Bundle version comparison.

Versions are compared as dotted integer tuples: each dot-separated segment
is a non-negative integer, anything missing or non-numeric counts as 0, and
the shorter version is padded with zeros. "1.2" == "1.2.0" and
"1.10.0" > "1.9.0".

A device running the assets shipped inside its native binary reports the
sentinel BUILTIN_VERSION instead of a bundle version. It is normalized to
the zero version so any published bundle compares as newer.
"""

import re
from typing import Optional, Tuple

BUILTIN_VERSION = "builtin"
ZERO_VERSION = "0.0.0"

_LEADING_DIGITS = re.compile(r"^\s*(\d+)")


def normalize_version(version: Optional[str]) -> str:
    """Map the builtin sentinel (or a missing version) to the zero version."""
    if version is None:
        return ZERO_VERSION
    version = version.strip()
    if not version or version.lower() == BUILTIN_VERSION:
        return ZERO_VERSION
    return version


def _segment(value: str) -> int:
    return int(value) if value.isdigit() else 0


def version_key(version: Optional[str]) -> Tuple[int, ...]:
    """
    Split a version string into its integer segments.

    Args:
        version: Version string such as "1.2.0" or the builtin sentinel

    Returns:
        Tuple of non-negative integers, e.g. (1, 2, 0)
    """
    return tuple(_segment(part.strip()) for part in normalize_version(version).split("."))


def compare_versions(a: Optional[str], b: Optional[str]) -> int:
    """
    Compare two versions.

    Args:
        a: Left-hand version
        b: Right-hand version

    Returns:
        -1 if a < b, 0 if equal, 1 if a > b
    """
    left = version_key(a)
    right = version_key(b)
    width = max(len(left), len(right))
    left = left + (0,) * (width - len(left))
    right = right + (0,) * (width - len(right))

    if left < right:
        return -1
    if left > right:
        return 1
    return 0


def is_newer(candidate: Optional[str], current: Optional[str]) -> bool:
    """True when candidate is strictly greater than current."""
    return compare_versions(candidate, current) > 0


def parse_native_build(value) -> int:
    """
    Parse a reported native build number.

    Plugins send the build either as a number or a string ("45", "45.1").
    The leading digit run is used; anything unparseable is build 0.
    """
    if value is None or isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return max(value, 0)
    match = _LEADING_DIGITS.match(str(value))
    return int(match.group(1)) if match else 0
