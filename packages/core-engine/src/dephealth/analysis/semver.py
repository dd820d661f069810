"""Semantic-version parsing and update classification.

Versions here come from registries, lockfiles and hand-written
manifests, so parsing is lenient: anything that is not a number
becomes 0 instead of raising.
"""

from __future__ import annotations

import re
from typing import Iterable, Optional

from dephealth_shared.types.enums import UpdateType
from dephealth_shared.types.models import VersionConstraint

_LEADING_JUNK = "^~>=<!v= "
_NUMBER = re.compile(r"(\d+)")


def parse_version(version: object) -> tuple[int, int, int]:
    """Parse a version string into a (major, minor, patch) triple.

    Examples:
        "1.2.3"        -> (1, 2, 3)
        "^4.18"        -> (4, 18, 0)
        "v2.0.0-rc.1"  -> (2, 0, 0)
        "bogus"        -> (0, 0, 0)
    """
    if not isinstance(version, str):
        return (0, 0, 0)

    cleaned = version.strip().lstrip(_LEADING_JUNK)
    # Drop prerelease/build metadata and anything after a range separator
    cleaned = re.split(r"[-+\s,|]", cleaned, maxsplit=1)[0]

    parts = cleaned.split(".")
    numbers: list[int] = []
    for part in parts[:3]:
        match = _NUMBER.match(part)
        numbers.append(int(match.group(1)) if match else 0)
    while len(numbers) < 3:
        numbers.append(0)

    return (numbers[0], numbers[1], numbers[2])


def classify(current: str, latest: str) -> UpdateType:
    """Classify the jump from ``current`` to ``latest``.

    Compares major, then minor, then patch. Equal or older versions, and
    versions without a leading numeric major, fall back to PATCH.
    """
    if not (is_parseable(current) and is_parseable(latest)):
        return UpdateType.PATCH

    cur = parse_version(current)
    new = parse_version(latest)

    if new[0] > cur[0]:
        return UpdateType.MAJOR
    elif new[1] > cur[1]:
        return UpdateType.MINOR
    elif new[2] > cur[2]:
        return UpdateType.PATCH
    return UpdateType.PATCH


def is_parseable(version: object) -> bool:
    """True if the version starts with a numeric major component."""
    if not isinstance(version, str):
        return False
    return _NUMBER.match(version.strip().lstrip(_LEADING_JUNK)) is not None


def is_prerelease(version: str) -> bool:
    return "-" in version.lstrip(_LEADING_JUNK)


def is_newer(candidate: str, baseline: str) -> bool:
    """True if ``candidate`` is strictly newer than ``baseline``."""
    return parse_version(candidate) > parse_version(baseline)


def max_satisfying(
    versions: Iterable[str],
    constraint: VersionConstraint,
) -> Optional[str]:
    """Highest stable version allowed by a ``^``, ``~`` or exact constraint.

    Other operators are not evaluated and return None.
    """
    if not constraint.version:
        return None

    base = parse_version(constraint.version)
    best: Optional[str] = None
    best_parsed: tuple[int, int, int] = (-1, -1, -1)

    for version in versions:
        if is_prerelease(version):
            continue
        parsed = parse_version(version)
        if parsed < base:
            continue

        if constraint.operator == "^":
            if base[0] > 0:
                allowed = parsed[0] == base[0]
            else:
                allowed = parsed[0] == 0 and parsed[1] == base[1]
        elif constraint.operator in ("~", "~="):
            allowed = parsed[:2] == base[:2]
        elif constraint.operator == "==":
            allowed = parsed == base
        else:
            return None

        if allowed and parsed > best_parsed:
            best, best_parsed = version, parsed

    return best
