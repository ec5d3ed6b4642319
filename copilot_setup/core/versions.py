"""
Version string handling: request parsing, normalization and major extraction.
"""

import re
from typing import Optional

from ..models.target import VersionKind, VersionRequest
from .errors import InvalidVersion

EXACT_VERSION_PATTERN = re.compile(r"^v?\d+\.\d+\.\d+(-[a-zA-Z0-9.-]+)?$")
MAJOR_PATTERN = re.compile(r"v?(\d+)")


def parse_version_request(raw: Optional[str]) -> VersionRequest:
    """
    Validate a version input.

    Args:
        raw: 'latest', 'prerelease' or a semantic version such as 'v0.0.369'

    Returns:
        The parsed request; empty input means latest

    Raises:
        InvalidVersion: If the input matches none of the accepted forms
    """
    value = (raw or "").strip()
    if not value or value == VersionKind.LATEST.value:
        return VersionRequest(kind=VersionKind.LATEST)
    if value == VersionKind.PRERELEASE.value:
        return VersionRequest(kind=VersionKind.PRERELEASE)

    if not EXACT_VERSION_PATTERN.match(value):
        raise InvalidVersion(
            f"Invalid version format: {value}. Expected 'latest', 'prerelease', "
            f"or a semantic version (e.g. 'v0.0.369' or '1.2.3')"
        )
    return VersionRequest(kind=VersionKind.EXACT, value=value)


def normalize_version(version: Optional[str]) -> str:
    """Trim and drop a single leading 'v'."""
    if not version:
        return ""
    version = version.strip()
    return version[1:] if version.startswith("v") else version


def version_satisfies(request: VersionRequest, reported: str) -> bool:
    """Exact requests must appear in the reported version; others always pass."""
    if not request.is_exact:
        return True
    return normalize_version(request.value) in normalize_version(reported)


def parse_major(version: Optional[str]) -> Optional[int]:
    """First run of digits after an optional 'v', e.g. 'v24.1.0' -> 24."""
    if not version:
        return None
    match = MAJOR_PATTERN.search(version)
    return int(match.group(1)) if match else None
