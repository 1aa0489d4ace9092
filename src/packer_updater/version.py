"""Semantic version handling for Packer releases.

Versions follow ``MAJOR.MINOR.PATCH[-PRERELEASE]``. Anything else is
rejected at the input boundary before any network or filesystem access.
"""

import functools
import re
from dataclasses import dataclass
from typing import Iterable, List, Optional

from packer_updater.errors import InvalidVersionFormat

EXPECTED_FORMAT = "X.Y.Z or X.Y.Z-suffix (e.g., 1.9.4 or 1.9.4-beta1)"

_VERSION_RE = re.compile(r"^(\d+)\.(\d+)\.(\d+)(?:-([A-Za-z0-9]+))?$")

# Searches free text (e.g. "Packer v1.9.4") for the first version token.
_VERSION_TOKEN_RE = re.compile(r"(\d+\.\d+\.\d+(?:-[A-Za-z0-9]+)?)")

_SHELL_METACHARACTERS = ";&|`$(){}[]\\"


@functools.total_ordering
@dataclass(frozen=True)
class Version:
    """A validated release version."""

    major: int
    minor: int
    patch: int
    prerelease: Optional[str] = None

    def __str__(self) -> str:
        core = f"{self.major}.{self.minor}.{self.patch}"
        if self.prerelease:
            return f"{core}-{self.prerelease}"
        return core

    def _sort_key(self) -> tuple:
        # A final release sorts after any prerelease of the same core version.
        return (
            self.major,
            self.minor,
            self.patch,
            self.prerelease is None,
            self.prerelease or "",
        )

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return self._sort_key() < other._sort_key()


def sanitize(raw: str) -> str:
    """Strip shell metacharacters from raw user input.

    A syntactically valid version never contains any of them, so this
    leaves valid input untouched.
    """
    return "".join(ch for ch in raw if ch not in _SHELL_METACHARACTERS)


def parse_and_validate(raw: str) -> Version:
    """Parse a user-supplied version string.

    Input containing shell metacharacters is rejected outright rather than
    cleaned and reused.

    Args:
        raw: Version string as typed by the user

    Returns:
        Parsed version

    Raises:
        InvalidVersionFormat: If the input does not match the grammar
    """
    if raw is None:
        raise InvalidVersionFormat("", EXPECTED_FORMAT)

    text = raw.strip()

    if sanitize(text) != text:
        raise InvalidVersionFormat(
            raw, EXPECTED_FORMAT, reason="contains disallowed characters"
        )

    match = _VERSION_RE.match(text)
    if not match:
        raise InvalidVersionFormat(raw, EXPECTED_FORMAT)

    major, minor, patch, prerelease = match.groups()
    return Version(int(major), int(minor), int(patch), prerelease)


def try_parse(raw: str) -> Optional[Version]:
    """Parse a version string, returning None instead of raising."""
    try:
        return parse_and_validate(raw)
    except InvalidVersionFormat:
        return None


def extract_version(text: str) -> Optional[Version]:
    """Find the first version token in free-form text.

    Handles tool output such as ``Packer v1.9.4`` or a bare ``1.9.4``.
    """
    match = _VERSION_TOKEN_RE.search(text or "")
    if not match:
        return None
    return try_parse(match.group(1))


def newest_first(candidates: Iterable[str], limit: int) -> List[Version]:
    """Deduplicate, sort newest first and truncate version strings.

    Invalid strings are dropped silently.
    """
    versions = {v for v in (try_parse(c) for c in candidates) if v is not None}
    return sorted(versions, reverse=True)[:max(limit, 0)]
