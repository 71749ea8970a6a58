"""Parsing of component version strings into semantic versions."""

from __future__ import annotations

import re

from semver import Version

from ..version import Info

_VERSION_RE = re.compile(r"^v(\d+\.\d+\.\d+)", re.ASCII)


def parse_semver(text: str) -> Version | None:
    """Parse a semantic version; an empty string gives None."""
    if not text:
        return None
    return Version.parse(text)


def parse_version(info: Info) -> Version:
    """Extract major.minor.patch from the git version of info."""
    text = str(info)
    match = _VERSION_RE.match(text)
    if match is None:
        raise ValueError(
            f'version string "{text}" doesn\'t match expected regular expression: '
            f'"{_VERSION_RE.pattern}"'
        )
    return Version.parse(match.group(1))