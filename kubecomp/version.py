"""Build version information for the running component."""

from __future__ import annotations

import platform as _platform
import sys
from dataclasses import dataclass

# Fallback values used when the build does not provide its own.
_GIT_MAJOR = ""
_GIT_MINOR = ""
_GIT_VERSION = "v0.0.0-master+$Format:%H$"
_GIT_COMMIT = "$Format:%H$"
_GIT_TREE_STATE = ""
_BUILD_DATE = "1970-01-01T00:00:00Z"


@dataclass(frozen=True)
class Info:
    """Version details of a build."""

    major: str = ""
    minor: str = ""
    git_version: str = ""
    git_commit: str = ""
    git_tree_state: str = ""
    build_date: str = ""
    runtime_version: str = ""
    compiler: str = ""
    platform: str = ""

    def __str__(self) -> str:
        return self.git_version


def get() -> Info:
    """Return the version information of this codebase."""
    return Info(
        major=_GIT_MAJOR,
        minor=_GIT_MINOR,
        git_version=_GIT_VERSION,
        git_commit=_GIT_COMMIT,
        git_tree_state=_GIT_TREE_STATE,
        build_date=_BUILD_DATE,
        runtime_version=_platform.python_version(),
        compiler=_platform.python_implementation(),
        platform=f"{sys.platform}/{_platform.machine()}",
    )