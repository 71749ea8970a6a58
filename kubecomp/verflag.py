"""Command-line handling of the version flag."""

from __future__ import annotations

import argparse
from enum import Enum

from .version import get

PROGRAM_NAME = "Kubernetes"
FLAG_NAME = "version"
_RAW = "raw"
_TRUE_WORDS = frozenset({"1", "t", "T", "TRUE", "true", "True"})
_FALSE_WORDS = frozenset({"0", "f", "F", "FALSE", "false", "False"})


class VersionValue(Enum):
    """What the version flag asks for."""

    FALSE = 0
    TRUE = 1
    RAW = 2

    def __str__(self) -> str:
        if self is VersionValue.RAW:
            return _RAW
        return "true" if self is VersionValue.TRUE else "false"


def parse_version_value(text: str) -> VersionValue:
    """Turn a flag argument into a VersionValue; raise ValueError if it is not one."""
    if text == _RAW:
        return VersionValue.RAW
    if text in _TRUE_WORDS:
        return VersionValue.TRUE
    if text in _FALSE_WORDS:
        return VersionValue.FALSE
    raise ValueError(f"invalid version flag value {text!r}: expected a boolean or {_RAW!r}")


def _version_type(text: str) -> VersionValue:
    try:
        return parse_version_value(text)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from None


def add_flags(parser: argparse.ArgumentParser) -> None:
    """Add --version to a parser; a bare --version means true."""
    parser.add_argument(
        f"--{FLAG_NAME}",
        nargs="?",
        const=VersionValue.TRUE,
        default=VersionValue.FALSE,
        type=_version_type,
        metavar="true|false|raw",
        help="Print version information and quit",
    )


def print_and_exit_if_requested(value: VersionValue) -> None:
    """Print the version and exit when the flag asked for it."""
    if value is VersionValue.RAW:
        print(repr(get()))
        raise SystemExit(0)
    if value is VersionValue.TRUE:
        print(f"{PROGRAM_NAME} {get()}")
        raise SystemExit(0)