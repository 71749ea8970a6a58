import argparse

import pytest

from kubecomp.verflag import (
    VersionValue,
    add_flags,
    parse_version_value,
    print_and_exit_if_requested,
)
from kubecomp.version import get


@pytest.mark.parametrize(
    "text, expected",
    [
        ("raw", VersionValue.RAW),
        ("true", VersionValue.TRUE),
        ("1", VersionValue.TRUE),
        ("T", VersionValue.TRUE),
        ("false", VersionValue.FALSE),
        ("0", VersionValue.FALSE),
        ("False", VersionValue.FALSE),
    ],
)
def test_parse_version_value(text, expected):
    assert parse_version_value(text) is expected


@pytest.mark.parametrize("text", ["maybe", "", "RAW", "yes"])
def test_parse_version_value_rejects(text):
    with pytest.raises(ValueError):
        parse_version_value(text)


@pytest.mark.parametrize("value", list(VersionValue))
def test_str_round_trips(value):
    assert parse_version_value(str(value)) is value


def test_raw_string_form():
    assert str(parse_version_value("raw")) == "raw"


def _parser():
    parser = argparse.ArgumentParser(prog="component")
    add_flags(parser)
    return parser


@pytest.mark.parametrize(
    "argv, expected",
    [
        ([], VersionValue.FALSE),
        (["--version"], VersionValue.TRUE),
        (["--version=raw"], VersionValue.RAW),
        (["--version=false"], VersionValue.FALSE),
        (["--version=true"], VersionValue.TRUE),
    ],
)
def test_add_flags(argv, expected):
    assert _parser().parse_args(argv).version is expected


def test_add_flags_rejects_bad_value():
    with pytest.raises(SystemExit) as excinfo:
        _parser().parse_args(["--version=bogus"])
    assert excinfo.value.code == 2


def test_no_exit_when_not_requested(capsys):
    assert print_and_exit_if_requested(VersionValue.FALSE) is None
    assert capsys.readouterr().out == ""


def test_prints_version_and_exits(capsys):
    with pytest.raises(SystemExit) as excinfo:
        print_and_exit_if_requested(VersionValue.TRUE)
    assert excinfo.value.code == 0
    assert capsys.readouterr().out == f"Kubernetes {get().git_version}\n"


def test_prints_raw_version_and_exits(capsys):
    with pytest.raises(SystemExit) as excinfo:
        print_and_exit_if_requested(VersionValue.RAW)
    assert excinfo.value.code == 0
    assert capsys.readouterr().out == repr(get()) + "\n"