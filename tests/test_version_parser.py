import pytest
from semver import Version

from kubecomp.metrics.version_parser import parse_semver, parse_version
from kubecomp.version import Info


@pytest.mark.parametrize(
    "version_string, expected",
    [
        ("v1.15.0-alpha-1.12345", "1.15.0"),
        ("v0.0.0-master", "0.0.0"),
    ],
)
def test_version_parsing(version_string, expected):
    parsed = parse_version(Info(git_version=version_string))
    assert str(parsed) == expected


def test_parse_version_ignores_major_minor_fields():
    info = Info(major="1", minor="17", git_version="v1.17.1-alpha-1.12345")
    assert parse_version(info) == Version(1, 17, 1)


@pytest.mark.parametrize("version_string", ["1.15.0", "", "vX.Y.Z", "v1.15"])
def test_parse_version_rejects_unexpected(version_string):
    with pytest.raises(ValueError, match="doesn't match"):
        parse_version(Info(git_version=version_string))


def test_parse_semver_empty_is_none():
    assert parse_semver("") is None


def test_parse_semver_value():
    assert parse_semver("1.15.0") == Version(1, 15, 0)


def test_parse_semver_invalid():
    with pytest.raises(ValueError):
        parse_semver("1.invalid")