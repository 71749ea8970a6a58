[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "kubecomp"
version = "0.1.0"
description = "Component building blocks: build version info, a --version flag, terminal sizing, a deprecation-aware metrics registry, the Prometheus text format and metrics test helpers."
requires-python = ">=3.10"
dependencies = [
    "semver>=3.0",
]
keywords = [
    "metrics",
    "prometheus",
    "exposition",
    "registry",
    "deprecation",
    "version",
    "histogram",
    "lint",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Monitoring",
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["kubecomp"]

[tool.hatch.build.targets.sdist]
include = [
    "kubecomp",
    "tests",
]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
warn_redundant_casts = true
