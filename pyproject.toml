[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "bpcli"
version = "0.1.0"
description = "Helpers for working with backplane-managed clusters: health checks, kubeconfig handling, incident and ticket lookups, and monitoring proxies."
requires-python = ">=3.10"
dependencies = [
    "pyyaml",
    "requests",
]
keywords = [
    "backplane",
    "openshift",
    "kubeconfig",
    "pagerduty",
    "jira",
    "monitoring",
    "sre",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Systems Administration",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["bpcli"]

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
