[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "stakeindex"
version = "0.1.0"
description = "Storage rows, validator persistence, chain modules and query actions for indexing a proof-of-stake chain"
requires-python = ">=3.10"
keywords = ["blockchain", "indexer", "staking", "validators", "database", "sqlite"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Database",
    "Typing :: Typed",
]
dependencies = [
    "pyyaml",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["stakeindex"]

[tool.hatch.build.targets.sdist]
include = ["stakeindex", "tests", "pyproject.toml"]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]
