[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "rdbkit"
version = "0.1.0"
description = "Building blocks for analysing Redis RDB snapshot contents: object model, memory estimation, key filters, RESP export and flame graphs"
requires-python = ">=3.10"
dependencies = []
keywords = [
    "redis",
    "rdb",
    "memory",
    "profiling",
    "resp",
    "aof",
    "lzf",
    "crc64",
    "flamegraph",
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
    "Topic :: Database",
    "Topic :: System :: Systems Administration",
    "Typing :: Typed",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["rdbkit"]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
