[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "tilelog"
version = "0.1.0"
description = "Building blocks for tile-based transparency logs: entry bundles, Merkle leaf hashing, Static CT entries, deduplication, streaming, bundle copying and load-testing helpers."
requires-python = ">=3.10"
dependencies = []
keywords = [
    "transparency-log",
    "merkle-tree",
    "certificate-transparency",
    "tlog-tiles",
    "static-ct",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Security :: Cryptography",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["tilelog"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
