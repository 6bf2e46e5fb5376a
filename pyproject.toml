[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "blinkdb"
version = "0.1.0"
description = "A small key-value store with two disk-backed engines, an interactive shell, a RESP server, a client and a benchmark"
requires-python = ">=3.10"
dependencies = []
keywords = ["key-value", "database", "resp", "lru", "cache", "storage"]
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
    "Topic :: Database :: Database Engines/Servers",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
blinkdb-repl = "blinkdb.repl:main"
blinkdb-server = "blinkdb.server:main"
blinkdb-client = "blinkdb.client:main"
blinkdb-benchmark = "blinkdb.benchmark:main"

[tool.hatch.build.targets.wheel]
packages = ["blinkdb"]

[tool.pytest.ini_options]
addopts = "-ra"
