[build-system]
requires = ["setuptools>=64"]
build-backend = "setuptools.build_meta"

[project]
name = "launchcore"
version = "0.1.0"
description = "Core of a keyboard launcher: extension registry, query engine, usage-based ranking and plugin discovery"
requires-python = ">=3.10"
dependencies = []
keywords = ["launcher", "query", "extensions", "plugins", "ranking"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Desktop Environment",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
launchcore-rpc = "launchcore.rpc:main"

[tool.setuptools.packages.find]
include = ["launchcore*"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
