[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "packetdef"
version = "0.1.0"
description = "Declarative definitions of on-the-wire packet layouts with bit-level accessors and mutators"
requires-python = ">=3.10"
dependencies = []
keywords = ["packet", "binary", "bitfield", "network", "protocol", "parsing"]
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
    "Topic :: Software Development :: Libraries :: Python Modules",
    "Topic :: System :: Networking",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["packetdef"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
