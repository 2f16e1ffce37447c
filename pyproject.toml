[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "draftxfer"
version = "0.1.0"
description = "Block-hash journals, journal comparison, buffer pools and transfer plumbing for bulk file mirroring"
requires-python = ">=3.10"
dependencies = [
    "cbor2",
]
keywords = ["transfer", "journal", "hash", "mirroring", "verification"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: System Administrators",
    "Operating System :: POSIX :: Linux",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Archiving :: Mirroring",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
draftxfer = "draftxfer.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["draftxfer"]

[tool.pytest.ini_options]
addopts = "-ra"
