[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "zkit"
version = "0.1.0"
description = "Low-level building blocks: key hashing, shutdown closer, key search, B+ tree pages, mmap files, histograms and compact option flags"
requires-python = ">=3.10"
dependencies = []
keywords = ["mmap", "btree", "histogram", "flags", "hashing", "xxhash"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Libraries",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["zkit"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
