[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "gonkey"
version = "0.1.0"
description = "Building blocks for declarative API tests: value comparison, response checkers, script running and database fixture loaders."
requires-python = ">=3.10"
keywords = ["testing", "api", "fixtures", "postgres", "mysql", "redis", "aerospike"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Testing",
]
dependencies = [
    "pyyaml",
    "redis",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["gonkey"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"
