[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "lodestone"
version = "0.1.0"
description = "Score technology signals against a repository fingerprint, store the results as JSON files, and turn recommendations into spec and plan documents."
requires-python = ">=3.10"
dependencies = []
keywords = [
    "recommendations",
    "scoring",
    "fingerprint",
    "planning",
    "json-rpc",
    "tool-server",
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
    "Topic :: Software Development :: Quality Assurance",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["lodestone"]

[tool.hatch.build.targets.sdist]
include = ["lodestone", "tests", "README.md", "pyproject.toml"]

[tool.pytest.ini_options]
addopts = "-ra"
