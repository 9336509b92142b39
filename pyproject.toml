[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "keepersim"
version = "0.1.0"
description = "Simulation toolkit for offchain-reporting keeper networks: runbooks, simulated blocks, contract, RPC, network and statistics"
requires-python = ">=3.10"
dependencies = []
keywords = [
    "simulation",
    "ocr",
    "keepers",
    "upkeep",
    "blockchain",
    "testing",
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
    "Topic :: Software Development :: Testing",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["keepersim"]

[tool.hatch.build.targets.sdist]
include = ["keepersim", "tests", "README.md", "pyproject.toml"]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
warn_redundant_casts = true
