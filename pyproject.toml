[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "blockforge"
version = "0.4.1"
description = "Building blocks for Ethereum-style block builders: payload limits, bundles, an order pool and an order-appending step."
requires-python = ">=3.10"
keywords = ["ethereum", "optimism", "block-builder", "bundles", "mempool", "flashbots"]
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
    "Topic :: Software Development :: Libraries",
]
dependencies = [
    "pycryptodome",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["blockforge"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 88
target-version = "py310"

[tool.mypy]
python_version = "3.10"
