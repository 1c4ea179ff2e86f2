[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "icekit"
version = "0.1.0"
description = "Building blocks for ICE agents: message digests, HMAC, agent configuration types and UDP socket helpers"
requires-python = ">=3.10"
dependencies = [
    "psutil",
]
keywords = ["ice", "stun", "turn", "udp", "nat-traversal", "hmac", "sha1", "sha256", "md5"]
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
    "Topic :: Internet",
    "Topic :: System :: Networking",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["icekit"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
