[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "microperf"
version = "1.0.8"
description = "Building blocks for network benchmarks: workorders, strands, transports, statistics and reports"
requires-python = ">=3.10"
dependencies = []
keywords = [
    "benchmark",
    "network",
    "performance",
    "throughput",
    "latency",
    "tcp",
    "udp",
    "tls",
    "vsock",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Benchmark",
    "Topic :: System :: Networking",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["microperf"]

[tool.hatch.build.targets.sdist]
include = ["microperf", "tests", "pyproject.toml", "README.md"]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]

[tool.ruff]
line-length = 88
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
warn_redundant_casts = true
