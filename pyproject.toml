[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "janus-ipc"
version = "2.0.0"
description = "Datagram Unix socket command protocol: messages, manifests, validation, timeouts and a command server"
requires-python = ">=3.10"
dependencies = [
    "pyyaml",
]
keywords = ["unix", "socket", "ipc", "datagram", "json-rpc", "manifest", "asyncio"]
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
    "Framework :: AsyncIO",
    "Topic :: System :: Networking",
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = [
    "pytest",
    "pytest-asyncio",
]

[tool.hatch.build.targets.wheel]
packages = ["janus_ipc"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
