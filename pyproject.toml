[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "nscang"
version = "1.6"
description = "Client for submitting passive monitoring check results over a TLS-PSK connection"
requires-python = ">=3.13"
dependencies = []
keywords = ["monitoring", "nagios", "icinga", "passive checks", "nsca", "tls-psk"]
classifiers = [
    "Development Status :: 5 - Production/Stable",
    "Environment :: Console",
    "Intended Audience :: System Administrators",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Monitoring",
    "Topic :: System :: Networking :: Monitoring",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
send_nsca = "nscang.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["nscang"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 88
target-version = "py313"

[tool.mypy]
python_version = "3.13"
warn_unused_ignores = true
