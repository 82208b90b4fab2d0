[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "dcsbinder"
version = "0.1.0.dev0"
description = "Detect and remap DCS World controller bindings across device GUID changes, with backup and undo."
requires-python = ">=3.10"
keywords = ["dcs", "dcs-world", "joystick", "bindings", "guid", "remap", "flight-simulator"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: End Users/Desktop",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Games/Entertainment :: Simulation",
    "Topic :: Utilities",
]
dependencies = [
    "psutil",
    "platformdirs",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
dcsbinder = "dcsbinder.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["dcsbinder"]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]
