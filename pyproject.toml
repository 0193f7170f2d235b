[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "ht32panel"
version = "0.8.0"
description = "Control tools for the HT32 mini PC front panel: LCD, LED strip, themes and display faces over D-Bus"
requires-python = ">=3.11"
dependencies = [
    "tomli-w",
]
keywords = ["ht32", "lcd", "led", "panel", "d-bus", "mini-pc", "system-tray"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: End Users/Desktop",
    "Intended Audience :: System Administrators",
    "Operating System :: POSIX :: Linux",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Hardware",
    "Topic :: Utilities",
]

[project.optional-dependencies]
test = [
    "pytest",
    "pytest-asyncio",
]

[project.scripts]
ht32panelctl = "ht32panel.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["ht32panel"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py311"

[tool.mypy]
python_version = "3.11"
warn_unused_ignores = true
