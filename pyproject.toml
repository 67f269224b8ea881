[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "roadmapctl"
version = "0.1.0"
description = "Structure, dependency and status checks for markdown roadmaps read through the rootline CLI"
requires-python = ">=3.10"
dependencies = []
keywords = ["roadmap", "markdown", "planning", "rootline", "diagnostics"]
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
    "Topic :: Software Development",
    "Typing :: Typed",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["roadmapctl"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"
