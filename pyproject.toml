[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "hvmlang"
version = "0.1.0"
description = "Parser, sanitizer, pattern flattener and rulebook builder for a higher-order rewrite language"
requires-python = ">=3.10"
dependencies = []
keywords = ["lambda calculus", "rewrite rules", "parser", "interpreter", "functional"]
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
    "Topic :: Software Development :: Interpreters",
    "Typing :: Typed",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["hvmlang"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"
