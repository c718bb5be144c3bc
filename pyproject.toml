[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "milu"
version = "0.2.1"
description = "A small typed expression language with a parser, type checker, evaluator and interactive shell"
requires-python = ">=3.10"
dependencies = []
keywords = ["expression", "interpreter", "scripting", "rules", "repl"]
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
    "Topic :: Software Development :: Interpreters",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
milu-repl = "milu.repl:main"

[tool.hatch.build.targets.wheel]
packages = ["milu"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
