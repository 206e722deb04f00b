[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "bbyyy"
version = "0.1.0"
description = "IR, RISC-V backend helpers, constant propagation and dead-store elimination for a small SysY compiler"
requires-python = ">=3.10"
dependencies = []
keywords = ["compiler", "ir", "ssa", "optimization", "riscv", "sysy", "dataflow"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: Education",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Operating System :: OS Independent",
    "Topic :: Software Development :: Compilers",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["bbyyy"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
