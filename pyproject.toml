[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "pagetable-multiarch"
version = "0.5.3"
description = "Generic multi-level page tables and page table entries for x86_64, AArch64, RISC-V and LoongArch64"
requires-python = ">=3.10"
dependencies = []
keywords = ["paging", "page-table", "virtual-memory", "mmu", "tlb"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Intended Audience :: Education",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Operating System Kernels",
    "Topic :: System :: Emulators",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["pagetable_multiarch"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
