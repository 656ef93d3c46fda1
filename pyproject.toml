[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "vinetree"
version = "0.1.0"
description = "Phylogenetic building blocks: neighbor joining, Robinson-Foulds distances, sparse containers, normalizing flows and migration models on trees."
requires-python = ">=3.10"
dependencies = [
    "numpy",
]
keywords = [
    "phylogenetics",
    "neighbor-joining",
    "jukes-cantor",
    "normalizing-flows",
    "robinson-foulds",
    "migration",
    "nexus",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Science/Research",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Operating System :: OS Independent",
    "Topic :: Scientific/Engineering :: Bio-Informatics",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["vinetree"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
