[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "markovkmc"
version = "0.1.0"
description = "Markov state models of atomic transitions built from TAD segments and NEB pathways"
requires-python = ">=3.10"
keywords = [
    "kinetic monte carlo",
    "markov model",
    "molecular dynamics",
    "transition state",
    "cubic symmetry",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Science/Research",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Scientific/Engineering :: Physics",
]
dependencies = [
    "numpy",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["markovkmc"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
