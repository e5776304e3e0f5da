[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "fixedeye"
version = "0.1.0"
description = "Weighted pose averaging and fixed-eye camera calibration with first-order covariance propagation"
requires-python = ">=3.10"
dependencies = [
    "numpy",
]
keywords = [
    "calibration",
    "pose",
    "quaternion",
    "covariance",
    "hand-eye",
    "robotics",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Science/Research",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Scientific/Engineering :: Mathematics",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["fixedeye"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
