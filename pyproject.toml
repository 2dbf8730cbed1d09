[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "lidar_odom"
version = "0.1.0"
description = "Lidar odometry building blocks: range-image projection with IMU deskewing, edge and planar feature extraction, and scan-to-map matching."
requires-python = ">=3.10"
keywords = ["lidar", "odometry", "point-cloud", "imu", "feature-extraction", "scan-matching"]
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
    "Topic :: Scientific/Engineering",
]
dependencies = [
    "numpy",
    "scipy",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["lidar_odom"]

[tool.pytest.ini_options]
addopts = "-ra"
