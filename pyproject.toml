[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "elitesdk"
version = "0.1.0"
description = "Client library for Elite collaborative robot controllers: RTSI data exchange, primary port and external control servers."
requires-python = ">=3.10"
dependencies = []
keywords = ["robot", "robotics", "rtsi", "elite", "external-control", "industrial"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Intended Audience :: Manufacturing",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Scientific/Engineering :: Interface Engine/Protocol Translator",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["elitesdk"]

[tool.pytest.ini_options]
addopts = "-ra"
