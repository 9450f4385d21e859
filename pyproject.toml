[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "kayros"
version = "0.1.0"
description = "Service layer for a food delivery backend: restaurants, menus, comments, users, sessions and authentication"
requires-python = ">=3.10"
dependencies = []
keywords = ["food-delivery", "restaurants", "repository", "sessions", "service-layer"]
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
    "Topic :: Internet :: WWW/HTTP",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["kayros"]

[tool.pytest.ini_options]
addopts = "-ra"
