[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "ubox"
version = "0.1.0"
description = "AVL trees, tagged binary blobs, blobmsg messages with JSON conversion, base64 and the jshn shell helper"
requires-python = ">=3.10"
dependencies = []
keywords = ["avl", "blob", "blobmsg", "tlv", "json", "base64", "jshn", "shell"]
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
    "Topic :: Software Development :: Libraries",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
jshn = "ubox.jshn:main"

[tool.hatch.build.targets.wheel]
packages = ["ubox"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
