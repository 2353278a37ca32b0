[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "smallwares"
version = "0.1.0"
description = "Small in-memory HTTP services, an SMTP session state machine and toy language-model runners"
requires-python = ">=3.10"
dependencies = [
    "numpy",
]
keywords = [
    "smtp",
    "http",
    "key-value",
    "object-store",
    "blockchain",
    "fnv",
    "transformer",
    "gpt2",
    "bpe",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: Education",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Internet",
    "Topic :: Internet :: WWW/HTTP :: HTTP Servers",
    "Topic :: Database :: Database Engines/Servers",
    "Topic :: Scientific/Engineering :: Artificial Intelligence",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
smallwares-blockchain = "smallwares.blockchain:main"
smallwares-kv = "smallwares.kv:main"
smallwares-objstore = "smallwares.objstore_server:main"
smallwares-transformer = "smallwares.transformer:main"
smallwares-gpt2 = "smallwares.gpt2:main"

[tool.hatch.build.targets.wheel]
packages = ["smallwares"]

[tool.hatch.build.targets.sdist]
include = [
    "smallwares",
    "tests",
]

[tool.pytest.ini_options]
addopts = "-ra"
