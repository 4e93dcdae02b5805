[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "semlakit"
version = "0.1.0"
description = "Encrypted model library files, a line-based licensing protocol and a TLS message channel"
requires-python = ">=3.10"
keywords = [
    "encryption",
    "aes",
    "hmac",
    "licensing",
    "protocol",
    "tls",
    "model libraries",
]
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
    "Topic :: Security :: Cryptography",
    "Topic :: Software Development :: Libraries :: Python Modules",
]
dependencies = [
    "cryptography",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
semlakit = "semlakit.cli:main"
semlakit-encrypt = "semlakit.cli:encrypt_main"
semlakit-decrypt = "semlakit.cli:decrypt_main"

[tool.hatch.build.targets.wheel]
packages = ["semlakit"]

[tool.hatch.build.targets.sdist]
include = [
    "semlakit",
    "tests",
]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]
