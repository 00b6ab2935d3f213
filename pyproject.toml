[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "citrea_net"
version = "0.1.0"
description = "Peer-to-peer networking primitives and message types for a Bitcoin-anchored layer 2 network"
requires-python = ">=3.10"
dependencies = []
keywords = ["p2p", "networking", "gossip", "layer2", "blocks", "messages", "asyncio"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Framework :: AsyncIO",
    "Operating System :: OS Independent",
    "Topic :: System :: Networking",
]

[project.optional-dependencies]
test = ["pytest", "pytest-asyncio"]

[project.scripts]
citrea-simple-node = "citrea_net.simple_node:main"

[tool.hatch.build.targets.wheel]
packages = ["citrea_net"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
