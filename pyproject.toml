[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "minnow"
version = "0.1.0"
description = "A user-space TCP/IP stack: byte streams, reassembly, TCP sender and receiver, ARP-capable network interfaces, a longest-prefix-match router and a small HTTP fetcher."
requires-python = ">=3.10"
dependencies = []
keywords = ["tcp", "ip", "arp", "ethernet", "networking", "router", "reassembler", "byte-stream"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Intended Audience :: Education",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Networking",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
webget = "minnow.webget:main"

[tool.hatch.build.targets.wheel]
packages = ["minnow"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
