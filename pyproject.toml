[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "emitter"
version = "0.1.0"
description = "Building blocks of a publish/subscribe broker: message identifiers and frames, a subscription trie, an MQTT packet codec, a protocol-sniffing listener, an HTTP client and a websocket stream transport."
requires-python = ">=3.10"
dependencies = []
keywords = ["mqtt", "pubsub", "broker", "subscription", "trie", "websocket", "listener", "snappy"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Operating System :: OS Independent",
    "Topic :: System :: Networking",
    "Topic :: Communications",
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["emitter"]

[tool.pytest.ini_options]
addopts = "-ra"
