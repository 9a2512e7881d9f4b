[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "ltntools"
version = "0.1.0"
description = "MPEG transport stream utilities: bit streams, packet and PCR helpers, packetizing, hex dumps, millisecond histograms, UDP reception and VBV modelling."
requires-python = ">=3.10"
dependencies = []
keywords = ["mpeg-ts", "transport-stream", "pcr", "pes", "video", "vbv", "udp", "multicast", "bitstream"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Operating System :: POSIX",
    "Topic :: Multimedia :: Video",
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["ltntools"]

[tool.pytest.ini_options]
addopts = "-ra"
