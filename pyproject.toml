[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "sunxitools"
version = "0.1.0"
description = "Tools for Allwinner sunxi SoCs: FEX script parsing and binary encoding, PIO register editing, Phoenix image inspection and SoC information"
requires-python = ">=3.10"
dependencies = []
keywords = ["allwinner", "sunxi", "fex", "script.bin", "pio", "gpio", "phoenix", "embedded"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Embedded Systems",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
sunxi-pio = "sunxitools.pio:main"
phoenix-info = "sunxitools.phoenix_info:main"

[tool.hatch.build.targets.wheel]
packages = ["sunxitools"]

[tool.pytest.ini_options]
addopts = "-ra"
