"""Tools for Allwinner sunxi SoCs: FEX and script.bin conversion, U-Boot DRAM output, PIO register editing, Phoenix images, SoC data and progress reporting."""

__version__ = "0.1.0"