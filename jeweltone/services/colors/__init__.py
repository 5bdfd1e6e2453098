"""
JewelTone Colors Module

Color space conversions and the reference palettes for yellow and rose
gold shared by detection and transfer.
"""

__version__ = "1.0.0"
