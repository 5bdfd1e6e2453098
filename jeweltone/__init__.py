"""
JewelTone

Recolors jewelry photographs between yellow gold and rose gold while
keeping gemstones, engravings and highlights intact.
"""

__version__ = "1.0.0"
