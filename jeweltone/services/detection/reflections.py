"""
Highlight detection inside the metal mask.

Specular highlights on polished metal are bright, low-chroma and carry
most of the perceived shine. The reflection map records how strongly each
metal pixel is highlighted so color transfer can keep its lightness.
"""
import numpy as np

from jeweltone.services.colors.colorspace import luminance

# (luminance strictly above, strength), checked brightest first
REFLECTION_LEVELS = (
    (200.0, 255),
    (170.0, 200),
    (140.0, 150),
)


def map_reflections(pixels: np.ndarray, metal_mask: np.ndarray) -> np.ndarray:
    """
    Build a per-pixel highlight strength map.

    Args:
        pixels: RGB(A) pixel buffer (H, W, 3|4) uint8
        metal_mask: (H, W) mask, non-zero where the pixel is metal

    Returns:
        (H, W) uint8 map with values in {0, 150, 200, 255}; always 0
        outside the mask
    """
    if pixels.shape[:2] != metal_mask.shape[:2]:
        raise ValueError("Pixel buffer and metal mask dimensions must match")

    luma = luminance(pixels[..., :3])
    strength = np.select(
        [luma > threshold for threshold, _ in REFLECTION_LEVELS],
        [level for _, level in REFLECTION_LEVELS],
        default=0,
    ).astype(np.uint8)

    return np.where(metal_mask > 0, strength, 0).astype(np.uint8)


def highlight_ratio(reflection_map: np.ndarray, metal_mask: np.ndarray) -> float:
    """Fraction of metal pixels carrying any highlight."""
    metal_pixels = np.count_nonzero(metal_mask)
    if metal_pixels == 0:
        return 0.0
    return np.count_nonzero(reflection_map) / metal_pixels
