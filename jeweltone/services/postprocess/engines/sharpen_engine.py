"""
Laplacian Sharpen Engine
Deterministic local sharpening, the fallback for super-resolution.
"""
import numpy as np
import cv2

LAPLACIAN_KERNEL = np.array([
    [0, -1, 0],
    [-1, 4, -1],
    [0, -1, 0],
], dtype=np.float64)


class SharpenEngine:
    """Sharpening with a discrete Laplacian, interior pixels only."""

    name = "sharpen"

    def __init__(self, strength: float = 0.3):
        """
        Args:
            strength: Blend factor for the Laplacian response
        """
        self.strength = strength

    def enhance(self, pixels: np.ndarray) -> np.ndarray:
        """
        Sharpen an RGB(A) buffer.

        out = center + strength * (4*center - top - bottom - left - right),
        rounded and clamped to [0, 255]. Border pixels and alpha are copied.

        Args:
            pixels: RGB(A) pixel buffer (H, W, 3|4) uint8

        Returns:
            Sharpened buffer of the same shape
        """
        output = pixels.copy()
        height, width = pixels.shape[:2]
        if height < 3 or width < 3:
            return output

        rgb = pixels[..., :3].astype(np.float64)
        # float64 keeps exact .5 results from rounding down
        laplacian = cv2.filter2D(rgb, cv2.CV_64F, LAPLACIAN_KERNEL)
        sharpened = np.clip(np.floor(rgb + self.strength * laplacian + 0.5), 0, 255)

        output[1:-1, 1:-1, :3] = sharpened[1:-1, 1:-1].astype(np.uint8)
        return output


def sharpen(pixels: np.ndarray, strength: float = 0.3) -> np.ndarray:
    """Sharpen with a one-off engine. See SharpenEngine.enhance."""
    return SharpenEngine(strength=strength).enhance(pixels)
