"""
JewelTone Artifact Suppression
Median replacement of isolated outlier pixels left by recoloring.
"""
from typing import Optional

import numpy as np
import cv2


def neighbor_variance(pixels: np.ndarray) -> np.ndarray:
    """
    Mean RGB distance of each interior pixel to its 4-connected neighbors.

    Args:
        pixels: RGB(A) pixel buffer (H, W, 3|4)

    Returns:
        (H-2, W-2) float array aligned with pixels[1:-1, 1:-1]
    """
    rgb = pixels[..., :3].astype(np.float64)
    center = rgb[1:-1, 1:-1]
    neighbors = (
        rgb[:-2, 1:-1],  # above
        rgb[2:, 1:-1],   # below
        rgb[1:-1, :-2],  # left
        rgb[1:-1, 2:],   # right
    )
    total = sum(np.sqrt(np.sum((center - n) ** 2, axis=-1)) for n in neighbors)
    return total / len(neighbors)


def find_artifacts(pixels: np.ndarray, threshold: float = 40.0) -> np.ndarray:
    """
    Flag interior pixels whose neighbor variance exceeds `threshold`.

    Returns:
        (H, W) boolean mask; border pixels are never flagged
    """
    height, width = pixels.shape[:2]
    flagged = np.zeros((height, width), dtype=bool)
    if height < 3 or width < 3:
        return flagged
    flagged[1:-1, 1:-1] = neighbor_variance(pixels) > threshold
    return flagged


def suppress_artifacts(
    pixels: np.ndarray,
    threshold: float = 40.0,
    flagged: Optional[np.ndarray] = None,
) -> np.ndarray:
    """
    Replace outlier pixels with the per-channel median of their 3x3 window.

    Detection reads the input buffer only, so a replaced pixel never
    influences its neighbors' decision. Alpha is left untouched.

    Args:
        pixels: RGB(A) pixel buffer (H, W, 3|4) uint8
        threshold: Neighbor variance above which a pixel is an artifact
        flagged: Precomputed mask from `find_artifacts`, if already known

    Returns:
        New pixel buffer with artifacts replaced
    """
    output = pixels.copy()
    if flagged is None:
        flagged = find_artifacts(pixels, threshold)
    if not flagged.any():
        return output

    # Border pixels are never flagged, so the blur's border mode is irrelevant
    median = cv2.medianBlur(np.ascontiguousarray(pixels[..., :3]), 3)
    output[..., :3][flagged] = median[flagged]
    return output
