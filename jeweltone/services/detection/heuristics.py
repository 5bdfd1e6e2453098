"""
HSV band heuristics for gold pixels.

A cheaper, per-pixel alternative to the Lab cluster classifier. The
direct-HSV transfer strategy uses the per-pixel finish bands, and the
detect endpoint reports how far the band mask agrees with the cluster
mask. The two detectors are not expected to agree on pixels near hue
band boundaries; the cluster classifier is authoritative.
"""
from typing import Optional, Tuple

import numpy as np

from jeweltone.services.colors.colorspace import rgb_to_hsv
from jeweltone.services.colors.palettes import Finish


def gold_band_mask(hsv: np.ndarray) -> np.ndarray:
    """
    Boolean mask of pixels whose HSV falls in a gold (or white gold) band.

    Args:
        hsv: (..., 3) array of hue degrees, saturation, value
    """
    h, s, v = hsv[..., 0], hsv[..., 1], hsv[..., 2]

    yellow = (h >= 30) & (h <= 55) & (s >= 0.3) & (s <= 0.95) & (v >= 0.4)
    rose = (
        ((h >= 345) | (h <= 20)) & (s >= 0.25) & (s <= 0.9) & (v >= 0.4)
    ) | ((h >= 15) & (h <= 30) & (s >= 0.4) & (v >= 0.45))
    white = (s <= 0.15) & (v >= 0.75)

    return yellow | rose | white


def yellow_band(hsv: np.ndarray) -> np.ndarray:
    """Pixels that currently read as yellow gold."""
    h, s, v = hsv[..., 0], hsv[..., 1], hsv[..., 2]
    return ((h >= 30) & (h <= 60)) | ((s >= 0.3) & (s <= 0.95) & (v >= 0.6))


def rose_band(hsv: np.ndarray) -> np.ndarray:
    """Pixels that currently read as rose gold."""
    h, s = hsv[..., 0], hsv[..., 1]
    return (h >= 345) | (h <= 20) | ((h >= 15) & (h <= 30) & (s >= 0.4))


def estimate_finish_hsv(pixels: np.ndarray, stride: int = 4) -> Tuple[Optional[Finish], int, int]:
    """
    Vote on the dominant finish from HSV bands over a strided sample.

    Args:
        pixels: RGB(A) pixel buffer (H, W, 3|4)
        stride: Take every `stride`-th pixel

    Returns:
        Tuple of (finish or None on a tie, yellow_votes, rose_votes)
    """
    sample = pixels[..., :3].reshape(-1, 3)[::max(1, stride)]
    hsv = rgb_to_hsv(sample)
    gold = gold_band_mask(hsv)

    h, s = hsv[..., 0], hsv[..., 1]
    yellow = gold & (h >= 30) & (h <= 55) & (s >= 0.3)
    rose = gold & ~yellow & (((h >= 345) | (h <= 20)) | ((h >= 15) & (h <= 30) & (s >= 0.4)))

    yellow_votes = int(np.count_nonzero(yellow))
    rose_votes = int(np.count_nonzero(rose))
    if yellow_votes > rose_votes:
        return Finish.YELLOW, yellow_votes, rose_votes
    if rose_votes > yellow_votes:
        return Finish.ROSE, yellow_votes, rose_votes
    return None, yellow_votes, rose_votes


def mask_agreement(pixels: np.ndarray, metal_mask: np.ndarray) -> float:
    """Fraction of pixels on which the HSV band mask agrees with `metal_mask`."""
    band = gold_band_mask(rgb_to_hsv(pixels[..., :3]))
    if band.size == 0:
        return 1.0
    return float(np.count_nonzero(band == (metal_mask > 0)) / band.size)
