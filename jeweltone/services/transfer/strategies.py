"""
Color transfer strategies.

Both strategies share one contract: given the RGB and Lab values of the
masked pixels, the source and target finishes, the reflection strength
and the flat pixel positions, return the replacement RGB values. They run
on (N, 3) arrays of masked pixels only, so unmasked pixels never reach
them. A strategy may also refine the whole recolored buffer, limited to
the metal mask.
"""
from abc import ABC, abstractmethod

import cv2
import numpy as np

from jeweltone.services.colors.colorspace import (
    hsv_to_rgb, lab_distance, lab_to_srgb, luminance, rgb_to_hsv,
)
from jeweltone.services.colors.palettes import Finish, get_anchor_arrays
from jeweltone.services.detection.heuristics import gold_band_mask, rose_band, yellow_band

ANCHOR_EPSILON = 1e-4

# Rows per chunk when broadcasting pixels against anchors
CHUNK_ROWS = 1 << 18

YELLOW_TARGET_HUE = 45.0
ROSE_TARGET_HUE = 5.0
LUMINANCE_CORRECTION_BOUNDS = (0.7, 1.3)

# Images with an edge longer than this get a smoothing pass after HSV remap
SMOOTH_MIN_EDGE = 1000
SMOOTH_KEEP = 0.7
SMOOTH_MEAN = 0.3


def _round_half_up(values: np.ndarray) -> np.ndarray:
    return np.floor(values + 0.5)


def position_jitter(positions: np.ndarray, amplitude: float = 2.5) -> np.ndarray:
    """
    Deterministic pseudo-random offset in [-amplitude, amplitude) per pixel.

    Multiplicative hashing of the flat pixel index, so the same position
    always gets the same offset.
    """
    hashed = (positions.astype(np.uint64) * np.uint64(2654435761)) % np.uint64(1 << 32)
    unit = hashed.astype(np.float64) / float(1 << 32)
    return unit * (2.0 * amplitude) - amplitude


class TransferStrategy(ABC):
    """Recolors masked pixels from one finish to another."""

    name: str = "base"

    @abstractmethod
    def transfer(
        self,
        rgb: np.ndarray,
        lab: np.ndarray,
        source: Finish,
        target: Finish,
        reflection: np.ndarray,
        positions: np.ndarray,
    ) -> np.ndarray:
        """
        Compute replacement colors.

        Args:
            rgb: (N, 3) uint8 source colors
            lab: (N, 3) Lab values of `rgb`
            source: Detected finish
            target: Requested finish
            reflection: (N,) uint8 highlight strength
            positions: (N,) flat pixel indices

        Returns:
            (N, 3) uint8 replacement colors
        """

    def refine(self, pixels: np.ndarray, metal_mask: np.ndarray) -> np.ndarray:
        """Whole-buffer pass run after `transfer`; the default changes nothing."""
        return pixels


class LabAnchorStrategy(TransferStrategy):
    """
    Inverse-distance interpolation against curated Lab anchor pairs.

    Each pixel's output Lab is the weighted average of the anchor targets,
    weighted by 1 / (distance to anchor source + eps). Highlights keep
    their original lightness in proportion to reflection strength.
    """

    name = "lab_anchor"

    def transfer(self, rgb, lab, source, target, reflection, positions):
        if Finish(source) == Finish(target):
            return rgb.copy()

        anchor_sources, anchor_targets = get_anchor_arrays(source, target)
        out = np.empty((len(lab), 3), dtype=np.uint8)

        for start in range(0, len(lab), CHUNK_ROWS):
            stop = start + CHUNK_ROWS
            out[start:stop] = lab_to_srgb(
                self.interpolate(lab[start:stop], anchor_sources, anchor_targets,
                                 reflection[start:stop])
            )
        return out

    @staticmethod
    def interpolate(
        lab: np.ndarray,
        anchor_sources: np.ndarray,
        anchor_targets: np.ndarray,
        reflection: np.ndarray,
    ) -> np.ndarray:
        """Map (N, 3) Lab values through the anchor table; returns (N, 3) Lab."""
        distances = lab_distance(lab[:, None, :], anchor_sources[None, :, :])

        weights = 1.0 / (distances + ANCHOR_EPSILON)
        weights /= weights.sum(axis=1, keepdims=True)
        mapped = weights @ anchor_targets

        exact = distances == 0
        has_exact = exact.any(axis=1)
        if has_exact.any():
            mapped[has_exact] = anchor_targets[exact[has_exact].argmax(axis=1)]

        preservation = reflection.astype(np.float64) / 255.0
        mapped[:, 0] = lab[:, 0] * preservation + mapped[:, 0] * (1.0 - preservation)
        return mapped


class HsvRemapStrategy(TransferStrategy):
    """
    Direct hue/saturation/value remap.

    Cheaper and coarser than anchor interpolation: hue is pulled toward a
    fixed target hue, saturation and value are rescaled by a gold
    confidence score, and the result is rescaled to the original luminance
    within bounded correction. Reflection strength is not used. Large
    images get a light smoothing pass over the recolored metal.
    """

    name = "hsv"

    def transfer(self, rgb, lab, source, target, reflection, positions):
        target = Finish(target)
        hsv = rgb_to_hsv(rgb)
        hue, sat, val = hsv[:, 0], hsv[:, 1], hsv[:, 2]

        initial_luma = luminance(rgb)
        gold_confidence = np.minimum(sat * 1.5, 1.0) * np.minimum(val * 1.2, 1.0)
        jitter = position_jitter(positions)

        if target == Finish.YELLOW:
            new_hue = np.where(rose_band(hsv), YELLOW_TARGET_HUE + jitter, hue * 0.2 + 36.0)
            new_sat = np.clip(sat * (0.7 + 0.3 * gold_confidence) + 0.1, 0.3, 0.95)
            new_val = np.clip(val * 0.85 + 0.15, 0.5, 0.95)
        else:
            new_hue = np.where(
                yellow_band(hsv),
                ROSE_TARGET_HUE + jitter,
                np.where(hue > 180.0, 358.0, np.clip(hue, 0.0, 15.0)),
            )
            new_sat = np.clip(sat * (0.8 + 0.2 * gold_confidence), 0.25, 0.85)
            new_val = np.clip(val * 0.9 + 0.05, 0.4, 0.9)

        remapped = _round_half_up(hsv_to_rgb(np.stack([np.mod(new_hue, 360.0), new_sat, new_val], axis=-1)))

        new_luma = luminance(remapped)
        low, high = LUMINANCE_CORRECTION_BOUNDS
        factor = np.clip(initial_luma / np.maximum(1.0, new_luma), low, high)
        corrected = np.clip(_round_half_up(remapped * factor[:, None]), 0, 255)

        # Already the target finish: apply at half intensity
        if Finish(source) == target:
            corrected = _round_half_up(rgb.astype(np.float64) * 0.5 + corrected * 0.5)

        return corrected.astype(np.uint8)

    def refine(self, pixels, metal_mask):
        """
        Soften the remapped metal on large images.

        When either edge exceeds SMOOTH_MIN_EDGE, every interior metal pixel
        that reads as gold becomes 0.7 * itself + 0.3 * its 3x3 mean. Means
        come from the buffer as it was before this pass.
        """
        height, width = pixels.shape[:2]
        if max(height, width) <= SMOOTH_MIN_EDGE or min(height, width) < 3:
            return pixels

        rgb = pixels[..., :3].astype(np.float64)
        mean = cv2.blur(rgb, (3, 3))

        selected = np.zeros((height, width), dtype=bool)
        selected[1:-1, 1:-1] = True
        selected &= (metal_mask > 0) & gold_band_mask(rgb_to_hsv(pixels[..., :3]))

        blended = np.floor(rgb * SMOOTH_KEEP + mean * SMOOTH_MEAN + 0.5)
        output = pixels.copy()
        output[..., :3][selected] = blended[selected].astype(np.uint8)
        return output


STRATEGIES = {
    LabAnchorStrategy.name: LabAnchorStrategy,
    HsvRemapStrategy.name: HsvRemapStrategy,
}


def get_strategy(name: str) -> TransferStrategy:
    """
    Instantiate a transfer strategy by name.

    Raises:
        ValueError: For unknown strategy names
    """
    try:
        return STRATEGIES[name]()
    except KeyError:
        raise ValueError(f"Unknown transfer strategy: {name}. Supported: {', '.join(STRATEGIES)}")
