"""
Color transfer stage.

Applies the selected transfer strategy to every masked pixel of a buffer
and leaves everything else, including alpha, bit-identical.
"""
from typing import Optional, Union

import numpy as np
from loguru import logger

from jeweltone.config import config
from jeweltone.services.colors.colorspace import srgb_to_lab
from jeweltone.services.colors.palettes import Finish
from jeweltone.services.detection.classifier import DetectionResult
from jeweltone.services.imaging import ensure_pixel_buffer
from jeweltone.services.transfer.strategies import TransferStrategy, get_strategy


class ColorTransferEngine:
    """Recolors the metal region of an image with a fixed strategy."""

    def __init__(self, strategy: Optional[Union[TransferStrategy, str]] = None):
        """
        Args:
            strategy: Strategy instance or name ("lab_anchor", "hsv").
                Defaults to the configured strategy.
        """
        if strategy is None:
            strategy = config.TRANSFER_STRATEGY
        if isinstance(strategy, str):
            strategy = get_strategy(strategy)
        self.strategy = strategy

    def transform(
        self,
        pixels: np.ndarray,
        detection: DetectionResult,
        target: Union[Finish, str],
    ) -> np.ndarray:
        """
        Recolor the metal pixels of `pixels` toward `target`.

        Args:
            pixels: RGB(A) pixel buffer (H, W, 3|4) uint8
            detection: Detection result for this buffer
            target: Target finish

        Returns:
            New pixel buffer of the same shape; unmasked pixels are copied
            unchanged

        Raises:
            ValueError: If the target is unknown or the mask does not match
        """
        ensure_pixel_buffer(pixels)
        target = Finish(target)
        if detection.metal_mask.shape != pixels.shape[:2]:
            raise ValueError("Pixel buffer and metal mask dimensions must match")

        output = pixels.copy()
        flat = output.reshape(-1, pixels.shape[2])

        positions = np.flatnonzero(detection.metal_mask)
        if positions.size == 0:
            return output

        rgb = flat[positions, :3]
        lab = srgb_to_lab(rgb)
        reflection = detection.reflection_map.reshape(-1)[positions]

        logger.info(
            f"Transferring {positions.size} metal pixels "
            f"{detection.detected_color.value} -> {target.value} with {self.strategy.name}"
        )
        flat[positions, :3] = self.strategy.transfer(
            rgb, lab, detection.detected_color, target, reflection, positions
        )
        return self.strategy.refine(output, detection.metal_mask)


def transform(
    pixels: np.ndarray,
    detection: DetectionResult,
    target: Union[Finish, str],
    strategy: Optional[Union[TransferStrategy, str]] = None,
) -> np.ndarray:
    """Recolor `pixels` with a one-off engine. See ColorTransferEngine.transform."""
    return ColorTransferEngine(strategy).transform(pixels, detection, target)
