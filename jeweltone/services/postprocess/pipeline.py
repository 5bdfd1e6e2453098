"""
JewelTone Post-Processing Pipeline
Artifact suppression followed by enhancement with a sharpening fallback.
"""
from dataclasses import dataclass
from typing import Optional

import numpy as np
from loguru import logger

from jeweltone.config import config
from jeweltone.errors import EnhancementUnavailable
from jeweltone.services.postprocess.artifacts import find_artifacts, suppress_artifacts
from jeweltone.services.postprocess.engines.sharpen_engine import sharpen
from jeweltone.services.postprocess.engines.superres_engine import get_superres_engine


@dataclass(frozen=True)
class PostProcessResult:
    """Output of post-processing. `enhancement` is superres, sharpen or none."""
    pixels: np.ndarray
    enhancement: str
    artifact_count: int


def post_process(
    pixels: np.ndarray,
    enhance: Optional[bool] = None,
    engine=None,
    artifact_threshold: Optional[float] = None,
    sharpen_strength: Optional[float] = None,
) -> PostProcessResult:
    """
    Clean up a recolored buffer and optionally enhance it.

    Never fails for a valid buffer: any failure of the enhancement model
    falls back to Laplacian sharpening.

    Args:
        pixels: RGB(A) pixel buffer (H, W, 3|4) uint8
        enhance: Run the enhancement step (default from config)
        engine: Enhancement engine with an `enhance(pixels)` method
            (default: global super-resolution engine)
        artifact_threshold: Neighbor variance threshold (default from config)
        sharpen_strength: Fallback sharpening strength (default from config)

    Returns:
        PostProcessResult
    """
    if enhance is None:
        enhance = config.ENABLE_ENHANCEMENT
    if artifact_threshold is None:
        artifact_threshold = config.ARTIFACT_THRESHOLD
    if sharpen_strength is None:
        sharpen_strength = config.SHARPEN_STRENGTH

    flagged = find_artifacts(pixels, artifact_threshold)
    artifact_count = int(np.count_nonzero(flagged))
    cleaned = suppress_artifacts(pixels, artifact_threshold, flagged=flagged)
    logger.debug(f"Suppressed {artifact_count} artifact pixels")

    if not enhance:
        return PostProcessResult(pixels=cleaned, enhancement="none", artifact_count=artifact_count)

    if engine is None:
        engine = get_superres_engine()

    try:
        enhanced = engine.enhance(cleaned)
        logger.info(f"Enhancement successful ({getattr(engine, 'name', 'model')})")
        return PostProcessResult(
            pixels=enhanced,
            enhancement=getattr(engine, "name", "superres"),
            artifact_count=artifact_count,
        )
    except EnhancementUnavailable as e:
        logger.warning(f"Enhancement unavailable: {str(e)}, falling back to sharpening")
    except Exception as e:
        # Engines outside this package may not translate their own errors
        logger.warning(f"Enhancement failed: {type(e).__name__}: {str(e)}, falling back to sharpening")

    sharpened = sharpen(cleaned, strength=sharpen_strength)
    return PostProcessResult(pixels=sharpened, enhancement="sharpen", artifact_count=artifact_count)
