"""
JewelTone Transform Pipeline
Main orchestration of the decode -> detect -> transfer -> post-process workflow.
"""
import asyncio
import time
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple, Union

import numpy as np

from jeweltone.errors import JewelToneError
from jeweltone.services.colors.palettes import Finish
from jeweltone.services.detection.classifier import DetectionResult, detect_finish
from jeweltone.services.imaging import decode_image, encode_image, get_image_dimensions
from jeweltone.services.postprocess.pipeline import post_process
from jeweltone.services.transfer.engine import ColorTransferEngine
from jeweltone.utils.ids import generate_request_id
from jeweltone.utils.logging import get_logger
from jeweltone.utils.metrics import get_metrics


@dataclass(frozen=True)
class TransformOutcome:
    """Everything a caller needs from one transform invocation."""
    request_id: str
    detection: DetectionResult
    target: Finish
    pixels: np.ndarray
    png_bytes: bytes
    enhancement: str
    artifact_count: int
    strategy: str
    timings_ms: Dict[str, int] = field(default_factory=dict)

    @property
    def dimensions(self) -> Tuple[int, int]:
        return get_image_dimensions(self.pixels)


def _elapsed_ms(start: float) -> int:
    return int((time.time() - start) * 1000)


async def run_detection(file_bytes: bytes) -> Tuple[np.ndarray, DetectionResult]:
    """
    Decode an image and detect its metal finish.

    Args:
        file_bytes: Encoded image bytes

    Returns:
        Tuple of (pixel buffer, detection result)

    Raises:
        DecodeFailure: If the image can't be decoded
        NoMetalDetected: If no metal region is found
    """
    pixels = await asyncio.to_thread(decode_image, file_bytes)
    return pixels, detect_finish(pixels)


async def run_transform(
    file_bytes: bytes,
    target: Optional[Union[Finish, str]] = None,
    enhance: Optional[bool] = None,
    strategy: Optional[str] = None,
    enhancement_engine=None,
) -> TransformOutcome:
    """
    Main transform pipeline that orchestrates the entire workflow.

    Stages run strictly in order. Decode, encode and post-processing (which
    may call the enhancement model) run in a worker thread.

    Args:
        file_bytes: Encoded image bytes
        target: Target finish; defaults to the opposite of the detected one
        enhance: Run the enhancement step (default from config)
        strategy: Transfer strategy name (default from config)
        enhancement_engine: Override for the enhancement engine

    Returns:
        TransformOutcome with the final buffer and its PNG encoding

    Raises:
        DecodeFailure, NoMetalDetected, ContextUnavailable: Fatal stage errors
    """
    request_id = generate_request_id()
    log = get_logger(request_id=request_id)
    metrics = get_metrics()
    timings: Dict[str, int] = {}

    start_time = time.time()
    metrics.increment("transform_requests")

    try:
        log.info("Starting transform pipeline")

        # Step 1: Decode
        stage_start = time.time()
        pixels = await asyncio.to_thread(decode_image, file_bytes)
        timings["decode"] = _elapsed_ms(stage_start)
        width, height = get_image_dimensions(pixels)

        # Step 2: Detection (mask, finish, reflections)
        stage_start = time.time()
        detection = detect_finish(pixels)
        timings["detect"] = _elapsed_ms(stage_start)
        metrics.increment("finish_detected", detection.detected_color.value)
        metrics.record_mask_ratio(detection.mask_area_ratio)

        target_finish = Finish(target) if target is not None else detection.detected_color.opposite

        # Step 3: Color transfer
        stage_start = time.time()
        engine = ColorTransferEngine(strategy)
        recolored = engine.transform(pixels, detection, target_finish)
        timings["transfer"] = _elapsed_ms(stage_start)

        # Step 4: Post-processing
        stage_start = time.time()
        processed = await asyncio.to_thread(
            post_process, recolored, enhance, enhancement_engine
        )
        timings["postprocess"] = _elapsed_ms(stage_start)
        metrics.increment("enhancement", processed.enhancement)

        # Step 5: Encode
        stage_start = time.time()
        png_bytes = await asyncio.to_thread(encode_image, processed.pixels)
        timings["encode"] = _elapsed_ms(stage_start)

        timings["total"] = _elapsed_ms(start_time)
        for stage, duration in timings.items():
            metrics.record_stage(stage, duration)

        log.bind(
            detected=detection.detected_color.value,
            target=target_finish.value,
            strategy=engine.strategy.name,
            enhancement=processed.enhancement,
            dims=f"{width}x{height}",
            mask_area_ratio=round(detection.mask_area_ratio, 4),
            ms_total=timings["total"],
            result="ok",
        ).info("Transform completed successfully")

        return TransformOutcome(
            request_id=request_id,
            detection=detection,
            target=target_finish,
            pixels=processed.pixels,
            png_bytes=png_bytes,
            enhancement=processed.enhancement,
            artifact_count=processed.artifact_count,
            strategy=engine.strategy.name,
            timings_ms=timings,
        )

    except JewelToneError as e:
        log.bind(
            ms_total=_elapsed_ms(start_time),
            result="error",
            error_type=type(e).__name__,
        ).warning(f"Transform failed in {e.stage}: {str(e)}")
        metrics.increment("transform_failed", e.stage)
        raise
    except Exception as e:
        log.bind(
            ms_total=_elapsed_ms(start_time),
            result="error",
            error_type="unexpected",
        ).error(f"Unexpected error in transform pipeline: {str(e)}")
        metrics.increment("transform_failed", "unexpected")
        raise
