"""
JewelTone v1 API Routes
Thin HTTP surface that sequences decode, detect, transform and post-process.
"""
import base64
from typing import Any, Dict, Optional

from fastapi import APIRouter, File, HTTPException, Query, UploadFile

from jeweltone.config import config
from jeweltone.errors import ContextUnavailable, DecodeFailure, JewelToneError, NoMetalDetected
from jeweltone.schemas import (
    ClusterSummary, DetectArtifacts, DetectResponse, ErrorResponse, TransformArtifacts,
    TransformResponse,
)
from jeweltone.services.detection.heuristics import estimate_finish_hsv, mask_agreement
from jeweltone.services.detection.reflections import highlight_ratio
from jeweltone.services.imaging import encode_png_base64, get_image_dimensions
from jeweltone.services.pipeline import run_detection, run_transform
from jeweltone.utils.metrics import get_metrics

router = APIRouter(prefix="/v1", tags=["Metal Recoloring"])

ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Invalid or corrupt image"},
    415: {"model": ErrorResponse, "description": "Unsupported media type"},
    422: {"model": ErrorResponse, "description": "No metal detected"},
    503: {"model": ErrorResponse, "description": "Pixel buffer unavailable"},
}


def validate_file_upload(file: UploadFile) -> None:
    """
    Validate uploaded file for format compliance.

    Args:
        file: FastAPI UploadFile object

    Raises:
        HTTPException: 400 for oversized files, 415 for unsupported formats
    """
    # file.size might be None for some clients
    if hasattr(file, 'size') and file.size and file.size > config.MAX_FILE_MB * 1024 * 1024:
        raise HTTPException(
            status_code=400,
            detail=f"File too large. Maximum size: {config.MAX_FILE_MB}MB"
        )

    if file.content_type not in config.SUPPORTED_MIME_TYPES:
        raise HTTPException(
            status_code=415,
            detail=f"Unsupported media type. Supported: {', '.join(config.SUPPORTED_MIME_TYPES)}"
        )

    if file.filename:
        ext = file.filename.lower().split('.')[-1] if '.' in file.filename else ''
        if f".{ext}" not in config.SUPPORTED_EXTENSIONS:
            raise HTTPException(
                status_code=415,
                detail=f"Unsupported file extension. Supported: {', '.join(sorted(config.SUPPORTED_EXTENSIONS))}"
            )


async def read_upload(file: UploadFile) -> bytes:
    """Validate and read an uploaded image."""
    validate_file_upload(file)
    try:
        return await file.read()
    except Exception as e:
        raise HTTPException(status_code=400, detail=f"Failed to read file: {str(e)}")


def to_http_exception(error: JewelToneError) -> HTTPException:
    """Map a pipeline error to the HTTP status the caller should see."""
    if isinstance(error, DecodeFailure):
        return HTTPException(status_code=400, detail=str(error))
    if isinstance(error, NoMetalDetected):
        return HTTPException(
            status_code=422,
            detail=f"{str(error)}. Try a closer crop of the metal or better lighting."
        )
    if isinstance(error, ContextUnavailable):
        return HTTPException(status_code=503, detail=str(error))
    return HTTPException(status_code=500, detail="Internal processing error")


@router.post("/detect", response_model=DetectResponse,
             responses=ERROR_RESPONSES,
             summary="Detect Metal Finish",
             description="Classify the dominant metal finish and return the metal mask")
async def detect(file: UploadFile = File(..., description="JPG, PNG or WebP jewelry photo")) -> DetectResponse:
    """
    Detect the metal finish of an uploaded jewelry photo.

    - **file**: JPG, PNG or WebP image file
    """
    file_bytes = await read_upload(file)

    try:
        pixels, detection = await run_detection(file_bytes)
    except JewelToneError as e:
        get_metrics().increment("detect_failed", e.stage)
        raise to_http_exception(e)

    width, height = get_image_dimensions(pixels)
    hsv_finish, _, _ = estimate_finish_hsv(pixels)

    return DetectResponse(
        detected_color=detection.detected_color.value,
        width=width,
        height=height,
        mask_area_ratio=detection.mask_area_ratio,
        highlight_ratio=highlight_ratio(detection.reflection_map, detection.metal_mask),
        hsv_estimate=hsv_finish.value if hsv_finish else None,
        hsv_mask_agreement=mask_agreement(pixels, detection.metal_mask),
        clusters=[
            ClusterSummary(
                center_lab=[c.center.L, c.center.a, c.center.b],
                finish=c.finish.value if c.finish else None,
                confidence=min(1.0, max(0.0, c.confidence)),
                yellow_distance=c.yellow_distance,
                rose_distance=c.rose_distance,
                member_count=c.member_count,
            )
            for c in detection.clusters
        ],
        artifacts=DetectArtifacts(mask_png_b64=encode_png_base64(detection.metal_mask)),
    )


@router.post("/transform", response_model=TransformResponse,
             responses=ERROR_RESPONSES,
             summary="Recolor Metal Finish",
             description="Recolor jewelry between yellow gold and rose gold")
async def transform(
    file: UploadFile = File(..., description="JPG, PNG or WebP jewelry photo"),
    target: Optional[str] = Query(None, pattern="^(yellow|rose)$", description="Target finish (default: opposite of detected)"),
    strategy: Optional[str] = Query(None, pattern="^(lab_anchor|hsv)$", description="Color transfer strategy"),
    enhance: Optional[bool] = Query(None, description="Run the enhancement step"),
) -> TransformResponse:
    """
    Recolor the metal in an uploaded jewelry photo.

    - **file**: JPG, PNG or WebP image file
    - **target**: yellow or rose; defaults to the opposite of the detected finish
    - **strategy**: lab_anchor (texture preserving) or hsv (cheaper)
    - **enhance**: super-resolution with sharpening fallback
    """
    file_bytes = await read_upload(file)

    try:
        outcome = await run_transform(file_bytes, target=target, enhance=enhance, strategy=strategy)
    except JewelToneError as e:
        raise to_http_exception(e)

    width, height = outcome.dimensions
    return TransformResponse(
        request_id=outcome.request_id,
        detected_color=outcome.detection.detected_color.value,
        target_color=outcome.target.value,
        strategy=outcome.strategy,
        enhancement=outcome.enhancement,
        width=width,
        height=height,
        mask_area_ratio=outcome.detection.mask_area_ratio,
        artifact_count=outcome.artifact_count,
        timings_ms=outcome.timings_ms,
        artifacts=TransformArtifacts(
            result_png_b64=base64.b64encode(outcome.png_bytes).decode('utf-8')
        ),
    )


@router.get("/metrics", summary="Pipeline Metrics")
def metrics_summary() -> Dict[str, Any]:
    """In-process counters and timing statistics."""
    return get_metrics().snapshot()
