"""
JewelTone API Schemas
Pydantic models for detection and transform request/response validation.
"""
from typing import Dict, List, Optional
from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    """Health check response."""
    ok: bool = Field(True, description="Service health status")
    version: str = Field(..., description="Service version")
    service: str = Field("jeweltone", description="Service name")


class ErrorResponse(BaseModel):
    """Error response."""
    detail: str = Field(..., description="Error message")


class ClusterSummary(BaseModel):
    """Classification of one k-means cluster center."""
    center_lab: List[float] = Field(
        ...,
        min_length=3,
        max_length=3,
        description="Cluster center as [L, a, b]"
    )
    finish: Optional[str] = Field(
        None,
        description="'yellow', 'rose', or null for non-metal"
    )
    confidence: float = Field(..., ge=0.0, le=1.0, description="1 - min(dY, dR) / (dY + dR)")
    yellow_distance: float = Field(..., ge=0.0, description="Lab distance to nearest yellow reference")
    rose_distance: float = Field(..., ge=0.0, description="Lab distance to nearest rose reference")
    member_count: int = Field(..., ge=0, description="Pixels assigned to this cluster")


class DetectArtifacts(BaseModel):
    """Detection output artifacts."""
    mask_png_b64: str = Field(
        ...,
        description="Base64-encoded 8-bit single-channel PNG mask (0=other, 255=metal)"
    )


class DetectResponse(BaseModel):
    """Metal finish detection response."""
    detected_color: str = Field(..., pattern="^(yellow|rose)$", description="Dominant finish")
    width: int = Field(..., description="Image width in pixels")
    height: int = Field(..., description="Image height in pixels")
    mask_area_ratio: float = Field(..., ge=0.0, le=1.0, description="Fraction of pixels classified as metal")
    highlight_ratio: float = Field(..., ge=0.0, le=1.0, description="Fraction of metal pixels with a highlight")
    hsv_estimate: Optional[str] = Field(
        None,
        description="Finish voted by the HSV band heuristic (may disagree near hue boundaries)"
    )
    hsv_mask_agreement: float = Field(
        ...,
        ge=0.0,
        le=1.0,
        description="Fraction of pixels where the HSV band mask matches the cluster mask"
    )
    clusters: List[ClusterSummary] = Field(..., description="Per-cluster classification")
    artifacts: DetectArtifacts = Field(..., description="Output artifacts")


class TransformArtifacts(BaseModel):
    """Transform output artifacts."""
    result_png_b64: str = Field(..., description="Base64-encoded PNG of the recolored image")


class TransformResponse(BaseModel):
    """Metal recoloring response."""
    request_id: str = Field(..., description="Request ID for tracing")
    detected_color: str = Field(..., pattern="^(yellow|rose)$", description="Finish detected in the input")
    target_color: str = Field(..., pattern="^(yellow|rose)$", description="Finish applied to the output")
    strategy: str = Field(..., description="Color transfer strategy used")
    enhancement: str = Field(..., description="Enhancement applied: superres, sharpen or none")
    width: int = Field(..., description="Output image width in pixels")
    height: int = Field(..., description="Output image height in pixels")
    mask_area_ratio: float = Field(..., ge=0.0, le=1.0, description="Fraction of pixels recolored")
    artifact_count: int = Field(..., ge=0, description="Outlier pixels replaced by their median")
    timings_ms: Dict[str, int] = Field(..., description="Stage durations in milliseconds")
    artifacts: TransformArtifacts = Field(..., description="Output artifacts")
