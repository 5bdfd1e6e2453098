"""
JewelTone Configuration
Manages environment variables and defaults for the recoloring pipeline.
"""
import os
from typing import Literal, Optional


class Config:
    """Configuration class for JewelTone services."""

    # File size and dimensions
    MAX_FILE_MB: int = int(os.environ.get("JEWELTONE_MAX_FILE_MB", "15"))
    MAX_EDGE: int = int(os.environ.get("JEWELTONE_MAX_EDGE", "4096"))
    MIN_EDGE: int = int(os.environ.get("JEWELTONE_MIN_EDGE", "8"))

    # Logging
    LOG_LEVEL: str = os.environ.get("JEWELTONE_LOG_LEVEL", "INFO")

    # Metal classification
    CLASSIFIER_K: int = int(os.environ.get("JEWELTONE_CLASSIFIER_K", "6"))
    CLASSIFIER_ITERATIONS: int = int(os.environ.get("JEWELTONE_CLASSIFIER_ITERATIONS", "10"))
    CLASSIFIER_MAX_SAMPLES: int = int(os.environ.get("JEWELTONE_CLASSIFIER_MAX_SAMPLES", "250000"))
    METAL_DISTANCE_THRESHOLD: float = float(os.environ.get("JEWELTONE_METAL_DISTANCE_THRESHOLD", "30"))
    METAL_CONFIDENCE_CUTOFF: float = float(os.environ.get("JEWELTONE_METAL_CONFIDENCE_CUTOFF", "0.5"))
    METAL_MIN_CHROMA: float = float(os.environ.get("JEWELTONE_METAL_MIN_CHROMA", "12"))

    # Color transfer
    TRANSFER_STRATEGY: Literal["lab_anchor", "hsv"] = os.environ.get(
        "JEWELTONE_TRANSFER_STRATEGY", "lab_anchor"
    )

    # Post-processing
    ARTIFACT_THRESHOLD: float = float(os.environ.get("JEWELTONE_ARTIFACT_THRESHOLD", "40"))
    SHARPEN_STRENGTH: float = float(os.environ.get("JEWELTONE_SHARPEN_STRENGTH", "0.3"))
    ENABLE_ENHANCEMENT: bool = bool(int(os.environ.get("JEWELTONE_ENABLE_ENHANCEMENT", "1")))

    # Super-resolution model (OpenCV dnn_superres)
    SR_MODEL_PATH: Optional[str] = os.environ.get("JEWELTONE_SR_MODEL_PATH")
    SR_MODEL_NAME: str = os.environ.get("JEWELTONE_SR_MODEL_NAME", "espcn")
    SR_SCALE: int = int(os.environ.get("JEWELTONE_SR_SCALE", "2"))

    # CORS settings
    ALLOWED_ORIGINS: str = os.environ.get("JEWELTONE_ALLOWED_ORIGINS", "http://localhost:3000")

    # Supported image formats
    SUPPORTED_MIME_TYPES = ["image/jpeg", "image/png", "image/webp"]
    SUPPORTED_EXTENSIONS = {".jpg", ".jpeg", ".png", ".webp"}

    @classmethod
    def validate_strategy(cls, strategy: str) -> bool:
        """Validate transfer strategy name."""
        return strategy in ["lab_anchor", "hsv"]

    @classmethod
    def validate_cluster_count(cls, k: int) -> bool:
        """Validate k-means cluster count."""
        return 2 <= k <= 16

    @classmethod
    def validate_sr_scale(cls, scale: int) -> bool:
        """Validate super-resolution scale factor."""
        return scale in (2, 3, 4, 8)

    @classmethod
    def validate_settings(cls) -> None:
        """
        Check environment-driven settings once at startup.

        Raises:
            ValueError: Naming every invalid setting
        """
        problems = []
        if not cls.validate_strategy(cls.TRANSFER_STRATEGY):
            problems.append(f"JEWELTONE_TRANSFER_STRATEGY={cls.TRANSFER_STRATEGY!r} (expected lab_anchor or hsv)")
        if not cls.validate_cluster_count(cls.CLASSIFIER_K):
            problems.append(f"JEWELTONE_CLASSIFIER_K={cls.CLASSIFIER_K} (expected 2-16)")
        if not cls.validate_sr_scale(cls.SR_SCALE):
            problems.append(f"JEWELTONE_SR_SCALE={cls.SR_SCALE} (expected 2, 3, 4 or 8)")
        if problems:
            raise ValueError("Invalid configuration: " + "; ".join(problems))


# Global config instance
config = Config()
