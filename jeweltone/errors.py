"""
JewelTone Error Taxonomy
Exceptions raised by the recoloring pipeline stages.
"""
from typing import Optional


class JewelToneError(Exception):
    """Base class for pipeline errors. `stage` names the originating stage."""

    stage: str = "pipeline"

    def __init__(self, message: str, stage: Optional[str] = None):
        super().__init__(message)
        if stage is not None:
            self.stage = stage


class DecodeFailure(JewelToneError):
    """Image bytes are malformed or unreadable. Fatal, never retried."""

    stage = "decode"


class NoMetalDetected(JewelToneError):
    """Classification found no qualifying metal cluster. Fatal for the image."""

    stage = "detect"


class ContextUnavailable(JewelToneError):
    """The pixel working surface could not be acquired. Fatal."""

    stage = "context"


class EnhancementUnavailable(JewelToneError):
    """The enhancement model failed or is not configured.

    Recovered inside post-processing by the sharpening fallback; callers of
    the pipeline never see it.
    """

    stage = "enhance"
