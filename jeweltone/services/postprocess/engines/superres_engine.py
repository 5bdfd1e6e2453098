"""
Super-Resolution Engine
Primary enhancement using an OpenCV dnn_superres model.
"""
import os
from threading import Lock
from typing import Optional

import numpy as np
import cv2

from jeweltone.config import config
from jeweltone.errors import EnhancementUnavailable


class SuperResEngine:
    """Upscaling with a pretrained EDSR/ESPCN/FSRCNN/LapSRN model."""

    name = "superres"

    def __init__(
        self,
        model_path: Optional[str] = None,
        model_name: Optional[str] = None,
        scale: Optional[int] = None,
    ):
        """Store model settings; the model itself is loaded on first use."""
        self.model_path = model_path if model_path is not None else config.SR_MODEL_PATH
        self.model_name = model_name or config.SR_MODEL_NAME
        self.scale = scale or config.SR_SCALE
        self._model = None
        # One dnn Net per engine; neither loading nor inference is thread-safe
        self._lock = Lock()

    def _initialize_model(self) -> None:
        """Load the super-resolution model."""
        if not self.model_path:
            raise EnhancementUnavailable("Super-resolution model not configured")

        if not config.validate_sr_scale(self.scale):
            raise EnhancementUnavailable(f"Unsupported super-resolution scale: {self.scale}")

        dnn_superres = getattr(cv2, "dnn_superres", None)
        if dnn_superres is None:
            raise EnhancementUnavailable(
                "OpenCV dnn_superres not available. Install with: pip install opencv-contrib-python"
            )

        if not os.path.isfile(self.model_path):
            raise EnhancementUnavailable(f"Super-resolution model not found: {self.model_path}")

        try:
            model = dnn_superres.DnnSuperResImpl_create()
            model.readModel(self.model_path)
            model.setModel(self.model_name, self.scale)
        except Exception as e:
            raise EnhancementUnavailable(f"Failed to load super-resolution model: {str(e)}")

        self._model = model

    def enhance(self, pixels: np.ndarray) -> np.ndarray:
        """
        Upscale an RGB(A) buffer by the configured scale.

        Args:
            pixels: RGB(A) pixel buffer (H, W, 3|4) uint8

        Returns:
            Upscaled buffer with the same channel count

        Raises:
            EnhancementUnavailable: If the model is missing or fails
        """
        with self._lock:
            if self._model is None:
                self._initialize_model()

            try:
                bgr = cv2.cvtColor(np.ascontiguousarray(pixels[..., :3]), cv2.COLOR_RGB2BGR)
                upscaled = cv2.cvtColor(self._model.upsample(bgr), cv2.COLOR_BGR2RGB)
            except Exception as e:
                raise EnhancementUnavailable(f"Super-resolution failed: {str(e)}")

        if pixels.shape[2] == 4:
            height, width = upscaled.shape[:2]
            try:
                alpha = cv2.resize(pixels[..., 3], (width, height), interpolation=cv2.INTER_CUBIC)
            except cv2.error as e:
                raise EnhancementUnavailable(f"Alpha resize failed: {str(e)}")
            upscaled = np.dstack([upscaled, alpha])

        return upscaled.astype(np.uint8)


# Global instance for reuse across requests
_superres_engine: Optional[SuperResEngine] = None
_superres_engine_lock = Lock()


def get_superres_engine() -> SuperResEngine:
    """Get or create global super-resolution engine instance."""
    global _superres_engine
    with _superres_engine_lock:
        if _superres_engine is None:
            _superres_engine = SuperResEngine()
    return _superres_engine
