"""
JewelTone Imaging Utilities
Handles image decode/encode, validation and pixel buffer checks.
"""
import base64
import io
from typing import Tuple

import cv2
import numpy as np
from PIL import Image, UnidentifiedImageError

from jeweltone.config import config
from jeweltone.errors import ContextUnavailable, DecodeFailure


def validate_magic_bytes(file_bytes: bytes) -> str:
    """
    Validate file magic bytes to ensure it's actually an image.

    Args:
        file_bytes: Raw file bytes

    Returns:
        Detected MIME type

    Raises:
        DecodeFailure: For truncated or unsupported files
    """
    if len(file_bytes) < 12:
        raise DecodeFailure("File too small or corrupt")

    # Check magic bytes for supported image formats
    if file_bytes.startswith(b'\xff\xd8\xff'):
        return "image/jpeg"
    elif file_bytes.startswith(b'\x89PNG\r\n\x1a\n'):
        return "image/png"
    elif file_bytes[:4] == b'RIFF' and file_bytes[8:12] == b'WEBP':
        return "image/webp"
    else:
        raise DecodeFailure("Invalid image file. Magic bytes don't match supported formats.")


def decode_image(file_bytes: bytes) -> np.ndarray:
    """
    Decode image bytes into an RGB or RGBA pixel buffer.

    Channel values are preserved exactly; sources with transparency keep
    their alpha channel.

    Args:
        file_bytes: Encoded JPEG, PNG or WebP bytes

    Returns:
        uint8 array of shape (H, W, 3) or (H, W, 4)

    Raises:
        DecodeFailure: For malformed, unsupported or out-of-range images
    """
    if len(file_bytes) > config.MAX_FILE_MB * 1024 * 1024:
        raise DecodeFailure(f"File too large. Maximum size: {config.MAX_FILE_MB}MB")

    validate_magic_bytes(file_bytes)

    try:
        pil_image = Image.open(io.BytesIO(file_bytes))
        pil_image.load()

        has_alpha = pil_image.mode in ("RGBA", "LA", "PA") or (
            pil_image.mode == "P" and "transparency" in pil_image.info
        )
        target_mode = "RGBA" if has_alpha else "RGB"
        if pil_image.mode != target_mode:
            pil_image = pil_image.convert(target_mode)

        pixels = np.array(pil_image, dtype=np.uint8)
    except (UnidentifiedImageError, OSError, ValueError, SyntaxError, EOFError,
            Image.DecompressionBombError) as e:
        raise DecodeFailure(f"Failed to decode image: {str(e)}")

    # Validate dimensions
    height, width = pixels.shape[:2]
    if width < config.MIN_EDGE or height < config.MIN_EDGE:
        raise DecodeFailure(f"Image too small. Minimum dimension: {config.MIN_EDGE}px")
    if width > config.MAX_EDGE or height > config.MAX_EDGE:
        raise DecodeFailure(f"Image too large. Maximum dimension: {config.MAX_EDGE}px")

    return pixels


def encode_image(pixels: np.ndarray) -> bytes:
    """
    Encode a pixel buffer as lossless PNG.

    Args:
        pixels: RGB or RGBA uint8 buffer

    Returns:
        PNG bytes
    """
    ensure_pixel_buffer(pixels)

    # OpenCV expects BGR(A) channel order
    if pixels.shape[2] == 4:
        converted = cv2.cvtColor(pixels, cv2.COLOR_RGBA2BGRA)
    else:
        converted = cv2.cvtColor(pixels, cv2.COLOR_RGB2BGR)

    success, buffer = cv2.imencode('.png', converted)
    if not success:
        raise RuntimeError("Failed to encode image as PNG")

    return buffer.tobytes()


def encode_png_base64(pixels: np.ndarray) -> str:
    """
    Encode an RGB(A) buffer or a single-channel mask to base64 PNG string.

    Args:
        pixels: (H, W) mask or (H, W, 3|4) pixel buffer, uint8

    Returns:
        Base64 encoded PNG string
    """
    if pixels.ndim == 2:
        success, buffer = cv2.imencode('.png', np.ascontiguousarray(pixels))
        if not success:
            raise RuntimeError("Failed to encode mask as PNG")
        png_bytes = buffer.tobytes()
    else:
        png_bytes = encode_image(pixels)

    return base64.b64encode(png_bytes).decode('utf-8')


def ensure_pixel_buffer(pixels: np.ndarray) -> None:
    """
    Check that `pixels` is a usable RGB(A) working surface.

    Raises:
        ContextUnavailable: If the buffer is missing, empty or has the wrong
            dtype or channel layout
    """
    if not isinstance(pixels, np.ndarray):
        raise ContextUnavailable("Pixel buffer is not available")
    if pixels.dtype != np.uint8:
        raise ContextUnavailable(f"Pixel buffer must be uint8, got {pixels.dtype}")
    if pixels.ndim != 3 or pixels.shape[2] not in (3, 4):
        raise ContextUnavailable(f"Pixel buffer must be (H, W, 3|4), got {pixels.shape}")
    if pixels.shape[0] == 0 or pixels.shape[1] == 0:
        raise ContextUnavailable("Pixel buffer is empty")


def get_image_dimensions(pixels: np.ndarray) -> Tuple[int, int]:
    """
    Get image width and height.

    Args:
        pixels: Input image

    Returns:
        Tuple of (width, height)
    """
    height, width = pixels.shape[:2]
    return width, height
