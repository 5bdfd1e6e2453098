"""
Color space conversions for metal recoloring.

Provides:
    - sRGB <-> CIE L*a*b* (D65 illuminant, via CIE-XYZ)
    - RGB <-> HSV for the direct hue-remap strategy
    - Rec.601 luminance

Scalar helpers (`rgb_to_lab`, `lab_to_rgb`) work on single colors; the
vectorised forms (`srgb_to_lab`, `lab_to_srgb`) work on arrays of shape
(..., 3) and are what the pipeline uses on whole images.

Invariants:
    - RGB is 8-bit sRGB in [0, 255]
    - Lab coordinates: L[0,100], a,b roughly [-128,127] (not clamped)
    - lab_to_srgb(srgb_to_lab(c)) == c within 1 per channel for 8-bit input
"""
from dataclasses import dataclass
from typing import Tuple, Union

import cv2
import numpy as np

# sRGB -> XYZ, D65
_RGB_TO_XYZ = np.array([
    [0.4124, 0.3576, 0.1805],
    [0.2126, 0.7152, 0.0722],
    [0.0193, 0.1192, 0.9505],
])
# Exact inverse so that the round trip only loses 8-bit rounding
_XYZ_TO_RGB = np.linalg.inv(_RGB_TO_XYZ)
_RGB_TO_XYZ.setflags(write=False)
_XYZ_TO_RGB.setflags(write=False)

# D65 reference white
WHITE_D65 = np.array([95.047, 100.0, 108.883])
WHITE_D65.setflags(write=False)

_GAMMA_THRESHOLD = 0.04045
_LINEAR_THRESHOLD = 0.0031308
_LAB_EPSILON = 0.008856
_LAB_KAPPA = 7.787
_LAB_OFFSET = 16.0 / 116.0

LUMA_WEIGHTS = np.array([0.299, 0.587, 0.114])
LUMA_WEIGHTS.setflags(write=False)

ArrayLike = Union[np.ndarray, list, tuple]


@dataclass(frozen=True)
class LabColor:
    """A single CIE L*a*b* color."""
    L: float
    a: float
    b: float

    def as_array(self) -> np.ndarray:
        return np.array([self.L, self.a, self.b], dtype=np.float64)

    @property
    def chroma(self) -> float:
        return float(np.hypot(self.a, self.b))


def srgb_to_lab(rgb: ArrayLike) -> np.ndarray:
    """
    Convert sRGB values to Lab.

    Args:
        rgb: Array of shape (..., 3) with channels in [0, 255]

    Returns:
        float64 array of shape (..., 3) holding (L, a, b)
    """
    c = np.asarray(rgb, dtype=np.float64) / 255.0

    # Gamma expansion to linear RGB
    linear = np.where(
        c > _GAMMA_THRESHOLD,
        ((c + 0.055) / 1.055) ** 2.4,
        c / 12.92,
    )

    xyz = (linear @ _RGB_TO_XYZ.T) * 100.0
    ratio = xyz / WHITE_D65

    f = np.where(
        ratio > _LAB_EPSILON,
        np.cbrt(ratio),
        _LAB_KAPPA * ratio + _LAB_OFFSET,
    )
    fx, fy, fz = f[..., 0], f[..., 1], f[..., 2]

    lab = np.empty_like(f)
    lab[..., 0] = 116.0 * fy - 16.0
    lab[..., 1] = 500.0 * (fx - fy)
    lab[..., 2] = 200.0 * (fy - fz)
    return lab


def lab_to_srgb(lab: ArrayLike) -> np.ndarray:
    """
    Convert Lab values back to 8-bit sRGB.

    Out-of-gamut results are clamped to [0, 255]; rounding is half-up.

    Args:
        lab: Array of shape (..., 3) holding (L, a, b)

    Returns:
        uint8 array of shape (..., 3)
    """
    lab = np.asarray(lab, dtype=np.float64)

    fy = (lab[..., 0] + 16.0) / 116.0
    fx = lab[..., 1] / 500.0 + fy
    fz = fy - lab[..., 2] / 200.0
    f = np.stack([fx, fy, fz], axis=-1)

    cube = f ** 3
    ratio = np.where(cube > _LAB_EPSILON, cube, (f - _LAB_OFFSET) / _LAB_KAPPA)
    xyz = ratio * WHITE_D65 / 100.0

    linear = xyz @ _XYZ_TO_RGB.T
    srgb = np.where(
        linear > _LINEAR_THRESHOLD,
        1.055 * np.power(np.maximum(linear, _LINEAR_THRESHOLD), 1.0 / 2.4) - 0.055,
        12.92 * linear,
    )
    srgb = np.clip(srgb, 0.0, 1.0)
    return np.floor(srgb * 255.0 + 0.5).astype(np.uint8)


def rgb_to_lab(r: int, g: int, b: int) -> LabColor:
    """Convert a single sRGB color to Lab."""
    L, a, b_ = srgb_to_lab([r, g, b])
    return LabColor(float(L), float(a), float(b_))


def lab_to_rgb(lab: LabColor) -> Tuple[int, int, int]:
    """Convert a single Lab color to an 8-bit sRGB triple."""
    r, g, b = lab_to_srgb(lab.as_array())
    return int(r), int(g), int(b)


def lab_distance(lab1: ArrayLike, lab2: ArrayLike) -> np.ndarray:
    """Euclidean distance in Lab space, broadcasting over leading axes."""
    diff = np.asarray(lab1, dtype=np.float64) - np.asarray(lab2, dtype=np.float64)
    return np.sqrt(np.sum(diff * diff, axis=-1))


def luminance(rgb: ArrayLike) -> np.ndarray:
    """Rec.601 luma 0.299R + 0.587G + 0.114B of (..., 3) RGB values."""
    return np.asarray(rgb, dtype=np.float64)[..., :3] @ LUMA_WEIGHTS


def _cvt_color(values: np.ndarray, code: int) -> np.ndarray:
    """Run cv2.cvtColor over (..., 3) float values via an (N, 1, 3) image."""
    shape = values.shape
    if values.size == 0:
        return np.zeros(shape, dtype=np.float64)
    flat = np.ascontiguousarray(values.reshape(-1, 1, 3), dtype=np.float32)
    return cv2.cvtColor(flat, code).reshape(shape).astype(np.float64)


def rgb_to_hsv(rgb: ArrayLike) -> np.ndarray:
    """
    Convert RGB to HSV.

    Args:
        rgb: Array of shape (..., 3) with channels in [0, 255]

    Returns:
        float64 array (..., 3): hue in degrees [0, 360), saturation and
        value in [0, 1]
    """
    c = np.asarray(rgb, dtype=np.float64) / 255.0
    hsv = _cvt_color(c, cv2.COLOR_RGB2HSV)
    # float32 hue can round up to exactly 360
    hsv[..., 0] = np.mod(hsv[..., 0], 360.0)
    return hsv


def hsv_to_rgb(hsv: ArrayLike) -> np.ndarray:
    """
    Convert HSV back to RGB.

    Args:
        hsv: Array (..., 3) of hue degrees, saturation [0,1], value [0,1]

    Returns:
        float64 array (..., 3) in [0, 255], unrounded
    """
    hsv = np.array(hsv, dtype=np.float64)
    hsv[..., 0] = np.mod(hsv[..., 0], 360.0)
    return _cvt_color(hsv, cv2.COLOR_HSV2RGB) * 255.0
