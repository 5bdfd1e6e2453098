"""
Metal finish classification.

This module implements the detection stage of the JewelTone pipeline:
k-means clustering of pixel colors in Lab space, scoring of each cluster
center against the yellow and rose gold references, and assembly of the
metal mask and reflection map handed to color transfer.
"""

from dataclasses import dataclass, field
from typing import Optional, Tuple

import numpy as np
from loguru import logger
from sklearn.metrics import pairwise_distances_argmin

from jeweltone.config import config
from jeweltone.errors import NoMetalDetected
from jeweltone.services.colors.colorspace import LabColor, lab_distance, srgb_to_lab
from jeweltone.services.colors.palettes import Finish, REFERENCE_ARRAYS
from jeweltone.services.detection.reflections import map_reflections
from jeweltone.services.imaging import ensure_pixel_buffer

ASSIGN_CHUNK_ROWS = 65536


@dataclass(frozen=True)
class ClusterClassification:
    """Finish scoring of one cluster center. `finish` is None for non-metal."""
    center: LabColor
    finish: Optional[Finish]
    confidence: float
    yellow_distance: float
    rose_distance: float
    member_count: int

    @property
    def is_metal(self) -> bool:
        return self.finish is not None


@dataclass(frozen=True)
class DetectionResult:
    """Immutable output of the detection stage."""
    detected_color: Finish
    metal_mask: np.ndarray
    reflection_map: np.ndarray
    clusters: Tuple[ClusterClassification, ...] = field(default_factory=tuple)

    @property
    def mask_area_ratio(self) -> float:
        total = self.metal_mask.size
        return np.count_nonzero(self.metal_mask) / total if total > 0 else 0.0


def stride_sample(points: np.ndarray, max_samples: int) -> np.ndarray:
    """
    Uniformly stride-sample rows of `points` down to at most `max_samples`.

    Deterministic: the same input always yields the same sample.
    """
    n = len(points)
    if max_samples <= 0 or n <= max_samples:
        return points
    stride = int(np.ceil(n / max_samples))
    return points[::stride]


def initial_centers(points: np.ndarray, k: int) -> np.ndarray:
    """Pick k seed centers from evenly spaced positions in `points`."""
    step = len(points) // k
    return points[[i * step for i in range(k)]].copy()


def assign_clusters(points: np.ndarray, centers: np.ndarray) -> np.ndarray:
    """Label each point with the index of its nearest center (first wins ties)."""
    return pairwise_distances_argmin(points, centers, metric="euclidean")


def kmeans_step(points: np.ndarray, centers: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """
    One k-means round over a fixed snapshot of points.

    Args:
        points: (N, 3) Lab samples
        centers: (k, 3) centers from the previous round

    Returns:
        Tuple of (new_centers, labels). A cluster left without members
        keeps its previous center.
    """
    k = len(centers)
    labels = assign_clusters(points, centers)

    counts = np.bincount(labels, minlength=k).astype(np.float64)
    sums = np.zeros_like(centers)
    np.add.at(sums, labels, points)

    new_centers = centers.copy()
    populated = counts > 0
    new_centers[populated] = sums[populated] / counts[populated, None]
    return new_centers, labels


def kmeans_lab(points: np.ndarray, k: int = 6, iterations: int = 10) -> np.ndarray:
    """
    Deterministic k-means in Lab space.

    Args:
        points: (N, 3) Lab samples, N >= 1
        k: Number of clusters
        iterations: Number of rounds

    Returns:
        (k, 3) final cluster centers
    """
    centers = initial_centers(points, k)
    for iteration in range(iterations):
        new_centers, _ = kmeans_step(points, centers)
        if np.array_equal(new_centers, centers):
            logger.debug(f"k-means converged after {iteration + 1} rounds")
            break
        centers = new_centers
    return centers


def classify_center(
    center: np.ndarray,
    member_count: int = 0,
    distance_threshold: float = 30.0,
    min_chroma: float = 12.0,
) -> ClusterClassification:
    """
    Score a cluster center against the yellow and rose gold references.

    A center farther than `distance_threshold` from both reference sets,
    or with chroma below `min_chroma`, is non-metal.
    Confidence is 1 - min(dY, dR) / (dY + dR).
    """
    yellow_distance = float(lab_distance(REFERENCE_ARRAYS[Finish.YELLOW], center).min())
    rose_distance = float(lab_distance(REFERENCE_ARRAYS[Finish.ROSE], center).min())
    lab = LabColor(*(float(v) for v in center))

    total = yellow_distance + rose_distance
    confidence = 1.0 - min(yellow_distance, rose_distance) / total if total > 0 else 0.0

    too_far = yellow_distance > distance_threshold and rose_distance > distance_threshold
    if too_far or lab.chroma < min_chroma:
        return ClusterClassification(
            center=lab, finish=None, confidence=confidence,
            yellow_distance=yellow_distance, rose_distance=rose_distance,
            member_count=member_count,
        )

    finish = Finish.YELLOW if yellow_distance < rose_distance else Finish.ROSE
    return ClusterClassification(
        center=lab, finish=finish, confidence=confidence,
        yellow_distance=yellow_distance, rose_distance=rose_distance,
        member_count=member_count,
    )


def assign_pixels(rgb: np.ndarray, centers: np.ndarray, chunk_rows: int = ASSIGN_CHUNK_ROWS) -> np.ndarray:
    """
    Label every RGB pixel with its nearest Lab center, a chunk at a time.

    Only one chunk is held in Lab at once, so memory stays bounded for
    large images.

    Args:
        rgb: (N, 3) RGB values
        centers: (k, 3) Lab centers
        chunk_rows: Pixels converted per chunk

    Returns:
        (N,) uint8 cluster labels
    """
    labels = np.empty(len(rgb), dtype=np.uint8)
    for start in range(0, len(rgb), chunk_rows):
        chunk = rgb[start:start + chunk_rows]
        labels[start:start + chunk_rows] = assign_clusters(srgb_to_lab(chunk), centers)
    return labels


def detect_finish(
    pixels: np.ndarray,
    k: Optional[int] = None,
    iterations: Optional[int] = None,
    max_samples: Optional[int] = None,
    distance_threshold: Optional[float] = None,
    confidence_cutoff: Optional[float] = None,
    min_chroma: Optional[float] = None,
) -> DetectionResult:
    """
    Detect the dominant metal finish and the metal region of an image.

    Args:
        pixels: RGB(A) pixel buffer (H, W, 3|4) uint8
        k: Number of k-means clusters (default from config)
        iterations: k-means rounds (default from config)
        max_samples: Sample cap for clustering (default from config)
        distance_threshold: Lab distance beyond which a center is non-metal
        confidence_cutoff: Minimum confidence for a metal cluster
        min_chroma: Minimum center chroma for a metal cluster

    Returns:
        DetectionResult with the dominant finish, the merged mask of every
        candidate metal cluster and the reflection map

    Raises:
        NoMetalDetected: If no cluster qualifies as metal
        ValueError: If `k` is outside the supported range
        ContextUnavailable: If `pixels` is not a usable pixel buffer
    """
    ensure_pixel_buffer(pixels)

    k = k or config.CLASSIFIER_K
    iterations = iterations if iterations is not None else config.CLASSIFIER_ITERATIONS
    max_samples = max_samples if max_samples is not None else config.CLASSIFIER_MAX_SAMPLES
    if distance_threshold is None:
        distance_threshold = config.METAL_DISTANCE_THRESHOLD
    if confidence_cutoff is None:
        confidence_cutoff = config.METAL_CONFIDENCE_CUTOFF
    if min_chroma is None:
        min_chroma = config.METAL_MIN_CHROMA
    if not config.validate_cluster_count(k):
        raise ValueError(f"Cluster count must be between 2 and 16, got {k}")

    height, width = pixels.shape[:2]
    rgb = pixels[..., :3].reshape(-1, 3)
    samples = srgb_to_lab(stride_sample(rgb, max_samples))
    logger.info(f"Clustering {len(samples)} of {len(rgb)} pixels with k={k}")

    centers = kmeans_lab(samples, k=k, iterations=iterations)
    labels = assign_pixels(rgb, centers)
    counts = np.bincount(labels, minlength=k)

    classifications = tuple(
        classify_center(center, int(count), distance_threshold, min_chroma)
        for center, count in zip(centers, counts)
    )
    for i, c in enumerate(classifications):
        logger.debug(
            f"Cluster {i}: L={c.center.L:.1f} a={c.center.a:.1f} b={c.center.b:.1f} "
            f"finish={c.finish.value if c.finish else 'non-metal'} "
            f"confidence={c.confidence:.3f} members={c.member_count}"
        )

    # Stable sort keeps the lower cluster index first on equal counts
    candidates = sorted(
        (i for i, c in enumerate(classifications)
         if c.is_metal and c.confidence > confidence_cutoff and c.member_count > 0),
        key=lambda i: -classifications[i].member_count,
    )

    if not candidates:
        logger.warning("No metal cluster passed classification")
        raise NoMetalDetected("No metal detected in the image")

    detected = classifications[candidates[0]].finish

    metal_mask = np.where(np.isin(labels, candidates), 255, 0).astype(np.uint8).reshape(height, width)
    metal_mask.setflags(write=False)

    reflection_map = map_reflections(pixels, metal_mask)
    reflection_map.setflags(write=False)

    result = DetectionResult(
        detected_color=detected,
        metal_mask=metal_mask,
        reflection_map=reflection_map,
        clusters=classifications,
    )
    logger.info(
        f"Detected {detected.value} gold from {len(candidates)} metal clusters, "
        f"mask ratio {result.mask_area_ratio:.3f}"
    )
    return result
