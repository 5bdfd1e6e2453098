"""
Reference palettes for yellow and rose gold.

Two kinds of constants live here:
    - classifier references: Lab colors representative of each finish,
      used to score k-means cluster centers
    - transfer anchors: ordered source -> target Lab pairs per direction,
      used by the anchor-interpolation transfer strategy

All values are process-wide and immutable; array views are read-only.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Tuple

import numpy as np

from .colorspace import LabColor


class Finish(str, Enum):
    """Supported metal finishes."""
    YELLOW = "yellow"
    ROSE = "rose"

    @property
    def opposite(self) -> "Finish":
        return Finish.ROSE if self is Finish.YELLOW else Finish.YELLOW


@dataclass(frozen=True)
class AnchorPair:
    """One source -> target correspondence in Lab space."""
    source: LabColor
    target: LabColor


YELLOW_GOLD_REFERENCES: Tuple[LabColor, ...] = (
    LabColor(83, 10, 45),  # bright
    LabColor(76, 7, 40),   # standard
    LabColor(70, 6, 35),   # darker
)

ROSE_GOLD_REFERENCES: Tuple[LabColor, ...] = (
    LabColor(75, 20, 25),  # bright
    LabColor(68, 18, 20),  # standard
    LabColor(60, 16, 18),  # darker
)

YELLOW_TO_ROSE: Tuple[AnchorPair, ...] = (
    AnchorPair(LabColor(83, 10, 45), LabColor(80, 20, 25)),  # highlights
    AnchorPair(LabColor(76, 7, 40), LabColor(70, 18, 22)),   # standard tone
    AnchorPair(LabColor(65, 6, 35), LabColor(60, 16, 18)),   # shadows
)

ROSE_TO_YELLOW: Tuple[AnchorPair, ...] = (
    AnchorPair(LabColor(80, 20, 25), LabColor(83, 10, 45)),
    AnchorPair(LabColor(70, 18, 22), LabColor(76, 7, 40)),
    AnchorPair(LabColor(60, 16, 18), LabColor(65, 6, 35)),
)


def _frozen(colors) -> np.ndarray:
    arr = np.array([c.as_array() for c in colors], dtype=np.float64)
    arr.setflags(write=False)
    return arr


REFERENCE_ARRAYS = {
    Finish.YELLOW: _frozen(YELLOW_GOLD_REFERENCES),
    Finish.ROSE: _frozen(ROSE_GOLD_REFERENCES),
}

_ANCHORS = {
    (Finish.YELLOW, Finish.ROSE): YELLOW_TO_ROSE,
    (Finish.ROSE, Finish.YELLOW): ROSE_TO_YELLOW,
}

_ANCHOR_ARRAYS = {
    direction: (_frozen(p.source for p in pairs), _frozen(p.target for p in pairs))
    for direction, pairs in _ANCHORS.items()
}


def get_anchor_arrays(source: Finish, target: Finish) -> Tuple[np.ndarray, np.ndarray]:
    """
    Read-only (M, 3) arrays of anchor sources and targets for a direction.

    Raises:
        ValueError: If source and target are the same finish
    """
    try:
        return _ANCHOR_ARRAYS[(Finish(source), Finish(target))]
    except KeyError:
        raise ValueError(f"No anchor palette for {source} -> {target}")
