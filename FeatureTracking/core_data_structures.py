"""
Core data structures and enums for the feature tracking front-end.

This module contains the algorithm enumerations, the per-frame container
and the region-of-interest rectangle used throughout the pipeline.
"""

import cv2
import numpy as np
from typing import List, Optional, Sequence, Tuple
from dataclasses import dataclass, field
from enum import Enum

from .exceptions import FrameSealedError


class DetectorType(Enum):
    """Enumeration of available keypoint detectors"""
    SHITOMASI = "SHITOMASI"
    HARRIS = "HARRIS"
    FAST = "FAST"
    BRISK = "BRISK"
    ORB = "ORB"
    AKAZE = "AKAZE"
    SIFT = "SIFT"


class DescriptorType(Enum):
    """Enumeration of available descriptor extractors"""
    BRISK = "BRISK"
    BRIEF = "BRIEF"
    ORB = "ORB"
    FREAK = "FREAK"
    AKAZE = "AKAZE"
    SIFT = "SIFT"


class DescriptorFamily(Enum):
    """Distance-metric class a descriptor belongs to"""
    BINARY = "BINARY"              # Hamming distance
    GRADIENT_HISTOGRAM = "HOG"     # L1 / L2 distance


class MatcherType(Enum):
    """How candidate neighbours are searched"""
    BRUTE_FORCE = "BF"
    INDEXED = "FLANN"


class SelectorType(Enum):
    """How correspondences are selected from candidates"""
    NEAREST = "NN"
    KNN_RATIO = "KNN"


class DistanceNorm(Enum):
    """Descriptor distance metrics"""
    HAMMING = "HAMMING"
    L1 = "L1"
    L2 = "L2"


def parse_enum(enum_cls, value):
    """
    Resolve an enum member from a member, its value or its name

    Lookup is case-insensitive so that 'orb', 'ORB' and DescriptorType.ORB
    all resolve to the same member.

    Raises:
        ValueError: If the value does not name a member of enum_cls
    """
    if isinstance(value, enum_cls):
        return value

    text = str(value).strip()
    for member in enum_cls:
        if text.upper() in (member.value.upper(), member.name.upper()):
            return member

    available = ', '.join(m.value for m in enum_cls)
    raise ValueError(f"Unknown {enum_cls.__name__}: {value}. Available: {available}")


@dataclass(frozen=True)
class RegionOfInterest:
    """Axis-aligned rectangle in image coordinates"""
    x: float
    y: float
    width: float
    height: float

    def contains(self, point: Tuple[float, float]) -> bool:
        """True when the point lies inside the rectangle (right/bottom edges excluded)"""
        px, py = point
        return (self.x <= px < self.x + self.width and
                self.y <= py < self.y + self.height)

    def filter(self, keypoints: Sequence[cv2.KeyPoint]) -> List[cv2.KeyPoint]:
        """Return a new list with the keypoints whose position falls inside"""
        return [kp for kp in keypoints if self.contains(kp.pt)]

    def as_tuple(self) -> Tuple[float, float, float, float]:
        return (self.x, self.y, self.width, self.height)

    @classmethod
    def from_sequence(cls, values: Sequence[float]) -> 'RegionOfInterest':
        if len(values) != 4:
            raise ValueError(f"ROI needs 4 values (x, y, width, height), got {len(values)}")
        x, y, width, height = values
        if width <= 0 or height <= 0:
            raise ValueError(f"ROI width and height must be positive, got {width}x{height}")
        return cls(x, y, width, height)


@dataclass(eq=False)
class Frame:
    """
    One ingested image together with its features

    `matches` holds the correspondences to the previous frame in the window
    (queryIdx indexes the previous frame, trainIdx this frame). It stays
    None for the first frame of a run.

    Once a newer frame is admitted to the window the frame is sealed and
    further attribute assignment raises FrameSealedError.
    """
    image: np.ndarray
    index: int = 0
    keypoints: List[cv2.KeyPoint] = field(default_factory=list)
    descriptors: Optional[np.ndarray] = None
    matches: Optional[List[cv2.DMatch]] = None
    _sealed: bool = field(default=False, init=False, repr=False, compare=False)

    def __setattr__(self, name, value):
        if getattr(self, '_sealed', False):
            raise FrameSealedError(
                f"Frame {self.index} is sealed; cannot set '{name}' after a newer frame was admitted"
            )
        super().__setattr__(name, value)

    def seal(self):
        """Freeze the frame; called by the frame window"""
        object.__setattr__(self, '_sealed', True)

    @property
    def sealed(self) -> bool:
        return self._sealed

    @property
    def has_matches(self) -> bool:
        return self.matches is not None

    @property
    def num_descriptors(self) -> int:
        return 0 if self.descriptors is None else int(self.descriptors.shape[0])


def mean_keypoint_size(keypoints: Sequence[cv2.KeyPoint]) -> Optional[float]:
    """Average keypoint diameter, None for an empty set"""
    if not keypoints:
        return None
    return float(np.mean([kp.size for kp in keypoints]))
