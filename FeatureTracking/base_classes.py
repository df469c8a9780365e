"""
Base classes and interfaces for the feature tracking strategy layer.

This module defines the abstract base classes that the vision primitives
provider, keypoint detectors, descriptor extractors, neighbour searches
and match selectors must implement. The pipeline only talks to these
interfaces, so algorithms can be swapped without touching it.
"""

import cv2
import numpy as np
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .core_data_structures import DetectorType, DescriptorType


class BaseVisionProvider(ABC):
    """
    Interface to the library that implements the detector and descriptor
    mathematics. Everything behind it is opaque to the pipeline.
    """

    @abstractmethod
    def detect(self, image: np.ndarray, algorithm: DetectorType,
               params: Optional[Dict[str, Any]] = None) -> List[cv2.KeyPoint]:
        """
        Detect keypoints with a named algorithm

        Args:
            image: Grayscale image
            algorithm: Detector to run
            params: Algorithm parameters overriding the defaults

        Returns:
            Detected keypoints
        """
        pass

    @abstractmethod
    def describe(self, image: np.ndarray, keypoints: List[cv2.KeyPoint],
                 algorithm: DescriptorType,
                 params: Optional[Dict[str, Any]] = None) -> Tuple[List[cv2.KeyPoint], np.ndarray]:
        """
        Compute descriptors for keypoints

        Extractors may drop keypoints they cannot describe (e.g. too close
        to the border), so the surviving keypoints are returned alongside
        the descriptor rows.

        Returns:
            Tuple of (keypoints, descriptors) with one row per keypoint
        """
        pass

    @abstractmethod
    def raw_corner_response(self, image: np.ndarray,
                            params: Optional[Dict[str, Any]] = None) -> np.ndarray:
        """Dense per-pixel Harris cornerness map (float32, same shape as image)"""
        pass

    @abstractmethod
    def good_features(self, image: np.ndarray,
                      params: Optional[Dict[str, Any]] = None) -> np.ndarray:
        """Strongest Shi-Tomasi corners as an (N, 2) array of (x, y)"""
        pass

    @abstractmethod
    def approx_knn_search(self, source: np.ndarray, reference: np.ndarray,
                          k: int) -> List[List[cv2.DMatch]]:
        """
        Approximate nearest-neighbour search

        Returns:
            One list per source row with up to k candidates, nearest first
        """
        pass


class BaseKeypointDetector(ABC):
    """Abstract base class for all keypoint detection strategies"""

    detector_type: Optional[DetectorType] = None

    def __init__(self, provider: BaseVisionProvider, **params):
        self.provider = provider
        self.params = params
        self.name = self.__class__.__name__

    @abstractmethod
    def detect(self, image: np.ndarray) -> List[cv2.KeyPoint]:
        """
        Detect keypoints in an image

        Args:
            image: Input image (grayscale or BGR)

        Returns:
            List of keypoints
        """
        pass

    def preprocess_image(self, image: np.ndarray) -> np.ndarray:
        """
        Preprocess image for feature detection

        Args:
            image: Input image

        Returns:
            Preprocessed grayscale image
        """
        return to_grayscale(image)


class BaseDescriptorExtractor(ABC):
    """Abstract base class for all descriptor extraction strategies"""

    descriptor_type: Optional[DescriptorType] = None

    def __init__(self, provider: BaseVisionProvider, **params):
        self.provider = provider
        self.params = params
        self.name = self.__class__.__name__

    @abstractmethod
    def describe(self, image: np.ndarray,
                 keypoints: List[cv2.KeyPoint]) -> Tuple[List[cv2.KeyPoint], np.ndarray]:
        """
        Describe keypoints

        Returns:
            Tuple of (keypoints kept by the extractor, descriptors)
        """
        pass


class BaseDescriptorSearch(ABC):
    """Abstract base class for nearest-neighbour candidate searches"""

    @abstractmethod
    def knn_search(self, source: np.ndarray, reference: np.ndarray,
                   k: int) -> List[List[cv2.DMatch]]:
        """
        Find the k closest reference rows for every source row

        Returns:
            One candidate list per source row, nearest first
        """
        pass

    @property
    @abstractmethod
    def name(self) -> str:
        pass


class BaseMatchSelector(ABC):
    """Abstract base class for turning candidate lists into correspondences"""

    #: number of neighbours the selector needs per source descriptor
    k: int = 1

    @abstractmethod
    def select(self, candidates: Sequence[Sequence[cv2.DMatch]]) -> List[cv2.DMatch]:
        """
        Pick at most one correspondence per source descriptor

        Args:
            candidates: Output of BaseDescriptorSearch.knn_search

        Returns:
            Correspondences in source order
        """
        pass

    @property
    @abstractmethod
    def name(self) -> str:
        pass


def to_grayscale(image: np.ndarray) -> np.ndarray:
    """Convert BGR / BGRA images to single-channel grayscale"""
    if image.ndim == 3:
        if image.shape[2] == 1:
            return image[:, :, 0]
        if image.shape[2] == 4:
            return cv2.cvtColor(image, cv2.COLOR_BGRA2GRAY)
        return cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)
    return image
