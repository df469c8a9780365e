"""
Keypoint detection strategies (Shi-Tomasi, Harris, FAST, BRISK, ORB, AKAZE, SIFT).

Shi-Tomasi and Harris are assembled locally from provider primitives;
Harris output goes through corner non-maximum suppression. The remaining
detectors are delegated to the vision primitives provider.
"""

import cv2
import numpy as np
from typing import Dict, List, Optional, Type

from .base_classes import BaseKeypointDetector, BaseVisionProvider
from .config import DETECTOR_SPECIFIC_CONFIGS, resolve_params
from .core_data_structures import DetectorType, parse_enum
from .corner_nms import suppress_non_maxima
from .exceptions import ConfigurationError
from .logger import get_logger

logger = get_logger("detectors")


class _LocalDetector(BaseKeypointDetector):
    """Shared parameter handling for detectors built from provider primitives"""

    def __init__(self, provider: BaseVisionProvider, **params):
        unknown = set(params) - set(DETECTOR_SPECIFIC_CONFIGS[self.detector_type.value])
        if unknown:
            raise ConfigurationError(
                f"Unknown detector parameters for {self.detector_type.value}: {sorted(unknown)}"
            )
        super().__init__(provider, **resolve_params(DETECTOR_SPECIFIC_CONFIGS,
                                                    self.detector_type.value, params))


class ShiTomasiDetector(_LocalDetector):
    """Shi-Tomasi 'good features to track' corners"""

    detector_type = DetectorType.SHITOMASI

    def detect(self, image: np.ndarray) -> List[cv2.KeyPoint]:
        gray = self.preprocess_image(image)

        block_size = self.params['block_size']
        min_distance = (1.0 - self.params['max_overlap']) * block_size
        max_corners = int(gray.shape[0] * gray.shape[1] / max(1.0, min_distance))

        corners = self.provider.good_features(gray, {
            'max_corners': max_corners,
            'quality_level': self.params['quality_level'],
            'min_distance': min_distance,
            'block_size': block_size,
            'k': self.params['k'],
        })

        return [cv2.KeyPoint(x=float(x), y=float(y), size=float(block_size))
                for x, y in np.asarray(corners).reshape(-1, 2)]


class HarrisCornerDetector(_LocalDetector):
    """
    Harris corners with non-maximum suppression

    The raw response is min-max scaled to [0, 255] so that `min_response`
    is a threshold on an 8-bit scale. Keypoints get a diameter of twice
    the Sobel aperture.
    """

    detector_type = DetectorType.HARRIS

    def detect(self, image: np.ndarray) -> List[cv2.KeyPoint]:
        gray = self.preprocess_image(image)

        response = self.provider.raw_corner_response(gray, {
            'block_size': self.params['block_size'],
            'aperture_size': self.params['aperture_size'],
            'k': self.params['k'],
        })

        # responses are compared and stored as whole 8-bit levels
        response = np.floor(normalize_response(response))

        return suppress_non_maxima(response,
                                   min_response=self.params['min_response'],
                                   keypoint_size=2.0 * self.params['aperture_size'],
                                   max_overlap=self.params['max_overlap'],
                                   merge_overlaps=self.params['merge_overlaps'])


class ProviderDetector(BaseKeypointDetector):
    """Detector fully delegated to the vision primitives provider"""

    def __init__(self, provider: BaseVisionProvider, detector_type: DetectorType, **params):
        super().__init__(provider, **params)
        self.detector_type = detector_type
        self.name = f"{detector_type.value}Detector"

    def detect(self, image: np.ndarray) -> List[cv2.KeyPoint]:
        return list(self.provider.detect(self.preprocess_image(image),
                                         self.detector_type, self.params))


def normalize_response(response: np.ndarray) -> np.ndarray:
    """Min-max scale a response map to [0, 255] (float32); constant maps become zeros"""
    response = np.asarray(response, dtype=np.float32)
    if response.size == 0:
        return response

    low = float(response.min())
    high = float(response.max())
    if high <= low:
        return np.zeros_like(response)
    return (response - low) * np.float32(255.0 / (high - low))


# =============================================================================
# Registry
# =============================================================================

DETECTOR_REGISTRY: Dict[DetectorType, Type[BaseKeypointDetector]] = {
    DetectorType.SHITOMASI: ShiTomasiDetector,
    DetectorType.HARRIS: HarrisCornerDetector,
    DetectorType.FAST: ProviderDetector,
    DetectorType.BRISK: ProviderDetector,
    DetectorType.ORB: ProviderDetector,
    DetectorType.AKAZE: ProviderDetector,
    DetectorType.SIFT: ProviderDetector,
}


def register_detector(detector_type: DetectorType, detector_cls: Type[BaseKeypointDetector]):
    """Register (or replace) the strategy used for a detector type"""
    DETECTOR_REGISTRY[parse_enum(DetectorType, detector_type)] = detector_cls


def create_detector(detector_type, provider: BaseVisionProvider,
                    params: Optional[Dict] = None) -> BaseKeypointDetector:
    """
    Factory function to create keypoint detectors

    Args:
        detector_type: DetectorType member or name ('SHITOMASI', 'HARRIS', 'FAST', ...)
        provider: Vision primitives provider
        params: Parameters overriding the detector defaults

    Returns:
        Initialized detector instance

    Raises:
        ConfigurationError: If detector_type is not registered
    """
    try:
        detector_type = parse_enum(DetectorType, detector_type)
    except ValueError as e:
        raise ConfigurationError(str(e)) from e

    if detector_type not in DETECTOR_REGISTRY:
        available = ', '.join(t.value for t in DETECTOR_REGISTRY)
        raise ConfigurationError(f"No detector registered for {detector_type.value}. Available: {available}")

    detector_cls = DETECTOR_REGISTRY[detector_type]
    params = params or {}
    if issubclass(detector_cls, ProviderDetector):
        detector = detector_cls(provider, detector_type, **params)
    else:
        detector = detector_cls(provider, **params)

    logger.info(f"Created detector: {detector.name}")
    return detector
