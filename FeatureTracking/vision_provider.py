"""
OpenCV implementation of the vision primitives provider.

All keypoint detector and descriptor mathematics live in OpenCV; this
module only translates the configured algorithm names and parameter blocks
into OpenCV objects. BRIEF and FREAK need the contrib modules
(cv2.xfeatures2d, shipped with opencv-contrib-python).
"""

from typing import Any, Callable, Dict, List, Optional, Tuple

import cv2
import numpy as np

from .base_classes import BaseVisionProvider, to_grayscale
from .config import (
    DESCRIPTOR_SPECIFIC_CONFIGS,
    DETECTOR_SPECIFIC_CONFIGS,
    MATCHER_SPECIFIC_CONFIGS,
    resolve_params,
)
from .core_data_structures import DescriptorType, DetectorType, parse_enum
from .exceptions import VisionProviderError
from .logger import get_logger

logger = get_logger("provider")


FAST_TYPES = {
    'TYPE_9_16': cv2.FAST_FEATURE_DETECTOR_TYPE_9_16,
    'TYPE_7_12': cv2.FAST_FEATURE_DETECTOR_TYPE_7_12,
    'TYPE_5_8': cv2.FAST_FEATURE_DETECTOR_TYPE_5_8,
}

ORB_SCORE_TYPES = {
    'HARRIS': cv2.ORB_HARRIS_SCORE,
    'FAST': cv2.ORB_FAST_SCORE,
}

AKAZE_DESCRIPTOR_TYPES = {
    'KAZE': cv2.AKAZE_DESCRIPTOR_KAZE,
    'KAZE_UPRIGHT': cv2.AKAZE_DESCRIPTOR_KAZE_UPRIGHT,
    'MLDB': cv2.AKAZE_DESCRIPTOR_MLDB,
    'MLDB_UPRIGHT': cv2.AKAZE_DESCRIPTOR_MLDB_UPRIGHT,
}

KAZE_DIFFUSIVITY = {
    'PM_G1': cv2.KAZE_DIFF_PM_G1,
    'PM_G2': cv2.KAZE_DIFF_PM_G2,
    'WEICKERT': cv2.KAZE_DIFF_WEICKERT,
    'CHARBONNIER': cv2.KAZE_DIFF_CHARBONNIER,
}

FLANN_INDEX_KDTREE = 1


# =============================================================================
# OpenCV object builders
# =============================================================================

def _lookup(table: Dict[str, int], key: str, what: str) -> int:
    try:
        return table[str(key).upper()]
    except KeyError:
        raise VisionProviderError(f"Unknown {what}: {key}. Available: {', '.join(table)}") from None


def _xfeatures2d(name: str):
    if not hasattr(cv2, 'xfeatures2d'):
        raise VisionProviderError(
            f"{name} requires the OpenCV contrib modules (pip install opencv-contrib-python)"
        )
    return cv2.xfeatures2d


def _create_fast(p):
    return cv2.FastFeatureDetector_create(int(p['threshold']), bool(p['nonmax_suppression']),
                                          _lookup(FAST_TYPES, p['type'], 'FAST type'))


def _create_brisk(p):
    return cv2.BRISK_create(int(p['threshold']), int(p['octaves']), float(p['pattern_scale']))


def _create_orb(p):
    return cv2.ORB_create(int(p['n_features']), float(p['scale_factor']), int(p['n_levels']),
                          int(p['edge_threshold']), int(p['first_level']), int(p['wta_k']),
                          _lookup(ORB_SCORE_TYPES, p['score_type'], 'ORB score type'),
                          int(p['patch_size']), int(p['fast_threshold']))


def _create_akaze_detector(p):
    return cv2.AKAZE_create()


def _create_sift(p):
    return cv2.SIFT_create(int(p['n_features']), int(p['n_octave_layers']),
                           float(p['contrast_threshold']), float(p['edge_threshold']),
                           float(p['sigma']))


def _create_brief(p):
    return _xfeatures2d('BRIEF').BriefDescriptorExtractor_create(int(p['bytes']),
                                                                 bool(p['use_orientation']))


def _create_freak(p):
    return _xfeatures2d('FREAK').FREAK_create(bool(p['orientation_normalized']),
                                              bool(p['scale_normalized']),
                                              float(p['pattern_scale']), int(p['n_octaves']))


def _create_akaze_extractor(p):
    return cv2.AKAZE_create(
        _lookup(AKAZE_DESCRIPTOR_TYPES, p['descriptor_type'], 'AKAZE descriptor type'),
        int(p['descriptor_size']), int(p['descriptor_channels']), float(p['threshold']),
        int(p['n_octaves']), int(p['n_octave_layers']),
        _lookup(KAZE_DIFFUSIVITY, p['diffusivity'], 'KAZE diffusivity')
    )


DETECTOR_BUILDERS: Dict[DetectorType, Callable[[Dict[str, Any]], Any]] = {
    DetectorType.FAST: _create_fast,
    DetectorType.BRISK: _create_brisk,
    DetectorType.ORB: _create_orb,
    DetectorType.AKAZE: _create_akaze_detector,
    DetectorType.SIFT: _create_sift,
}

EXTRACTOR_BUILDERS: Dict[DescriptorType, Callable[[Dict[str, Any]], Any]] = {
    DescriptorType.BRISK: _create_brisk,
    DescriptorType.BRIEF: _create_brief,
    DescriptorType.ORB: _create_orb,
    DescriptorType.FREAK: _create_freak,
    DescriptorType.AKAZE: _create_akaze_extractor,
    DescriptorType.SIFT: _create_sift,
}


class OpenCVVisionProvider(BaseVisionProvider):
    """
    Vision primitives provider backed by OpenCV

    OpenCV objects are created lazily and cached per algorithm and
    parameter set, so repeated calls on a frame sequence reuse them.

    Usage:
        provider = OpenCVVisionProvider()
        keypoints = provider.detect(gray, DetectorType.ORB)
        keypoints, descriptors = provider.describe(gray, keypoints, DescriptorType.BRIEF)
    """

    def __init__(self, flann_params: Optional[Dict[str, Any]] = None):
        self.flann_params = dict(MATCHER_SPECIFIC_CONFIGS['FLANN'])
        self.flann_params.update(flann_params or {})
        self._cache: Dict[Tuple, Any] = {}

    # -------------------------------------------------------------------------
    # Detection / description
    # -------------------------------------------------------------------------

    def detect(self, image: np.ndarray, algorithm: DetectorType,
               params: Optional[Dict[str, Any]] = None) -> List[cv2.KeyPoint]:
        algorithm = parse_enum(DetectorType, algorithm)
        if algorithm not in DETECTOR_BUILDERS:
            raise VisionProviderError(
                f"{algorithm.value} is not a provider detector; use its local detection strategy"
            )

        detector = self._get_or_create('detector', algorithm.value, params,
                                       DETECTOR_SPECIFIC_CONFIGS, DETECTOR_BUILDERS[algorithm])
        try:
            keypoints = detector.detect(to_grayscale(image), None)
        except cv2.error as e:
            raise VisionProviderError(f"{algorithm.value} detection failed: {e}") from e

        return list(keypoints)

    def describe(self, image: np.ndarray, keypoints: List[cv2.KeyPoint],
                 algorithm: DescriptorType,
                 params: Optional[Dict[str, Any]] = None) -> Tuple[List[cv2.KeyPoint], np.ndarray]:
        algorithm = parse_enum(DescriptorType, algorithm)
        extractor = self._get_or_create('extractor', algorithm.value, params,
                                        DESCRIPTOR_SPECIFIC_CONFIGS, EXTRACTOR_BUILDERS[algorithm])
        if not keypoints:
            return [], empty_descriptors(algorithm)

        try:
            kept, descriptors = extractor.compute(to_grayscale(image), list(keypoints))
        except cv2.error as e:
            raise VisionProviderError(f"{algorithm.value} description failed: {e}") from e

        kept = list(kept) if kept is not None else []
        if descriptors is None or not kept:
            return [], empty_descriptors(algorithm)

        if len(kept) < len(keypoints):
            logger.debug(f"{algorithm.value} dropped {len(keypoints) - len(kept)} keypoints")

        return kept, descriptors

    # -------------------------------------------------------------------------
    # Corner responses
    # -------------------------------------------------------------------------

    def raw_corner_response(self, image: np.ndarray,
                            params: Optional[Dict[str, Any]] = None) -> np.ndarray:
        p = {'block_size': 2, 'aperture_size': 3, 'k': 0.04}
        p.update(params or {})
        try:
            return cv2.cornerHarris(to_grayscale(image), int(p['block_size']),
                                    int(p['aperture_size']), float(p['k']),
                                    borderType=cv2.BORDER_DEFAULT)
        except cv2.error as e:
            raise VisionProviderError(f"Harris response failed: {e}") from e

    def good_features(self, image: np.ndarray,
                      params: Optional[Dict[str, Any]] = None) -> np.ndarray:
        p = {'max_corners': 1000, 'quality_level': 0.01, 'min_distance': 4.0,
             'block_size': 4, 'k': 0.04}
        p.update(params or {})
        try:
            corners = cv2.goodFeaturesToTrack(
                to_grayscale(image),
                maxCorners=int(p['max_corners']),
                qualityLevel=float(p['quality_level']),
                minDistance=float(p['min_distance']),
                mask=None,
                blockSize=int(p['block_size']),
                useHarrisDetector=False,
                k=float(p['k'])
            )
        except cv2.error as e:
            raise VisionProviderError(f"Shi-Tomasi detection failed: {e}") from e

        if corners is None:
            return np.zeros((0, 2), dtype=np.float32)
        return corners.reshape(-1, 2)

    # -------------------------------------------------------------------------
    # Indexed search
    # -------------------------------------------------------------------------

    def approx_knn_search(self, source: np.ndarray, reference: np.ndarray,
                          k: int) -> List[List[cv2.DMatch]]:
        if len(source) == 0 or len(reference) == 0 or k <= 0:
            return [[] for _ in range(len(source))]

        matcher = self._get_flann_matcher()
        try:
            knn_matches = matcher.knnMatch(np.ascontiguousarray(source, dtype=np.float32),
                                           np.ascontiguousarray(reference, dtype=np.float32),
                                           k=min(k, len(reference)))
        except cv2.error as e:
            raise VisionProviderError(f"FLANN search failed: {e}") from e

        return [list(candidates) for candidates in knn_matches]

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _get_flann_matcher(self):
        key = ('flann', tuple(sorted(self.flann_params.items())))
        if key not in self._cache:
            if str(self.flann_params['algorithm']).lower() != 'kdtree':
                raise VisionProviderError(
                    f"Unsupported FLANN index: {self.flann_params['algorithm']}"
                )
            index_params = dict(algorithm=FLANN_INDEX_KDTREE, trees=int(self.flann_params['trees']))
            search_params = dict(checks=int(self.flann_params['checks']))
            self._cache[key] = cv2.FlannBasedMatcher(index_params, search_params)
        return self._cache[key]

    def _get_or_create(self, kind: str, name: str, params: Optional[Dict[str, Any]],
                       defaults: Dict[str, Dict[str, Any]], builder: Callable):
        overrides = params or {}
        unknown = set(overrides) - set(defaults.get(name, {}))
        if unknown:
            raise VisionProviderError(f"Unknown {kind} parameters for {name}: {sorted(unknown)}")
        resolved = resolve_params(defaults, name, overrides)

        key = (kind, name, tuple(sorted(resolved.items())))
        if key not in self._cache:
            try:
                self._cache[key] = builder(resolved)
            except cv2.error as e:
                raise VisionProviderError(f"Could not create {name} {kind}: {e}") from e
            logger.debug(f"Created {name} {kind} with {resolved}")
        return self._cache[key]


def empty_descriptors(algorithm: DescriptorType) -> np.ndarray:
    """Zero-row descriptor array with the dtype the algorithm produces"""
    dtype = np.float32 if algorithm == DescriptorType.SIFT else np.uint8
    return np.zeros((0, 0), dtype=dtype)
