"""
Descriptor matching between two frames.

Matching is split into two independent strategies: a neighbour search that
produces, for every source descriptor, its closest reference descriptors
(nearest first), and a selector that turns those candidates into at most
one correspondence per source descriptor.

Source descriptors come from the previous frame (DMatch.queryIdx) and
reference descriptors from the current frame (DMatch.trainIdx).
"""

import cv2
import numpy as np
from typing import Dict, List, Optional, Sequence, Type

from .base_classes import BaseDescriptorSearch, BaseMatchSelector, BaseVisionProvider
from .core_data_structures import (
    DescriptorFamily,
    DistanceNorm,
    MatcherType,
    SelectorType,
    parse_enum,
)
from .exceptions import ConfigurationError, DescriptorFamilyMismatchError
from .logger import get_logger

logger = get_logger("matcher")

DEFAULT_RATIO_THRESHOLD = 0.8

CV_NORMS = {
    DistanceNorm.HAMMING: cv2.NORM_HAMMING,
    DistanceNorm.L1: cv2.NORM_L1,
    DistanceNorm.L2: cv2.NORM_L2,
}


def passes_ratio_test(d1: float, d2: float, ratio: float = DEFAULT_RATIO_THRESHOLD) -> bool:
    """Lowe's ratio test: keep the best candidate only if clearly better than the runner-up"""
    return d1 < ratio * d2


def norm_for_family(family: DescriptorFamily,
                    gradient_norm: DistanceNorm = DistanceNorm.L1) -> DistanceNorm:
    """Distance metric used for a descriptor family"""
    family = parse_enum(DescriptorFamily, family)
    if family == DescriptorFamily.BINARY:
        return DistanceNorm.HAMMING

    gradient_norm = parse_enum(DistanceNorm, gradient_norm)
    if gradient_norm == DistanceNorm.HAMMING:
        raise ConfigurationError("Gradient-histogram descriptors need an L1 or L2 norm")
    return gradient_norm


# =============================================================================
# Neighbour searches
# =============================================================================

class BruteForceSearch(BaseDescriptorSearch):
    """Exhaustive comparison of every source row with every reference row (cv2.BFMatcher)"""

    def __init__(self, norm: DistanceNorm = DistanceNorm.HAMMING):
        self.norm = parse_enum(DistanceNorm, norm)
        self.matcher = cv2.BFMatcher(CV_NORMS[self.norm], crossCheck=False)

    @classmethod
    def from_config(cls, norm: DistanceNorm,
                    provider: Optional[BaseVisionProvider] = None) -> 'BruteForceSearch':
        return cls(norm)

    @property
    def name(self) -> str:
        return f"BruteForce-{self.norm.value}"

    def knn_search(self, source: np.ndarray, reference: np.ndarray,
                   k: int) -> List[List[cv2.DMatch]]:
        if len(source) == 0:
            return []
        if len(reference) == 0 or k <= 0:
            return [[] for _ in range(len(source))]

        # L1 / L2 need CV_32F rows
        dtype = None if self.norm == DistanceNorm.HAMMING else np.float32
        source = np.ascontiguousarray(source, dtype=dtype)
        reference = np.ascontiguousarray(reference, dtype=dtype)

        candidates = self.matcher.knnMatch(source, reference, k=min(k, len(reference)))
        return [list(neighbours) for neighbours in candidates]


class IndexedSearch(BaseDescriptorSearch):
    """
    Approximate search through the provider's index (FLANN)

    The index works on float32 data, so binary descriptors are searched as
    float32 copies. The caller's arrays are left untouched.
    """

    def __init__(self, provider: BaseVisionProvider):
        if provider is None:
            raise ConfigurationError("Indexed search needs a vision primitives provider")
        self.provider = provider

    @classmethod
    def from_config(cls, norm: DistanceNorm,
                    provider: Optional[BaseVisionProvider] = None) -> 'IndexedSearch':
        return cls(provider)

    @property
    def name(self) -> str:
        return "Indexed"

    def knn_search(self, source: np.ndarray, reference: np.ndarray,
                   k: int) -> List[List[cv2.DMatch]]:
        if len(source) == 0:
            return []
        if len(reference) == 0 or k <= 0:
            return [[] for _ in range(len(source))]

        return self.provider.approx_knn_search(source.astype(np.float32),
                                               reference.astype(np.float32),
                                               min(k, len(reference)))


# =============================================================================
# Selectors
# =============================================================================

class NearestNeighborSelector(BaseMatchSelector):
    """Keep the single closest reference for every source descriptor"""

    k = 1

    @classmethod
    def from_config(cls, ratio_threshold: float = DEFAULT_RATIO_THRESHOLD) -> 'NearestNeighborSelector':
        return cls()

    @property
    def name(self) -> str:
        return "NN"

    def select(self, candidates: Sequence[Sequence[cv2.DMatch]]) -> List[cv2.DMatch]:
        return [neighbours[0] for neighbours in candidates if len(neighbours) > 0]


class RatioTestSelector(BaseMatchSelector):
    """Keep the closest reference only when it passes the ratio test against the second closest"""

    k = 2

    def __init__(self, ratio_threshold: float = DEFAULT_RATIO_THRESHOLD):
        self.ratio_threshold = ratio_threshold

    @classmethod
    def from_config(cls, ratio_threshold: float = DEFAULT_RATIO_THRESHOLD) -> 'RatioTestSelector':
        return cls(ratio_threshold)

    @property
    def name(self) -> str:
        return f"KNN-{self.ratio_threshold:g}"

    def select(self, candidates: Sequence[Sequence[cv2.DMatch]]) -> List[cv2.DMatch]:
        selected = []
        for neighbours in candidates:
            if len(neighbours) < 2:
                continue
            best, second = neighbours[0], neighbours[1]
            if passes_ratio_test(best.distance, second.distance, self.ratio_threshold):
                selected.append(best)
        return selected


SEARCH_REGISTRY: Dict[MatcherType, Type[BaseDescriptorSearch]] = {
    MatcherType.BRUTE_FORCE: BruteForceSearch,
    MatcherType.INDEXED: IndexedSearch,
}

SELECTOR_REGISTRY: Dict[SelectorType, Type[BaseMatchSelector]] = {
    SelectorType.NEAREST: NearestNeighborSelector,
    SelectorType.KNN_RATIO: RatioTestSelector,
}


# =============================================================================
# Matcher
# =============================================================================

class RatioTestMatcher:
    """
    Descriptor matcher combining a neighbour search and a selector

    The descriptor family is always given explicitly; it decides the
    metric (Hamming for binary, L1 or L2 for gradient histograms) and is
    checked against the descriptor arrays on every call.

    Usage:
        matcher = RatioTestMatcher(DescriptorFamily.BINARY, MatcherType.BRUTE_FORCE,
                                   SelectorType.KNN_RATIO)
        matches = matcher.match(previous.descriptors, current.descriptors)
    """

    def __init__(self, descriptor_family: DescriptorFamily,
                 matcher_type: MatcherType = MatcherType.BRUTE_FORCE,
                 selector_type: SelectorType = SelectorType.KNN_RATIO,
                 provider: Optional[BaseVisionProvider] = None,
                 ratio_threshold: float = DEFAULT_RATIO_THRESHOLD,
                 gradient_norm: DistanceNorm = DistanceNorm.L1):
        self.descriptor_family = parse_enum(DescriptorFamily, descriptor_family)
        self.matcher_type = parse_enum(MatcherType, matcher_type)
        self.selector_type = parse_enum(SelectorType, selector_type)
        self.norm = norm_for_family(self.descriptor_family, gradient_norm)

        self.search = SEARCH_REGISTRY[self.matcher_type].from_config(self.norm, provider)
        self.selector = SELECTOR_REGISTRY[self.selector_type].from_config(ratio_threshold)

    @property
    def name(self) -> str:
        return f"{self.search.name}/{self.selector.name}"

    def match(self, source: Optional[np.ndarray],
              reference: Optional[np.ndarray]) -> List[cv2.DMatch]:
        """
        Match source descriptors against reference descriptors

        Args:
            source: Descriptors of the previous frame, one row per keypoint
            reference: Descriptors of the current frame

        Returns:
            Correspondences in source order, at most one per source row

        Raises:
            DescriptorFamilyMismatchError: If the arrays do not fit the family
        """
        if source is None or reference is None or len(source) == 0 or len(reference) == 0:
            return []

        self._check_descriptors(source, 'source')
        self._check_descriptors(reference, 'reference')
        if source.shape[1] != reference.shape[1]:
            raise DescriptorFamilyMismatchError(
                f"Descriptor widths differ: {source.shape[1]} vs {reference.shape[1]}"
            )

        candidates = self.search.knn_search(source, reference, self.selector.k)
        matches = self.selector.select(candidates)

        logger.debug(f"{self.name}: {len(matches)} matches from {len(source)} x {len(reference)}")
        return matches

    def _check_descriptors(self, descriptors: np.ndarray, role: str):
        if descriptors.ndim != 2:
            raise DescriptorFamilyMismatchError(
                f"{role} descriptors must be a 2D array, got shape {descriptors.shape}"
            )

        is_float = np.issubdtype(descriptors.dtype, np.floating)
        if self.descriptor_family == DescriptorFamily.BINARY and descriptors.dtype != np.uint8:
            raise DescriptorFamilyMismatchError(
                f"Binary descriptors must be uint8, got {descriptors.dtype} {role} descriptors"
            )
        if self.descriptor_family == DescriptorFamily.GRADIENT_HISTOGRAM and not is_float:
            raise DescriptorFamilyMismatchError(
                f"Gradient-histogram descriptors must be floating point, "
                f"got {descriptors.dtype} {role} descriptors"
            )


def match_descriptors(source: Optional[np.ndarray], reference: Optional[np.ndarray],
                      descriptor_family: DescriptorFamily,
                      matcher_type: MatcherType = MatcherType.BRUTE_FORCE,
                      selector_type: SelectorType = SelectorType.KNN_RATIO,
                      provider: Optional[BaseVisionProvider] = None,
                      ratio_threshold: float = DEFAULT_RATIO_THRESHOLD,
                      gradient_norm: DistanceNorm = DistanceNorm.L1) -> List[cv2.DMatch]:
    """Functional form of RatioTestMatcher(...).match(source, reference)"""
    matcher = RatioTestMatcher(descriptor_family, matcher_type, selector_type,
                               provider, ratio_threshold, gradient_norm)
    return matcher.match(source, reference)
