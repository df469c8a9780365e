"""
Shared fixtures: synthetic textured images and a deterministic stub provider.
"""

import logging
import sys
from pathlib import Path

import cv2
import numpy as np
import pytest

project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from FeatureTracking.base_classes import BaseVisionProvider, to_grayscale
from FeatureTracking.core_data_structures import DescriptorType, DistanceNorm
from FeatureTracking.descriptor_matcher import BruteForceSearch
from FeatureTracking.logger import ROOT_LOGGER_NAME


def make_textured_image(height: int = 240, width: int = 320, seed: int = 0) -> np.ndarray:
    """Grayscale image with random filled rectangles and circles (plenty of corners)"""
    rng = np.random.RandomState(seed)
    image = np.full((height, width), 90, dtype=np.uint8)
    for _ in range(40):
        x, y = rng.randint(0, width - 20), rng.randint(0, height - 20)
        w, h = rng.randint(8, 40), rng.randint(8, 40)
        cv2.rectangle(image, (x, y), (x + w, y + h), int(rng.randint(0, 255)), -1)
    for _ in range(15):
        center = (int(rng.randint(10, width - 10)), int(rng.randint(10, height - 10)))
        cv2.circle(image, center, int(rng.randint(4, 15)), int(rng.randint(0, 255)), -1)
    return image


def shift_image(image: np.ndarray, dx: int, dy: int) -> np.ndarray:
    """Translate an image, filling the uncovered border with the background value"""
    matrix = np.float32([[1, 0, dx], [0, 1, dy]])
    return cv2.warpAffine(image, matrix, (image.shape[1], image.shape[0]), borderValue=90)


class StubVisionProvider(BaseVisionProvider):
    """
    Deterministic provider for unit tests

    detect() returns a fixed grid of keypoints, describe() uses the pixel
    patch around each keypoint as its descriptor and drops keypoints whose
    patch leaves the image.
    """

    PATCH = 4

    def __init__(self, grid_step: int = 16, response_map=None, corners=None):
        self.grid_step = grid_step
        self.response_map = response_map
        self.corners = corners
        self.calls = []

    def detect(self, image, algorithm, params=None):
        self.calls.append(('detect', algorithm, dict(params or {})))
        height, width = image.shape[:2]
        return [cv2.KeyPoint(x=float(x), y=float(y), size=7.0, response=float(x + y))
                for y in range(0, height, self.grid_step)
                for x in range(0, width, self.grid_step)]

    def describe(self, image, keypoints, algorithm, params=None):
        self.calls.append(('describe', algorithm, dict(params or {})))
        gray = to_grayscale(image)
        height, width = gray.shape
        half = self.PATCH // 2

        kept, rows = [], []
        for kp in keypoints:
            x, y = int(round(kp.pt[0])), int(round(kp.pt[1]))
            if x - half < 0 or y - half < 0 or x + half > width or y + half > height:
                continue
            kept.append(kp)
            rows.append(gray[y - half:y + half, x - half:x + half].reshape(-1))

        dtype = np.float32 if algorithm == DescriptorType.SIFT else np.uint8
        if not rows:
            return [], np.zeros((0, self.PATCH * self.PATCH), dtype=dtype)
        return kept, np.array(rows).astype(dtype)

    def raw_corner_response(self, image, params=None):
        self.calls.append(('raw_corner_response', None, dict(params or {})))
        if self.response_map is not None:
            return self.response_map
        return np.zeros(image.shape[:2], dtype=np.float32)

    def good_features(self, image, params=None):
        self.calls.append(('good_features', None, dict(params or {})))
        if self.corners is None:
            return np.zeros((0, 2), dtype=np.float32)
        return np.asarray(self.corners, dtype=np.float32)

    def approx_knn_search(self, source, reference, k):
        self.calls.append(('approx_knn_search', None, {'k': k}))
        return BruteForceSearch(DistanceNorm.L2).knn_search(source, reference, k)


@pytest.fixture
def stub_provider():
    return StubVisionProvider()


@pytest.fixture
def textured_image():
    return make_textured_image()


@pytest.fixture
def image_sequence():
    """Five frames of the same scene drifting two pixels per frame"""
    base = make_textured_image(seed=3)
    return [shift_image(base, 2 * i, i) for i in range(5)]


@pytest.fixture
def binary_descriptors():
    rng = np.random.RandomState(7)
    return rng.randint(0, 256, size=(30, 32)).astype(np.uint8)


@pytest.fixture
def reset_package_logger():
    """Drop handlers bound to captured streams once a test configured the package logger"""
    yield
    package_logger = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in package_logger.handlers[:]:
        package_logger.removeHandler(handler)
        handler.close()
    package_logger.setLevel(logging.NOTSET)
