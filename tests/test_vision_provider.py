"""Tests for vision_provider.py and end-to-end runs against real OpenCV."""

import cv2
import numpy as np
import pytest

from FeatureTracking.core_data_structures import DescriptorType, DetectorType
from FeatureTracking.exceptions import VisionProviderError
from FeatureTracking.image_manager import InMemorySequence
from FeatureTracking.pipeline import create_pipeline
from FeatureTracking.vision_provider import OpenCVVisionProvider

requires_contrib = pytest.mark.skipif(not hasattr(cv2, 'xfeatures2d'),
                                      reason="needs opencv-contrib-python (cv2.xfeatures2d)")


@pytest.fixture
def provider():
    return OpenCVVisionProvider()


@pytest.mark.parametrize("detector", ['FAST', 'BRISK', 'ORB', 'AKAZE', 'SIFT'])
def test_delegated_detectors_find_keypoints(provider, textured_image, detector):
    keypoints = provider.detect(textured_image, DetectorType[detector])
    assert len(keypoints) > 0
    assert all(isinstance(kp, cv2.KeyPoint) for kp in keypoints)


def test_local_detectors_are_not_provider_algorithms(provider, textured_image):
    with pytest.raises(VisionProviderError):
        provider.detect(textured_image, DetectorType.HARRIS)


@pytest.mark.parametrize("descriptor, dtype", [
    ('BRISK', np.uint8),
    ('ORB', np.uint8),
    ('SIFT', np.float32),
])
def test_describe_returns_aligned_rows(provider, textured_image, descriptor, dtype):
    keypoints = provider.detect(textured_image, DetectorType.BRISK)

    kept, descriptors = provider.describe(textured_image, keypoints, DescriptorType[descriptor])

    assert len(kept) > 0
    assert descriptors.shape[0] == len(kept)
    assert descriptors.dtype == dtype


def test_akaze_descriptor_on_akaze_keypoints(provider, textured_image):
    keypoints = provider.detect(textured_image, DetectorType.AKAZE)
    kept, descriptors = provider.describe(textured_image, keypoints, DescriptorType.AKAZE)
    assert descriptors.shape[0] == len(kept) > 0


@requires_contrib
@pytest.mark.parametrize("descriptor", ['BRIEF', 'FREAK'])
def test_contrib_descriptors(provider, textured_image, descriptor):
    keypoints = provider.detect(textured_image, DetectorType.FAST)
    kept, descriptors = provider.describe(textured_image, keypoints, DescriptorType[descriptor])
    assert descriptors.dtype == np.uint8
    assert descriptors.shape[0] == len(kept) > 0


def test_brief_width_follows_bytes_parameter(provider, textured_image):
    if not hasattr(cv2, 'xfeatures2d'):
        with pytest.raises(VisionProviderError):
            provider.describe(textured_image, [cv2.KeyPoint(50, 50, 7)], DescriptorType.BRIEF)
        return

    keypoints = provider.detect(textured_image, DetectorType.FAST)
    _, descriptors = provider.describe(textured_image, keypoints, DescriptorType.BRIEF, {'bytes': 16})
    assert descriptors.shape[1] == 16


@pytest.mark.parametrize("descriptor, dtype", [('ORB', np.uint8), ('SIFT', np.float32)])
def test_describe_without_keypoints(provider, textured_image, descriptor, dtype):
    kept, descriptors = provider.describe(textured_image, [], DescriptorType[descriptor])
    assert kept == []
    assert len(descriptors) == 0
    assert descriptors.dtype == dtype


def test_unknown_parameters_are_rejected(provider, textured_image):
    with pytest.raises(VisionProviderError):
        provider.detect(textured_image, DetectorType.FAST, {'thresh': 10})


def test_bad_parameter_value_is_rejected(provider, textured_image):
    with pytest.raises(VisionProviderError):
        provider.detect(textured_image, DetectorType.FAST, {'type': 'TYPE_3_4'})


def test_created_objects_are_cached(provider, textured_image):
    provider.detect(textured_image, DetectorType.ORB)
    provider.detect(textured_image, DetectorType.ORB)
    provider.detect(textured_image, DetectorType.ORB, {'n_features': 100})

    orb_entries = [key for key in provider._cache if key[:2] == ('detector', 'ORB')]
    assert len(orb_entries) == 2


def test_parameters_change_detector_behaviour(provider, textured_image):
    few = provider.detect(textured_image, DetectorType.ORB, {'n_features': 20})
    many = provider.detect(textured_image, DetectorType.ORB)
    assert 0 < len(few) < len(many)


def test_raw_corner_response_matches_image_shape(provider, textured_image):
    response = provider.raw_corner_response(textured_image)
    assert response.shape == textured_image.shape
    assert response.dtype == np.float32


def test_good_features_returns_xy_pairs(provider, textured_image):
    corners = provider.good_features(textured_image, {'max_corners': 50})
    assert corners.ndim == 2 and corners.shape[1] == 2
    assert 0 < len(corners) <= 50


def test_good_features_on_flat_image(provider):
    corners = provider.good_features(np.zeros((32, 32), dtype=np.uint8))
    assert corners.shape == (0, 2)


def test_approx_knn_search(provider):
    rng = np.random.RandomState(0)
    reference = rng.rand(40, 16).astype(np.float32)

    result = provider.approx_knn_search(reference.copy(), reference, 2)

    assert len(result) == 40
    assert all(len(c) == 2 for c in result)
    assert sum(c[0].trainIdx == i for i, c in enumerate(result)) >= 36
    assert provider.approx_knn_search(reference, reference[:0], 2) == [[] for _ in range(40)]


# --------------------------------------------------------------------------- #
#  End to end
# --------------------------------------------------------------------------- #

@pytest.mark.parametrize("overrides", [
    {'detector': 'FAST', 'descriptor': 'BRISK'},
    {'detector': 'ORB', 'descriptor': 'ORB', 'selector': 'NN'},
    {'detector': 'SHITOMASI', 'descriptor': 'BRISK'},
    {'detector': 'HARRIS', 'descriptor': 'SIFT', 'descriptor_family': 'HOG'},
    {'detector': 'SIFT', 'descriptor': 'SIFT', 'descriptor_family': 'HOG', 'matcher': 'FLANN'},
    {'detector': 'AKAZE', 'descriptor': 'AKAZE'},
])
def test_pipeline_tracks_drifting_scene(image_sequence, overrides):
    pipeline = create_pipeline('default', **overrides)

    report = pipeline.run(InMemorySequence(image_sequence))

    assert report.num_frames == len(image_sequence)
    assert report.total_keypoints > 0
    assert report.total_matches > 0
    assert report.mean_keypoint_size > 0


def test_harris_detector_through_opencv(textured_image):
    pipeline = create_pipeline('default', detector='HARRIS', descriptor='BRISK')
    keypoints = pipeline.detector.detect(textured_image)

    assert keypoints
    assert all(kp.size == pytest.approx(6.0) for kp in keypoints)
    assert all(kp.response > 100 for kp in keypoints)
