"""
Feature Tracking Front-End

Detects keypoints in a stream of images, describes them and matches them
between consecutive frames, reporting keypoint counts, match counts and
per-stage latency for each detector/descriptor combination.

Main Components:
- Detectors: Shi-Tomasi, Harris (with corner NMS), FAST, BRISK, ORB, AKAZE, SIFT
- Descriptors: BRISK, BRIEF, ORB, FREAK, AKAZE, SIFT
- Matching: brute force or indexed (FLANN) search, nearest or ratio-test selection
- Bounded frame window, region-of-interest filtering, performance reports

Quick Start:
    >>> import FeatureTracking as ft
    >>> pipeline = ft.create_pipeline('fast')
    >>> report = pipeline.run(ft.ImageSequence.from_folder('images/'))
    >>> print(report.format_report())
"""

__version__ = "1.0.0"
__author__ = "Feature Tracking Team"

# Core data structures
from .core_data_structures import (
    DescriptorFamily,
    DescriptorType,
    DetectorType,
    DistanceNorm,
    Frame,
    MatcherType,
    RegionOfInterest,
    SelectorType,
    mean_keypoint_size,
)

# Exceptions
from .exceptions import (
    ConfigurationError,
    DescriptorFamilyMismatchError,
    FeatureTrackingError,
    FrameNotAvailableError,
    FrameSealedError,
    ImageLoadError,
    VisionProviderError,
)

# Base classes
from .base_classes import (
    BaseDescriptorExtractor,
    BaseDescriptorSearch,
    BaseKeypointDetector,
    BaseMatchSelector,
    BaseVisionProvider,
)

# Configuration
from .config import (
    PipelineConfig,
    create_config_from_preset,
    get_available_presets,
    get_default_config,
    load_config,
    save_config,
    validate_config,
)

# Strategies
from .corner_nms import keypoint_overlap, suppress_non_maxima
from .traditional_detectors import (
    HarrisCornerDetector,
    ProviderDetector,
    ShiTomasiDetector,
    create_detector,
    register_detector,
)
from .descriptor_extractors import (
    ProviderDescriptorExtractor,
    create_extractor,
    register_extractor,
)
from .descriptor_matcher import (
    BruteForceSearch,
    IndexedSearch,
    NearestNeighborSelector,
    RatioTestMatcher,
    RatioTestSelector,
    match_descriptors,
    passes_ratio_test,
)
from .vision_provider import OpenCVVisionProvider

# Pipeline
from .frame_window import FrameWindow
from .benchmarking import FrameMetrics, PerformanceReport, benchmark_combinations
from .pipeline import FeatureTrackingPipeline, create_pipeline
from .image_manager import ImageSequence, InMemorySequence

# Logging
from .logger import configure_root_logger, get_logger

__all__ = [
    # Data structures
    'DescriptorFamily', 'DescriptorType', 'DetectorType', 'DistanceNorm', 'Frame',
    'MatcherType', 'RegionOfInterest', 'SelectorType', 'mean_keypoint_size',
    # Exceptions
    'ConfigurationError', 'DescriptorFamilyMismatchError', 'FeatureTrackingError',
    'FrameNotAvailableError', 'FrameSealedError', 'ImageLoadError', 'VisionProviderError',
    # Base classes
    'BaseDescriptorExtractor', 'BaseDescriptorSearch', 'BaseKeypointDetector',
    'BaseMatchSelector', 'BaseVisionProvider',
    # Configuration
    'PipelineConfig', 'create_config_from_preset', 'get_available_presets',
    'get_default_config', 'load_config', 'save_config', 'validate_config',
    # Strategies
    'keypoint_overlap', 'suppress_non_maxima',
    'HarrisCornerDetector', 'ProviderDetector', 'ShiTomasiDetector',
    'create_detector', 'register_detector',
    'ProviderDescriptorExtractor', 'create_extractor', 'register_extractor',
    'BruteForceSearch', 'IndexedSearch', 'NearestNeighborSelector', 'RatioTestMatcher',
    'RatioTestSelector', 'match_descriptors', 'passes_ratio_test',
    'OpenCVVisionProvider',
    # Pipeline
    'FrameWindow', 'FrameMetrics', 'PerformanceReport', 'benchmark_combinations',
    'FeatureTrackingPipeline', 'create_pipeline', 'ImageSequence', 'InMemorySequence',
    # Logging
    'configure_root_logger', 'get_logger',
]
