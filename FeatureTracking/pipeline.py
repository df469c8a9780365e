"""
Main processing pipeline for frame-to-frame feature tracking.

For every incoming frame the pipeline detects keypoints, optionally
restricts them to a region of interest, computes descriptors and matches
them against the previous frame in the sliding window. Per-frame counts
and timings are collected into a PerformanceReport.
"""

import time
import cv2
import numpy as np
from typing import List, Optional, Sequence

from .base_classes import BaseVisionProvider, to_grayscale
from .benchmarking import FrameMetrics, PerformanceReport
from .config import PipelineConfig, create_config_from_preset, validate_config
from .core_data_structures import Frame, MatcherType, mean_keypoint_size
from .descriptor_extractors import create_extractor
from .descriptor_matcher import RatioTestMatcher
from .frame_window import FrameWindow
from .logger import get_logger
from .traditional_detectors import create_detector
from .vision_provider import OpenCVVisionProvider
from .visualization import show_frame

# Module logger
logger = get_logger("pipeline")


def _elapsed_us(start: float) -> float:
    return (time.perf_counter() - start) * 1e6


def limit_keypoints(keypoints: Sequence[cv2.KeyPoint], max_keypoints: int) -> List[cv2.KeyPoint]:
    """Keep the strongest keypoints; equal responses keep their detection order"""
    if len(keypoints) <= max_keypoints:
        return list(keypoints)
    return sorted(keypoints, key=lambda kp: kp.response, reverse=True)[:max_keypoints]


class FeatureTrackingPipeline:
    """
    Detect, describe and match features across a sequence of frames

    The configuration is validated in the constructor, so an inconsistent
    detector/descriptor/family combination fails before any frame is
    processed.

    Usage:
        pipeline = FeatureTrackingPipeline(PipelineConfig.from_dict({'detector': 'FAST',
                                                                     'descriptor': 'BRIEF'}))
        report = pipeline.run(ImageSequence.from_folder('images/'))
        print(report.format_report())
    """

    def __init__(self, config: Optional[PipelineConfig] = None,
                 provider: Optional[BaseVisionProvider] = None):
        self.config = validate_config(config if config is not None else PipelineConfig())

        if provider is None:
            flann_params = self.config.matcher_params if self.config.matcher == MatcherType.INDEXED else None
            provider = OpenCVVisionProvider(flann_params=flann_params)
        self.provider = provider

        self.detector = create_detector(self.config.detector, provider, self.config.detector_params)
        self.extractor = create_extractor(self.config.descriptor, provider,
                                          self.config.descriptor_params)
        self.matcher = RatioTestMatcher(self.config.descriptor_family,
                                        self.config.matcher,
                                        self.config.selector,
                                        provider=provider,
                                        ratio_threshold=self.config.ratio_threshold,
                                        gradient_norm=self.config.gradient_norm)

        self.window = FrameWindow(self.config.window_size)
        self._metrics: List[FrameMetrics] = []
        self._next_index = 0

        logger.info(f"Pipeline ready: {self.config.describe()}, window {self.config.window_size}")

    def reset(self):
        """Forget all frames and metrics"""
        self.window.clear()
        self._metrics = []
        self._next_index = 0

    def process_frame(self, image: np.ndarray) -> Frame:
        """
        Run detection, description and matching on one frame

        Args:
            image: Grayscale or BGR image

        Returns:
            The admitted frame with keypoints, descriptors and, from the
            second frame on, matches to the previous frame
        """
        gray = to_grayscale(np.asarray(image))
        frame = self.window.admit(Frame(image=gray, index=self._next_index))
        self._next_index += 1

        start = time.perf_counter()
        keypoints = self.detector.detect(gray)
        detection_us = _elapsed_us(start)
        logger.debug(f"Frame {frame.index}: {self.detector.name} found {len(keypoints)} keypoints "
                     f"in {detection_us:.1f} us")

        if self.config.roi is not None:
            keypoints = self.config.roi.filter(keypoints)
            logger.debug(f"Frame {frame.index}: {len(keypoints)} keypoints inside ROI")

        num_detected = len(keypoints)
        detected_size = mean_keypoint_size(keypoints)

        if self.config.max_keypoints is not None:
            keypoints = limit_keypoints(keypoints, self.config.max_keypoints)

        start = time.perf_counter()
        keypoints, descriptors = self.extractor.describe(gray, keypoints)
        description_us = _elapsed_us(start)
        frame.keypoints = keypoints
        frame.descriptors = descriptors
        logger.debug(f"Frame {frame.index}: {self.extractor.name} described {len(keypoints)} "
                     f"keypoints in {description_us:.1f} us")

        matching_us = None
        num_matches = None
        if len(self.window) >= 2:
            previous = self.window.previous()
            start = time.perf_counter()
            matches = self.matcher.match(previous.descriptors, frame.descriptors)
            matching_us = _elapsed_us(start)
            frame.matches = matches
            num_matches = len(matches)
            logger.debug(f"Frame {frame.index}: {num_matches} matches with frame {previous.index} "
                         f"in {matching_us:.1f} us")

        self._metrics.append(FrameMetrics(
            frame_index=frame.index,
            num_keypoints=num_detected,
            mean_keypoint_size=detected_size,
            detection_time_us=detection_us,
            description_time_us=description_us,
            matching_time_us=matching_us,
            num_matches=num_matches,
            num_described=len(frame.keypoints),
        ))

        if self.config.visualize:
            previous = self.window.previous() if len(self.window) >= 2 else None
            show_frame(previous, frame)

        return frame

    def run(self, images: Sequence) -> PerformanceReport:
        """
        Process an indexable image sequence from start to finish

        Each run starts with an empty window and fresh metrics. Image load
        errors raised by the sequence propagate.
        """
        self.reset()
        logger.info(f"Processing {len(images)} frames with {self.config.describe()}")

        for i in range(len(images)):
            self.process_frame(images[i])

        report = self.report()
        logger.info(f"Run finished: {report.total_keypoints} keypoints, "
                    f"{report.total_matches} matches over {report.num_frames} frames")
        return report

    def report(self) -> PerformanceReport:
        """Report for the frames processed so far"""
        return PerformanceReport(detector=self.config.detector.value,
                                 descriptor=self.config.descriptor.value,
                                 matcher=self.config.matcher.value,
                                 selector=self.config.selector.value,
                                 frames=list(self._metrics))


def create_pipeline(preset: str = 'default',
                    provider: Optional[BaseVisionProvider] = None,
                    **overrides) -> FeatureTrackingPipeline:
    """
    Create a feature tracking pipeline from a preset

    Args:
        preset: Preset name ('default', 'fast', 'balanced', 'accurate', 'vehicle')
        provider: Vision primitives provider (default: OpenCV)
        **overrides: Configuration keys overriding the preset

    Returns:
        FeatureTrackingPipeline instance

    Examples:
        >>> pipeline = create_pipeline('fast')
        >>> pipeline = create_pipeline('balanced', roi=[535, 180, 180, 150], window_size=3)
    """
    config = PipelineConfig.from_dict(create_config_from_preset(preset, **overrides))
    return FeatureTrackingPipeline(config, provider)
