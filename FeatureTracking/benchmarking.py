"""
Performance metrics and benchmarking for the feature tracking front-end.

FrameMetrics records what happened to one frame, PerformanceReport
aggregates a run, and benchmark_combinations sweeps detector/descriptor
pairs over the same image sequence.
"""

import numpy as np
import pandas as pd
from dataclasses import asdict, dataclass, field, fields
from typing import Any, Dict, Iterable, List, Optional, Sequence

from .base_classes import BaseVisionProvider
from .config import PipelineConfig, family_for
from .core_data_structures import DescriptorType, DetectorType, parse_enum
from .exceptions import ConfigurationError
from .logger import get_logger

logger = get_logger("benchmarking")


@dataclass
class FrameMetrics:
    """
    Counts and timings for one processed frame (times in microseconds)

    num_keypoints and mean_keypoint_size describe the detected keypoints
    inside the ROI, before any limit or extractor drop. num_described
    counts the keypoints that received a descriptor.
    """
    frame_index: int
    num_keypoints: int
    mean_keypoint_size: Optional[float]
    detection_time_us: float
    description_time_us: float
    matching_time_us: Optional[float] = None
    num_matches: Optional[int] = None
    num_described: Optional[int] = None


def _mean(values: Iterable[Optional[float]]) -> Optional[float]:
    present = [v for v in values if v is not None]
    if not present:
        return None
    return float(np.mean(present))


def _fmt(value: Optional[float], precision: int = 2) -> str:
    return "N/A" if value is None else f"{value:.{precision}f}"


@dataclass
class PerformanceReport:
    """Aggregate metrics for one pipeline run"""
    detector: str
    descriptor: str
    matcher: str
    selector: str
    frames: List[FrameMetrics] = field(default_factory=list)

    @property
    def num_frames(self) -> int:
        return len(self.frames)

    @property
    def total_keypoints(self) -> int:
        return sum(f.num_keypoints for f in self.frames)

    @property
    def total_described(self) -> int:
        """Keypoints the extractor kept; border keypoints may be dropped"""
        return sum(f.num_described for f in self.frames if f.num_described is not None)

    @property
    def total_matches(self) -> int:
        return sum(f.num_matches for f in self.frames if f.num_matches is not None)

    @property
    def mean_keypoint_size(self) -> Optional[float]:
        """Mean of the per-frame mean sizes, over frames that have keypoints"""
        return _mean(f.mean_keypoint_size for f in self.frames)

    @property
    def mean_detection_time_us(self) -> Optional[float]:
        return _mean(f.detection_time_us for f in self.frames)

    @property
    def mean_description_time_us(self) -> Optional[float]:
        return _mean(f.description_time_us for f in self.frames)

    @property
    def mean_matching_time_us(self) -> Optional[float]:
        return _mean(f.matching_time_us for f in self.frames)

    def summary(self) -> Dict[str, Any]:
        """Aggregates as a flat dictionary"""
        return {
            'detector': self.detector,
            'descriptor': self.descriptor,
            'matcher': self.matcher,
            'selector': self.selector,
            'num_frames': self.num_frames,
            'total_keypoints': self.total_keypoints,
            'total_described': self.total_described,
            'total_matches': self.total_matches,
            'mean_keypoint_size': self.mean_keypoint_size,
            'mean_detection_time_us': self.mean_detection_time_us,
            'mean_description_time_us': self.mean_description_time_us,
            'mean_matching_time_us': self.mean_matching_time_us,
        }

    def to_dataframe(self) -> pd.DataFrame:
        """Per-frame metrics, one row per frame"""
        columns = [f.name for f in fields(FrameMetrics)]
        return pd.DataFrame([asdict(f) for f in self.frames], columns=columns)

    def format_report(self) -> str:
        lines = [
            "=" * 60,
            f"Feature tracking report: {self.detector} / {self.descriptor} "
            f"({self.matcher}, {self.selector})",
            "=" * 60,
            f"Frames processed:        {self.num_frames}",
            f"Total keypoints:         {self.total_keypoints}",
            f"Total described:         {self.total_described}",
            f"Total matches:           {self.total_matches}",
            f"Mean keypoint size:      {_fmt(self.mean_keypoint_size)}",
            f"Mean detection time:     {_fmt(self.mean_detection_time_us, 1)} us",
            f"Mean description time:   {_fmt(self.mean_description_time_us, 1)} us",
            f"Mean matching time:      {_fmt(self.mean_matching_time_us, 1)} us",
        ]
        return "\n".join(lines)

    def save_csv(self, filepath: str):
        """Save per-frame metrics as CSV"""
        self.to_dataframe().to_csv(filepath, index=False)
        logger.info(f"Per-frame metrics saved to: {filepath}")


BENCHMARK_COLUMNS = [
    'detector', 'descriptor', 'matcher', 'selector', 'num_frames',
    'total_keypoints', 'total_described', 'total_matches', 'mean_keypoint_size',
    'mean_detection_time_us', 'mean_description_time_us', 'mean_matching_time_us',
    'error',
]


def benchmark_combinations(images: Sequence,
                           detectors: Optional[Sequence] = None,
                           descriptors: Optional[Sequence] = None,
                           base_config: Optional[PipelineConfig] = None,
                           provider: Optional[BaseVisionProvider] = None) -> pd.DataFrame:
    """
    Run the pipeline for every detector x descriptor pair

    Each descriptor is matched with the family it belongs to. Pairs that
    are rejected by validation or fail in the provider are recorded with
    their error message; the sweep carries on with the next pair.

    Args:
        images: Indexable, sized image sequence
        detectors: Detector types to try (default: all)
        descriptors: Descriptor types to try (default: all)
        base_config: Configuration supplying every other setting
        provider: Vision primitives provider shared by all runs

    Returns:
        DataFrame with one row per pair
    """
    from .pipeline import FeatureTrackingPipeline

    detectors = [parse_enum(DetectorType, d) for d in (detectors or list(DetectorType))]
    descriptors = [parse_enum(DescriptorType, d) for d in (descriptors or list(DescriptorType))]
    base = base_config.to_dict() if base_config is not None else {}

    rows = []
    for detector in detectors:
        for descriptor in descriptors:
            overrides = dict(base)
            overrides.update({
                'detector': detector.value,
                'descriptor': descriptor.value,
                'descriptor_family': family_for(descriptor).value,
                'visualize': False,
            })
            # parameter blocks belong to the base pair only
            if base_config is not None and detector != base_config.detector:
                overrides['detector_params'] = {}
            if base_config is not None and descriptor != base_config.descriptor:
                overrides['descriptor_params'] = {}

            row = {
                'detector': detector.value,
                'descriptor': descriptor.value,
                'matcher': overrides.get('matcher', 'BF'),
                'selector': overrides.get('selector', 'KNN'),
                'error': None,
            }
            try:
                pipeline = FeatureTrackingPipeline(PipelineConfig.from_dict(overrides), provider)
                report = pipeline.run(images)
            except ConfigurationError as e:
                logger.warning(f"Skipping {detector.value}/{descriptor.value}: {e}")
                row['error'] = str(e)
            else:
                row.update(report.summary())
                logger.info(f"{detector.value}/{descriptor.value}: "
                            f"{report.total_keypoints} keypoints, {report.total_matches} matches")
            rows.append(row)

    return pd.DataFrame(rows, columns=BENCHMARK_COLUMNS)
