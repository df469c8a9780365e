"""Tests for benchmarking.py: per-frame metrics, reports and combination sweeps."""

import pandas as pd
import pytest

from FeatureTracking.benchmarking import (
    BENCHMARK_COLUMNS,
    FrameMetrics,
    PerformanceReport,
    benchmark_combinations,
)
from FeatureTracking.config import PipelineConfig


def make_report() -> PerformanceReport:
    frames = [
        FrameMetrics(0, num_keypoints=4, mean_keypoint_size=2.0,
                     detection_time_us=10.0, description_time_us=20.0),
        FrameMetrics(1, num_keypoints=0, mean_keypoint_size=None,
                     detection_time_us=30.0, description_time_us=40.0,
                     matching_time_us=5.0, num_matches=0),
        FrameMetrics(2, num_keypoints=2, mean_keypoint_size=6.0,
                     detection_time_us=20.0, description_time_us=30.0,
                     matching_time_us=7.0, num_matches=2),
    ]
    return PerformanceReport('FAST', 'BRIEF', 'BF', 'KNN', frames)


def test_aggregates_skip_missing_values():
    report = make_report()

    assert report.num_frames == 3
    assert report.total_keypoints == 6
    assert report.total_matches == 2
    assert report.mean_keypoint_size == pytest.approx(4.0)
    assert report.mean_detection_time_us == pytest.approx(20.0)
    assert report.mean_description_time_us == pytest.approx(30.0)
    assert report.mean_matching_time_us == pytest.approx(6.0)


def test_empty_report_averages_are_none():
    report = PerformanceReport('FAST', 'BRIEF', 'BF', 'KNN')

    assert report.total_keypoints == 0
    assert report.mean_keypoint_size is None
    assert report.mean_matching_time_us is None
    assert report.format_report().count("N/A") == 4


def test_summary_and_format():
    report = make_report()
    summary = report.summary()

    assert summary['total_keypoints'] == 6
    assert summary['detector'] == 'FAST'
    text = report.format_report()
    assert "Total keypoints:         6" in text
    assert "Mean keypoint size:      4.00" in text


def test_dataframe_and_csv(tmp_path):
    report = make_report()
    frame = report.to_dataframe()

    assert list(frame['frame_index']) == [0, 1, 2]
    assert list(frame.columns)[:3] == ['frame_index', 'num_keypoints', 'mean_keypoint_size']

    path = tmp_path / "frames.csv"
    report.save_csv(str(path))
    loaded = pd.read_csv(path)
    assert len(loaded) == 3
    assert loaded['num_keypoints'].sum() == 6


def test_empty_report_dataframe_has_columns():
    frame = PerformanceReport('FAST', 'BRIEF', 'BF', 'KNN').to_dataframe()
    assert frame.empty
    assert 'detection_time_us' in frame.columns


def test_benchmark_records_errors_and_continues(stub_provider, image_sequence):
    table = benchmark_combinations(image_sequence[:3],
                                   detectors=['FAST', 'SIFT', 'HARRIS'],
                                   descriptors=['BRIEF', 'ORB', 'SIFT'],
                                   provider=stub_provider)

    assert list(table.columns) == BENCHMARK_COLUMNS
    assert len(table) == 9

    failed = table[table['error'].notna()]
    assert set(zip(failed['detector'], failed['descriptor'])) == {('SIFT', 'ORB')}

    ok = table[table['error'].isna()]
    assert (ok['num_frames'] == 3).all()


def test_benchmark_keeps_base_settings(stub_provider, image_sequence):
    base = PipelineConfig.from_dict({'roi': [1000, 1000, 5, 5], 'selector': 'NN'})

    table = benchmark_combinations(image_sequence[:2], detectors=['ORB'], descriptors=['BRISK'],
                                   base_config=base, provider=stub_provider)

    row = table.iloc[0]
    assert row['selector'] == 'NN'
    assert row['total_keypoints'] == 0
