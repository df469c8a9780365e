"""Tests for cli.py: argument handling and end-to-end runs over an image folder."""

import cv2
import pandas as pd
import pytest

from FeatureTracking.cli import build_config, build_parser, main
from FeatureTracking.core_data_structures import DescriptorFamily, DescriptorType

pytestmark = pytest.mark.usefixtures("reset_package_logger")


@pytest.fixture
def image_folder(tmp_path, image_sequence):
    folder = tmp_path / "images"
    folder.mkdir()
    for index, image in enumerate(image_sequence):
        cv2.imwrite(str(folder / f"000000{index:04d}.png"), image)
    return folder


def test_family_is_derived_from_descriptor():
    args = build_parser().parse_args(['--image-dir', '.', '--descriptor', 'SIFT'])

    config = build_config(args)

    assert config.descriptor == DescriptorType.SIFT
    assert config.descriptor_family == DescriptorFamily.GRADIENT_HISTOGRAM


def test_config_file_and_options_are_layered(tmp_path):
    config_file = tmp_path / "run.json"
    config_file.write_text('{"window_size": 4, "selector": "NN"}')
    args = build_parser().parse_args(['--image-dir', '.', '--preset', 'fast',
                                      '--config', str(config_file), '--window', '3'])

    config = build_config(args)

    assert config.window_size == 3
    assert config.selector.value == 'NN'


def test_run_prints_report(image_folder, capsys):
    code = main(['--image-dir', str(image_folder), '--detector', 'ORB', '--descriptor', 'ORB'])

    assert code == 0
    assert "Total keypoints:" in capsys.readouterr().out


def test_index_range_run_writes_csv(image_folder, tmp_path):
    csv_path = tmp_path / "frames.csv"

    code = main(['--image-dir', str(image_folder), '--prefix', '000000', '--start', '0', '--end', '2',
                 '--detector', 'FAST', '--descriptor', 'BRISK', '--csv', str(csv_path)])

    assert code == 0
    frames = pd.read_csv(csv_path)
    assert list(frames['frame_index']) == [0, 1, 2]


def test_invalid_combination_exits_with_error(image_folder):
    code = main(['--image-dir', str(image_folder), '--descriptor', 'SIFT', '--family', 'BINARY'])
    assert code == 1


def test_prefix_without_end_exits_with_error(image_folder):
    assert main(['--image-dir', str(image_folder), '--prefix', '000000']) == 1


def test_missing_directory_exits_with_error(tmp_path):
    assert main(['--image-dir', str(tmp_path / "missing")]) == 1


def test_empty_folder_exits_with_error(tmp_path):
    assert main(['--image-dir', str(tmp_path)]) == 1


def test_missing_config_file_exits_with_error(image_folder, tmp_path):
    assert main(['--image-dir', str(image_folder), '--config', str(tmp_path / "none.json")]) == 1


def test_benchmark_writes_table(image_folder, tmp_path, capsys):
    csv_path = tmp_path / "benchmark.csv"

    code = main(['--image-dir', str(image_folder), '--prefix', '000000', '--end', '1',
                 '--benchmark', '--csv', str(csv_path)])

    assert code == 0
    table = pd.read_csv(csv_path)
    assert len(table) == 7 * 6
    assert "detector" in capsys.readouterr().out
    akaze_rows = table[table['descriptor'] == 'AKAZE']
    assert akaze_rows[akaze_rows['detector'] != 'AKAZE']['error'].notna().all()
