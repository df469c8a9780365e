"""Tests for visualization.py drawing helpers (display is patched out)."""

import cv2
import matplotlib
matplotlib.use("Agg")

import FeatureTracking.visualization as visualization
from FeatureTracking.core_data_structures import Frame


def make_frames(image):
    keypoints = [cv2.KeyPoint(40.0, 50.0, 7.0), cv2.KeyPoint(100.0, 80.0, 7.0)]
    previous = Frame(image=image, index=0, keypoints=keypoints)
    current = Frame(image=image, index=1, keypoints=keypoints,
                    matches=[cv2.DMatch(0, 0, 0.0), cv2.DMatch(1, 1, 0.0)])
    return previous, current


def test_draw_keypoints_returns_colour_copy(textured_image):
    drawn = visualization.draw_keypoints(textured_image, [cv2.KeyPoint(40.0, 50.0, 7.0)])

    assert drawn.shape == textured_image.shape + (3,)
    assert textured_image.ndim == 2


def test_draw_matches_places_frames_side_by_side(textured_image):
    previous, current = make_frames(textured_image)

    drawn = visualization.draw_matches(previous, current)

    height, width = textured_image.shape
    assert drawn.shape == (height, 2 * width, 3)


def test_show_frame_picks_matches_or_keypoints(monkeypatch, textured_image):
    titles = []
    monkeypatch.setattr(visualization, 'show_image',
                        lambda image, title, block=True: titles.append((title, image.shape[1])))
    previous, current = make_frames(textured_image)

    visualization.show_frame(None, previous)
    visualization.show_frame(previous, current)

    width = textured_image.shape[1]
    assert titles == [("Frame 0: 2 keypoints", width), ("Frame 1: 2 matches", 2 * width)]


def test_show_image_closes_its_figure(monkeypatch, textured_image):
    monkeypatch.setattr(visualization.plt, 'show', lambda block=True: None)
    before = len(visualization.plt.get_fignums())

    visualization.show_image(cv2.cvtColor(textured_image, cv2.COLOR_GRAY2BGR), "frame")

    assert len(visualization.plt.get_fignums()) == before
