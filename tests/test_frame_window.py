"""Tests for frame_window.py and the Frame container."""

import numpy as np
import pytest

from FeatureTracking.core_data_structures import Frame
from FeatureTracking.exceptions import (
    ConfigurationError,
    FrameNotAvailableError,
    FrameSealedError,
)
from FeatureTracking.frame_window import FrameWindow


def make_frame(index: int) -> Frame:
    return Frame(image=np.zeros((4, 4), dtype=np.uint8), index=index)


@pytest.mark.parametrize("capacity", [1, 2, 3, 5])
def test_overfilled_window_keeps_newest_frames_in_order(capacity):
    window = FrameWindow(capacity)

    for i in range(capacity + 1):
        window.admit(make_frame(i))

    assert len(window) == capacity
    assert [f.index for f in window] == list(range(1, capacity + 1))


def test_window_of_two_drops_first_frame_when_third_arrives():
    window = FrameWindow(2)
    window.admit(make_frame(0))
    window.admit(make_frame(1))

    assert [f.index for f in window] == [0, 1]
    assert window.previous().index == 0

    window.admit(make_frame(2))

    assert [f.index for f in window] == [1, 2]
    assert window.previous().index == 1
    assert window.latest().index == 2


def test_latest_and_previous_on_short_window():
    window = FrameWindow(3)
    with pytest.raises(FrameNotAvailableError):
        window.latest()

    window.admit(make_frame(0))
    assert window.latest().index == 0
    with pytest.raises(FrameNotAvailableError):
        window.previous()


def test_getitem_and_frames_snapshot():
    window = FrameWindow(3)
    for i in range(3):
        window.admit(make_frame(i))

    snapshot = window.frames
    window.admit(make_frame(3))

    assert [f.index for f in snapshot] == [0, 1, 2]
    assert window[0].index == 1
    assert window[-1].index == 3
    with pytest.raises(FrameNotAvailableError):
        window[5]


def test_clear_empties_window():
    window = FrameWindow(2)
    window.admit(make_frame(0))
    window.clear()
    assert len(window) == 0


def test_capacity_must_be_positive():
    with pytest.raises(ConfigurationError):
        FrameWindow(0)


def test_admitting_seals_previous_latest_frame():
    window = FrameWindow(2)
    first = window.admit(make_frame(0))
    first.keypoints = []

    second = window.admit(make_frame(1))

    assert first.sealed
    assert not second.sealed
    with pytest.raises(FrameSealedError):
        first.matches = []
    second.matches = []


def test_frame_defaults():
    frame = make_frame(4)
    assert frame.keypoints == []
    assert frame.descriptors is None
    assert frame.matches is None
    assert not frame.has_matches
    assert frame.num_descriptors == 0
