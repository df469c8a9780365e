"""
Bounded sliding window of the most recent frames.
"""

from collections import deque
from typing import Deque, Iterator, Tuple

from .core_data_structures import Frame
from .exceptions import ConfigurationError, FrameNotAvailableError


class FrameWindow:
    """
    FIFO buffer holding at most `capacity` frames, oldest first

    Admitting a frame seals the frame that was latest so far, appends the
    new one and evicts from the front while the window is over capacity.

    Not thread-safe: frames must be admitted from a single thread.
    """

    def __init__(self, capacity: int = 2):
        if capacity < 1:
            raise ConfigurationError(f"Frame window capacity must be at least 1, got {capacity}")
        self._capacity = int(capacity)
        self._frames: Deque[Frame] = deque()

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def frames(self) -> Tuple[Frame, ...]:
        """Snapshot of the frames, oldest first"""
        return tuple(self._frames)

    def admit(self, frame: Frame) -> Frame:
        """Append a frame, evicting the oldest ones beyond capacity"""
        if self._frames:
            self._frames[-1].seal()

        self._frames.append(frame)
        while len(self._frames) > self._capacity:
            self._frames.popleft()

        return frame

    def latest(self) -> Frame:
        if not self._frames:
            raise FrameNotAvailableError("Frame window is empty")
        return self._frames[-1]

    def previous(self) -> Frame:
        if len(self._frames) < 2:
            raise FrameNotAvailableError(
                f"Need two frames for a previous frame, window holds {len(self._frames)}"
            )
        return self._frames[-2]

    def clear(self):
        self._frames.clear()

    def __len__(self) -> int:
        return len(self._frames)

    def __iter__(self) -> Iterator[Frame]:
        return iter(tuple(self._frames))

    def __getitem__(self, index: int) -> Frame:
        try:
            return self._frames[index]
        except IndexError:
            raise FrameNotAvailableError(
                f"No frame at position {index}, window holds {len(self._frames)}"
            ) from None

    def __repr__(self) -> str:
        indices = [frame.index for frame in self._frames]
        return f"FrameWindow(capacity={self._capacity}, frames={indices})"
