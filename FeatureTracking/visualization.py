"""
Visualization functions for keypoints and frame-to-frame matches.

Drawing uses OpenCV's rich keypoint rendering (circle of the keypoint
size plus orientation); display goes through matplotlib.
"""

import cv2
import numpy as np
import matplotlib.pyplot as plt
from typing import List, Optional, Sequence

from .core_data_structures import Frame


def draw_keypoints(image: np.ndarray, keypoints: Sequence[cv2.KeyPoint],
                   color: tuple = (0, 255, 0)) -> np.ndarray:
    """Render keypoints onto a BGR copy of the image"""
    return cv2.drawKeypoints(image, list(keypoints), None, color=color,
                             flags=cv2.DRAW_MATCHES_FLAGS_DRAW_RICH_KEYPOINTS)


def draw_matches(prev_frame: Frame, frame: Frame,
                 matches: Optional[List[cv2.DMatch]] = None) -> np.ndarray:
    """
    Render correspondences between two frames side by side

    Args:
        prev_frame: Frame the matches' queryIdx refers to
        frame: Frame the matches' trainIdx refers to
        matches: Correspondences to draw (default: frame.matches)

    Returns:
        BGR image with both frames and connecting lines
    """
    if matches is None:
        matches = frame.matches or []

    return cv2.drawMatches(prev_frame.image, prev_frame.keypoints,
                           frame.image, frame.keypoints,
                           list(matches), None,
                           flags=cv2.DRAW_MATCHES_FLAGS_DRAW_RICH_KEYPOINTS)


def show_image(image: np.ndarray, title: str = "", figsize: tuple = (15, 5), block: bool = True):
    """
    Display an image with matplotlib

    Args:
        image: Grayscale or BGR image
        title: Window / axes title
        figsize: Figure size (width, height)
        block: Wait for the window to be closed
    """
    if image.ndim == 3:
        image = cv2.cvtColor(image, cv2.COLOR_BGR2RGB)

    fig, ax = plt.subplots(1, 1, figsize=figsize)
    ax.imshow(image, cmap='gray' if image.ndim == 2 else None)
    ax.set_title(title)
    ax.axis('off')
    plt.tight_layout()
    plt.show(block=block)
    plt.close(fig)


def show_frame(prev_frame: Optional[Frame], frame: Frame, block: bool = True):
    """Show matches to the previous frame, or only keypoints for the first frame"""
    if prev_frame is not None and frame.matches is not None:
        show_image(draw_matches(prev_frame, frame),
                   f"Frame {frame.index}: {len(frame.matches)} matches", block=block)
    else:
        show_image(draw_keypoints(frame.image, frame.keypoints),
                   f"Frame {frame.index}: {len(frame.keypoints)} keypoints", block=block)
