"""
Non-maximum suppression (NMS) for corner response maps.

Turns a dense per-pixel cornerness map into a sparse list of keypoints in
which no two keypoints describe the same corner. Two keypoints describe the
same corner when the intersection-over-union of their circular footprints
exceeds the permitted overlap.
"""

import math
from typing import List

import cv2
import numpy as np

from .logger import get_logger

logger = get_logger("nms")


def keypoint_overlap(kp1: cv2.KeyPoint, kp2: cv2.KeyPoint) -> float:
    """
    Intersection over union of two keypoint footprints

    Each keypoint covers a disc of diameter `size` centred on `pt`.

    Returns:
        Overlap in [0, 1]; 0 when either footprint is empty
    """
    dx = kp1.pt[0] - kp2.pt[0]
    dy = kp1.pt[1] - kp2.pt[1]
    return float(_circle_iou(np.array([math.hypot(dx, dy)]),
                             kp1.size / 2.0, np.array([kp2.size / 2.0]))[0])


def _circle_iou(distances: np.ndarray, radius: float, radii: np.ndarray) -> np.ndarray:
    """Vectorised IoU between one disc and many discs at the given centre distances"""
    d = np.asarray(distances, dtype=np.float64)
    r1 = float(radius)
    r2 = np.broadcast_to(np.asarray(radii, dtype=np.float64), d.shape)

    area1 = math.pi * r1 * r1
    area2 = np.pi * r2 * r2
    intersection = np.zeros_like(d)

    # one disc fully inside the other
    contained = d <= np.abs(r1 - r2)
    intersection[contained] = np.pi * np.minimum(r1, r2[contained]) ** 2

    # partial lens-shaped overlap
    partial = ~contained & (d < r1 + r2)
    if np.any(partial):
        dp = d[partial]
        rp = r2[partial]
        cos1 = np.clip((dp * dp + r1 * r1 - rp * rp) / (2.0 * dp * r1), -1.0, 1.0)
        cos2 = np.clip((dp * dp + rp * rp - r1 * r1) / (2.0 * dp * rp), -1.0, 1.0)
        kite = (-dp + r1 + rp) * (dp + r1 - rp) * (dp - r1 + rp) * (dp + r1 + rp)
        intersection[partial] = (r1 * r1 * np.arccos(cos1) +
                                 rp * rp * np.arccos(cos2) -
                                 0.5 * np.sqrt(np.maximum(kite, 0.0)))

    union = area1 + area2 - intersection
    with np.errstate(divide='ignore', invalid='ignore'):
        iou = np.where(union > 0, intersection / union, 0.0)
    return np.clip(iou, 0.0, 1.0)


def suppress_non_maxima(response_map: np.ndarray,
                        min_response: float,
                        keypoint_size: float,
                        max_overlap: float = 0.0,
                        merge_overlaps: bool = False) -> List[cv2.KeyPoint]:
    """
    Convert a response map into de-duplicated keypoints

    Pixels are visited in raster order. Pixels whose response is not above
    `min_response` are skipped. Every other pixel becomes a candidate
    keypoint of diameter `keypoint_size` that is compared with the keypoints
    accepted so far, in insertion order. Accepted keypoints overlapping the
    candidate by more than `max_overlap` are its hits:

    - no hit: the candidate is appended;
    - otherwise the candidate takes the place of the first hit it is
      strictly stronger than (first match, not best match) and is dropped
      when it is stronger than none of them.

    With `merge_overlaps` the candidate only replaces the first hit when it
    is stronger than all of them, and the remaining hits are removed. No
    two survivors then overlap by more than `max_overlap`, and raising
    `min_response` never increases the number of keypoints.

    Args:
        response_map: 2D array of cornerness scores (rows = y, cols = x)
        min_response: Responses at or below this value are ignored
        keypoint_size: Diameter assigned to every keypoint
        max_overlap: Overlap above which two keypoints count as the same corner
        merge_overlaps: Resolve all hits of a candidate at once

    Returns:
        Keypoints in order of insertion (not sorted by strength)
    """
    response_map = np.asarray(response_map)
    if response_map.size == 0:
        return []
    if response_map.ndim != 2:
        raise ValueError(f"Response map must be 2D, got shape {response_map.shape}")

    # np.nonzero walks a C-ordered array row by row, i.e. in raster order
    rows, cols = np.nonzero(response_map > min_response)
    if rows.size == 0:
        return []
    values = response_map[rows, cols].astype(np.float64)

    radius = keypoint_size / 2.0
    n_candidates = rows.size

    # accepted keypoints; never more than the number of candidates
    acc_x = np.empty(n_candidates, dtype=np.float64)
    acc_y = np.empty(n_candidates, dtype=np.float64)
    acc_response = np.empty(n_candidates, dtype=np.float64)
    n_accepted = 0

    for x, y, response in zip(cols.astype(np.float64), rows.astype(np.float64), values):
        if n_accepted:
            distances = np.hypot(acc_x[:n_accepted] - x, acc_y[:n_accepted] - y)
            overlaps = _circle_iou(distances, radius, radius)
            hits = np.flatnonzero(overlaps > max_overlap)
        else:
            hits = np.empty(0, dtype=np.intp)

        if hits.size == 0:
            acc_x[n_accepted] = x
            acc_y[n_accepted] = y
            acc_response[n_accepted] = response
            n_accepted += 1
            continue

        weaker = hits[response > acc_response[hits]]
        if merge_overlaps and weaker.size < hits.size:
            continue
        if weaker.size == 0:
            continue

        slot = weaker[0]
        acc_x[slot] = x
        acc_y[slot] = y
        acc_response[slot] = response

        if merge_overlaps and hits.size > 1:
            keep = np.ones(n_accepted, dtype=bool)
            keep[hits[1:]] = False
            n_kept = int(keep.sum())
            acc_x[:n_kept] = acc_x[:n_accepted][keep]
            acc_y[:n_kept] = acc_y[:n_accepted][keep]
            acc_response[:n_kept] = acc_response[:n_accepted][keep]
            n_accepted = n_kept

    logger.debug(f"NMS kept {n_accepted} of {n_candidates} candidates")

    return [
        cv2.KeyPoint(x=float(acc_x[i]), y=float(acc_y[i]),
                     size=float(keypoint_size), response=float(acc_response[i]))
        for i in range(n_accepted)
    ]
