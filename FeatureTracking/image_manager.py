"""
Image sequences for the feature tracking pipeline.

Sequences are indexable and know their length up front. File-backed
sequences hold only paths and load each image on access, so memory stays
bounded regardless of the sequence length.

Key Classes:
- ImageSequence: lazily loaded images from disk
- InMemorySequence: images already held as arrays
"""

import cv2
import glob
import os
import numpy as np
from pathlib import Path
from typing import List, Sequence, Union

from .base_classes import to_grayscale
from .exceptions import ImageLoadError
from .logger import get_logger

logger = get_logger("images")


class ImageSequence:
    """
    Grayscale images loaded from a list of files on access

    Example:
        >>> images = ImageSequence.from_index_range('data/KITTI/2011_09_26/image_00/data',
        ...                                         '000000', 0, 9)
        >>> len(images)
        10
        >>> gray = images[0]
    """

    def __init__(self, paths: Sequence[Union[str, Path]]):
        self.paths: List[Path] = [Path(p) for p in paths]

    @classmethod
    def from_index_range(cls, base_path: Union[str, Path], prefix: str,
                         start_index: int, end_index: int,
                         fill_width: int = 4, file_type: str = '.png') -> 'ImageSequence':
        """
        Build file names as prefix + zero-padded index + file_type

        Args:
            base_path: Folder holding the images
            prefix: File name prefix, e.g. '000000'
            start_index: First index (inclusive)
            end_index: Last index (inclusive)
            fill_width: Number of digits the index is padded to
            file_type: File extension including the dot
        """
        if end_index < start_index:
            raise ValueError(f"end_index {end_index} is before start_index {start_index}")

        base = Path(base_path)
        paths = [base / f"{prefix}{str(index).zfill(fill_width)}{file_type}"
                 for index in range(start_index, end_index + 1)]
        return cls(paths)

    @classmethod
    def from_folder(cls, folder: Union[str, Path], pattern: str = '*.png') -> 'ImageSequence':
        """All files in a folder matching a glob pattern, sorted by name"""
        if not os.path.isdir(folder):
            raise ImageLoadError(f"Image folder not found: {folder}")

        paths = sorted(glob.glob(os.path.join(str(folder), pattern)))
        logger.info(f"Found {len(paths)} images in {folder} matching {pattern}")
        return cls(paths)

    def load(self, index: int) -> np.ndarray:
        """Load one image as grayscale"""
        path = self.paths[index]
        image = cv2.imread(str(path), cv2.IMREAD_GRAYSCALE)
        if image is None:
            raise ImageLoadError(f"Could not load image: {path}")
        return image

    def __getitem__(self, index: int) -> np.ndarray:
        return self.load(index)

    def __len__(self) -> int:
        return len(self.paths)

    def __repr__(self) -> str:
        return f"ImageSequence({len(self)} images)"


class InMemorySequence:
    """Sequence over images already in memory; colour images are converted to grayscale"""

    def __init__(self, images: Sequence[np.ndarray]):
        self.images = list(images)

    def __getitem__(self, index: int) -> np.ndarray:
        image = self.images[index]
        if image is None:
            raise ImageLoadError(f"No image data at position {index}")
        return to_grayscale(np.asarray(image))

    def __len__(self) -> int:
        return len(self.images)

    def __repr__(self) -> str:
        return f"InMemorySequence({len(self)} images)"
