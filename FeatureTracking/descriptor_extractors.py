"""
Descriptor extraction strategies (BRISK, BRIEF, ORB, FREAK, AKAZE, SIFT).

All descriptor mathematics is delegated to the vision primitives provider.
"""

import cv2
import numpy as np
from typing import Dict, List, Optional, Tuple, Type

from .base_classes import BaseDescriptorExtractor, BaseVisionProvider
from .core_data_structures import DescriptorType, parse_enum
from .exceptions import ConfigurationError
from .logger import get_logger

logger = get_logger("extractors")


class ProviderDescriptorExtractor(BaseDescriptorExtractor):
    """Descriptor extractor delegated to the vision primitives provider"""

    def __init__(self, provider: BaseVisionProvider, descriptor_type: DescriptorType, **params):
        super().__init__(provider, **params)
        self.descriptor_type = descriptor_type
        self.name = f"{descriptor_type.value}Extractor"

    def describe(self, image: np.ndarray,
                 keypoints: List[cv2.KeyPoint]) -> Tuple[List[cv2.KeyPoint], np.ndarray]:
        keypoints, descriptors = self.provider.describe(image, keypoints,
                                                        self.descriptor_type, self.params)
        return list(keypoints), descriptors


DESCRIPTOR_REGISTRY: Dict[DescriptorType, Type[BaseDescriptorExtractor]] = {
    descriptor_type: ProviderDescriptorExtractor for descriptor_type in DescriptorType
}


def register_extractor(descriptor_type: DescriptorType,
                       extractor_cls: Type[BaseDescriptorExtractor]):
    """Register (or replace) the strategy used for a descriptor type"""
    DESCRIPTOR_REGISTRY[parse_enum(DescriptorType, descriptor_type)] = extractor_cls


def create_extractor(descriptor_type, provider: BaseVisionProvider,
                     params: Optional[Dict] = None) -> BaseDescriptorExtractor:
    """
    Factory function to create descriptor extractors

    Raises:
        ConfigurationError: If descriptor_type is not registered
    """
    try:
        descriptor_type = parse_enum(DescriptorType, descriptor_type)
    except ValueError as e:
        raise ConfigurationError(str(e)) from e

    if descriptor_type not in DESCRIPTOR_REGISTRY:
        raise ConfigurationError(f"No extractor registered for {descriptor_type.value}")

    extractor_cls = DESCRIPTOR_REGISTRY[descriptor_type]
    params = params or {}
    if issubclass(extractor_cls, ProviderDescriptorExtractor):
        extractor = extractor_cls(provider, descriptor_type, **params)
    else:
        extractor = extractor_cls(provider, **params)

    logger.info(f"Created extractor: {extractor.name}")
    return extractor
