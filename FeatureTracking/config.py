"""
Configuration management for the feature tracking front-end.

This module provides predefined configurations, per-algorithm parameter
blocks, validation, and the PipelineConfig structure handed to the
pipeline driver. Configuration is resolved once per run.
"""

import copy
import json
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from .core_data_structures import (
    DescriptorFamily,
    DescriptorType,
    DetectorType,
    DistanceNorm,
    MatcherType,
    RegionOfInterest,
    SelectorType,
    parse_enum,
)
from .exceptions import ConfigurationError, DescriptorFamilyMismatchError
from .logger import get_logger

logger = get_logger("config")


# =============================================================================
# Algorithm Parameter Blocks
# =============================================================================

DETECTOR_SPECIFIC_CONFIGS = {
    'SHITOMASI': {
        'block_size': 4,          # neighbourhood for the derivative covariation matrix
        'max_overlap': 0.0,       # max. permissible overlap between two features
        'quality_level': 0.01,    # minimal accepted quality of image corners
        'k': 0.04
    },
    'HARRIS': {
        'block_size': 2,
        'aperture_size': 3,       # Sobel aperture, must be odd
        'min_response': 100,      # threshold in the 8-bit scaled response map
        'k': 0.04,
        'max_overlap': 0.0,
        'merge_overlaps': False   # resolve every overlapping keypoint at once
    },
    'FAST': {
        'threshold': 30,
        'nonmax_suppression': True,
        'type': 'TYPE_9_16'       # TYPE_9_16, TYPE_7_12, TYPE_5_8
    },
    'BRISK': {
        'threshold': 30,
        'octaves': 3,
        'pattern_scale': 1.0
    },
    'ORB': {
        'n_features': 500,
        'scale_factor': 1.2,
        'n_levels': 8,
        'edge_threshold': 31,
        'first_level': 0,
        'wta_k': 2,
        'score_type': 'HARRIS',   # HARRIS or FAST
        'patch_size': 31,
        'fast_threshold': 20
    },
    'AKAZE': {},
    'SIFT': {
        'n_features': 0,
        'n_octave_layers': 3,
        'contrast_threshold': 0.04,
        'edge_threshold': 10,
        'sigma': 1.0
    }
}


DESCRIPTOR_SPECIFIC_CONFIGS = {
    'BRISK': {
        'threshold': 30,
        'octaves': 3,
        'pattern_scale': 1.0
    },
    'BRIEF': {
        'bytes': 32,              # 16, 32 or 64
        'use_orientation': False
    },
    'ORB': {
        'n_features': 500,
        'scale_factor': 1.2,
        'n_levels': 8,
        'edge_threshold': 31,
        'first_level': 0,
        'wta_k': 2,
        'score_type': 'HARRIS',
        'patch_size': 31,
        'fast_threshold': 20
    },
    'FREAK': {
        'orientation_normalized': True,
        'scale_normalized': True,
        'pattern_scale': 22.0,
        'n_octaves': 4
    },
    'AKAZE': {
        'descriptor_type': 'MLDB',   # KAZE, KAZE_UPRIGHT, MLDB, MLDB_UPRIGHT
        'descriptor_size': 0,        # 0 -> full size
        'descriptor_channels': 3,
        'threshold': 0.001,
        'n_octaves': 4,
        'n_octave_layers': 4,
        'diffusivity': 'PM_G2'       # PM_G1, PM_G2, WEICKERT, CHARBONNIER
    },
    'SIFT': {
        'n_features': 0,
        'n_octave_layers': 3,
        'contrast_threshold': 0.04,
        'edge_threshold': 10,
        'sigma': 1.6
    }
}


MATCHER_SPECIFIC_CONFIGS = {
    'FLANN': {
        'algorithm': 'kdtree',
        'trees': 5,
        'checks': 50
    },
    'BF': {}
}


DESCRIPTOR_FAMILIES = {
    DescriptorType.BRISK: DescriptorFamily.BINARY,
    DescriptorType.BRIEF: DescriptorFamily.BINARY,
    DescriptorType.ORB: DescriptorFamily.BINARY,
    DescriptorType.FREAK: DescriptorFamily.BINARY,
    DescriptorType.AKAZE: DescriptorFamily.BINARY,
    DescriptorType.SIFT: DescriptorFamily.GRADIENT_HISTOGRAM,
}


# Detector/descriptor pairs OpenCV cannot run. AKAZE descriptors are checked
# separately: they need keypoints written by the AKAZE detector.
INCOMPATIBLE_COMBINATIONS = {
    (DetectorType.SIFT, DescriptorType.ORB):
        "ORB descriptors cannot be computed on SIFT keypoints",
}

VEHICLE_ROI = (535, 180, 180, 150)


# =============================================================================
# Default Configurations
# =============================================================================

DEFAULT_CONFIG = {
    'detector': 'SIFT',
    'descriptor': 'BRISK',
    'descriptor_family': 'BINARY',
    'matcher': 'BF',
    'selector': 'KNN',
    'ratio_threshold': 0.8,
    'gradient_norm': 'L1',
    'window_size': 2,
    'roi': None,
    'max_keypoints': None,
    'visualize': False,
    'detector_params': {},
    'descriptor_params': {},
    'matcher_params': {}
}


PRESET_CONFIGS = {
    'default': {},

    'fast': {
        'detector': 'FAST',
        'descriptor': 'BRIEF',
        'descriptor_family': 'BINARY',
        'matcher': 'BF',
        'selector': 'KNN'
    },

    'balanced': {
        'detector': 'ORB',
        'descriptor': 'ORB',
        'descriptor_family': 'BINARY',
        'matcher': 'BF',
        'selector': 'KNN'
    },

    'accurate': {
        'detector': 'SIFT',
        'descriptor': 'SIFT',
        'descriptor_family': 'HOG',
        'matcher': 'FLANN',
        'selector': 'KNN'
    },

    'vehicle': {
        'roi': list(VEHICLE_ROI)
    }
}


# =============================================================================
# Pipeline Configuration
# =============================================================================

@dataclass
class PipelineConfig:
    """Resolved, typed configuration for one pipeline run"""
    detector: DetectorType = DetectorType.SIFT
    descriptor: DescriptorType = DescriptorType.BRISK
    descriptor_family: DescriptorFamily = DescriptorFamily.BINARY
    matcher: MatcherType = MatcherType.BRUTE_FORCE
    selector: SelectorType = SelectorType.KNN_RATIO
    ratio_threshold: float = 0.8
    gradient_norm: DistanceNorm = DistanceNorm.L1
    window_size: int = 2
    roi: Optional[RegionOfInterest] = None
    max_keypoints: Optional[int] = None
    visualize: bool = False
    detector_params: Dict[str, Any] = field(default_factory=dict)
    descriptor_params: Dict[str, Any] = field(default_factory=dict)
    matcher_params: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, config: Dict[str, Any]) -> 'PipelineConfig':
        """
        Build a typed configuration from a configuration dictionary

        Missing keys fall back to DEFAULT_CONFIG.

        Raises:
            ConfigurationError: On unknown keys or unparsable values
        """
        merged = merge_configs(DEFAULT_CONFIG, config)
        unknown = set(merged) - set(DEFAULT_CONFIG)
        if unknown:
            raise ConfigurationError(f"Unknown configuration keys: {sorted(unknown)}")

        try:
            roi = merged['roi']
            if roi is not None and not isinstance(roi, RegionOfInterest):
                roi = RegionOfInterest.from_sequence(roi)

            max_keypoints = merged['max_keypoints']
            if max_keypoints is not None:
                max_keypoints = int(max_keypoints)

            return cls(
                detector=parse_enum(DetectorType, merged['detector']),
                descriptor=parse_enum(DescriptorType, merged['descriptor']),
                descriptor_family=parse_enum(DescriptorFamily, merged['descriptor_family']),
                matcher=parse_enum(MatcherType, merged['matcher']),
                selector=parse_enum(SelectorType, merged['selector']),
                ratio_threshold=float(merged['ratio_threshold']),
                gradient_norm=parse_enum(DistanceNorm, merged['gradient_norm']),
                window_size=int(merged['window_size']),
                roi=roi,
                max_keypoints=max_keypoints,
                visualize=bool(merged['visualize']),
                detector_params=dict(merged['detector_params'] or {}),
                descriptor_params=dict(merged['descriptor_params'] or {}),
                matcher_params=dict(merged['matcher_params'] or {}),
            )
        except ConfigurationError:
            raise
        except (TypeError, ValueError) as e:
            raise ConfigurationError(str(e)) from e

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-serialisable dictionary"""
        return {
            'detector': self.detector.value,
            'descriptor': self.descriptor.value,
            'descriptor_family': self.descriptor_family.value,
            'matcher': self.matcher.value,
            'selector': self.selector.value,
            'ratio_threshold': self.ratio_threshold,
            'gradient_norm': self.gradient_norm.value,
            'window_size': self.window_size,
            'roi': list(self.roi.as_tuple()) if self.roi else None,
            'max_keypoints': self.max_keypoints,
            'visualize': self.visualize,
            'detector_params': copy.deepcopy(self.detector_params),
            'descriptor_params': copy.deepcopy(self.descriptor_params),
            'matcher_params': copy.deepcopy(self.matcher_params),
        }

    def describe(self) -> str:
        return (f"{self.detector.value}/{self.descriptor.value} "
                f"({self.descriptor_family.value}, {self.matcher.value}, {self.selector.value})")


# =============================================================================
# Configuration Functions
# =============================================================================

def get_default_config() -> Dict[str, Any]:
    """Get a copy of the default configuration"""
    return copy.deepcopy(DEFAULT_CONFIG)


def merge_configs(base_config: Dict[str, Any], override_config: Dict[str, Any]) -> Dict[str, Any]:
    """
    Merge two configuration dictionaries

    Args:
        base_config: Base configuration
        override_config: Configuration to override base with

    Returns:
        Merged configuration
    """
    merged = copy.deepcopy(base_config)

    for key, value in override_config.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = merge_configs(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)

    return merged


def create_config_from_preset(preset: str, **overrides) -> Dict[str, Any]:
    """
    Create configuration from a preset

    Args:
        preset: Preset name ('default', 'fast', 'balanced', 'accurate', 'vehicle')
        **overrides: Keys overriding the preset

    Returns:
        Configuration dictionary

    Raises:
        ConfigurationError: If preset is not available
    """
    if preset not in PRESET_CONFIGS:
        available = ', '.join(PRESET_CONFIGS.keys())
        raise ConfigurationError(f"Unknown preset: {preset}. Available: {available}")

    config = merge_configs(DEFAULT_CONFIG, PRESET_CONFIGS[preset])
    return merge_configs(config, overrides)


def validate_config(config: PipelineConfig) -> PipelineConfig:
    """
    Check a configuration before any frame is processed

    Raises:
        ConfigurationError: On an invalid value or an inconsistent combination
        DescriptorFamilyMismatchError: If the family does not fit the descriptor
    """
    expected_family = DESCRIPTOR_FAMILIES[config.descriptor]
    if config.descriptor_family != expected_family:
        raise DescriptorFamilyMismatchError(
            f"{config.descriptor.value} descriptors belong to the {expected_family.value} family, "
            f"not {config.descriptor_family.value}"
        )

    if config.descriptor == DescriptorType.AKAZE and config.detector != DetectorType.AKAZE:
        raise ConfigurationError(
            f"AKAZE descriptors require AKAZE keypoints, got {config.detector.value} detector"
        )

    reason = INCOMPATIBLE_COMBINATIONS.get((config.detector, config.descriptor))
    if reason:
        raise ConfigurationError(reason)

    if config.gradient_norm == DistanceNorm.HAMMING:
        raise ConfigurationError("gradient_norm must be L1 or L2")

    if config.window_size < 2:
        raise ConfigurationError(
            f"window_size must be at least 2 to match consecutive frames, got {config.window_size}"
        )

    if not 0.0 < config.ratio_threshold <= 1.0:
        raise ConfigurationError(f"ratio_threshold must be in (0, 1], got {config.ratio_threshold}")

    if config.max_keypoints is not None and config.max_keypoints <= 0:
        raise ConfigurationError(f"max_keypoints must be positive, got {config.max_keypoints}")

    _check_param_keys('detector', config.detector.value, config.detector_params,
                      DETECTOR_SPECIFIC_CONFIGS)
    _check_param_keys('descriptor', config.descriptor.value, config.descriptor_params,
                      DESCRIPTOR_SPECIFIC_CONFIGS)
    _check_param_keys('matcher', config.matcher.value, config.matcher_params,
                      MATCHER_SPECIFIC_CONFIGS)

    return config


def _check_param_keys(kind: str, name: str, params: Dict[str, Any],
                      defaults: Dict[str, Dict[str, Any]]):
    unknown = set(params) - set(defaults.get(name, {}))
    if unknown:
        raise ConfigurationError(f"Unknown {kind} parameters for {name}: {sorted(unknown)}")


def resolve_params(defaults: Dict[str, Dict[str, Any]], name: str,
                   overrides: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Default parameter block for an algorithm with overrides applied"""
    params = copy.deepcopy(defaults.get(name, {}))
    params.update(overrides or {})
    return params


def save_config(config: Dict[str, Any], filepath: str):
    """
    Save configuration to JSON file

    Args:
        config: Configuration to save
        filepath: Path to save file
    """
    with open(filepath, 'w') as f:
        json.dump(config, f, indent=2)
    logger.info(f"Configuration saved to: {filepath}")


def load_config(filepath: str) -> Dict[str, Any]:
    """
    Load configuration from JSON file

    Args:
        filepath: Path to configuration file

    Returns:
        Loaded configuration

    Raises:
        FileNotFoundError: If file doesn't exist
        json.JSONDecodeError: If file is not valid JSON
    """
    if not os.path.exists(filepath):
        raise FileNotFoundError(f"Configuration file not found: {filepath}")

    with open(filepath, 'r') as f:
        config = json.load(f)

    logger.info(f"Configuration loaded from: {filepath}")
    return config


def get_available_presets() -> List[str]:
    """Get list of available preset configurations"""
    return list(PRESET_CONFIGS.keys())


def describe_preset(preset: str) -> str:
    """
    Get description of a preset configuration

    Args:
        preset: Preset name

    Returns:
        Description string
    """
    descriptions = {
        'default': "SIFT keypoints with BRISK descriptors, brute force + ratio test",
        'fast': "FAST keypoints with BRIEF descriptors",
        'balanced': "ORB keypoints and descriptors",
        'accurate': "SIFT keypoints and descriptors with FLANN matching",
        'vehicle': "Default pipeline restricted to the preceding vehicle"
    }

    return descriptions.get(preset, "No description available")


def family_for(descriptor) -> DescriptorFamily:
    """Descriptor family a descriptor type belongs to"""
    return DESCRIPTOR_FAMILIES[parse_enum(DescriptorType, descriptor)]


def combination_is_supported(detector, descriptor) -> Tuple[bool, Optional[str]]:
    """
    Whether a detector/descriptor pair can run

    Returns:
        Tuple of (supported, reason if not)
    """
    config = PipelineConfig(detector=parse_enum(DetectorType, detector),
                            descriptor=parse_enum(DescriptorType, descriptor))
    config.descriptor_family = DESCRIPTOR_FAMILIES[config.descriptor]
    try:
        validate_config(config)
    except ConfigurationError as e:
        return False, str(e)
    return True, None
