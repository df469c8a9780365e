"""
Exception hierarchy for the feature tracking front-end.

Configuration problems derive from ValueError so callers that already
guard against bad arguments keep working.
"""


class FeatureTrackingError(Exception):
    """Base class for all errors raised by FeatureTracking"""


class ConfigurationError(FeatureTrackingError, ValueError):
    """Invalid or inconsistent run configuration"""


class DescriptorFamilyMismatchError(ConfigurationError):
    """Descriptor data does not fit the requested distance metric"""


class VisionProviderError(ConfigurationError):
    """The vision primitives provider rejected an algorithm or its parameters"""


class FrameNotAvailableError(FeatureTrackingError, LookupError):
    """Requested frame is not held by the frame window"""


class FrameSealedError(FeatureTrackingError, AttributeError):
    """Attempt to modify a frame after a newer frame was admitted"""


class ImageLoadError(FeatureTrackingError, IOError):
    """An image of the input sequence could not be read"""
