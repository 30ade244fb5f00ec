"""livetap data models."""

from livetap.models.config import Config, DeviceConfig, HealthConfig, TranscoderConfig
from livetap.models.segment import Segment

__all__ = [
    "Config",
    "DeviceConfig",
    "HealthConfig",
    "Segment",
    "TranscoderConfig",
]
