"""livetap: always-on recorder for H5 player WebSocket gateways."""

__version__ = "0.1.0"

from livetap.errors import RecorderError
from livetap.models.config import Config, DeviceConfig
from livetap.models.segment import Segment

__all__ = [
    "Config",
    "DeviceConfig",
    "RecorderError",
    "Segment",
    "__version__",
]
