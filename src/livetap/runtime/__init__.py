"""Per-device recording runtime."""

from livetap.runtime.clock import Clock, SystemClock
from livetap.runtime.recorder import Demuxer, LoopStatus, RecordingLoop

__all__ = ["Clock", "Demuxer", "LoopStatus", "RecordingLoop", "SystemClock"]
