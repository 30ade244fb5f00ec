"""Mock implementations for testing."""

from tests.livetap.mocks.gateway import (
    JSON_BLOB_LEN,
    FakeSession,
    FakeWebSocket,
    audio_frame,
    binary_msg,
    close_msg,
    text_msg,
    video_frame,
)
from tests.livetap.mocks.runtime import (
    FakeClock,
    FakeDemuxer,
    FakeMerger,
    ScriptedDemuxerFactory,
    make_device,
)

__all__ = [
    "JSON_BLOB_LEN",
    "FakeClock",
    "FakeDemuxer",
    "FakeMerger",
    "FakeSession",
    "FakeWebSocket",
    "ScriptedDemuxerFactory",
    "audio_frame",
    "binary_msg",
    "close_msg",
    "text_msg",
    "make_device",
    "video_frame",
]
