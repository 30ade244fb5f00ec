"""Container merge via an external transcoder."""

from livetap.merge.ffmpeg import (
    ContainerMerger,
    TranscoderLocator,
    build_merge_command,
    get_global_transcoder_locator,
)

__all__ = [
    "ContainerMerger",
    "TranscoderLocator",
    "build_merge_command",
    "get_global_transcoder_locator",
]
