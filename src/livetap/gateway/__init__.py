"""H5 player gateway client: session handling and frame demultiplexing."""

from livetap.gateway.demuxer import DemuxResult, SessionState, StreamDemuxer

__all__ = ["DemuxResult", "SessionState", "StreamDemuxer"]
