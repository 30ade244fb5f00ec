"""Payload location inside H5 player demultiplexer frames.

Every binary message from the gateway is one frame. Byte 1 is the frame type.

Video frames (0x63) carry a percent-encoded JSON control blob, then an
8-byte length/alignment field, then an Annex-B HEVC payload. The blob length
varies, so the payload start is found from the blob's closing brace and then
realigned to the first codec start code.

Audio frames (0x62) are laid out as:

    00 62 | 00 01 | seq/timestamp (4) | 00 00 00 00 | A-law samples | [00 00 01 4B]

The trailer is optional.

All offsets here were recovered from live traffic, not from a protocol
document. The start-code realignment is what keeps video output well formed
if the skip constant drifts.
"""

from __future__ import annotations

MIN_FRAME_SIZE = 16

VIDEO_FRAME = 0x63
AUDIO_FRAME = 0x62

JSON_END_MARKER = b"%7D"  # percent-encoded "}"
JSON_END_FALLBACK = ord("}")
# Length/alignment field between the JSON blob and the codec payload.
JSON_TRAILER_SKIP = 8

# type/flag (2) + subtype (2) + sequence/timestamp (4) + reserved (4)
AUDIO_HEADER_SIZE = 12
AUDIO_TRAILER = b"\x00\x00\x01\x4b"

_START_CODE_4 = b"\x00\x00\x00\x01"
_START_CODE_3 = b"\x00\x00\x01"


def frame_type(frame: bytes) -> int | None:
    """Return the type discriminator, or None for frames too short to carry one."""
    if len(frame) < MIN_FRAME_SIZE:
        return None
    return frame[1]


def locate_video_payload_start(frame: bytes) -> int:
    """Return the offset just past the JSON blob and its alignment field.

    Returns 0 when no closing brace is found. The caller must check the result
    against the frame length.
    """
    idx = frame.find(JSON_END_MARKER)
    if idx < 0:
        idx = frame.find(JSON_END_FALLBACK)
    if idx < 0:
        return 0
    # Marker length is added even when the bare "}" matched.
    return idx + len(JSON_END_MARKER) + JSON_TRAILER_SKIP


def locate_codec_start_code(payload: bytes) -> int:
    """Return the lowest index of a 4- or 3-byte Annex-B start code, or -1."""
    for i in range(len(payload) - 3):
        if payload[i] != 0 or payload[i + 1] != 0:
            continue
        if payload[i + 2] == 1:
            return i
        if payload[i + 2] == 0 and payload[i + 3] == 1:
            return i
    return -1


def extract_audio_payload(frame: bytes) -> bytes:
    """Return the A-law samples of an audio frame (possibly empty)."""
    if len(frame) >= AUDIO_HEADER_SIZE + len(AUDIO_TRAILER) and frame.endswith(AUDIO_TRAILER):
        return frame[AUDIO_HEADER_SIZE : -len(AUDIO_TRAILER)]
    return frame[AUDIO_HEADER_SIZE:]
