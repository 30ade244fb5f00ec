"""Segment path creation and raw elementary-stream persistence."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path

from livetap.errors import PersistenceError, SegmentDirectoryError
from livetap.models.segment import Segment


def prepare_segment(storage_root: Path, device_name: str, when: datetime) -> Segment:
    """Build the segment for `when`, creating its date directory if needed.

    Raises:
        SegmentDirectoryError: If the date directory cannot be created
    """
    segment = Segment.at(storage_root / device_name, device_name, when)
    try:
        segment.date_dir.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise SegmentDirectoryError(device_name, str(segment.date_dir), exc) from exc
    return segment


def append_bytes(path: Path, data: bytes, device_name: str) -> int:
    """Append `data` to `path`, creating it if absent. Returns bytes written.

    Raises:
        PersistenceError: If the file cannot be opened or written
    """
    try:
        with path.open("ab") as f:
            return f.write(data)
    except OSError as exc:
        raise PersistenceError(device_name, str(path), exc) from exc
