"""Segment model: one capture cycle's files on disk."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path

from pydantic import BaseModel

VIDEO_SUFFIX = ".hevc"  # Annex-B HEVC elementary stream
AUDIO_SUFFIX = ".alaw"  # G.711 A-law, 8 kHz mono, headerless
CONTAINER_SUFFIX = ".mp4"

DATE_FOLDER_FORMAT = "%Y%m%d"
TIME_FILE_FORMAT = "%H%M%S"


class Segment(BaseModel):
    """Files sharing one `{device}/{YYYYMMDD}/{HHMMSS}` base name."""

    model_config = {"frozen": True}

    device_name: str
    device_dir: Path
    date_folder: str
    time_file: str

    @classmethod
    def at(cls, device_dir: Path, device_name: str, when: datetime) -> Segment:
        return cls(
            device_name=device_name,
            device_dir=device_dir,
            date_folder=when.strftime(DATE_FOLDER_FORMAT),
            time_file=when.strftime(TIME_FILE_FORMAT),
        )

    @property
    def date_dir(self) -> Path:
        return self.device_dir / self.date_folder

    @property
    def base_path(self) -> Path:
        return self.date_dir / self.time_file

    @property
    def video_path(self) -> Path:
        return self.base_path.with_suffix(VIDEO_SUFFIX)

    @property
    def audio_path(self) -> Path:
        return self.base_path.with_suffix(AUDIO_SUFFIX)

    @property
    def container_path(self) -> Path:
        return self.base_path.with_suffix(CONTAINER_SUFFIX)

    @property
    def segment_id(self) -> str:
        return f"{self.device_name}/{self.date_folder}/{self.time_file}"
