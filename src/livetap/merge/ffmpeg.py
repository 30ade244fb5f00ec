"""Merge elementary streams into MP4 with ffmpeg."""

from __future__ import annotations

import logging
import os
import shlex
import shutil
import subprocess
import tempfile
from pathlib import Path
from threading import Lock

from livetap.errors import MergeError, TranscoderNotFoundError

logger = logging.getLogger(__name__)

FFMPEG_NAME = "ffmpeg"
MATERIALIZED_DIR_NAME = "livetap_ffmpeg"
DEFAULT_FRAME_RATE = 25


def _format_cmd(cmd: list[str]) -> str:
    try:
        return shlex.join([str(x) for x in cmd])
    except Exception as exc:
        logger.warning("Failed to format command with shlex.join: %s", exc, exc_info=True)
        return " ".join([str(x) for x in cmd])


class TranscoderLocator:
    """Process-wide ffmpeg resolution.

    Order: explicit path, `ffmpeg` on PATH, then a bundled binary copied once
    into a shared temp dir. The copy is guarded by a lock and reused when it
    already exists, so concurrent first merges from several devices write it
    at most once.
    """

    def __init__(
        self,
        *,
        explicit_path: str | None = None,
        bundled_path: str | None = None,
        temp_root: Path | None = None,
    ) -> None:
        self._lock = Lock()
        self._explicit_path = explicit_path
        self._bundled_path = Path(bundled_path) if bundled_path else None
        self._temp_root = temp_root
        self._materialized: Path | None = None

    def configure(self, *, explicit_path: str | None, bundled_path: str | None) -> None:
        with self._lock:
            self._explicit_path = explicit_path
            self._bundled_path = Path(bundled_path) if bundled_path else None
            self._materialized = None

    def resolve(self) -> str:
        """Return a runnable ffmpeg path.

        Raises:
            TranscoderNotFoundError: If neither PATH nor a bundled binary provides one
        """
        if self._explicit_path:
            return self._explicit_path
        found = shutil.which(FFMPEG_NAME)
        if found:
            return found
        return str(self._materialize())

    def _materialize(self) -> Path:
        with self._lock:
            if self._materialized is not None and self._materialized.exists():
                return self._materialized
            source = self._bundled_path
            if source is None or not source.is_file():
                raise TranscoderNotFoundError(
                    f"{FFMPEG_NAME} not found on PATH and no bundled binary available"
                )
            temp_root = self._temp_root or Path(tempfile.gettempdir())
            target_dir = temp_root / MATERIALIZED_DIR_NAME
            target = target_dir / source.name
            if not target.exists():
                try:
                    target_dir.mkdir(parents=True, exist_ok=True)
                    partial = target.with_name(f"{target.name}.{os.getpid()}.tmp")
                    shutil.copyfile(source, partial)
                    partial.chmod(0o755)
                    os.replace(partial, target)
                except OSError as exc:
                    raise TranscoderNotFoundError(
                        f"Failed to materialize bundled {FFMPEG_NAME} at {target}", cause=exc
                    ) from exc
                logger.info("Materialized bundled %s at %s", FFMPEG_NAME, target)
            self._materialized = target
            return target


_GLOBAL_TRANSCODER_LOCATOR = TranscoderLocator()


def get_global_transcoder_locator() -> TranscoderLocator:
    return _GLOBAL_TRANSCODER_LOCATOR


def build_merge_command(
    ffmpeg: str,
    video_path: Path,
    audio_path: Path,
    output_path: Path,
    *,
    frame_rate: int = DEFAULT_FRAME_RATE,
    audio_codec: str = "aac",
) -> list[str]:
    return [
        ffmpeg,
        "-hide_banner",
        "-y",
        "-f",
        "alaw",
        "-ar",
        "8000",
        "-ac",
        "1",
        "-i",
        str(audio_path),
        "-r",
        str(frame_rate),
        "-fflags",
        "+genpts",
        "-i",
        str(video_path),
        "-c:v",
        "copy",
        "-c:a",
        audio_codec,
        "-shortest",
        str(output_path),
    ]


class ContainerMerger:
    """Combine an HEVC elementary file and an A-law file into one container."""

    def __init__(
        self,
        locator: TranscoderLocator | None = None,
        *,
        audio_codec: str = "aac",
    ) -> None:
        self._locator = locator or get_global_transcoder_locator()
        self._audio_codec = audio_codec

    def merge(
        self,
        video_path: Path,
        audio_path: Path,
        output_path: Path,
        frame_rate: int = DEFAULT_FRAME_RATE,
    ) -> Path:
        """Run ffmpeg synchronously.

        Raises:
            MergeError: If a source is missing or ffmpeg fails
            TranscoderNotFoundError: If no ffmpeg binary can be resolved
        """
        if not video_path.exists() or not audio_path.exists():
            raise MergeError(f"Source file missing: {video_path} or {audio_path}")

        ffmpeg = self._locator.resolve()
        cmd = build_merge_command(
            ffmpeg,
            video_path,
            audio_path,
            output_path,
            frame_rate=frame_rate,
            audio_codec=self._audio_codec,
        )
        logger.debug("Merge ffmpeg: %s", _format_cmd(cmd))

        try:
            result = subprocess.run(
                cmd,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                check=False,
            )
        except OSError as exc:
            raise MergeError(f"{FFMPEG_NAME} failed to start: {exc}", cause=exc) from exc

        output = result.stdout.decode(errors="replace") if result.stdout else ""
        if result.returncode != 0:
            raise MergeError(
                f"{FFMPEG_NAME} exited with code {result.returncode}; output: {output}",
                output=output,
            )
        return output_path
