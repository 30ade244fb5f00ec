"""Per-device capture, persist, merge, retain loop."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from livetap.errors import MergeError, PersistenceError, SegmentDirectoryError
from livetap.gateway.demuxer import DemuxResult
from livetap.logging_setup import set_device_name, set_segment_id
from livetap.maintenance.retention import RetentionManager
from livetap.merge.ffmpeg import ContainerMerger
from livetap.models.config import DeviceConfig
from livetap.models.segment import Segment
from livetap.runtime.clock import Clock, SystemClock
from livetap.storage_paths import append_bytes, prepare_segment

logger = logging.getLogger(__name__)


class Demuxer(Protocol):
    async def run(self) -> DemuxResult: ...


@dataclass
class LoopStatus:
    """Progress counters exposed to the health endpoint."""

    cycles: int = 0
    failures: int = 0
    consecutive_failures: int = 0
    segments: int = 0
    last_segment: str | None = None
    last_heartbeat: float = 0.0
    started: bool = False
    running: bool = False
    merge_failures: int = 0
    persist_failures: int = 0


class RecordingLoop:
    """Unbounded capture loop for one device.

    A failed attempt (nothing captured) sleeps for the reconnect delay and
    retries forever. Only a failure to create the segment directory ends the
    loop, by raising SegmentDirectoryError.
    """

    def __init__(
        self,
        device: DeviceConfig,
        *,
        storage_root: Path,
        reconnect_delay_s: float,
        demuxer_factory: Callable[[DeviceConfig], Demuxer],
        merger: ContainerMerger,
        retention: RetentionManager | None = None,
        clock: Clock | None = None,
    ) -> None:
        self.device = device
        self.storage_root = storage_root
        self.reconnect_delay_s = reconnect_delay_s
        self._demuxer_factory = demuxer_factory
        self._merger = merger
        self._retention = retention or RetentionManager(storage_root)
        self._clock = clock or SystemClock()
        self.status = LoopStatus()

    async def run(self) -> None:
        set_device_name(self.device.name)
        self.status.started = True
        self.status.running = True
        self.status.last_heartbeat = self._clock.now()
        logger.info("Recording loop started (storage=%s)", self.storage_root / self.device.name)
        try:
            while True:
                await self.run_cycle()
        finally:
            self.status.running = False

    async def run_cycle(self) -> Segment | None:
        """One capture attempt. Returns the segment written, or None on failure.

        Raises:
            SegmentDirectoryError: If the date directory cannot be created
        """
        result = await self._demuxer_factory(self.device).run()
        self.status.cycles += 1
        self.status.last_heartbeat = self._clock.now()

        if result.is_empty:
            self.status.failures += 1
            self.status.consecutive_failures += 1
            logger.warning(
                "Connection/capture failed, retrying in %.1fs (consecutive failures: %d)",
                self.reconnect_delay_s,
                self.status.consecutive_failures,
            )
            await self._clock.sleep(self.reconnect_delay_s)
            return None
        self.status.consecutive_failures = 0

        try:
            segment = await asyncio.to_thread(
                prepare_segment, self.storage_root, self.device.name, self._clock.wall_now()
            )
        except SegmentDirectoryError as exc:
            logger.critical("%s: %s", exc, exc.cause)
            raise

        set_segment_id(segment.segment_id)
        try:
            if not await self._persist(segment, result):
                return segment
            self.status.segments += 1
            self.status.last_segment = segment.segment_id
            logger.info("Recorded raw segment: %s + %s", segment.video_path, segment.audio_path)

            await self._merge(segment)
            await asyncio.to_thread(
                self._retention.prune, self.device.name, self.device.retained_segment_count
            )
        finally:
            set_segment_id(None)
        return segment

    async def _persist(self, segment: Segment, result: DemuxResult) -> bool:
        try:
            await asyncio.to_thread(append_bytes, segment.video_path, result.video, self.device.name)
            await asyncio.to_thread(append_bytes, segment.audio_path, result.audio, self.device.name)
        except PersistenceError as exc:
            self.status.persist_failures += 1
            logger.error("%s: %s", exc, exc.cause)
            return False
        return True

    async def _merge(self, segment: Segment) -> None:
        try:
            await asyncio.to_thread(
                self._merger.merge,
                segment.video_path,
                segment.audio_path,
                segment.container_path,
                self.device.frame_rate,
            )
        except MergeError as exc:
            self.status.merge_failures += 1
            logger.error("Merge to %s failed: %s", segment.container_path, exc)
            return
        logger.info("Merged segment: %s", segment.container_path)
