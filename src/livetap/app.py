"""Main application that runs one recording loop per device."""

from __future__ import annotations

import asyncio
import logging
import signal
from collections.abc import Callable
from pathlib import Path

from livetap.config import load_config, resolve_param_token
from livetap.gateway.demuxer import StreamDemuxer
from livetap.health import HealthServer
from livetap.maintenance.retention import RetentionManager
from livetap.merge.ffmpeg import ContainerMerger, get_global_transcoder_locator
from livetap.models.config import Config, DeviceConfig
from livetap.runtime.recorder import RecordingLoop

logger = logging.getLogger(__name__)


class Application:
    """Run every enabled device concurrently until a signal or a fatal error.

    Device loops share nothing but the transcoder locator; each writes under
    its own `{storage_root}/{device}` subtree.
    """

    def __init__(self, config_path: Path) -> None:
        self._config_path = config_path
        self._config: Config | None = None
        self._loops: list[RecordingLoop] = []
        self._tasks: list[asyncio.Task[None]] = []
        self._health_server: HealthServer | None = None

        self._shutdown_event = asyncio.Event()
        self._shutdown_started = False

    @property
    def loops(self) -> list[RecordingLoop]:
        return list(self._loops)

    async def run(self) -> None:
        """Run until shutdown.

        Raises:
            SegmentDirectoryError: If a device cannot create its segment directory
        """
        logger.info("Starting livetap...")
        self._config = load_config(self._config_path)
        logger.info("Config loaded from %s", self._config_path)

        self._loops = self.create_loops(self._config)
        if not self._loops:
            logger.warning("No enabled devices configured; nothing to record")
            return

        self._setup_signal_handlers()

        self._tasks = [
            asyncio.create_task(loop.run(), name=f"livetap:{loop.device.name}")
            for loop in self._loops
        ]
        logger.info(
            "Recording %d device(s): %s",
            len(self._loops),
            [loop.device.name for loop in self._loops],
        )

        shutdown_waiter = asyncio.create_task(self._shutdown_event.wait())
        fatal: BaseException | None = None
        try:
            # Device tasks exist before the health endpoint is reachable.
            if self._config.health.enabled:
                self._health_server = HealthServer(
                    self._config.health.host,
                    self._config.health.port,
                    stale_after_s=self._config.health.stale_after_s,
                )
                self._health_server.set_loops(self._loops)
                await self._health_server.start()

            done, _pending = await asyncio.wait(
                [*self._tasks, shutdown_waiter],
                return_when=asyncio.FIRST_COMPLETED,
            )
            for task in done:
                if task is shutdown_waiter or task.cancelled():
                    continue
                exc = task.exception()
                if exc is not None:
                    logger.critical("Device task %s stopped: %s", task.get_name(), exc)
                    fatal = exc
        finally:
            shutdown_waiter.cancel()
            await self.shutdown()

        if fatal is not None:
            raise fatal

    def create_loops(self, config: Config) -> list[RecordingLoop]:
        locator = get_global_transcoder_locator()
        locator.configure(
            explicit_path=config.transcoder.ffmpeg_path,
            bundled_path=config.transcoder.bundled_path,
        )
        merger = ContainerMerger(locator, audio_codec=config.transcoder.audio_codec)
        storage_root = Path(config.storage_root).expanduser()
        retention = RetentionManager(storage_root)

        loops: list[RecordingLoop] = []
        for device in config.devices:
            if not device.enabled:
                logger.info("Device %s disabled; skipping", device.name)
                continue
            loops.append(
                RecordingLoop(
                    device,
                    storage_root=storage_root,
                    reconnect_delay_s=config.reconnect_delay_for(device),
                    demuxer_factory=_make_demuxer_factory(resolve_param_token(device)),
                    merger=merger,
                    retention=retention,
                )
            )
        return loops

    def _setup_signal_handlers(self) -> None:
        """Set up signal handlers for shutdown."""
        loop = asyncio.get_running_loop()

        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, self._handle_signal, sig)

    def _handle_signal(self, sig: signal.Signals) -> None:
        if self._shutdown_started:
            logger.warning("Shutdown already in progress, ignoring signal")
            return

        logger.info("Received signal %s, initiating shutdown...", sig.name)
        self._shutdown_started = True
        self._shutdown_event.set()

    async def shutdown(self) -> None:
        """Cancel device loops and stop the health server.

        In-flight segments are abandoned; files already appended stay on disk.
        """
        logger.info("Shutting down livetap...")
        for task in self._tasks:
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

        if self._health_server:
            await self._health_server.stop()

        logger.info("Shutdown complete")


def _make_demuxer_factory(param_token: str) -> Callable[[DeviceConfig], StreamDemuxer]:
    def factory(device: DeviceConfig) -> StreamDemuxer:
        return StreamDemuxer(device, param_token=param_token)

    return factory
