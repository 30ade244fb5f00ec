"""CLI entrypoint for livetap."""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

import fire  # type: ignore[import-untyped]

from livetap.app import Application
from livetap.config import ConfigError, load_config, resolve_param_token
from livetap.errors import MergeError, SegmentDirectoryError
from livetap.logging_setup import configure_logging
from livetap.maintenance.retention import RetentionManager
from livetap.merge.ffmpeg import ContainerMerger, get_global_transcoder_locator


def setup_logging(level: str = "INFO") -> None:
    """Configure logging for CLI."""
    configure_logging(log_level=level)


class Livetap:
    """livetap CLI - always-on recorder for H5 player gateways."""

    def run(self, config: str, log_level: str = "INFO") -> None:
        """Record every enabled device until interrupted.

        Args:
            config: Path to YAML config file
            log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        """
        setup_logging(log_level)

        app = Application(Path(config))

        try:
            asyncio.run(app.run())
        except ConfigError as e:
            print(f"✗ Config invalid: {e}", file=sys.stderr)
            sys.exit(1)
        except SegmentDirectoryError as e:
            print(f"✗ Cannot create segment directory: {e}", file=sys.stderr)
            sys.exit(1)
        except KeyboardInterrupt:
            pass  # Handled by signal handlers

    def validate(self, config: str) -> None:
        """Validate config file without running.

        Args:
            config: Path to YAML config file
        """
        config_path = Path(config)

        try:
            cfg = load_config(config_path)
            for device in cfg.devices:
                if device.enabled:
                    resolve_param_token(device)
        except ConfigError as e:
            print(f"✗ Config invalid: {e}", file=sys.stderr)
            sys.exit(1)

        print(f"✓ Config valid: {config_path}")
        print(f"  Storage root: {cfg.storage_root}")
        print(f"  Reconnect delay: {cfg.reconnect_delay_s}s")
        for device in cfg.devices:
            print(
                f"  Device {device.name}: host={device.ws_host} "
                f"segment_size_mb={device.segment_size_mb} "
                f"retained={device.retained_segment_count} enabled={device.enabled}"
            )

    def merge(
        self,
        video: str,
        audio: str,
        output: str | None = None,
        frame_rate: int = 25,
        ffmpeg_path: str | None = None,
        log_level: str = "INFO",
    ) -> None:
        """Merge a raw .hevc/.alaw pair into MP4 (recovery for failed merges).

        Args:
            video: Path to the HEVC elementary file
            audio: Path to the A-law elementary file
            output: Output container path (default: video path with .mp4)
            frame_rate: Frame rate used to regenerate video timestamps
            ffmpeg_path: Explicit ffmpeg binary
            log_level: Logging level
        """
        setup_logging(log_level)

        video_path = Path(video)
        output_path = Path(output) if output else video_path.with_suffix(".mp4")
        locator = get_global_transcoder_locator()
        locator.configure(explicit_path=ffmpeg_path, bundled_path=None)

        try:
            ContainerMerger(locator).merge(video_path, Path(audio), output_path, frame_rate)
        except MergeError as e:
            print(f"✗ Merge failed: {e}", file=sys.stderr)
            sys.exit(1)
        print(f"✓ Merged: {output_path}")

    def prune(self, config: str, device: str | None = None, log_level: str = "INFO") -> None:
        """Apply day-directory retention now.

        Args:
            config: Path to YAML config file
            device: Only prune this device (default: all devices)
            log_level: Logging level
        """
        setup_logging(log_level)

        try:
            cfg = load_config(Path(config))
        except ConfigError as e:
            print(f"✗ Config invalid: {e}", file=sys.stderr)
            sys.exit(1)

        try:
            targets = [cfg.get_device(device)] if device else cfg.devices
        except KeyError:
            print(f"✗ Unknown device: {device}", file=sys.stderr)
            sys.exit(1)

        retention = RetentionManager(Path(cfg.storage_root).expanduser())
        for target in targets:
            removed = retention.prune(target.name, target.retained_segment_count)
            print(f"  {target.name}: removed {len(removed)} day directories")


def main() -> None:
    """Main CLI entrypoint."""
    # Strip --help/-h when it's the only arg so Fire shows its commands list
    if len(sys.argv) == 2 and sys.argv[1] in ("--help", "-h"):
        sys.argv.pop()
    fire.Fire(Livetap)


if __name__ == "__main__":
    main()
