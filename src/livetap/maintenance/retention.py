"""Day-directory retention for recorded devices."""

from __future__ import annotations

import logging
import shutil
from pathlib import Path

from livetap.errors import RetentionError

logger = logging.getLogger(__name__)


class RetentionManager:
    """Keep only the most recently modified day directories per device."""

    def __init__(self, storage_root: Path) -> None:
        self.storage_root = storage_root

    def device_dir(self, device_name: str) -> Path:
        return self.storage_root / device_name

    def prune(self, device_name: str, keep: int) -> list[Path]:
        """Delete day directories beyond the `keep` most recent.

        Deletion failures are swallowed; returns the directories removed.
        """
        device_dir = self.device_dir(device_name)
        try:
            folders = [entry for entry in device_dir.iterdir() if entry.is_dir()]
        except OSError:
            return []
        if len(folders) <= keep:
            return []

        folders.sort(key=_mtime, reverse=True)
        removed: list[Path] = []
        for folder in folders[keep:]:
            try:
                _remove_tree(device_name, folder)
            except RetentionError as exc:
                logger.debug("%s: %s", exc, exc.cause)
                continue
            removed.append(folder)

        if removed:
            logger.info(
                "Pruned %d day directories (keep=%d): %s",
                len(removed),
                keep,
                [folder.name for folder in removed],
            )
        return removed


def _remove_tree(device_name: str, folder: Path) -> None:
    try:
        shutil.rmtree(folder)
    except OSError as exc:
        raise RetentionError(device_name, str(folder), exc) from exc


def _mtime(path: Path) -> float:
    try:
        return path.stat().st_mtime
    except OSError:
        return 0.0
