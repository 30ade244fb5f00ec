"""Storage maintenance helpers."""

from livetap.maintenance.retention import RetentionManager

__all__ = ["RetentionManager"]
