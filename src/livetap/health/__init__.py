"""Health check server."""

from livetap.health.server import HealthServer

__all__ = ["HealthServer"]
