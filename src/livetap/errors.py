"""Error hierarchy for recorder stages."""

from __future__ import annotations


class RecorderError(Exception):
    """Base exception for all recorder errors.

    Carries the stage that failed and the device it failed for. Preserves
    stack traces via exception chaining.
    """

    def __init__(
        self, message: str, stage: str, device_name: str, cause: Exception | None = None
    ) -> None:
        super().__init__(message)
        self.stage = stage
        self.device_name = device_name
        self.cause = cause
        self.__cause__ = cause


class GatewayConnectionError(RecorderError):
    """Dial, handshake or control-message exchange with the gateway failed."""

    def __init__(self, device_name: str, step: str, cause: Exception | None = None) -> None:
        super().__init__(
            f"Gateway {step} failed for {device_name}",
            stage="connect",
            device_name=device_name,
            cause=cause,
        )
        self.step = step


class FramingError(RecorderError):
    """A demultiplexer frame could not be resolved into a payload."""

    def __init__(self, device_name: str, reason: str) -> None:
        super().__init__(
            f"Frame dropped for {device_name}: {reason}",
            stage="demux",
            device_name=device_name,
        )
        self.reason = reason


class PersistenceError(RecorderError):
    """Writing captured bytes to disk failed."""

    def __init__(self, device_name: str, path: str, cause: Exception) -> None:
        super().__init__(
            f"Persist failed for {device_name} ({path})",
            stage="persist",
            device_name=device_name,
            cause=cause,
        )
        self.path = path


class SegmentDirectoryError(PersistenceError):
    """The dated segment directory could not be created (fatal)."""


class MergeError(RecorderError):
    """Container merge failed."""

    def __init__(
        self,
        message: str,
        device_name: str = "-",
        cause: Exception | None = None,
        output: str = "",
    ) -> None:
        super().__init__(message, stage="merge", device_name=device_name, cause=cause)
        self.output = output


class TranscoderNotFoundError(MergeError):
    """No transcoder binary on PATH and no bundled fallback available."""


class RetentionError(RecorderError):
    """Removing an expired date directory failed."""

    def __init__(self, device_name: str, path: str, cause: Exception) -> None:
        super().__init__(
            f"Retention failed for {device_name} ({path})",
            stage="retention",
            device_name=device_name,
            cause=cause,
        )
        self.path = path
