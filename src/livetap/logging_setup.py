from __future__ import annotations

import json
import logging
import logging.config
import os
from contextvars import ContextVar

_CURRENT_DEVICE_NAME: ContextVar[str] = ContextVar("livetap_device_name", default="-")
_CURRENT_SEGMENT_ID: ContextVar[str | None] = ContextVar("livetap_segment_id", default=None)
_STANDARD_LOGRECORD_ATTRS = {
    "name",
    "msg",
    "message",
    "asctime",
    "args",
    "levelname",
    "levelno",
    "pathname",
    "filename",
    "module",
    "exc_info",
    "exc_text",
    "stack_info",
    "lineno",
    "funcName",
    "created",
    "msecs",
    "relativeCreated",
    "thread",
    "threadName",
    "processName",
    "process",
    "taskName",
}


class _DeviceNameFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "device_name") or getattr(record, "device_name") in (None, ""):
            record.device_name = _CURRENT_DEVICE_NAME.get()
        return True


class _SegmentIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "segment_id") or getattr(record, "segment_id") in (None, ""):
            record.segment_id = _CURRENT_SEGMENT_ID.get()
        return True


class _JsonExtraFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        base = super().format(record)
        extras = _extract_extras(record)
        if not extras:
            return base
        extras_json = json.dumps(extras, indent=2, default=str, sort_keys=True)
        return f"{base}\n{extras_json}"


def _extract_extras(record: logging.LogRecord) -> dict[str, object]:
    extras: dict[str, object] = {}
    for key, value in record.__dict__.items():
        if key in _STANDARD_LOGRECORD_ATTRS:
            continue
        if key in {"device_name", "segment_id"}:
            continue
        extras[key] = value
    return extras


def set_device_name(name: str | None) -> None:
    """Set the `device_name` value injected into log records.

    Scoped to the current context, so each device task carries its own name.
    """
    _CURRENT_DEVICE_NAME.set(name or "-")


def set_segment_id(segment_id: str | None) -> None:
    """Set the `segment_id` value injected into log records."""
    _CURRENT_SEGMENT_ID.set(segment_id or None)


def _install_filters() -> None:
    root = logging.getLogger()
    for handler in root.handlers:
        if not any(isinstance(f, _DeviceNameFilter) for f in handler.filters):
            handler.addFilter(_DeviceNameFilter())
        if not any(isinstance(f, _SegmentIdFilter) for f in handler.filters):
            handler.addFilter(_SegmentIdFilter())


def configure_logging(*, log_level: str = "INFO", device_name: str | None = None) -> None:
    """Configure root logging with a consistent format.

    Format includes `device_name` plus `module:lineno` so interleaved output
    from concurrently recording devices stays attributable.
    """
    console_level_name = str(log_level).upper()
    default_console_fmt = (
        "%(asctime)s %(levelname)s [%(device_name)s] "
        "%(module)s %(pathname)s:%(lineno)d %(message)s"
    )
    console_fmt = os.getenv("CONSOLE_LOG_FORMAT", default_console_fmt)

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "default": {
                    "()": "livetap.logging_setup._JsonExtraFormatter",
                    "format": console_fmt,
                }
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "level": console_level_name,
                    "formatter": "default",
                    "stream": "ext://sys.stdout",
                }
            },
            "root": {"level": "DEBUG", "handlers": ["console"]},
        }
    )

    _install_filters()
    set_device_name(device_name)
    logging.captureWarnings(True)

    # Per-request client logs are noise for a long-running recorder.
    logging.getLogger("aiohttp.access").setLevel(logging.WARNING)
    logging.getLogger("aiohttp.client").setLevel(logging.WARNING)
