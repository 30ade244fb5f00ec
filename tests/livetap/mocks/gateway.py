"""Fake gateway WebSocket session and frame builders for testing."""

from __future__ import annotations

import asyncio
from typing import Any

import aiohttp

JSON_BLOB = b"%7B%22ch%22%3A1%7D"  # percent-encoded {"ch":1}
JSON_BLOB_LEN = len(JSON_BLOB)
ALIGNMENT_FIELD = b"\x11" * 8
START_CODE = b"\x00\x00\x00\x01"


def text_msg(data: str = "ok") -> aiohttp.WSMessage:
    return aiohttp.WSMessage(aiohttp.WSMsgType.TEXT, data, None)


def binary_msg(data: bytes) -> aiohttp.WSMessage:
    return aiohttp.WSMessage(aiohttp.WSMsgType.BINARY, data, None)


def close_msg() -> aiohttp.WSMessage:
    return aiohttp.WSMessage(aiohttp.WSMsgType.CLOSE, 1000, "")


def video_frame(payload: bytes, *, prefix: bytes = b"") -> bytes:
    """Video frame: header, JSON blob, alignment field, optional junk, payload."""
    return b"\x00\x63\x00\x01" + JSON_BLOB + ALIGNMENT_FIELD + prefix + payload


def audio_frame(samples: bytes, *, trailer: bool = True, seq: int = 1) -> bytes:
    header = b"\x00\x62\x00\x01" + seq.to_bytes(4, "big") + b"\x00\x00\x00\x00"
    return header + samples + (b"\x00\x00\x01\x4b" if trailer else b"")


class FakeWebSocket:
    """Scripted stand-in for aiohttp.ClientWebSocketResponse.

    `messages` items are returned by receive() in order; exception instances
    are raised instead. Once exhausted, receive() reports CLOSED.
    """

    def __init__(
        self,
        messages: list[aiohttp.WSMessage | Exception] | None = None,
        *,
        send_error: Exception | None = None,
    ) -> None:
        self._messages = list(messages or [])
        self._send_error = send_error
        self.sent: list[str] = []
        self.receive_count = 0
        self.closed = False

    async def send_str(self, data: str) -> None:
        if self._send_error is not None:
            raise self._send_error
        self.sent.append(data)

    async def receive(self) -> aiohttp.WSMessage:
        self.receive_count += 1
        if not self._messages:
            return aiohttp.WSMessage(aiohttp.WSMsgType.CLOSED, None, None)
        item = self._messages.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    def exception(self) -> BaseException | None:
        return None

    async def close(self) -> bool:
        self.closed = True
        return True

    @property
    def remaining(self) -> int:
        return len(self._messages)


class FakeSession:
    """Stand-in for aiohttp.ClientSession recording ws_connect calls."""

    def __init__(
        self,
        ws: FakeWebSocket | None = None,
        *,
        connect_error: Exception | None = None,
        hang: bool = False,
    ) -> None:
        self.ws = ws or FakeWebSocket()
        self.connect_error = connect_error
        self.hang = hang
        self.connect_calls: list[tuple[str, dict[str, Any]]] = []
        self.closed = False

    async def __aenter__(self) -> FakeSession:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        self.closed = True

    async def ws_connect(self, url: str, **kwargs: Any) -> FakeWebSocket:
        self.connect_calls.append((url, kwargs))
        if self.hang:
            await asyncio.sleep(3600)
        if self.connect_error is not None:
            raise self.connect_error
        return self.ws
