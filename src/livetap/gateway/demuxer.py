"""One WebSocket session against an H5 player gateway."""

from __future__ import annotations

import asyncio
import json
import logging
import ssl
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import aiohttp

from livetap.errors import FramingError, GatewayConnectionError
from livetap.gateway.framing import (
    AUDIO_FRAME,
    VIDEO_FRAME,
    extract_audio_payload,
    frame_type,
    locate_codec_start_code,
    locate_video_payload_start,
)
from livetap.models.config import DeviceConfig

logger = logging.getLogger(__name__)

GATEWAY_PATH = "/h5player/live"
HANDSHAKE_TIMEOUT_S = 15.0
ACK_MESSAGE_COUNT = 2
START_STREAM_CMD = 3
MIB = 1024 * 1024

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0 Safari/537.36"
)
ACCEPT_LANGUAGE = "zh-CN,zh;q=0.9"

_CLOSED_TYPES = frozenset(
    {
        aiohttp.WSMsgType.CLOSE,
        aiohttp.WSMsgType.CLOSING,
        aiohttp.WSMsgType.CLOSED,
        aiohttp.WSMsgType.ERROR,
    }
)
_IO_ERRORS = (aiohttp.ClientError, OSError, asyncio.TimeoutError)


@dataclass(frozen=True)
class DemuxResult:
    """Elementary stream bytes captured in one session."""

    video: bytes = b""
    audio: bytes = b""
    dropped_frames: int = 0

    @property
    def is_empty(self) -> bool:
        """Both sides empty: the attempt failed outright."""
        return not self.video and not self.audio


class SessionState:
    """Per-connection accumulation buffers."""

    def __init__(self, device_name: str, limit_bytes: int) -> None:
        self.device_name = device_name
        self.limit_bytes = limit_bytes
        self.video = bytearray()
        self.audio = bytearray()
        self.dropped_frames = 0

    def feed(self, frame: bytes) -> bool:
        """Route one binary frame into a buffer. Returns True once the threshold is exceeded."""
        kind = frame_type(frame)
        if kind == VIDEO_FRAME:
            try:
                self.video.extend(self._video_payload(frame))
            except FramingError as exc:
                self.dropped_frames += 1
                logger.debug("%s", exc)
        elif kind == AUDIO_FRAME:
            payload = extract_audio_payload(frame)
            if payload:
                self.audio.extend(payload)
        return self.threshold_reached

    @property
    def threshold_reached(self) -> bool:
        return len(self.video) > self.limit_bytes or len(self.audio) > self.limit_bytes

    def result(self) -> DemuxResult:
        return DemuxResult(
            video=bytes(self.video),
            audio=bytes(self.audio),
            dropped_frames=self.dropped_frames,
        )

    def _video_payload(self, frame: bytes) -> bytes:
        skip = locate_video_payload_start(frame)
        if skip <= 0 or skip >= len(frame):
            raise FramingError(self.device_name, f"payload offset {skip} outside frame")
        payload = frame[skip:]
        align = locate_codec_start_code(payload)
        if align < 0:
            raise FramingError(self.device_name, "no codec start code after control blob")
        return payload[align:]


def build_ssl_context() -> ssl.SSLContext:
    """TLS 1.2+ without certificate validation; gateways use self-signed certs."""
    context = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
    context.check_hostname = False
    context.verify_mode = ssl.CERT_NONE
    context.minimum_version = ssl.TLSVersion.TLSv1_2
    return context


class StreamDemuxer:
    """Capture one segment's worth of elementary streams from a gateway.

    `run()` never raises for network problems. An empty result (both buffers
    empty) means the attempt failed; a one-sided result is still usable.
    """

    def __init__(
        self,
        device: DeviceConfig,
        *,
        param_token: str,
        session_factory: Callable[[], Any] = aiohttp.ClientSession,
        time_fn: Callable[[], float] = time.time,
        handshake_timeout_s: float = HANDSHAKE_TIMEOUT_S,
    ) -> None:
        self._device = device
        self._param_token = param_token
        self._session_factory = session_factory
        self._time_fn = time_fn
        self._handshake_timeout_s = handshake_timeout_s
        self._limit_bytes = device.segment_size_mb * MIB
        self._ssl_context = build_ssl_context()

    @property
    def url(self) -> str:
        return f"wss://{self._device.ws_host}{GATEWAY_PATH}"

    def headers(self) -> dict[str, str]:
        return {
            "Origin": f"https://{self._device.host_without_port}",
            "User-Agent": USER_AGENT,
            "Accept-Language": ACCEPT_LANGUAGE,
        }

    async def run(self) -> DemuxResult:
        state = SessionState(self._device.name, self._limit_bytes)
        async with self._session_factory() as session:
            try:
                ws = await self._connect(session)
            except GatewayConnectionError as exc:
                logger.warning("%s: %s", exc, exc.cause)
                return DemuxResult()

            try:
                await self._start_stream(ws)
                await self._pump(ws, state)
            except GatewayConnectionError as exc:
                logger.warning("%s: %s", exc, exc.cause)
                return DemuxResult()
            finally:
                await ws.close()

        result = state.result()
        logger.info(
            "Session ended: video=%d bytes audio=%d bytes dropped_frames=%d",
            len(result.video),
            len(result.audio),
            result.dropped_frames,
        )
        return result

    async def _connect(self, session: Any) -> Any:
        logger.debug("Connecting to %s", self.url)
        try:
            return await asyncio.wait_for(
                session.ws_connect(
                    self.url,
                    headers=self.headers(),
                    ssl=self._ssl_context,
                    server_hostname=self._device.host_without_port,
                    compress=15,
                    max_msg_size=0,
                ),
                timeout=self._handshake_timeout_s,
            )
        except aiohttp.WSServerHandshakeError as exc:
            logger.debug("Handshake rejected with HTTP %s", exc.status)
            raise GatewayConnectionError(self._device.name, "handshake", exc) from exc
        except _IO_ERRORS as exc:
            raise GatewayConnectionError(self._device.name, "handshake", exc) from exc

    async def _start_stream(self, ws: Any) -> None:
        await self._send(ws, f"_paramStr_={self._param_token}", step="parameter send")
        for _ in range(ACK_MESSAGE_COUNT):
            await self._receive_control(ws)
        start_cmd = json.dumps({"time": int(self._time_fn()), "cmd": START_STREAM_CMD})
        await self._send(ws, start_cmd, step="start command send")

    async def _send(self, ws: Any, text: str, *, step: str) -> None:
        try:
            await ws.send_str(text)
        except _IO_ERRORS as exc:
            raise GatewayConnectionError(self._device.name, step, exc) from exc

    async def _receive_control(self, ws: Any) -> None:
        try:
            msg = await ws.receive()
        except _IO_ERRORS as exc:
            raise GatewayConnectionError(self._device.name, "acknowledgement read", exc) from exc
        if msg.type in _CLOSED_TYPES:
            raise GatewayConnectionError(
                self._device.name, "acknowledgement read", ws.exception()
            )

    async def _pump(self, ws: Any, state: SessionState) -> None:
        while True:
            try:
                msg = await ws.receive()
            except _IO_ERRORS as exc:
                logger.warning("Gateway read failed: %s", exc)
                return
            if msg.type in _CLOSED_TYPES:
                logger.warning("Gateway stream closed (%s)", msg.type.name)
                return
            if msg.type != aiohttp.WSMsgType.BINARY:
                continue
            if state.feed(msg.data):
                logger.debug("Segment threshold of %d bytes reached", state.limit_bytes)
                return
