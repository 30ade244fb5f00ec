"""Configuration models."""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator, model_validator


class DeviceConfig(BaseModel):
    """One monitored gateway stream."""

    model_config = {"extra": "forbid", "frozen": True}

    name: str = Field(min_length=1)
    enabled: bool = True
    ws_host: str = Field(
        min_length=1,
        description="Gateway host, optionally with port (e.g. 'gw.example.com:50443').",
    )
    param_token: str | None = Field(
        default=None,
        description="Opaque token sent as _paramStr_ after the handshake.",
    )
    param_token_env: str | None = Field(
        default=None,
        description="Environment variable holding the token (used when param_token is unset).",
    )
    segment_size_mb: int = Field(
        default=10,
        ge=1,
        description="Either buffer exceeding this many MiB ends a capture cycle.",
    )
    retained_segment_count: int = Field(
        default=7,
        ge=1,
        description="Number of day directories to keep for this device.",
    )
    reconnect_delay_s: float | None = Field(
        default=None,
        ge=0.0,
        description="Seconds to wait after a failed attempt (defaults to the global value).",
    )
    frame_rate: int = Field(
        default=25,
        ge=1,
        description="Frame rate used to regenerate video timestamps when merging.",
    )

    @field_validator("name")
    @classmethod
    def _validate_name(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned or "/" in cleaned or "\\" in cleaned or cleaned in (".", ".."):
            raise ValueError(f"device name must be a single path segment, got {value!r}")
        return cleaned

    @field_validator("ws_host")
    @classmethod
    def _validate_ws_host(cls, value: str) -> str:
        cleaned = value.strip()
        if "://" in cleaned or "/" in cleaned:
            raise ValueError("ws_host must be host[:port] without scheme or path")
        host, sep, port = cleaned.partition(":")
        if not host:
            raise ValueError("ws_host must include a host name")
        if sep and not (port.isdigit() and 1 <= int(port) <= 65535):
            raise ValueError(f"ws_host port must be an integer in 1..65535, got {port!r}")
        return cleaned

    @model_validator(mode="after")
    def _require_token_source(self) -> DeviceConfig:
        if self.param_token is None and self.param_token_env is None:
            raise ValueError("one of param_token or param_token_env is required")
        return self

    @property
    def host_without_port(self) -> str:
        host, _, _port = self.ws_host.partition(":")
        return host


class TranscoderConfig(BaseModel):
    """ffmpeg resolution and output settings."""

    model_config = {"extra": "forbid"}

    ffmpeg_path: str | None = Field(
        default=None,
        description="Explicit ffmpeg binary; skips PATH lookup when set.",
    )
    bundled_path: str | None = Field(
        default=None,
        description="Bundled ffmpeg binary copied to a temp dir when none is on PATH.",
    )
    audio_codec: str = "aac"


class HealthConfig(BaseModel):
    """Health endpoint configuration."""

    model_config = {"extra": "forbid"}

    enabled: bool = False
    host: str = "0.0.0.0"
    port: int = Field(default=8080, ge=1, le=65535)
    stale_after_s: float = Field(
        default=300.0,
        gt=0.0,
        description="A running device without progress for this long gets a stale-heartbeat warning.",
    )


class Config(BaseModel):
    """Root configuration."""

    model_config = {"extra": "forbid"}

    version: int = 1
    storage_root: str = "./recordings"
    reconnect_delay_s: float = Field(default=5.0, ge=0.0)
    transcoder: TranscoderConfig = Field(default_factory=TranscoderConfig)
    health: HealthConfig = Field(default_factory=HealthConfig)
    devices: list[DeviceConfig] = Field(min_length=1)

    @model_validator(mode="after")
    def _validate_unique_devices(self) -> Config:
        names = [device.name for device in self.devices]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise ValueError(f"Duplicate device names: {duplicates}")
        return self

    def reconnect_delay_for(self, device: DeviceConfig) -> float:
        if device.reconnect_delay_s is not None:
            return device.reconnect_delay_s
        return self.reconnect_delay_s

    def get_device(self, name: str) -> DeviceConfig:
        for device in self.devices:
            if device.name == name:
                return device
        raise KeyError(name)
