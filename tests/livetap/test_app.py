"""Tests for the multi-device application."""

from __future__ import annotations

import asyncio
import signal
from pathlib import Path

import pytest
import yaml

from livetap.app import Application
from livetap.config import ConfigError, load_config_from_dict
from livetap.errors import SegmentDirectoryError
from livetap.gateway.demuxer import DemuxResult
from livetap.models.config import DeviceConfig


class _StubDemuxer:
    """Replaces StreamDemuxer; returns a fixed result per attempt."""

    result = DemuxResult()
    tokens: list[str] = []

    def __init__(self, device: DeviceConfig, *, param_token: str) -> None:
        self.device = device
        _StubDemuxer.tokens.append(param_token)

    async def run(self) -> DemuxResult:
        await asyncio.sleep(0)
        return _StubDemuxer.result


@pytest.fixture
def stub_demuxer(monkeypatch: pytest.MonkeyPatch) -> type[_StubDemuxer]:
    monkeypatch.setattr("livetap.app.StreamDemuxer", _StubDemuxer)
    _StubDemuxer.result = DemuxResult()
    _StubDemuxer.tokens = []
    return _StubDemuxer


def _config(storage_root: Path) -> dict[str, object]:
    return {
        "version": 1,
        "storage_root": str(storage_root),
        "reconnect_delay_s": 0.01,
        "devices": [
            {"name": "lobby", "ws_host": "gw.example.com:50443", "param_token": "tok-lobby"},
            {
                "name": "dock",
                "ws_host": "gw.example.com:50443",
                "param_token": "tok-dock",
                "reconnect_delay_s": 0.02,
            },
            {"name": "attic", "ws_host": "gw.example.com", "param_token_env": "UNSET", "enabled": False},
        ],
    }


def _write_config(tmp_path: Path, data: dict[str, object]) -> Path:
    path = tmp_path / "livetap.yaml"
    path.write_text(yaml.dump(data))
    path.chmod(0o600)
    return path


def test_create_loops_skips_disabled_devices(tmp_path: Path) -> None:
    """Only enabled devices get a loop; their token env is never read."""
    # Given: A config with one disabled device whose token var is unset
    config = load_config_from_dict(_config(tmp_path))
    app = Application(tmp_path / "unused.yaml")

    # When
    loops = app.create_loops(config)

    # Then
    assert [loop.device.name for loop in loops] == ["lobby", "dock"]
    assert [loop.reconnect_delay_s for loop in loops] == [0.01, 0.02]
    assert all(loop.storage_root == tmp_path for loop in loops)


def test_create_loops_requires_enabled_tokens(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    # Given: An enabled device whose token env var is unset
    monkeypatch.delenv("UNSET", raising=False)
    data = _config(tmp_path)
    data["devices"][2]["enabled"] = True  # type: ignore[index]
    config = load_config_from_dict(data)

    # When / Then
    with pytest.raises(ConfigError):
        Application(tmp_path / "unused.yaml").create_loops(config)


@pytest.mark.asyncio
async def test_signal_triggers_clean_shutdown(
    tmp_path: Path, stub_demuxer: type[_StubDemuxer]
) -> None:
    """SIGTERM stops every device loop and run() returns normally."""
    # Given: Devices that never capture anything
    app = Application(_write_config(tmp_path, _config(tmp_path / "recordings")))
    loop = asyncio.get_running_loop()
    loop.call_later(0.1, app._handle_signal, signal.SIGTERM)

    # When
    await asyncio.wait_for(app.run(), timeout=5)

    # Then: Both loops were retrying and are now stopped
    assert len(app.loops) == 2
    assert all(rl.status.failures >= 1 for rl in app.loops)
    assert all(rl.status.running is False for rl in app.loops)
    assert set(stub_demuxer.tokens) == {"tok-lobby", "tok-dock"}
    assert not (tmp_path / "recordings").exists()


class _RecordingHealthServer:
    """Replaces HealthServer; records what existed when it started."""

    instances: list[_RecordingHealthServer] = []
    app: Application | None = None

    def __init__(self, host: str, port: int, *, stale_after_s: float) -> None:
        self.loops: list[object] = []
        self.tasks_at_start = -1
        self.stopped = False
        _RecordingHealthServer.instances.append(self)

    def set_loops(self, loops: list[object]) -> None:
        self.loops = loops

    async def start(self) -> None:
        assert self.app is not None
        self.tasks_at_start = len(self.app._tasks)

    async def stop(self) -> None:
        self.stopped = True


@pytest.mark.asyncio
async def test_health_server_starts_after_device_tasks(
    tmp_path: Path, stub_demuxer: type[_StubDemuxer], monkeypatch: pytest.MonkeyPatch
) -> None:
    """The health endpoint never sees a device whose task does not exist yet."""
    # Given: Health enabled with a recording stand-in server
    monkeypatch.setattr("livetap.app.HealthServer", _RecordingHealthServer)
    _RecordingHealthServer.instances = []
    data = _config(tmp_path / "recordings")
    data["health"] = {"enabled": True, "port": 18080}
    app = Application(_write_config(tmp_path, data))
    _RecordingHealthServer.app = app
    asyncio.get_running_loop().call_later(0.05, app._handle_signal, signal.SIGTERM)

    # When
    await asyncio.wait_for(app.run(), timeout=5)

    # Then: Both device tasks existed at start, and the server was stopped
    server = _RecordingHealthServer.instances[0]
    assert server.tasks_at_start == 2
    assert len(server.loops) == 2
    assert server.stopped is True


@pytest.mark.asyncio
async def test_directory_failure_is_fatal(
    tmp_path: Path, stub_demuxer: type[_StubDemuxer]
) -> None:
    """A device that cannot create its segment directory ends the process."""
    # Given: Captures succeed but storage_root is a regular file
    blocker = tmp_path / "blocker"
    blocker.write_text("x")
    stub_demuxer.result = DemuxResult(video=b"\x00\x00\x00\x01\x40")
    app = Application(_write_config(tmp_path, _config(blocker)))

    # When / Then
    with pytest.raises(SegmentDirectoryError):
        await asyncio.wait_for(app.run(), timeout=5)
    assert all(rl.status.running is False for rl in app.loops)


@pytest.mark.asyncio
async def test_invalid_config_raises(tmp_path: Path) -> None:
    # Given
    path = tmp_path / "livetap.yaml"
    path.write_text("devices: []\n")

    # When / Then
    with pytest.raises(ConfigError):
        await Application(path).run()
