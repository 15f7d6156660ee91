"""Shared test fixtures."""

import io
import subprocess
import threading
from pathlib import Path

import pytest

from bleepforge.models import ProbeResult, StreamInfo

FIXTURES_DIR = Path(__file__).parent / "fixtures"


@pytest.fixture
def sample_manifest_path() -> Path:
    return FIXTURES_DIR / "sample_manifest.json"


@pytest.fixture
def tokens_path() -> Path:
    return FIXTURES_DIR / "tokens.json"


def make_probe(
    duration: float = 60.0,
    video_codec: str | None = "h264",
    audio_codec: str | None = "aac",
    sample_rate: int = 44100,
    channels: int = 1,
) -> ProbeResult:
    streams = []
    if video_codec:
        streams.append(StreamInfo("video", video_codec, width=1280, height=720, fps=30.0))
    if audio_codec:
        streams.append(StreamInfo("audio", audio_codec, sample_rate=sample_rate, channels=channels))
    return ProbeResult(duration=duration, format_name="mov,mp4,m4a,3gp,3g2,mj2", streams=streams)


class _StdinSink(io.BytesIO):
    """Keeps what was written after the pipe is closed."""

    written = b""

    def close(self):
        if not self.closed:
            self.written = self.getvalue()
        super().close()


class _HangingStderr:
    """Yields *data* once, then blocks like a live pipe until *stopped* is set."""

    def __init__(self, data, stopped):
        self._data = data
        self._stopped = stopped

    def read1(self, size=-1):
        if self._data:
            data, self._data = self._data, b""
            return data
        self._stopped.wait(5)
        return b""


class FakePopen:
    """Stand-in for subprocess.Popen backed by in-memory streams.

    With ``hang=True`` the process keeps running until ``terminate()``.
    """

    instances: list["FakePopen"] = []

    def __init__(self, cmd, stdin=None, stdout=None, stderr=None, *, out=b"", err=b"", returncode=0, hang=False):
        self.cmd = cmd
        self.pid = 4242
        self.stdin = _StdinSink() if stdin == subprocess.PIPE else None
        self.stdout = io.BytesIO(out)
        self._stopped = threading.Event()
        if not hang:
            self._stopped.set()
        self.stderr = _HangingStderr(err, self._stopped) if hang else io.BytesIO(err)
        self.returncode = None if hang else returncode
        self.terminated = False
        FakePopen.instances.append(self)

    def poll(self):
        return self.returncode

    def wait(self):
        self._stopped.wait(5)
        return self.returncode

    def terminate(self):
        self.terminated = True
        self.returncode = -15
        self._stopped.set()


@pytest.fixture
def fake_popen(monkeypatch):
    """Patch Popen in ffutil; call the fixture with (out, err, returncode, hang)."""
    FakePopen.instances = []

    def install(out: bytes = b"", err: bytes = b"", returncode: int = 0, hang: bool = False):
        def factory(cmd, **kwargs):
            return FakePopen(cmd, out=out, err=err, returncode=returncode, hang=hang, **kwargs)
        monkeypatch.setattr("bleepforge.ffutil.subprocess.Popen", factory)
        return FakePopen.instances

    return install
