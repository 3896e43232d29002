# tests/conftest.py
import sys
import wave
from pathlib import Path

# Import modules from the project root.
ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import pytest


def pcm_bytes(frames: int, channels: int = 1, sampwidth: int = 2, seed: int = 0) -> bytes:
    """Deterministic, non-silent payload so slices can be told apart."""
    n = frames * channels * sampwidth
    return bytes((i * 7 + seed * 31 + 1) % 256 for i in range(n))


def write_wav(path: Path, frames: int, *, rate: int = 44100, channels: int = 1,
              sampwidth: int = 2, seed: int = 0) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    with wave.open(str(path), "wb") as wf:
        wf.setnchannels(channels)
        wf.setsampwidth(sampwidth)
        wf.setframerate(rate)
        wf.writeframes(pcm_bytes(frames, channels, sampwidth, seed))
    return path


@pytest.fixture
def make_wav(tmp_path):
    """Factory: make_wav("kick.wav", 1000, rate=44100, channels=1, sampwidth=2)."""
    src = tmp_path / "src"

    def _make(name: str, frames: int, **kwargs) -> Path:
        return write_wav(src / name, frames, **kwargs)

    return _make


@pytest.fixture
def out_dir(tmp_path):
    d = tmp_path / "out"
    d.mkdir()
    return d


@pytest.fixture
def client():
    from fastapi.testclient import TestClient
    from fastapi_server import app
    return TestClient(app)
