"""Test configuration and fixtures"""

import struct
import tempfile
import wave
from pathlib import Path

import pytest
from PIL import Image

from lossless_mirror.core.exceptions import EncodingError
from lossless_mirror.encoding.base import Encoder


def write_wav(path: Path, frames: int = 441, sample_rate: int = 44100) -> Path:
    """Write a short silent 16-bit stereo WAV file"""
    path.parent.mkdir(parents=True, exist_ok=True)
    with wave.open(str(path), "wb") as wav:
        wav.setnchannels(2)
        wav.setsampwidth(2)
        wav.setframerate(sample_rate)
        wav.writeframes(b"\x00\x00" * 2 * frames)
    return path


def write_flac(path: Path, sample_rate: int = 44100) -> Path:
    """Write a FLAC file made of a STREAMINFO block only (no audio frames)"""
    path.parent.mkdir(parents=True, exist_ok=True)
    streaminfo = struct.pack(">HH", 4096, 4096)           # min/max block size
    streaminfo += b"\x00" * 6                               # min/max frame size
    streaminfo += struct.pack(
        ">Q", (sample_rate << 44) | (1 << 41) | (15 << 36)  # rate, 2 channels, 16 bits, 0 samples
    )
    streaminfo += b"\x00" * 16                              # MD5
    header = bytes([0x80]) + len(streaminfo).to_bytes(3, "big")  # last block, STREAMINFO
    path.write_bytes(b"fLaC" + header + streaminfo)
    return path


def _atom(name: bytes, payload: bytes) -> bytes:
    return struct.pack(">I", 8 + len(payload)) + name + payload


def write_m4a(path: Path, sample_rate: int = 44100) -> Path:
    """Write an MP4 container holding only a movie header (no tracks, no tags)"""
    path.parent.mkdir(parents=True, exist_ok=True)
    ftyp = _atom(b"ftyp", b"M4A " + struct.pack(">I", 0) + b"M4A mp42isom")
    mvhd = _atom(
        b"mvhd",
        b"\x00\x00\x00\x00"                                # version 0, flags
        + struct.pack(">IIII", 0, 0, sample_rate, 0)         # created, modified, timescale, duration
        + b"\x00" * 80                                       # rate, volume, matrix, next track id
    )
    path.write_bytes(ftyp + _atom(b"moov", mvhd))
    return path


def write_image(path: Path, fmt: str = "JPEG", size=(4, 3)) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    Image.new("RGB", size, "red").save(path, fmt)
    return path


class FakeEncoder(Encoder):
    """Encoder writing a placeholder file; fails for sources named in fail_on"""

    name = "fake"

    def __init__(self, fail_on=()):
        self.fail_on = set(fail_on)
        self.calls = []

    def encode(self, source, target, options):
        self.calls.append((source, target, options))
        self._prepare_target(target)
        if source.name in self.fail_on:
            raise EncodingError(f"ffmpeg exited with status 1: cannot decode {source.name}")
        target.write_bytes(b"encoded:" + source.read_bytes()[:16])


class FakeTagger:
    """Tagger recording calls; fails for files whose title is in fail_on"""

    def __init__(self, fail_on=(), error=None):
        self.fail_on = set(fail_on)
        self.error = error
        self.calls = []

    def tag(self, path, tags, audio_format, cover_path=None):
        self.calls.append((path, tags, audio_format, cover_path))
        if tags.title in self.fail_on:
            raise self.error


@pytest.fixture
def temp_dir():
    """Create temporary directory for tests"""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield Path(temp_dir)


@pytest.fixture
def library(temp_dir):
    """Source and destination roots with a small artist/album tree"""
    source = temp_dir / "wav"
    dest = temp_dir / "flac"
    album = source / "Pink Floyd" / "Animals"
    write_wav(album / "01 Pigs on the Wing.wav")
    write_wav(album / "02 Dogs.wav")
    write_wav(album / "03 Sheep.wav")
    write_image(album / "cover.jpg")
    (album / "notes.txt").write_text("liner notes")
    dest.mkdir()
    return source, dest


@pytest.fixture
def clean_env(temp_dir, monkeypatch):
    """Run from an empty directory with no user config and no LOSSLESS_MIRROR_* variables"""
    import os

    monkeypatch.chdir(temp_dir)
    monkeypatch.setattr(
        "lossless_mirror.core.config.USER_CONFIG_PATH", temp_dir / "no-such-config.yaml"
    )
    for name in list(os.environ):
        if name.startswith("LOSSLESS_MIRROR_"):
            monkeypatch.delenv(name)
    return temp_dir
