"""
wav_appender.py — validated PCM payload ingestion

Reads one candidate WAV, checks it against the chain contract
(mono · 16-bit · integer PCM · same format as the first file) and appends its
raw little-endian payload to the Slicer's headerless scratch stream.

Nothing is written until the whole file has been decoded and validated, and a
failed write is rolled back, so a rejected file never changes the stream.
"""

from __future__ import annotations

import io
import os
import struct
from pathlib import Path
from typing import BinaryIO, NamedTuple, Optional, Tuple

import numpy as np
import soundfile as sf

from config import REQUIRED_CHANNELS, REQUIRED_BIT_DEPTH
from errors.slicer_errors import (
    MalformedFileError,
    UnsupportedChannelLayoutError,
    UnsupportedBitDepthError,
    InconsistentFormatError,
    SlicerIOError,
)

_WAV_FORMATS = {"WAV", "WAVEX"}
_CHUNK_HEADER = struct.Struct("<4sI")

# Integer PCM subtypes libsndfile reports for WAV, with their bit depth
_PCM_BITS = {
    "PCM_U8": 8,
    "PCM_S8": 8,
    "PCM_16": 16,
    "PCM_24": 24,
    "PCM_32": 32,
}


class PcmFormat(NamedTuple):
    sample_rate: int
    bit_depth: int
    channel_count: int

    @property
    def frame_bytes(self) -> int:
        return self.bit_depth // 8 * self.channel_count

    def describe(self) -> str:
        return f"{self.sample_rate} Hz · {self.bit_depth}-bit · {self.channel_count} ch"


# ────────────────────────────────────────────────
# Decoding
# ────────────────────────────────────────────────

def _read_source(path: Path) -> bytes:
    try:
        return path.read_bytes()
    except OSError as exc:
        raise SlicerIOError(f"Cannot read {path}: {exc}", cause=exc) from exc


def _data_chunk_size(data: bytes, path: Path) -> int:
    """Walk the RIFF chunk list and return the declared ``data`` chunk size.

    libsndfile quietly shortens a truncated ``data`` chunk to the bytes that
    are present, so the declared size is checked against the file here.
    """

    offset = 12
    while offset + _CHUNK_HEADER.size <= len(data):
        chunk_id, size = _CHUNK_HEADER.unpack_from(data, offset)
        body = offset + _CHUNK_HEADER.size
        if chunk_id == b"data":
            present = len(data) - body
            if size > present:
                raise MalformedFileError(
                    f"{path.name}: data chunk is truncated ({present} of {size} bytes present)",
                    str(path),
                )
            return size
        offset = body + size + (size & 1)
    raise MalformedFileError(f"{path.name} has no data chunk", str(path))


def probe_pcm_format(path: str | Path, data: Optional[bytes] = None) -> Tuple[PcmFormat, int]:
    """Return the file's (format, frame count) after the Malformed checks."""

    path = Path(path)
    if data is None:
        data = _read_source(path)

    try:
        info = sf.info(io.BytesIO(data))
    except RuntimeError as exc:
        # libsndfile raises LibsndfileError (a RuntimeError) on unparseable input
        raise MalformedFileError(f"Invalid WAV file {path.name}: {exc}", str(path)) from exc

    if info.format not in _WAV_FORMATS:
        raise MalformedFileError(f"{path.name} is not a WAV container ({info.format})", str(path))

    bits = _PCM_BITS.get(info.subtype)
    if bits is None:
        raise MalformedFileError(
            f"{path.name} is not integer PCM ({info.subtype})", str(path)
        )

    fmt = PcmFormat(int(info.samplerate), bits, int(info.channels))
    size = _data_chunk_size(data, path)
    if size % fmt.frame_bytes:
        raise MalformedFileError(
            f"{path.name}: data chunk of {size} bytes is not a whole number of frames",
            str(path),
        )

    if info.frames <= 0 or size == 0:
        raise MalformedFileError(f"{path.name} has an empty data chunk", str(path))

    return fmt, size // fmt.frame_bytes


def check_contract(fmt: PcmFormat, path: str | Path, pinned: Optional[PcmFormat] = None) -> None:
    """Channel, bit depth and pinned-format checks, in that order."""

    name = Path(path).name
    if fmt.channel_count != REQUIRED_CHANNELS:
        raise UnsupportedChannelLayoutError(
            f"{name} has {fmt.channel_count} channels; only mono is supported", str(path)
        )
    if fmt.bit_depth != REQUIRED_BIT_DEPTH:
        raise UnsupportedBitDepthError(
            f"{name} is {fmt.bit_depth}-bit; only 16-bit PCM is supported", str(path)
        )
    if pinned is not None and fmt != pinned:
        raise InconsistentFormatError(
            f"Format mismatch in {name}: {fmt.describe()} ≠ {pinned.describe()}", str(path)
        )


def read_pcm_payload(path: str | Path, pinned: Optional[PcmFormat] = None) -> Tuple[PcmFormat, bytes]:
    """Validate ``path`` and return its format plus raw little-endian payload."""

    path = Path(path)
    data = _read_source(path)
    fmt, frames = probe_pcm_format(path, data)
    check_contract(fmt, path, pinned)

    try:
        samples, _ = sf.read(io.BytesIO(data), dtype="int16", always_2d=False)
    except RuntimeError as exc:
        raise MalformedFileError(f"Could not decode {path.name}: {exc}", str(path)) from exc

    payload = np.ascontiguousarray(samples, dtype="<i2").tobytes()
    if len(payload) != frames * fmt.frame_bytes:
        raise MalformedFileError(
            f"{path.name}: decoded {len(payload)} bytes, data chunk declares {frames * fmt.frame_bytes}",
            str(path),
        )
    return fmt, payload


# ────────────────────────────────────────────────
# Appender
# ────────────────────────────────────────────────

class WavAppender:
    """Appends validated payloads to a shared binary stream and tracks frames."""

    def __init__(
        self,
        stream: BinaryIO,
        pinned: Optional[PcmFormat] = None,
        frame_cursor: int = 0,
    ) -> None:
        self.stream = stream
        self.pinned = pinned
        self.frame_cursor = frame_cursor

    def append(self, path: str | Path) -> Tuple[int, int]:
        """Append one file's payload; return the ``[start, end)`` frames it occupies."""

        fmt, payload = read_pcm_payload(path, self.pinned)

        offset = self.stream.seek(0, os.SEEK_END)
        try:
            self.stream.write(payload)
            self.stream.flush()
        except OSError as exc:
            self.stream.seek(offset)
            self.stream.truncate()
            raise SlicerIOError(f"Could not append {Path(path).name}: {exc}", cause=exc) from exc

        start = self.frame_cursor
        end = start + len(payload) // fmt.frame_bytes
        self.frame_cursor = end
        if self.pinned is None:
            self.pinned = fmt
        return start, end


__all__ = [
    "PcmFormat",
    "WavAppender",
    "probe_pcm_format",
    "check_contract",
    "read_pcm_payload",
]
