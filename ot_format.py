"""Octatrack .ot metadata layout.

An .ot file is a fixed 832-byte (0x340) big-endian record. The 64-entry slice
table is always written in full; ``slice_count`` records how many entries are
active and unused entries are zero-filled.

    0x000  "FORM" + u32 0 + "DPS1SMPA" + 00 00 00 00 00 02 00
    0x017  u32 tempo (bpm * 24)
    0x01B  u32 trim length          0x01F  u32 loop length
    0x023  u32 stretch              0x027  u32 loop mode
    0x02B  u16 gain                 0x02D  u8  quantize
    0x02E  u32 trim start           0x032  u32 trim end
    0x036  u32 loop point
    0x03A  64 x (u32 start, u32 end, u32 loop point)
    0x33A  u32 slice count
    0x33E  u16 checksum (byte sum of 0x010..0x33D, mod 2**16)
"""

from __future__ import annotations

import struct
from typing import Any, Dict, List, Sequence, Tuple

from config import MAX_SLICES, DEFAULT_TEMPO, DEFAULT_GAIN, DEFAULT_QUANTIZE
from errors.slicer_errors import OtFormatError

OT_SIZE = 0x340

HEADER = b"FORM\x00\x00\x00\x00DPS1SMPA\x00\x00\x00\x00\x00\x02\x00"

_ATTRS = struct.Struct(">IIIIIHBIII")
_SLICE = struct.Struct(">III")
_COUNT = struct.Struct(">I")
_CHECKSUM = struct.Struct(">H")

ATTRS_OFFSET = len(HEADER)                                # 0x017
SLICES_OFFSET = ATTRS_OFFSET + _ATTRS.size                # 0x03A
COUNT_OFFSET = SLICES_OFFSET + MAX_SLICES * _SLICE.size   # 0x33A
CHECKSUM_OFFSET = COUNT_OFFSET + _COUNT.size              # 0x33E
CHECKSUM_START = 0x10

if CHECKSUM_OFFSET + _CHECKSUM.size != OT_SIZE:
    raise OtFormatError(
        f".ot layout is {CHECKSUM_OFFSET + _CHECKSUM.size} bytes, expected {OT_SIZE} "
        f"(slice table sized for {MAX_SLICES} entries)"
    )

SliceEntry = Tuple[int, int, int]


def compute_checksum(data: bytes) -> int:
    return sum(data[CHECKSUM_START:CHECKSUM_OFFSET]) & 0xFFFF


def tempo_field(bpm: float) -> int:
    return int(round(bpm * 24))


def bar_length(bpm: float, total_frames: int, sample_rate: int) -> int:
    """Trim/loop length field, in the sampler's 1/25-bar units."""
    if sample_rate <= 0:
        return 0
    bars = bpm * total_frames / (sample_rate * 60) + 0.5
    return int(bars) * 25


def build_ot_bytes(
    slices: Sequence[SliceEntry],
    total_frames: int,
    sample_rate: int,
    *,
    tempo: float = DEFAULT_TEMPO,
    gain: int = DEFAULT_GAIN,
    quantize: int = DEFAULT_QUANTIZE,
) -> bytes:
    """Serialize a slice table into a complete .ot record."""

    if len(slices) > MAX_SLICES:
        raise OtFormatError(f"At most {MAX_SLICES} slices fit in an .ot file, got {len(slices)}")

    bars = bar_length(tempo, total_frames, sample_rate)

    buf = bytearray(OT_SIZE)
    buf[:ATTRS_OFFSET] = HEADER

    try:
        _ATTRS.pack_into(
            buf,
            ATTRS_OFFSET,
            tempo_field(tempo),
            bars,           # trim length
            bars,           # loop length
            0,              # stretch off
            0,              # loop off
            gain,
            quantize,
            0,              # trim start
            total_frames,   # trim end
            0,              # loop point
        )
        for i, (start, end, loop) in enumerate(slices):
            _SLICE.pack_into(buf, SLICES_OFFSET + i * _SLICE.size, start, end, loop)
        _COUNT.pack_into(buf, COUNT_OFFSET, len(slices))
    except struct.error as exc:
        raise OtFormatError(f"Value out of range for .ot field: {exc}") from exc

    _CHECKSUM.pack_into(buf, CHECKSUM_OFFSET, compute_checksum(buf))
    return bytes(buf)


def parse_ot_bytes(data: bytes) -> Dict[str, Any]:
    """Decode an .ot record; raises OtFormatError on size/magic/checksum mismatch."""

    if len(data) != OT_SIZE:
        raise OtFormatError(f"Expected {OT_SIZE} bytes, got {len(data)}")
    if data[:ATTRS_OFFSET] != HEADER:
        raise OtFormatError("Missing FORM/DPS1SMPA header")

    stored = _CHECKSUM.unpack_from(data, CHECKSUM_OFFSET)[0]
    expected = compute_checksum(data)
    if stored != expected:
        raise OtFormatError(f"Checksum mismatch: stored {stored:#06x}, computed {expected:#06x}")

    (tempo, trim_len, loop_len, stretch, loop, gain, quantize,
     trim_start, trim_end, loop_point) = _ATTRS.unpack_from(data, ATTRS_OFFSET)

    table: List[SliceEntry] = [
        _SLICE.unpack_from(data, SLICES_OFFSET + i * _SLICE.size)
        for i in range(MAX_SLICES)
    ]
    count = _COUNT.unpack_from(data, COUNT_OFFSET)[0]
    if count > MAX_SLICES:
        raise OtFormatError(f"Slice count {count} exceeds {MAX_SLICES}")

    return {
        "tempo": tempo / 24,
        "trim_len": trim_len,
        "loop_len": loop_len,
        "stretch": stretch,
        "loop": loop,
        "gain": gain,
        "quantize": quantize,
        "trim_start": trim_start,
        "trim_end": trim_end,
        "loop_point": loop_point,
        "slice_count": count,
        "slices": table[:count],
        "table": table,
        "checksum": stored,
    }


__all__ = [
    "OT_SIZE",
    "build_ot_bytes",
    "parse_ot_bytes",
    "compute_checksum",
    "tempo_field",
    "bar_length",
]
