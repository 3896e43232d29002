import pytest

from errors.slicer_errors import OtFormatError
from ot_format import (
    ATTRS_OFFSET,
    CHECKSUM_OFFSET,
    COUNT_OFFSET,
    OT_SIZE,
    SLICES_OFFSET,
    bar_length,
    build_ot_bytes,
    compute_checksum,
    parse_ot_bytes,
    tempo_field,
)


def test_record_has_fixed_size_regardless_of_fill():
    one = build_ot_bytes([(0, 10, 0)], 10, 44100)
    full = build_ot_bytes([(i * 10, i * 10 + 10, i * 10) for i in range(64)], 640, 44100)
    assert len(one) == len(full) == OT_SIZE == 832


def test_parse_reads_back_attributes():
    data = build_ot_bytes([(0, 10, 0), (10, 30, 12)], 30, 44100, tempo=90, gain=60, quantize=3)
    ot = parse_ot_bytes(data)

    assert ot["tempo"] == 90
    assert ot["gain"] == 60
    assert ot["quantize"] == 3
    assert ot["slices"] == [(0, 10, 0), (10, 30, 12)]
    assert ot["slice_count"] == 2
    assert ot["checksum"] == compute_checksum(data)


def test_corrupted_byte_fails_checksum():
    data = bytearray(build_ot_bytes([(0, 10, 0)], 10, 44100))
    data[0x40] ^= 0xFF
    with pytest.raises(OtFormatError, match="Checksum"):
        parse_ot_bytes(bytes(data))


def test_wrong_size_or_magic_rejected():
    data = build_ot_bytes([(0, 10, 0)], 10, 44100)
    with pytest.raises(OtFormatError):
        parse_ot_bytes(data[:-1])
    with pytest.raises(OtFormatError):
        parse_ot_bytes(b"XXXX" + data[4:])


def test_more_than_64_slices_rejected():
    with pytest.raises(OtFormatError):
        build_ot_bytes([(i, i + 1, i) for i in range(65)], 65, 44100)


def test_tempo_and_bar_fields():
    assert tempo_field(124) == 2976
    assert bar_length(120, 44100 * 2, 44100) == 100
    assert bar_length(124, 3500, 44100) == 0
    assert bar_length(120, 1000, 0) == 0


def test_layout_offsets():
    assert (ATTRS_OFFSET, SLICES_OFFSET, COUNT_OFFSET, CHECKSUM_OFFSET) == (0x17, 0x3A, 0x33A, 0x33E)
