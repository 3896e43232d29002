import os
import struct
import wave

import pytest

from conftest import pcm_bytes
from errors.slicer_errors import DestinationExists, SlicerIOError
from ot_format import OT_SIZE, parse_ot_bytes
from slicer import ChainOptions, Slicer
from validator_audio import read_wav_payload


@pytest.fixture
def three_files(make_wav):
    return [
        make_wav("one.wav", 1000, seed=1),
        make_wav("two.wav", 500, seed=2),
        make_wav("three.wav", 2000, seed=3),
    ]


def test_three_file_chain(three_files, out_dir):
    with Slicer(out_dir, "chain") as s:
        s.add_files(three_files)
        result = s.generate_ot_file()

    assert result.slice_count == 3
    assert result.total_frames == 3500

    data = (out_dir / "chain.ot").read_bytes()
    assert len(data) == OT_SIZE
    ot = parse_ot_bytes(data)

    assert ot["slice_count"] == 3
    assert ot["table"][:3] == [(0, 1000, 0), (1000, 1500, 1000), (1500, 3500, 1500)]
    assert ot["table"][3:] == [(0, 0, 0)] * 61
    assert ot["trim_end"] == 3500

    with wave.open(str(out_dir / "chain.wav"), "rb") as wf:
        assert wf.getnframes() == 3500
        assert wf.getnchannels() == 1
        assert wf.getsampwidth() == 2
        assert wf.getframerate() == 44100


def test_wav_header_sizes_match_payload(three_files, out_dir):
    with Slicer(out_dir, "chain") as s:
        s.add_files(three_files)
        s.generate_ot_file()

    raw = (out_dir / "chain.wav").read_bytes()
    assert raw[:4] == b"RIFF" and raw[8:12] == b"WAVE"
    assert struct.unpack("<I", raw[4:8])[0] == len(raw) - 8
    data_at = raw.index(b"data")
    assert struct.unpack("<I", raw[data_at + 4:data_at + 8])[0] == 3500 * 2


def test_ot_big_endian_header_fields(three_files, out_dir):
    with Slicer(out_dir, "chain") as s:
        s.add_files(three_files)
        s.generate_ot_file(ChainOptions(tempo=120))

    data = (out_dir / "chain.ot").read_bytes()
    assert data[:4] == b"FORM"
    assert data[8:16] == b"DPS1SMPA"
    assert struct.unpack_from(">I", data, 0x17)[0] == 120 * 24
    assert struct.unpack_from(">H", data, 0x2B)[0] == 48
    assert data[0x2D] == 0xFF
    assert struct.unpack_from(">III", data, 0x3A + 12)[0:2] == (1000, 1500)
    assert struct.unpack_from(">I", data, 0x33A)[0] == 3
    assert struct.unpack_from(">H", data, 0x33E)[0] == sum(data[0x10:0x33E]) & 0xFFFF


def test_existing_destination_is_kept(three_files, out_dir):
    (out_dir / "chain.wav").write_bytes(b"old wav")
    (out_dir / "chain.ot").write_bytes(b"old ot")

    s = Slicer(out_dir, "chain")
    s.add_files(three_files)
    with pytest.raises(DestinationExists):
        s.generate_ot_file(ChainOptions(overwrite_existing=False))

    assert (out_dir / "chain.wav").read_bytes() == b"old wav"
    assert (out_dir / "chain.ot").read_bytes() == b"old ot"
    assert not s.finalized

    # Same Slicer can retry once the caller allows overwriting
    result = s.generate_ot_file(ChainOptions(overwrite_existing=True))
    assert result.total_frames == 3500
    assert len((out_dir / "chain.ot").read_bytes()) == OT_SIZE


def test_only_final_artifacts_remain(three_files, out_dir):
    with Slicer(out_dir, "chain") as s:
        s.add_files(three_files)
        s.generate_ot_file()

    assert sorted(p.name for p in out_dir.iterdir()) == ["chain.ot", "chain.wav"]


def test_output_folder_is_created(make_wav, tmp_path):
    target = tmp_path / "nested" / "kits"
    with Slicer(target, "k") as s:
        s.add_file(make_wav("a.wav", 10))
        s.generate_ot_file()
    assert (target / "k.wav").exists()
    assert (target / "k.ot").exists()


def test_evenly_spaced_grid(make_wav, out_dir):
    lengths = [100, 300, 200]
    paths = [make_wav(f"{i}.wav", n, seed=i) for i, n in enumerate(lengths)]

    with Slicer(out_dir, "grid") as s:
        s.add_files(paths)
        result = s.generate_ot_file(ChainOptions(evenly_spaced=True))

    assert [sl.as_entry() for sl in result.slices] == [
        (0, 100, 0), (300, 600, 300), (600, 800, 600),
    ]
    assert result.total_frames == 900

    payload = read_wav_payload(out_dir / "grid.wav")
    assert len(payload) == 900 * 2
    assert payload[:200] == pcm_bytes(100, seed=0)
    assert payload[200:600] == bytes(400)
    assert payload[600:1200] == pcm_bytes(300, seed=1)
    assert payload[1200:1600] == pcm_bytes(200, seed=2)
    assert payload[1600:] == bytes(200)

    ot = parse_ot_bytes((out_dir / "grid.ot").read_bytes())
    assert ot["trim_end"] == 900


def _failing_replace(monkeypatch, fail_on):
    """Make the first rename onto a name ending with ``fail_on`` raise."""
    import slicer

    real_replace = os.replace
    failed = []

    def fake_replace(src, dst):
        if str(dst).endswith(fail_on) and not failed:
            failed.append(dst)
            raise OSError(5, "Input/output error", str(dst))
        return real_replace(src, dst)

    monkeypatch.setattr(slicer.os, "replace", fake_replace)
    return failed


def _visible(folder):
    return sorted(p.name for p in folder.iterdir() if not p.name.startswith("."))


def _hidden(folder):
    return sorted(p.name for p in folder.iterdir() if p.name.startswith(".") and p.suffix != ".pcm")


def _build_pair(paths, out_dir):
    with Slicer(out_dir, "chain") as s:
        s.add_files(paths)
        s.generate_ot_file()
    return (out_dir / "chain.wav").read_bytes(), (out_dir / "chain.ot").read_bytes()


@pytest.mark.parametrize("fail_on", ["chain.wav", "chain.ot"])
def test_failed_rename_keeps_previous_pair(three_files, out_dir, monkeypatch, fail_on):
    old_wav, old_ot = _build_pair(three_files[:1], out_dir)
    failed = _failing_replace(monkeypatch, fail_on)

    s = Slicer(out_dir, "chain")
    s.add_files(three_files)
    with pytest.raises(SlicerIOError):
        s.generate_ot_file(ChainOptions(overwrite_existing=True))
    assert failed

    assert _visible(out_dir) == ["chain.ot", "chain.wav"]
    assert (out_dir / "chain.wav").read_bytes() == old_wav
    assert (out_dir / "chain.ot").read_bytes() == old_ot
    assert _hidden(out_dir) == []
    assert not s.finalized
    s.close()


@pytest.mark.parametrize("fail_on", ["chain.wav", "chain.ot"])
def test_failed_rename_without_previous_pair_leaves_nothing(three_files, out_dir, monkeypatch, fail_on):
    failed = _failing_replace(monkeypatch, fail_on)

    with Slicer(out_dir, "chain") as s:
        s.add_files(three_files)
        with pytest.raises(SlicerIOError):
            s.generate_ot_file()
        assert failed

    assert list(out_dir.iterdir()) == []


def test_retry_after_failed_rename(three_files, out_dir, monkeypatch):
    failed = _failing_replace(monkeypatch, "chain.ot")

    with Slicer(out_dir, "chain") as s:
        s.add_files(three_files)
        with pytest.raises(SlicerIOError):
            s.generate_ot_file()
        assert failed

        monkeypatch.undo()
        result = s.generate_ot_file()

    assert result.total_frames == 3500
    assert _visible(out_dir) == ["chain.ot", "chain.wav"]
