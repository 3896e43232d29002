import os

import pytest

from naming_contract import (
    build_ot_filename,
    build_scratch_filename,
    build_wav_filename,
    discover_wav_files,
    expand_inputs,
    slugify,
    validate_output_filename,
)


def test_artifacts_share_base_name():
    assert build_wav_filename("kit") == "kit.wav"
    assert build_ot_filename("kit") == "kit.ot"


def test_scratch_name_is_hidden_and_unique():
    a, b = build_scratch_filename("kit"), build_scratch_filename("kit")
    assert a.startswith(".kit.") and a.endswith(".pcm")
    assert a != b


def test_validate_output_filename():
    assert validate_output_filename(" kit ") == "kit"
    for bad in ("", "a/b", "a\\b", ".."):
        with pytest.raises(ValueError):
            validate_output_filename(bad)


def test_slugify():
    assert slugify("Drum Kit #1") == "drum_kit_1"
    assert slugify("***") == "unnamed"


def test_discover_sorts_and_filters(tmp_path):
    for name in ("b.wav", "A.WAV", "c.txt", ".hidden.wav"):
        (tmp_path / name).write_bytes(b"")
    (tmp_path / "sub.wav").mkdir()

    assert [p.name for p in discover_wav_files(tmp_path)] == ["A.WAV", "b.wav"]


def test_discover_by_mtime(tmp_path):
    first, second = tmp_path / "z.wav", tmp_path / "a.wav"
    first.write_bytes(b"")
    second.write_bytes(b"")
    os.utime(first, (1_000, 1_000))
    os.utime(second, (2_000, 2_000))

    assert [p.name for p in discover_wav_files(tmp_path, sort="mtime")] == ["z.wav", "a.wav"]
    with pytest.raises(ValueError):
        discover_wav_files(tmp_path, sort="size")


def test_expand_inputs_keeps_explicit_order(tmp_path):
    folder = tmp_path / "kit"
    folder.mkdir()
    (folder / "2.wav").write_bytes(b"")
    (folder / "1.wav").write_bytes(b"")
    loose = tmp_path / "loose.wav"

    assert [p.name for p in expand_inputs([loose, folder])] == ["loose.wav", "1.wav", "2.wav"]
