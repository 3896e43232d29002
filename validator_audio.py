"""Strict validator for built .wav/.ot sample-chain pairs."""

from __future__ import annotations

import hashlib
import wave
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from config import REQUIRED_CHANNELS, REQUIRED_BIT_DEPTH
from errors.slicer_errors import OutputValidationError, OtFormatError, SlicerError
from naming_contract import build_wav_filename, build_ot_filename
from ot_format import parse_ot_bytes
from wav_appender import read_pcm_payload


# -------------------------------------------------------------------------
# WAV HEADER VALIDATION
# -------------------------------------------------------------------------

def validate_wav_header(path: str | Path) -> Dict[str, Any]:
    """Validate a chain WAV header and return its metadata."""

    file_path = Path(path)
    if not file_path.exists():
        raise OutputValidationError(f"File not found: {path}")

    try:
        with wave.open(str(file_path), "rb") as wf:
            channels = wf.getnchannels()
            sample_width = wf.getsampwidth()
            framerate = wf.getframerate()
            nframes = wf.getnframes()
    except (wave.Error, EOFError) as exc:
        raise OutputValidationError(f"Invalid WAV file: {exc}") from exc

    if channels != REQUIRED_CHANNELS:
        raise OutputValidationError(f"Channel count mismatch: expected mono, got {channels}")

    bit_depth = sample_width * 8
    if bit_depth != REQUIRED_BIT_DEPTH:
        raise OutputValidationError(f"Encoding must be 16-bit PCM, got {bit_depth}")

    return {
        "sample_rate": framerate,
        "channels": channels,
        "bit_depth": bit_depth,
        "num_frames": nframes,
        "duration_seconds": nframes / float(framerate) if framerate else 0.0,
    }


def read_wav_payload(path: str | Path) -> bytes:
    with wave.open(str(path), "rb") as wf:
        return wf.readframes(wf.getnframes())


# -------------------------------------------------------------------------
# PAIR VALIDATION
# -------------------------------------------------------------------------

def _check_table(slices: List[tuple], total_frames: int) -> List[str]:
    errors: List[str] = []
    cursor = 0
    for i, (start, end, loop) in enumerate(slices):
        if end <= start:
            errors.append(f"slice {i}: end {end} is not after start {start}")
        if start < cursor:
            errors.append(f"slice {i}: start {start} overlaps previous slice ending at {cursor}")
        if end > total_frames:
            errors.append(f"slice {i}: end {end} is past the audio end {total_frames}")
        if end > start and not start <= loop < end:
            errors.append(f"slice {i}: loop point {loop} outside [{start}, {end})")
        cursor = max(cursor, end)
    return errors


def verify_chain(
    folder: str | Path,
    name: str,
    sources: Optional[Iterable[str | Path]] = None,
) -> Dict[str, Any]:
    """Check that ``<name>.wav`` and ``<name>.ot`` describe each other.

    When ``sources`` is given, every slice's payload is also compared
    byte-for-byte with the corresponding source file.
    """

    folder = Path(folder)
    wav_path = folder / build_wav_filename(name)
    ot_path = folder / build_ot_filename(name)
    errors: List[str] = []

    header = validate_wav_header(wav_path)
    try:
        ot = parse_ot_bytes(ot_path.read_bytes())
    except FileNotFoundError as exc:
        raise OutputValidationError(f"File not found: {ot_path}") from exc
    except OtFormatError as exc:
        raise OutputValidationError(f"Invalid .ot file: {exc}") from exc

    total = header["num_frames"]
    if ot["trim_end"] != total:
        errors.append(f"trim_end {ot['trim_end']} ≠ audio length {total}")
    if ot["slice_count"] < 1:
        errors.append("slice table is empty")
    if any(entry != (0, 0, 0) for entry in ot["table"][ot["slice_count"]:]):
        errors.append("unused slice entries are not zero-filled")
    errors.extend(_check_table(ot["slices"], total))

    if sources is not None:
        sources = [Path(s) for s in sources]
        if len(sources) != ot["slice_count"]:
            errors.append(f"{len(sources)} sources for {ot['slice_count']} slices")
        else:
            payload = read_wav_payload(wav_path)
            frame_bytes = header["bit_depth"] // 8 * header["channels"]
            for i, (src, (start, end, _)) in enumerate(zip(sources, ot["slices"])):
                try:
                    _, expected = read_pcm_payload(src)
                except SlicerError as exc:
                    errors.append(f"slice {i}: cannot read source {src.name}: {exc}")
                    continue
                if payload[start * frame_bytes:end * frame_bytes] != expected:
                    errors.append(f"slice {i}: payload differs from {src.name}")

    return {
        "ok": not errors,
        "wav_path": str(wav_path),
        "ot_path": str(ot_path),
        "sample_rate": header["sample_rate"],
        "total_frames": total,
        "slice_count": ot["slice_count"],
        "tempo": ot["tempo"],
        "wav_sha256": compute_sha256(wav_path),
        "errors": errors,
    }


def assert_chain_valid(folder: str | Path, name: str, sources: Optional[Iterable[str | Path]] = None) -> Dict[str, Any]:
    report = verify_chain(folder, name, sources)
    if not report["ok"]:
        raise OutputValidationError("; ".join(report["errors"]))
    return report


# -------------------------------------------------------------------------
# HASHING
# -------------------------------------------------------------------------

def compute_sha256(path: str | Path) -> str:
    h = hashlib.sha256()
    file_path = Path(path)

    with file_path.open("rb") as f:
        for chunk in iter(lambda: f.read(8192), b""):
            h.update(chunk)

    return h.hexdigest()


__all__ = [
    "validate_wav_header",
    "read_wav_payload",
    "verify_chain",
    "assert_chain_valid",
    "compute_sha256",
]
