#!/usr/bin/env python3
"""
slicer.py — Octatrack sample-chain builder

A Slicer concatenates mono 16-bit WAV files into one stream and writes the
matching .ot slice table next to it:

    with Slicer("out", "drums") as s:
        for path in paths:
            s.add_file(path)
        result = s.generate_ot_file(ChainOptions(overwrite_existing=True))

Payloads accumulate headerless in a hidden scratch file inside the output
folder. The WAV header is synthesized once, at finalize, when the total
length is known. Both artifacts are written to temporary siblings and renamed
into place, .wav first and .ot second; if the second rename fails the previous
.wav is restored, so the folder never holds a mismatched pair.
"""

from __future__ import annotations

import os
import time
import uuid
import wave
from pathlib import Path
from typing import BinaryIO, Iterable, Iterator, List, Optional, Tuple

from pydantic import BaseModel, Field, model_validator

from config import (
    OUTPUT_DIR,
    MAX_SLICES,
    DEFAULT_TEMPO,
    DEFAULT_GAIN,
    DEFAULT_QUANTIZE,
    COPY_CHUNK_FRAMES,
)
from errors.slicer_errors import (
    SlicerError,
    CapacityExceeded,
    EmptyInputError,
    DestinationExists,
    SlicerFinalizedError,
    SlicerIOError,
)
from naming_contract import (
    validate_output_filename,
    build_wav_filename,
    build_ot_filename,
    build_scratch_filename,
    build_temp_filename,
)
from observability.logging_utils import log_event, log_error, log_timing
from ot_format import build_ot_bytes
from wav_appender import PcmFormat, WavAppender

_SCOPE = "slicer"


# ────────────────────────────────────────────────
# Models
# ────────────────────────────────────────────────

class Slice(BaseModel):
    """One source file's ``[start_frame, end_frame)`` region of the chain."""

    start_frame: int = Field(ge=0)
    end_frame: int
    loop_point: Optional[int] = None
    source: Optional[str] = None

    @model_validator(mode="after")
    def _check_bounds(self) -> "Slice":
        if self.end_frame <= self.start_frame:
            raise ValueError("end_frame must be greater than start_frame")
        if self.loop_point is None:
            self.loop_point = self.start_frame
        elif not self.start_frame <= self.loop_point < self.end_frame:
            raise ValueError("loop_point must lie inside the slice")
        return self

    @property
    def length(self) -> int:
        return self.end_frame - self.start_frame

    def as_entry(self) -> Tuple[int, int, int]:
        return (self.start_frame, self.end_frame, self.loop_point)


class ChainOptions(BaseModel):
    overwrite_existing: bool = False
    tempo: float = Field(DEFAULT_TEMPO, gt=0, le=999)
    gain: int = Field(DEFAULT_GAIN, ge=0, le=0xFFFF)
    quantize: int = Field(DEFAULT_QUANTIZE, ge=0, le=0xFF)
    # Pad every slice with silence to the longest slice's length
    evenly_spaced: bool = False


class ChainResult(BaseModel):
    wav_path: str
    ot_path: str
    slice_count: int
    total_frames: int
    sample_rate: int
    tempo: float
    slices: List[Slice]


# ────────────────────────────────────────────────
# Slicer
# ────────────────────────────────────────────────

class Slicer:
    """Builds one .wav/.ot pair. Not reusable after ``generate_ot_file``."""

    def __init__(self, output_folder: str | Path = OUTPUT_DIR, output_filename: str = "output") -> None:
        self.output_folder = Path(output_folder)
        self.output_filename = validate_output_filename(output_filename)

        self.slices: List[Slice] = []
        self.total_frames = 0
        self.sample_rate: Optional[int] = None
        self.bit_depth: Optional[int] = None
        self.channel_count: Optional[int] = None
        self.finalized = False
        self._closed = False

        self._token = uuid.uuid4().hex[:12]
        self._stream: Optional[BinaryIO] = None
        self._appender: Optional[WavAppender] = None

    # -- paths -------------------------------------------------------------

    @property
    def wav_path(self) -> Path:
        return self.output_folder / build_wav_filename(self.output_filename)

    @property
    def ot_path(self) -> Path:
        return self.output_folder / build_ot_filename(self.output_filename)

    @property
    def scratch_path(self) -> Path:
        return self.output_folder / build_scratch_filename(self.output_filename, self._token)

    def _temp_path(self, final: Path) -> Path:
        return final.with_name(build_temp_filename(final.name, self._token))

    @property
    def pinned_format(self) -> Optional[PcmFormat]:
        if self.sample_rate is None:
            return None
        return PcmFormat(self.sample_rate, self.bit_depth, self.channel_count)

    @property
    def stream_size(self) -> int:
        """Bytes currently held by the scratch stream."""
        if self._stream is None:
            return 0
        return self._stream.seek(0, os.SEEK_END)

    # -- resource handling -------------------------------------------------

    def __enter__(self) -> "Slicer":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __del__(self) -> None:
        if getattr(self, "_stream", None) is not None:
            self._release()

    def _open_stream(self) -> None:
        try:
            self.output_folder.mkdir(parents=True, exist_ok=True)
            self._stream = open(self.scratch_path, "w+b")
        except OSError as exc:
            raise SlicerIOError(f"Cannot open scratch stream in {self.output_folder}: {exc}", cause=exc) from exc
        self._appender = WavAppender(self._stream)

    def close(self) -> None:
        """Release the scratch stream and delete the scratch file; the Slicer is unusable afterwards."""
        self._closed = True
        self._release()

    def _release(self) -> None:
        stream, self._stream, self._appender = self._stream, None, None
        if stream is None:
            return
        stream.close()
        self.scratch_path.unlink(missing_ok=True)

    def _require_open(self) -> None:
        if self.finalized:
            raise SlicerFinalizedError(
                f"Slicer for '{self.output_filename}' was already finalized"
            )
        if self._closed:
            raise SlicerFinalizedError(
                f"Slicer for '{self.output_filename}' was closed"
            )

    # -- ingestion ---------------------------------------------------------

    def add_file(self, path: str | Path) -> Slice:
        """Append one WAV file to the chain and record its slice."""

        self._require_open()

        if len(self.slices) >= MAX_SLICES:
            log_error(
                "slice table full",
                scope=_SCOPE, action="add_file", path=str(path), max_slices=MAX_SLICES,
            )
            raise CapacityExceeded(f"No more slice slots available (max {MAX_SLICES})")

        opened_here = self._stream is None
        accepted = False
        try:
            if opened_here:
                self._open_stream()
            start, end = self._appender.append(path)
            accepted = True
        except SlicerError as exc:
            log_error(
                str(exc),
                scope=_SCOPE, action="add_file", path=str(path),
                error=type(exc).__name__, reason=getattr(exc, "reason", None),
            )
            raise
        finally:
            # A first file that is rejected leaves no scratch file behind
            if opened_here and not accepted:
                self._release()

        new_slice = Slice(start_frame=start, end_frame=end, source=str(path))
        self.slices.append(new_slice)
        self.total_frames = end

        if self.sample_rate is None:
            pinned = self._appender.pinned
            self.sample_rate = pinned.sample_rate
            self.bit_depth = pinned.bit_depth
            self.channel_count = pinned.channel_count

        log_event(
            "DEBUG",
            f"added {Path(path).name}",
            scope=_SCOPE, action="add_file",
            slice_index=len(self.slices) - 1, start_frame=start, end_frame=end,
        )
        return new_slice

    def add_files(self, paths: Iterable[str | Path]) -> List[Slice]:
        """Add files in order; the first failure propagates."""
        return [self.add_file(p) for p in paths]

    # -- finalize ----------------------------------------------------------

    def _layout(self, evenly_spaced: bool) -> Tuple[List[Slice], int]:
        if not evenly_spaced:
            return list(self.slices), self.total_frames

        grid = max(s.length for s in self.slices)
        placed = []
        for i, s in enumerate(self.slices):
            start = i * grid
            placed.append(Slice(
                start_frame=start,
                end_frame=start + s.length,
                loop_point=start + (s.loop_point - s.start_frame),
                source=s.source,
            ))
        return placed, grid * len(self.slices)

    def _iter_payload(self, layout: List[Slice], frames_out: int) -> Iterator[bytes]:
        frame_bytes = self.pinned_format.frame_bytes
        chunk = COPY_CHUNK_FRAMES * frame_bytes
        stream = self._stream
        stream.seek(0)

        if frames_out == self.total_frames:
            while True:
                block = stream.read(chunk)
                if not block:
                    break
                yield block
            return

        grid = frames_out // len(layout)
        for original in self.slices:
            remaining = original.length * frame_bytes
            stream.seek(original.start_frame * frame_bytes)
            while remaining:
                block = stream.read(min(chunk, remaining))
                if not block:
                    raise SlicerIOError("Scratch stream ended before the recorded slice end")
                remaining -= len(block)
                yield block
            yield bytes((grid - original.length) * frame_bytes)

    def _write_wav(self, target: Path, layout: List[Slice], frames_out: int) -> None:
        with wave.open(str(target), "wb") as wf:
            wf.setnchannels(self.channel_count)
            wf.setsampwidth(self.bit_depth // 8)
            wf.setframerate(self.sample_rate)
            # Known length up front: the header is written once, never patched
            wf.setnframes(frames_out)
            for block in self._iter_payload(layout, frames_out):
                wf.writeframesraw(block)

    def _install(self, tmp_wav: Path, tmp_ot: Path) -> None:
        wav_path, ot_path = self.wav_path, self.ot_path
        backup = None
        if wav_path.exists():
            backup = self._temp_path(wav_path.with_name(wav_path.name + ".bak"))
            os.replace(wav_path, backup)

        # From here on any failure puts the previous .wav back (or removes the new one)
        try:
            os.replace(tmp_wav, wav_path)
            os.replace(tmp_ot, ot_path)
        except OSError:
            if backup is not None:
                os.replace(backup, wav_path)
            else:
                wav_path.unlink(missing_ok=True)
            raise

        if backup is not None:
            backup.unlink(missing_ok=True)

    def generate_ot_file(self, options: Optional[ChainOptions] = None) -> ChainResult:
        """Write ``<name>.wav`` and ``<name>.ot`` and finalize the Slicer."""

        self._require_open()
        options = options or ChainOptions()
        t0 = time.time()

        if not self.slices:
            log_error("no slices to write", scope=_SCOPE, action="generate_ot_file")
            raise EmptyInputError("Cannot generate an .ot file without any slices")

        if not options.overwrite_existing:
            existing = [str(p) for p in (self.wav_path, self.ot_path) if p.exists()]
            if existing:
                log_error(
                    "destination exists",
                    scope=_SCOPE, action="generate_ot_file", existing=existing,
                )
                raise DestinationExists(f"Output already exists: {', '.join(existing)}")

        layout, frames_out = self._layout(options.evenly_spaced)
        ot_bytes = build_ot_bytes(
            [s.as_entry() for s in layout],
            frames_out,
            self.sample_rate,
            tempo=options.tempo,
            gain=options.gain,
            quantize=options.quantize,
        )

        tmp_wav = self._temp_path(self.wav_path)
        tmp_ot = self._temp_path(self.ot_path)
        try:
            self._write_wav(tmp_wav, layout, frames_out)
            tmp_ot.write_bytes(ot_bytes)
            self._install(tmp_wav, tmp_ot)
        except OSError as exc:
            log_error(
                f"could not write outputs: {exc}",
                scope=_SCOPE, action="generate_ot_file", folder=str(self.output_folder),
            )
            raise SlicerIOError(f"Could not write sample chain: {exc}", cause=exc) from exc
        finally:
            tmp_wav.unlink(missing_ok=True)
            tmp_ot.unlink(missing_ok=True)

        self.finalized = True
        self.close()

        log_timing(
            _SCOPE, "generate_ot_file", t0,
            wav=str(self.wav_path), ot=str(self.ot_path),
            slice_count=len(layout), total_frames=frames_out,
        )

        return ChainResult(
            wav_path=str(self.wav_path),
            ot_path=str(self.ot_path),
            slice_count=len(layout),
            total_frames=frames_out,
            sample_rate=self.sample_rate,
            tempo=options.tempo,
            slices=layout,
        )

    # -- diagnostics -------------------------------------------------------

    def to_dict(self) -> dict:
        fmt = self.pinned_format
        return {
            "output_folder": str(self.output_folder),
            "output_filename": self.output_filename,
            "slice_count": len(self.slices),
            "total_frames": self.total_frames,
            "format": fmt._asdict() if fmt else None,
            "finalized": self.finalized,
            "slices": [s.model_dump() for s in self.slices],
        }


__all__ = ["Slice", "ChainOptions", "ChainResult", "Slicer"]
