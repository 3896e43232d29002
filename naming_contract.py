"""Naming helpers for sample-chain outputs and their scratch files."""

from __future__ import annotations

import re
import uuid
from pathlib import Path
from typing import Final, Iterable, List

from config import WAV_EXTENSION, OT_EXTENSION

_SLUG_PATTERN: Final[re.Pattern[str]] = re.compile(r"[^a-z0-9]+")
_FORBIDDEN_NAME_CHARS: Final[re.Pattern[str]] = re.compile(r"[\\/\x00]")

SORT_MODES: Final[tuple] = ("name", "mtime")


# -------------------------------------------------
# Slug utilities
# -------------------------------------------------

def slugify(text: str) -> str:
    """Convert text to a filesystem-safe slug."""
    cleaned = text.strip().lower()
    cleaned = _SLUG_PATTERN.sub("_", cleaned)
    cleaned = cleaned.strip("_")
    return cleaned or "unnamed"


def validate_output_filename(name: str) -> str:
    """Ensure a base name is usable for both artifacts (no folders, no extension games)."""
    stripped = name.strip()
    if not stripped or stripped in (".", ".."):
        raise ValueError("Output filename must not be empty")
    if _FORBIDDEN_NAME_CHARS.search(stripped):
        raise ValueError(f"Output filename must not contain path separators: {name!r}")
    return stripped


# -------------------------------------------------
# Filename builders
# -------------------------------------------------

def build_wav_filename(name: str) -> str:
    return f"{name}{WAV_EXTENSION}"


def build_ot_filename(name: str) -> str:
    return f"{name}{OT_EXTENSION}"


def build_scratch_filename(name: str, token: str | None = None) -> str:
    """Hidden headerless payload file owned by one Slicer instance."""
    token = token or uuid.uuid4().hex[:12]
    return f".{name}.{token}.pcm"


def build_temp_filename(final_name: str, token: str) -> str:
    """Temporary sibling used before an atomic rename into ``final_name``."""
    return f".{final_name}.{token}.tmp"


# -------------------------------------------------
# Discovery
# -------------------------------------------------

def is_wav_file(path: Path) -> bool:
    return path.is_file() and path.suffix.lower() == WAV_EXTENSION and not path.name.startswith(".")


def discover_wav_files(folder: Path, sort: str = "name") -> List[Path]:
    """List the .wav files directly inside ``folder`` in a stable order."""
    if sort not in SORT_MODES:
        raise ValueError(f"Invalid sort mode '{sort}'. Allowed: {', '.join(SORT_MODES)}")

    files = [p for p in Path(folder).iterdir() if is_wav_file(p)]
    if sort == "mtime":
        return sorted(files, key=lambda p: (p.stat().st_mtime, p.name.lower()))
    return sorted(files, key=lambda p: p.name.lower())


def expand_inputs(inputs: Iterable[str | Path], sort: str = "name") -> List[Path]:
    """Expand directories to their .wav files; keep explicit files in the given order."""
    expanded: List[Path] = []
    for item in inputs:
        p = Path(item)
        if p.is_dir():
            expanded.extend(discover_wav_files(p, sort=sort))
        else:
            expanded.append(p)
    return expanded


__all__ = [
    "slugify",
    "validate_output_filename",
    "build_wav_filename",
    "build_ot_filename",
    "build_scratch_filename",
    "build_temp_filename",
    "is_wav_file",
    "discover_wav_files",
    "expand_inputs",
]
