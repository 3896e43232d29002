"""Unified Octachain error hierarchy.

This module centralizes the exceptions raised while building a sample chain
so the Slicer, the CLI and the HTTP routes share one set of error semantics.
Each error is intentionally minimal and does not depend on any external
packages.
"""

from __future__ import annotations

from typing import Optional


class SlicerError(Exception):
    """Base class for all sample-chain errors."""


class FormatError(SlicerError):
    """Raised when a candidate WAV file cannot be ingested.

    ``reason`` is one of ``Malformed``, ``UnsupportedChannelLayout``,
    ``UnsupportedBitDepth`` or ``InconsistentFormat``.
    """

    reason = "Malformed"

    def __init__(self, message: str, path: Optional[str] = None) -> None:
        super().__init__(message)
        self.path = path


class MalformedFileError(FormatError):
    """Raised when a file is not a parseable integer-PCM WAV container."""

    reason = "Malformed"


class UnsupportedChannelLayoutError(FormatError):
    """Raised when a file is not mono."""

    reason = "UnsupportedChannelLayout"


class UnsupportedBitDepthError(FormatError):
    """Raised when a file is not 16-bit."""

    reason = "UnsupportedBitDepth"


class InconsistentFormatError(FormatError):
    """Raised when a file does not match the format pinned by the first file."""

    reason = "InconsistentFormat"


class CapacityExceeded(SlicerError):
    """Raised when the 64-entry slice table is already full."""


class EmptyInputError(SlicerError):
    """Raised when finalizing a chain that holds no slices."""


class DestinationExists(SlicerError):
    """Raised when an output artifact exists and overwriting is disabled."""


class SlicerFinalizedError(SlicerError):
    """Raised when a finalized Slicer is used again."""


class OtFormatError(SlicerError):
    """Raised when .ot bytes do not follow the sampler layout."""


class OutputValidationError(SlicerError):
    """Raised when a built .wav/.ot pair fails validation."""


class SlicerIOError(SlicerError):
    """Raised when reading a source or writing a destination fails."""

    def __init__(self, message: str, cause: Optional[BaseException] = None) -> None:
        super().__init__(message)
        self.cause = cause


__all__ = [
    "SlicerError",
    "FormatError",
    "MalformedFileError",
    "UnsupportedChannelLayoutError",
    "UnsupportedBitDepthError",
    "InconsistentFormatError",
    "CapacityExceeded",
    "EmptyInputError",
    "DestinationExists",
    "SlicerFinalizedError",
    "OtFormatError",
    "OutputValidationError",
    "SlicerIOError",
]
