"""
Configuration constants for Octachain.

v1.0 — Octatrack sample-chain builder
• Loads .env from the project root (python-dotenv)
• Centralizes the .ot / .wav output contract in one place
• All values are env-overridable; nothing here holds process state
"""

import os
from pathlib import Path
from dotenv import load_dotenv
from typing import Any, Dict

# ────────────────────────────────────────────────
# 🔧 Load .env from project root
# ────────────────────────────────────────────────

BASE_DIR = Path(__file__).resolve().parent
ENV_PATH = BASE_DIR / ".env"

if ENV_PATH.exists():
    load_dotenv(ENV_PATH)

# ────────────────────────────────────────────────
# 📁 Directories
# ────────────────────────────────────────────────

OUTPUT_DIR = Path(os.getenv("OCTACHAIN_OUTPUT_DIR", str(BASE_DIR / "output")))

# ────────────────────────────────────────────────
# 🎚️ Input contract (mono / 16-bit / integer PCM)
# ────────────────────────────────────────────────

REQUIRED_CHANNELS = 1
REQUIRED_BIT_DEPTH = 16

WAV_EXTENSION = ".wav"
OT_EXTENSION = ".ot"

# ────────────────────────────────────────────────
# 🧱 Octatrack .ot contract
# ────────────────────────────────────────────────

# The sampler reserves a 64-entry slice table regardless of fill.
MAX_SLICES = 64

DEFAULT_TEMPO = float(os.getenv("OCTACHAIN_DEFAULT_TEMPO", 124))
DEFAULT_GAIN = int(os.getenv("OCTACHAIN_DEFAULT_GAIN", 48))  # 48 == 0 dB
DEFAULT_QUANTIZE = 0xFF  # "direct"

# Frames copied per read when the payload is streamed into the final .wav
COPY_CHUNK_FRAMES = int(os.getenv("OCTACHAIN_COPY_CHUNK_FRAMES", 65536))

# ────────────────────────────────────────────────
# 📊 Logging / Debug / Server
# ────────────────────────────────────────────────

DEBUG = os.getenv("DEBUG", "false").lower() == "true"
PORT = int(os.getenv("PORT", "8000"))


def summarize_config() -> Dict[str, Any]:
    return {
        "env_path": str(ENV_PATH),
        "env_loaded": ENV_PATH.exists(),
        "output_dir": str(OUTPUT_DIR),
        "max_slices": MAX_SLICES,
        "default_tempo": DEFAULT_TEMPO,
        "default_gain": DEFAULT_GAIN,
        "copy_chunk_frames": COPY_CHUNK_FRAMES,
        "debug": DEBUG,
    }


if __name__ == "__main__":
    print("🔧 Config Loaded:")
    for k, v in summarize_config().items():
        print("•", k, "=", v)
