#!/usr/bin/env python3
"""
CLI.py — Octachain command line

Commands:
• build    concatenate WAV files / folders into <name>.wav + <name>.ot
• inspect  dump an .ot file as JSON
• verify   check that a built .wav/.ot pair is mutually consistent

Every command prints JSON on stdout; errors go to stderr with exit status 1.
"""

import argparse
import json
import sys
from pathlib import Path
from typing import Any

from config import OUTPUT_DIR, DEFAULT_TEMPO
from errors.slicer_errors import SlicerError
from naming_contract import SORT_MODES, expand_inputs, slugify
from observability.logging_utils import init_logging
from ot_format import parse_ot_bytes
from slicer import ChainOptions, Slicer
from validator_audio import verify_chain


# ────────────────────────────────────────────────
# Helpers
# ────────────────────────────────────────────────

def _j(x: Any) -> None:
    print(json.dumps(x, indent=2, ensure_ascii=False))


def _fail(message: str) -> None:
    print(f"❌ {message}", file=sys.stderr)
    sys.exit(1)


def _default_name(inputs: list[str]) -> str:
    first = Path(inputs[0])
    return slugify(first.name if first.is_dir() else first.stem)


# ────────────────────────────────────────────────
# Commands
# ────────────────────────────────────────────────

def cmd_build(args: argparse.Namespace) -> None:
    files = expand_inputs(args.inputs, sort=args.sort)
    if not files:
        _fail("No .wav files found in the given inputs")

    name = args.name or _default_name(args.inputs)

    try:
        options = ChainOptions(
            overwrite_existing=args.overwrite,
            tempo=args.tempo,
            evenly_spaced=args.evenly_spaced,
        )
        with Slicer(args.output, name) as slicer:
            slicer.add_files(files)
            result = slicer.generate_ot_file(options)
    except (SlicerError, ValueError) as exc:
        _fail(f"{type(exc).__name__}: {exc}")

    _j(result.model_dump())


def cmd_inspect(args: argparse.Namespace) -> None:
    path = Path(args.path)
    try:
        data = parse_ot_bytes(path.read_bytes())
    except OSError as exc:
        _fail(f"Cannot read {path}: {exc}")
    except SlicerError as exc:
        _fail(f"{type(exc).__name__}: {exc}")

    if not args.full_table:
        data.pop("table")
    _j(data)


def cmd_verify(args: argparse.Namespace) -> None:
    try:
        report = verify_chain(args.folder, args.name, args.sources or None)
    except SlicerError as exc:
        _fail(f"{type(exc).__name__}: {exc}")

    _j(report)
    if not report["ok"]:
        sys.exit(1)


# ────────────────────────────────────────────────
# Parser
# ────────────────────────────────────────────────

def build() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="CLI.py",
        description="Octachain — Octatrack sample-chain builder",
    )

    sub = p.add_subparsers(dest="cmd", required=True)

    # ─ build ─
    b = sub.add_parser("build", help="concatenate WAVs and write the .ot slice table")
    b.add_argument("inputs", nargs="+", help="WAV files and/or folders, in slice order")
    b.add_argument("-o", "--output", type=Path, default=OUTPUT_DIR, help="output folder")
    b.add_argument("-n", "--name", help="base name for <name>.wav and <name>.ot")
    b.add_argument("--overwrite", action="store_true", help="replace existing outputs")
    b.add_argument("--tempo", type=float, default=DEFAULT_TEMPO)
    b.add_argument("--evenly-spaced", action="store_true", help="pad slices to equal length")
    b.add_argument("--sort", choices=SORT_MODES, default="name", help="order of files inside folders")
    b.set_defaults(func=cmd_build)

    # ─ inspect ─
    i = sub.add_parser("inspect", help="print an .ot file as JSON")
    i.add_argument("path")
    i.add_argument("--full-table", action="store_true", help="include unused slice entries")
    i.set_defaults(func=cmd_inspect)

    # ─ verify ─
    v = sub.add_parser("verify", help="check a built .wav/.ot pair")
    v.add_argument("folder")
    v.add_argument("name")
    v.add_argument("--sources", nargs="*", help="original files, to compare payloads")
    v.set_defaults(func=cmd_verify)

    return p


# ────────────────────────────────────────────────

def main(argv: list[str] | None = None) -> None:
    init_logging()
    parser = build()
    args = parser.parse_args(argv)
    args.func(args)


if __name__ == "__main__":
    main()
