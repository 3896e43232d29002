"""Sample-chain routes: build, inspect and verify .wav/.ot pairs."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from config import OUTPUT_DIR, DEFAULT_TEMPO
from errors.slicer_errors import (
    SlicerError,
    FormatError,
    EmptyInputError,
    CapacityExceeded,
    DestinationExists,
    OtFormatError,
    OutputValidationError,
)
from naming_contract import expand_inputs
from ot_format import parse_ot_bytes
from security import require_chain_key
from slicer import ChainOptions, ChainResult, Slicer
from validator_audio import verify_chain

router = APIRouter(dependencies=[Depends(require_chain_key)])


# ============================================================
# Models
# ============================================================

class BuildRequest(BaseModel):
    inputs: List[str] = Field(min_length=1)
    output_filename: str
    output_folder: Optional[str] = None
    overwrite_existing: bool = False
    tempo: float = DEFAULT_TEMPO
    evenly_spaced: bool = False
    sort: str = "name"


def _status_for(exc: SlicerError) -> int:
    if isinstance(exc, (DestinationExists, CapacityExceeded)):
        return 409
    if isinstance(exc, (FormatError, EmptyInputError, OtFormatError, OutputValidationError)):
        return 400
    return 500


def _detail(exc: SlicerError) -> Dict[str, Any]:
    detail = {"error": type(exc).__name__, "message": str(exc)}
    reason = getattr(exc, "reason", None)
    if reason:
        detail["reason"] = reason
    return detail


# ============================================================
# POST /chain/build
# ============================================================

@router.post("/build", response_model=ChainResult)
def build_chain(req: BuildRequest):
    """
    Inputs (files or folders) → one Slicer → <name>.wav + <name>.ot
    """

    try:
        files = expand_inputs(req.inputs, sort=req.sort)
    except (OSError, ValueError) as e:
        raise HTTPException(400, f"Invalid inputs: {e}")

    if not files:
        raise HTTPException(400, "No .wav files found in inputs")

    try:
        options = ChainOptions(
            overwrite_existing=req.overwrite_existing,
            tempo=req.tempo,
            evenly_spaced=req.evenly_spaced,
        )
        with Slicer(req.output_folder or OUTPUT_DIR, req.output_filename) as slicer:
            slicer.add_files(files)
            return slicer.generate_ot_file(options)
    except ValueError as e:
        raise HTTPException(400, str(e))
    except SlicerError as e:
        raise HTTPException(_status_for(e), _detail(e))


# ============================================================
# GET /chain/inspect
# ============================================================

@router.get("/inspect")
def inspect_ot(path: str = Query(..., description="Path to an .ot file")):
    ot_path = Path(path)
    if not ot_path.is_file():
        raise HTTPException(404, f"File not found: {path}")

    try:
        data = parse_ot_bytes(ot_path.read_bytes())
    except OtFormatError as e:
        raise HTTPException(400, _detail(e))

    data.pop("table")
    return {"status": "ok", "path": str(ot_path), **data}


# ============================================================
# GET /chain/verify
# ============================================================

@router.get("/verify")
def verify_pair(folder: str, name: str):
    try:
        report = verify_chain(folder, name)
    except SlicerError as e:
        raise HTTPException(_status_for(e), _detail(e))

    return {"status": "ok" if report["ok"] else "invalid", **report}
