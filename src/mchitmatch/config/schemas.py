from __future__ import annotations
from pydantic import BaseModel, Field, field_validator
from typing import Literal, Optional, Dict, Any

class RunCfg(BaseModel):
    """
    Global run controls.
    """

    # Truth-particle lookup: "linear" memoized scan, or "table" built once per event
    resolver: Literal["linear", "table"] = "linear"

    # Limits
    max_events: Optional[int] = None

    # Diagnostics
    diagnostics_level: int = 1  # 0=off, 1=minimal, 2=verbose

    @field_validator("diagnostics_level")
    def _diag_range(cls, v: int) -> int:
        if v not in (0, 1, 2):
            raise ValueError("diagnostics_level must be 0, 1, or 2")
        return v

    @field_validator("max_events")
    def _max_events_positive(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v < 0:
            raise ValueError("max_events must be >= 0")
        return v

class IOCfg(BaseModel):
    """
    I/O paths and the names of the upstream collections to read.

    TOML:

    [io]
    input_path     = "..."
    output_path    = "..."
    hit_label      = "gaushit"    # hit collection (and its backtracked deposits)
    particle_label = "largeant"   # truth particle collection

    [io.adapter]
    type = "hdf5"                  # "hdf5" | "jsonl" | "synth"
    """

    input_path: str = ""
    output_path: str
    hit_label: str = "gaushit"
    particle_label: str = "largeant"

    # Adapter-specific sub-config, e.g. [io.adapter]
    adapter: Dict[str, Any] = Field(default_factory=lambda: {"type": "hdf5"})

class VisCfg(BaseModel):
    export_png_on_write: bool = False
    bins: int = 50


class Config(BaseModel):
    """
    Top-level TOML configuration.
    """

    run: RunCfg = Field(default_factory=RunCfg)
    io: IOCfg
    vis: VisCfg = Field(default_factory=VisCfg)
