# src/mchitmatch/config/load.py
from __future__ import annotations
from pathlib import Path
from typing import Any, Dict
import json

from .schemas import Config

try:
    import tomllib  # py311+
except ModuleNotFoundError:  # pragma: no cover
    import tomli as tomllib  # py<=310

def _resolve_against(base: Path, raw: str) -> str:
    if not raw:
        return raw
    p = Path(raw)
    if not p.is_absolute():
        p = (base / p).resolve()
    return str(p)

def load_config(path: str | Path, *, resolve_paths: bool = True) -> Config:
    """
    Parse a TOML config into a Config.

    Relative [io] input_path/output_path are taken relative to the config
    file's directory, so a config can sit next to its data.
    """
    p = Path(path)
    data: Dict[str, Any] = tomllib.loads(p.read_text())
    cfg = Config(**data)
    if resolve_paths:
        base = p.parent
        cfg.io.input_path = _resolve_against(base, cfg.io.input_path)
        cfg.io.output_path = _resolve_against(base, cfg.io.output_path)
    return cfg

def snapshot_config_toml(path: str | Path | None) -> str:
    """Return the raw TOML text for embedding in HDF5 metadata ('' if no file)."""
    if path is None:
        return ""
    return Path(path).read_text()

def json_dumps(obj) -> str:
    return json.dumps(obj, separators=(",", ":"), ensure_ascii=False, default=str)
