# src/mchitmatch/io/canonicalize.py
from __future__ import annotations
from typing import Dict, Any, Iterable, Mapping

_DEPOSIT_KEYS = {
    # canonical_key: tuple of fallback source keys
    "track_id": ("track_id", "trackID", "TrackId", "trkid", "tid"),
    "energy": ("energy", "E", "edep", "Edep_MeV", "dE"),
    "num_electrons": ("num_electrons", "numElectrons", "NumElectrons", "n_el", "electrons"),
}

_PARTICLE_KEYS = {
    "track_id": ("track_id", "trackID", "TrackId", "tid"),
    "pdg": ("pdg", "PdgCode", "pdg_code"),
    "mother": ("mother", "Mother", "parent_id"),
    "energy_GeV": ("energy_GeV", "E", "energy"),
    "process": ("process", "Process"),
}

_HIT_KEYS = {
    "channel": ("channel", "Channel", "ch"),
    "peak_time": ("peak_time", "PeakTime", "t"),
    "integral": ("integral", "Integral", "adc"),
}

def _first(h: Mapping[str, Any], names: Iterable[str], default=None):
    for k in names:
        if k in h:
            return h[k]
    return default

def _used(keymap: Dict[str, tuple]) -> set[str]:
    return {k for names in keymap.values() for k in names}

def canonical_deposit(d: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Map a deposit dict onto {track_id, energy, num_electrons}.
    A deposit without a track id is malformed and raises KeyError.
    """
    tid = _first(d, _DEPOSIT_KEYS["track_id"])
    if tid is None:
        raise KeyError(f"Deposit record has no track id field: {sorted(d)}")
    return {
        "track_id": int(tid),
        "energy": float(_first(d, _DEPOSIT_KEYS["energy"], 0.0)),
        "num_electrons": float(_first(d, _DEPOSIT_KEYS["num_electrons"], 0.0)),
    }

def canonical_particle(p: Mapping[str, Any]) -> Dict[str, Any]:
    tid = _first(p, _PARTICLE_KEYS["track_id"])
    if tid is None:
        raise KeyError(f"Particle record has no track id field: {sorted(p)}")
    return {
        "track_id": int(tid),
        "pdg": int(_first(p, _PARTICLE_KEYS["pdg"], 0)),
        "mother": int(_first(p, _PARTICLE_KEYS["mother"], 0)),
        "energy_GeV": float(_first(p, _PARTICLE_KEYS["energy_GeV"], 0.0)),
        "process": str(_first(p, _PARTICLE_KEYS["process"], "primary")),
        # preserve all other source fields as extras
        "__extras__": {k: v for k, v in p.items() if k not in _used(_PARTICLE_KEYS)},
    }

def canonical_hit(h: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Canonical hit dict. The 'deposits' list, if any, is canonicalized too and
    kept out of extras.
    """
    skip = _used(_HIT_KEYS) | {"deposits"}
    return {
        "channel": int(_first(h, _HIT_KEYS["channel"], -1)),
        "peak_time": float(_first(h, _HIT_KEYS["peak_time"], 0.0)),
        "integral": float(_first(h, _HIT_KEYS["integral"], 0.0)),
        "deposits": [canonical_deposit(d) for d in h.get("deposits", [])],
        "__extras__": {k: v for k, v in h.items() if k not in skip},
    }
