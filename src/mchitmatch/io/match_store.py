# src/mchitmatch/io/match_store.py
from __future__ import annotations
from typing import Any, Dict, Optional
import h5py
import numpy as np
from datetime import datetime, timezone
from mchitmatch.config.schemas import Config
from mchitmatch.config.load import snapshot_config_toml, json_dumps
from mchitmatch.matching.relations import HitParticleAssns
from mchitmatch.physics.events import SimEvent

FORMAT_VERSION = "1.0"

# per-relation columns under /matches, with their on-disk dtypes
MATCH_COLUMNS: Dict[str, Any] = {
    "hit_index": np.int64,
    "particle_index": np.int64,
    "track_id": np.int64,
    "energy_fraction": np.float64,
    "electron_fraction": np.float64,
    "is_max_energy": np.bool_,
    "is_max_electrons": np.bool_,
    "energy": np.float64,
    "electrons": np.float64,
}

_EVENT_COLUMNS = ("run", "subrun", "event", "n_hits")


def write_init(path: str, cfg_path: Optional[str], cfg: Config) -> h5py.File:
    """
    Create the output file and the empty, resizable /matches layout.

    /matches/event_ptr          (N_events+1,) int64  CSR pointer into relation rows
    /matches/events/<col>       (N_events,)          run, subrun, event, n_hits
    /matches/<col>              (N_relations,)       see MATCH_COLUMNS
    """
    f = h5py.File(path, "w")
    # Root attrs
    f.attrs["format_version"] = FORMAT_VERSION
    f.attrs["created_utc"] = datetime.now(timezone.utc).isoformat()
    f.attrs["software"] = "mchitmatch 0.1.0"
    f.attrs["config_text"] = snapshot_config_toml(cfg_path)

    # /meta
    meta = f.create_group("meta")
    meta.attrs["hit_label"] = cfg.io.hit_label
    meta.attrs["particle_label"] = cfg.io.particle_label
    meta.attrs["resolver"] = cfg.run.resolver
    meta.attrs["config_json"] = json_dumps(cfg.model_dump())

    grp = f.create_group("matches")
    grp.create_dataset("event_ptr", data=np.zeros(1, dtype=np.int64), maxshape=(None,), chunks=True)
    for name, dtype in MATCH_COLUMNS.items():
        grp.create_dataset(name, shape=(0,), maxshape=(None,), dtype=dtype, chunks=True, compression="gzip")
    g_ev = grp.create_group("events")
    for name in _EVENT_COLUMNS:
        g_ev.create_dataset(name, shape=(0,), maxshape=(None,), dtype=np.int64, chunks=True)
    return f


def _append(dset: h5py.Dataset, values: np.ndarray) -> None:
    n0 = dset.shape[0]
    n = len(values)
    if n == 0:
        return
    dset.resize((n0 + n,))
    dset[n0:n0 + n] = values


def write_event_matches(f: h5py.File, event: SimEvent, assns: HitParticleAssns) -> None:
    """
    Append one event's relations (possibly none) to /matches.
    """
    grp = f["matches"]
    cols = assns.to_arrays()
    for name, dtype in MATCH_COLUMNS.items():
        _append(grp[name], cols[name].astype(dtype))

    ptr = grp["event_ptr"]
    last = int(ptr[-1])
    _append(ptr, np.array([last + len(assns)], dtype=np.int64))

    g_ev = grp["events"]
    row = {"run": event.run, "subrun": event.subrun, "event": event.event, "n_hits": event.n_hits}
    for name in _EVENT_COLUMNS:
        _append(g_ev[name], np.array([row[name]], dtype=np.int64))


def write_run_summary(f: h5py.File, summary: Dict[str, Any]) -> None:
    f["meta"].attrs["run_summary"] = json_dumps(summary)


def read_matches(path: str) -> Dict[str, np.ndarray]:
    """
    Load all /matches columns into memory.

    Keys: every MATCH_COLUMNS name, 'event_ptr', and 'events/<col>'.
    """
    path = str(path)
    out: Dict[str, np.ndarray] = {}
    with h5py.File(path, "r") as f:
        if "matches" not in f:
            raise KeyError(f"/matches not found in {path}")
        grp = f["matches"]
        for name in MATCH_COLUMNS:
            out[name] = np.array(grp[name])
        out["event_ptr"] = np.array(grp["event_ptr"], dtype=np.int64)
        for name in _EVENT_COLUMNS:
            out[f"events/{name}"] = np.array(grp["events"][name], dtype=np.int64)
    return out
