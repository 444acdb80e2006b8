"""
mchitmatch.io.adapters

Readers that turn stored simulation output into SimEvent objects
(mchitmatch.physics.events.SimEvent) for the hit matcher.

Design goals
------------
- Keep I/O concerns isolated from the matching bookkeeping.
- Select collections by label ([io] hit_label / particle_label); a label
  that is not in the file gives hits/particles = None, never an empty list,
  so the matcher can tell "absent" from "empty".
- Stream events; only one event's slices are held in memory.
- Preserve deposit order within a hit exactly as stored.

Entry points
------------
- class HDF5Adapter: ragged (CSR) HDF5 layout, see write_event_hdf5.
- class JSONLAdapter: one JSON event per line, tolerant field names.
- class SynthAdapter: synthetic events from mchitmatch.sim.synth.
- function make_adapter(cfg, ...): factory from the [io.adapter] TOML section.

Config (example)
----------------
[io]
input_path = "data/events.h5"
hit_label = "gaushit"
particle_label = "largeant"

[io.adapter]
type = "hdf5"                  # "hdf5" | "jsonl" | "synth"
"""
from __future__ import annotations
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Sequence
import json

import h5py
import numpy as np

from mchitmatch.physics.hits import Hit
from mchitmatch.physics.particles import TruthParticle
from mchitmatch.physics.deposits import Deposit, DepositTable
from mchitmatch.physics.events import SimEvent
from mchitmatch.io.canonicalize import canonical_hit, canonical_particle

# ---------------------------------------------------------------------------
# Base adapter API
# ---------------------------------------------------------------------------

class BaseAdapter:
    """
    Abstract adapter interface.

    Yields SimEvent objects with the configured hit/particle collections.
    """

    def __init__(self, hit_label: str = "gaushit", particle_label: str = "largeant") -> None:
        self.hit_label = hit_label
        self.particle_label = particle_label

    def iter_events(self, path: str) -> Iterator[SimEvent]:
        raise NotImplementedError


# ---------------------------------------------------------------------------
# HDF5 adapter
# ---------------------------------------------------------------------------

def _presence(grp: Optional[h5py.Group], n_events: int) -> np.ndarray:
    if grp is None:
        return np.zeros(n_events, dtype=bool)
    if "present" in grp:
        return grp["present"][...].astype(bool)
    return np.ones(n_events, dtype=bool)

def _decode(v: Any) -> str:
    return v.decode("utf-8") if isinstance(v, bytes) else str(v)

class HDF5Adapter(BaseAdapter):
    """
    Read events from the ragged HDF5 layout:

    /events/run, subrun, event, is_real_data                     (N,)
    /hits/<hit_label>/event_ptr                                   (N+1,)
    /hits/<hit_label>/channel, peak_time, integral                (M,)
    /hits/<hit_label>/deposit_ptr                                 (M+1,)
    /deposits/<hit_label>/track_id, energy, num_electrons         (K,)
    /particles/<particle_label>/event_ptr                         (N+1,)
    /particles/<particle_label>/track_id, pdg, mother, energy_GeV (P,)
    /particles/<particle_label>/process                           (P,) str, optional
    /hits/<hit_label>/present, /particles/<particle_label>/present (N,) bool, optional

    An event whose present flag is false gets hits / particles = None.
    """

    def iter_events(self, path: str) -> Iterator[SimEvent]:
        with h5py.File(path, "r") as f:
            if "events" not in f:
                raise KeyError(f"/events not found in {path}")
            g_ev = f["events"]
            run = g_ev["run"][...]
            subrun = g_ev["subrun"][...]
            evno = g_ev["event"][...]
            real = g_ev["is_real_data"][...].astype(bool)
            n_events = int(run.shape[0])

            hit_key = f"hits/{self.hit_label}"
            dep_key = f"deposits/{self.hit_label}"
            par_key = f"particles/{self.particle_label}"
            g_hits = f[hit_key] if hit_key in f else None
            g_dep = f[dep_key] if dep_key in f else None
            g_par = f[par_key] if par_key in f else None

            hit_ev_ptr = g_hits["event_ptr"][...] if g_hits is not None else None
            dep_ptr = g_hits["deposit_ptr"][...] if g_hits is not None else None
            par_ev_ptr = g_par["event_ptr"][...] if g_par is not None else None
            # per-event presence; files without the column have the collection in every event
            hit_present = _presence(g_hits, n_events)
            par_present = _presence(g_par, n_events)

            for i in range(n_events):
                meta = {"source": "HDF5", "file": path, "entry_index": i}
                hits: Optional[List[Hit]] = None
                deposits = DepositTable.empty()
                if hit_present[i]:
                    lo, hi = int(hit_ev_ptr[i]), int(hit_ev_ptr[i + 1])
                    ch = g_hits["channel"][lo:hi]
                    pt = g_hits["peak_time"][lo:hi]
                    integ = g_hits["integral"][lo:hi]
                    hits = [
                        Hit(channel=int(ch[j]), peak_time=float(pt[j]), integral=float(integ[j]))
                        for j in range(hi - lo)
                    ]
                    local_ptr = dep_ptr[lo:hi + 1] - dep_ptr[lo]
                    if g_dep is not None:
                        d_lo, d_hi = int(dep_ptr[lo]), int(dep_ptr[hi])
                        deposits = DepositTable(
                            hit_ptr=local_ptr,
                            track_id=g_dep["track_id"][d_lo:d_hi],
                            energy=g_dep["energy"][d_lo:d_hi],
                            num_electrons=g_dep["num_electrons"][d_lo:d_hi],
                        )
                    else:
                        deposits = DepositTable.empty(len(hits))

                particles: Optional[List[TruthParticle]] = None
                if par_present[i]:
                    lo, hi = int(par_ev_ptr[i]), int(par_ev_ptr[i + 1])
                    tid = g_par["track_id"][lo:hi]
                    pdg = g_par["pdg"][lo:hi]
                    mother = g_par["mother"][lo:hi]
                    en = g_par["energy_GeV"][lo:hi]
                    proc = g_par["process"][lo:hi] if "process" in g_par else None
                    particles = [
                        TruthParticle(
                            track_id=int(tid[j]),
                            pdg=int(pdg[j]),
                            mother=int(mother[j]),
                            energy_GeV=float(en[j]),
                            process=_decode(proc[j]) if proc is not None else "primary",
                        )
                        for j in range(hi - lo)
                    ]

                yield SimEvent(
                    run=int(run[i]),
                    subrun=int(subrun[i]),
                    event=int(evno[i]),
                    is_real_data=bool(real[i]),
                    hits=hits,
                    particles=particles,
                    deposits=deposits,
                    meta=meta,
                )


def write_event_hdf5(
    path: str | Path,
    events: Sequence[SimEvent],
    *,
    hit_label: str = "gaushit",
    particle_label: str = "largeant",
) -> None:
    """
    Write events in the layout HDF5Adapter reads.

    Events with hits=None / particles=None contribute zero rows and a false
    entry in the collection's present column; the collection groups are
    written whenever at least one event has them.
    """
    n = len(events)
    hit_ev_ptr = np.zeros(n + 1, dtype=np.int64)
    par_ev_ptr = np.zeros(n + 1, dtype=np.int64)
    channel: List[int] = []
    peak_time: List[float] = []
    integral: List[float] = []
    dep_ptr: List[int] = [0]
    track_id: List[np.ndarray] = []
    energy: List[np.ndarray] = []
    num_el: List[np.ndarray] = []
    p_tid: List[int] = []
    p_pdg: List[int] = []
    p_mother: List[int] = []
    p_en: List[float] = []
    p_proc: List[str] = []

    for i, ev in enumerate(events):
        ev.validate()
        hits = ev.hits or []
        hit_ev_ptr[i + 1] = hit_ev_ptr[i] + len(hits)
        for j, h in enumerate(hits):
            channel.append(h.channel)
            peak_time.append(h.peak_time)
            integral.append(h.integral)
            deps = ev.deposits_for(j)
            dep_ptr.append(dep_ptr[-1] + len(deps))
            track_id.append(np.array([d.track_id for d in deps], dtype=np.int64))
            energy.append(np.array([d.energy for d in deps], dtype=np.float64))
            num_el.append(np.array([d.num_electrons for d in deps], dtype=np.float64))

        parts = ev.particles or []
        par_ev_ptr[i + 1] = par_ev_ptr[i] + len(parts)
        for p in parts:
            p_tid.append(p.track_id)
            p_pdg.append(p.pdg)
            p_mother.append(p.mother)
            p_en.append(p.energy_GeV)
            p_proc.append(p.process)

    def _cat(chunks: List[np.ndarray], dtype) -> np.ndarray:
        return np.concatenate(chunks).astype(dtype) if chunks else np.zeros(0, dtype=dtype)

    with h5py.File(path, "w") as f:
        g_ev = f.create_group("events")
        g_ev.create_dataset("run", data=np.array([e.run for e in events], dtype=np.int64))
        g_ev.create_dataset("subrun", data=np.array([e.subrun for e in events], dtype=np.int64))
        g_ev.create_dataset("event", data=np.array([e.event for e in events], dtype=np.int64))
        g_ev.create_dataset("is_real_data", data=np.array([e.is_real_data for e in events], dtype=bool))

        if any(e.hits is not None for e in events):
            g_hits = f.require_group(f"hits/{hit_label}")
            g_hits.create_dataset("event_ptr", data=hit_ev_ptr)
            g_hits.create_dataset("present", data=np.array([e.hits is not None for e in events], dtype=bool))
            g_hits.create_dataset("channel", data=np.array(channel, dtype=np.int32))
            g_hits.create_dataset("peak_time", data=np.array(peak_time, dtype=np.float32))
            g_hits.create_dataset("integral", data=np.array(integral, dtype=np.float32))
            g_hits.create_dataset("deposit_ptr", data=np.array(dep_ptr, dtype=np.int64))

            g_dep = f.require_group(f"deposits/{hit_label}")
            g_dep.create_dataset("track_id", data=_cat(track_id, np.int64), compression="gzip")
            g_dep.create_dataset("energy", data=_cat(energy, np.float64), compression="gzip")
            g_dep.create_dataset("num_electrons", data=_cat(num_el, np.float64), compression="gzip")

        if any(e.particles is not None for e in events):
            g_par = f.require_group(f"particles/{particle_label}")
            g_par.create_dataset("event_ptr", data=par_ev_ptr)
            g_par.create_dataset("present", data=np.array([e.particles is not None for e in events], dtype=bool))
            g_par.create_dataset("track_id", data=np.array(p_tid, dtype=np.int64))
            g_par.create_dataset("pdg", data=np.array(p_pdg, dtype=np.int32))
            g_par.create_dataset("mother", data=np.array(p_mother, dtype=np.int64))
            g_par.create_dataset("energy_GeV", data=np.array(p_en, dtype=np.float64))
            g_par.create_dataset("process", data=np.array(p_proc, dtype=h5py.string_dtype()))


# ---------------------------------------------------------------------------
# JSON-lines adapter
# ---------------------------------------------------------------------------

class JSONLAdapter(BaseAdapter):
    """
    Read one event per line:

    {"run": 1, "subrun": 0, "event": 7, "is_real_data": false,
     "hits": {"gaushit": [{"channel": 12, "deposits": [{"trackID": 5, "E": 3.0, "numElectrons": 10}]}]},
     "particles": {"largeant": [{"TrackId": 5, "PdgCode": 13}]}}

    Field names are canonicalized (see io.canonicalize).
    """

    def _event_from_record(self, rec: Dict[str, Any], meta: Dict[str, Any]) -> SimEvent:
        hits: Optional[List[Hit]] = None
        deposits = DepositTable.empty()
        raw_hits = (rec.get("hits") or {}).get(self.hit_label)
        if raw_hits is not None:
            canon = [canonical_hit(h) for h in raw_hits]
            hits = [
                Hit(channel=c["channel"], peak_time=c["peak_time"], integral=c["integral"],
                    extras=c["__extras__"])
                for c in canon
            ]
            deposits = DepositTable.from_lists(
                [[Deposit(**d) for d in c["deposits"]] for c in canon]
            )

        particles: Optional[List[TruthParticle]] = None
        raw_parts = (rec.get("particles") or {}).get(self.particle_label)
        if raw_parts is not None:
            particles = []
            for p in raw_parts:
                c = canonical_particle(p)
                extras = c.pop("__extras__")
                particles.append(TruthParticle(**c, extras=extras))

        return SimEvent(
            run=int(rec.get("run", 0)),
            subrun=int(rec.get("subrun", 0)),
            event=int(rec.get("event", meta["entry_index"])),
            is_real_data=bool(rec.get("is_real_data", False)),
            hits=hits,
            particles=particles,
            deposits=deposits,
            meta=meta,
        )

    def iter_events(self, path: str) -> Iterator[SimEvent]:
        with open(path, "r", encoding="utf-8") as f:
            i = 0
            for raw in f:
                line = raw.strip()
                if not line or line.startswith("#"):
                    continue
                meta = {"source": "JSONL", "file": path, "entry_index": i}
                yield self._event_from_record(json.loads(line), meta)
                i += 1


# ---------------------------------------------------------------------------
# Synthetic adapter
# ---------------------------------------------------------------------------

class SynthAdapter(BaseAdapter):
    """
    Generate events instead of reading them; the input path is ignored.
    Keyword arguments are passed to mchitmatch.sim.synth.synth_events.
    """

    def __init__(self, hit_label: str = "gaushit", particle_label: str = "largeant", **synth_kwargs) -> None:
        super().__init__(hit_label, particle_label)
        self.synth_kwargs = synth_kwargs

    def iter_events(self, path: str) -> Iterator[SimEvent]:
        from mchitmatch.sim.synth import synth_events

        yield from synth_events(**self.synth_kwargs)


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------

def make_adapter(cfg: Dict, *, hit_label: str = "gaushit", particle_label: str = "largeant") -> BaseAdapter:
    """
    Create an adapter from a config dict (from TOML/CLI).

    Expected keys under [io.adapter]:
      type: "hdf5" | "jsonl" | "synth"
      n_events, n_hits, n_particles, seed, ...   (synth-only, see sim.synth)
    """
    typ = (cfg.get("type") or "hdf5").lower()

    if typ in ("hdf5", "h5"):
        return HDF5Adapter(hit_label=hit_label, particle_label=particle_label)

    if typ in ("jsonl", "json"):
        return JSONLAdapter(hit_label=hit_label, particle_label=particle_label)

    if typ == "synth":
        synth_kwargs = {k: v for k, v in cfg.items() if k != "type"}
        return SynthAdapter(hit_label=hit_label, particle_label=particle_label, **synth_kwargs)

    raise ValueError(f"Unknown adapter type: {typ}")
