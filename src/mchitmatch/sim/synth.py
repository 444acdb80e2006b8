from __future__ import annotations
import numpy as np
from typing import List, Optional
from ..physics.hits import Hit
from ..physics.particles import TruthParticle
from ..physics.deposits import Deposit, DepositTable
from ..physics.events import SimEvent

# W-value for argon: ionization electrons per MeV deposited (before recombination)
ELECTRONS_PER_MEV = 1.0 / 23.6e-6
RECOMBINATION = 0.7

_PDG_CHOICES = np.array([13, -13, 11, -11, 22, 211, -211, 2212, 2112])

def synth_particles(n_particles: int, rng: np.random.Generator) -> List[TruthParticle]:
    """
    Truth particles with sparse, unordered track ids (like Geant4 output after
    a save threshold has dropped some tracks).
    """
    track_ids = rng.choice(np.arange(1, 20 * max(n_particles, 1) + 1), size=n_particles, replace=False)
    parts: List[TruthParticle] = []
    for k, tid in enumerate(track_ids):
        mother = 0 if k == 0 else int(track_ids[rng.integers(0, k)])
        parts.append(TruthParticle(
            track_id=int(tid),
            pdg=int(rng.choice(_PDG_CHOICES)),
            mother=mother,
            energy_GeV=float(rng.exponential(0.2)),
            process="primary" if mother == 0 else "eIoni",
        ))
    return parts

def synth_deposits(
    track_ids: np.ndarray,
    n_deposits: int,
    rng: np.random.Generator,
) -> List[Deposit]:
    """
    n_deposits records drawn from track_ids; the same id may repeat at
    non-adjacent positions, as the backtracker reports one record per
    simulated energy deposit.
    """
    deps: List[Deposit] = []
    if len(track_ids) == 0:
        return deps
    for _ in range(n_deposits):
        tid = int(rng.choice(track_ids))
        e = float(rng.exponential(0.5))
        n_el = e * ELECTRONS_PER_MEV * RECOMBINATION * float(rng.normal(1.0, 0.05))
        deps.append(Deposit(track_id=tid, energy=e, num_electrons=max(n_el, 0.0)))
    return deps

def synth_events(
    n_events: int = 10,
    n_hits: int = 50,
    n_particles: int = 8,
    max_deposits: int = 6,
    unsaved_fraction: float = 0.1,
    real_data_fraction: float = 0.0,
    seed: Optional[int] = None,
    rng: np.random.Generator | None = None,
) -> List[SimEvent]:
    """
    Generate events for smoke runs and tests:
      - each hit gets 0..max_deposits deposits
      - about unsaved_fraction of contributing ids have no saved TruthParticle
        (negative ids, like shower daughters below the save threshold)
      - about real_data_fraction of events are flagged as real data
    """
    rng = rng or np.random.default_rng(seed)
    events: List[SimEvent] = []

    for i_ev in range(n_events):
        particles = synth_particles(n_particles, rng)
        saved_ids = np.array([p.track_id for p in particles], dtype=np.int64)
        n_unsaved = int(np.ceil(unsaved_fraction * n_particles)) if unsaved_fraction > 0 else 0
        unsaved_ids = -rng.integers(1, 1000, size=n_unsaved)
        pool = np.concatenate([saved_ids, unsaved_ids]) if n_unsaved else saved_ids

        hits: List[Hit] = []
        per_hit: List[List[Deposit]] = []
        for j in range(n_hits):
            deps = synth_deposits(pool, int(rng.integers(0, max_deposits + 1)), rng)
            charge = sum(d.num_electrons for d in deps)
            hits.append(Hit(
                channel=int(rng.integers(0, 8256)),
                peak_time=float(rng.uniform(0.0, 6000.0)),
                integral=float(charge / 200.0),
                extras={"plane": int(rng.integers(0, 3))},
            ))
            per_hit.append(deps)

        events.append(SimEvent(
            run=1,
            subrun=0,
            event=i_ev + 1,
            is_real_data=bool(rng.uniform() < real_data_fraction),
            hits=hits,
            particles=particles,
            deposits=DepositTable.from_lists(per_hit),
            meta={"source": "synth"},
        ))

    return events
