# src/mchitmatch/matching/relations.py
from __future__ import annotations
from dataclasses import dataclass, field, astuple
from typing import Dict, Iterator, List

import numpy as np

from .aggregate import HitAggregation
from .resolver import TrackIdResolver

@dataclass(slots=True, frozen=True)
class MatchData:
    """
    Metadata attached to one hit <-> truth particle relation.

    energy_fraction / electron_fraction: share of the hit's total deposited
    energy / ionization electrons. NaN (or inf) when the hit's total is zero.
    """
    energy_fraction: float
    electron_fraction: float
    is_max_energy: bool
    is_max_electrons: bool
    energy: float
    electrons: float

@dataclass(slots=True, frozen=True)
class HitParticleMatch:
    hit_index: int
    particle_index: int
    track_id: int
    data: MatchData


@dataclass
class HitParticleAssns:
    """
    Append-only collection of hit <-> truth particle relations for one event.
    """
    matches: List[HitParticleMatch] = field(default_factory=list)

    def add_single(self, hit_index: int, particle_index: int, track_id: int, data: MatchData) -> None:
        self.matches.append(HitParticleMatch(hit_index, particle_index, track_id, data))

    def __len__(self) -> int:
        return len(self.matches)

    def __iter__(self) -> Iterator[HitParticleMatch]:
        return iter(self.matches)

    def for_hit(self, hit_index: int) -> List[HitParticleMatch]:
        return [m for m in self.matches if m.hit_index == hit_index]

    def as_set(self) -> set[tuple]:
        """
        Order-independent view, handy for comparing two runs.
        NaN fractions never compare equal, so degenerate hits break equality.
        """
        return {(m.hit_index, m.particle_index, m.track_id) + astuple(m.data) for m in self.matches}

    def to_arrays(self) -> Dict[str, np.ndarray]:
        """Columnar form used by io.match_store."""
        n = len(self.matches)
        cols = {
            "hit_index": np.empty(n, dtype=np.int64),
            "particle_index": np.empty(n, dtype=np.int64),
            "track_id": np.empty(n, dtype=np.int64),
            "energy_fraction": np.empty(n, dtype=np.float64),
            "electron_fraction": np.empty(n, dtype=np.float64),
            "is_max_energy": np.empty(n, dtype=bool),
            "is_max_electrons": np.empty(n, dtype=bool),
            "energy": np.empty(n, dtype=np.float64),
            "electrons": np.empty(n, dtype=np.float64),
        }
        for i, m in enumerate(self.matches):
            cols["hit_index"][i] = m.hit_index
            cols["particle_index"][i] = m.particle_index
            cols["track_id"][i] = m.track_id
            cols["energy_fraction"][i] = m.data.energy_fraction
            cols["electron_fraction"][i] = m.data.electron_fraction
            cols["is_max_energy"][i] = m.data.is_max_energy
            cols["is_max_electrons"][i] = m.data.is_max_electrons
            cols["energy"][i] = m.data.energy
            cols["electrons"][i] = m.data.electrons
        return cols


def _fraction(part: float, total: float) -> float:
    # zero totals give nan/inf on purpose; downstream sees the degenerate hit
    with np.errstate(divide="ignore", invalid="ignore"):
        return float(np.float64(part) / np.float64(total))


def emit_matches(
    hit_index: int,
    aggregation: HitAggregation,
    resolver: TrackIdResolver,
    assns: HitParticleAssns,
) -> int:
    """
    Append one relation per contributing track that resolves to a saved
    truth particle. Tracks without a particle are skipped.

    Returns the number of relations added for this hit.
    """
    n_added = 0
    for track_id, agg in aggregation.per_track.items():
        particle_index = resolver.resolve(track_id)
        if particle_index is None:
            continue
        data = MatchData(
            energy_fraction=_fraction(agg.energy, aggregation.total_energy),
            electron_fraction=_fraction(agg.num_electrons, aggregation.total_electrons),
            is_max_energy=(track_id == aggregation.max_energy_track),
            is_max_electrons=(track_id == aggregation.max_electrons_track),
            energy=agg.energy,
            electrons=agg.num_electrons,
        )
        assns.add_single(hit_index, particle_index, track_id, data)
        n_added += 1
    return n_added
