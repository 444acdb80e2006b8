# src/mchitmatch/matching/aggregate.py
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, Iterable, Optional

from mchitmatch.physics.deposits import Deposit

# Running maxima start below any physical (non-negative) cumulative value.
_NO_MAX = -1.0

@dataclass
class TrackAggregate:
    energy: float = 0.0
    num_electrons: float = 0.0

@dataclass
class HitAggregation:
    """
    Deposits of one hit summed per contributing track id.

    max_energy_track / max_electrons_track are None when the hit has no
    deposits. A fresh instance is built for every hit.
    """
    per_track: Dict[int, TrackAggregate] = field(default_factory=dict)
    total_energy: float = 0.0
    total_electrons: float = 0.0
    max_energy_track: Optional[int] = None
    max_electrons_track: Optional[int] = None

    def __len__(self) -> int:
        return len(self.per_track)


def aggregate_deposits(deposits: Iterable[Deposit]) -> HitAggregation:
    """
    Sum deposits per track id in one left-to-right pass.

    After each deposit the track's *cumulative* energy (and electron count)
    is compared with the running maximum; the holder only changes when the
    new cumulative value is strictly larger. A track that reaches the same
    value later than the current holder does not take over, so the result
    depends on deposit order for ties.
    """
    agg = HitAggregation()
    max_e = _NO_MAX
    max_n = _NO_MAX

    for dep in deposits:
        bucket = agg.per_track.get(dep.track_id)
        if bucket is None:
            bucket = agg.per_track[dep.track_id] = TrackAggregate()

        bucket.energy += dep.energy
        agg.total_energy += dep.energy
        if bucket.energy > max_e:
            max_e = bucket.energy
            agg.max_energy_track = dep.track_id

        bucket.num_electrons += dep.num_electrons
        agg.total_electrons += dep.num_electrons
        if bucket.num_electrons > max_n:
            max_n = bucket.num_electrons
            agg.max_electrons_track = dep.track_id

    return agg
