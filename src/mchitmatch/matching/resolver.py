# src/mchitmatch/matching/resolver.py
from __future__ import annotations
from typing import Dict, Optional, Protocol, Sequence

from mchitmatch.physics.particles import TruthParticle


class TrackIdResolver(Protocol):
    name: str
    n_lookups: int
    @property
    def n_unresolved(self) -> int: ...
    def resolve(self, track_id: int) -> Optional[int]:
        """Return the index of the particle with this track_id, or None."""


class LinearTrackIdResolver:
    """
    Memoized linear search over one event's truth particles.

    Each distinct track id costs at most one scan of the particle list;
    misses are cached as None so repeated unresolvable ids are not rescanned.
    Build a new resolver per event: the cache is only valid for the particle
    list it was built from.
    """

    def __init__(self, particles: Sequence[TruthParticle]):
        self.particles = particles
        self.name = "linear"
        self._cache: Dict[int, Optional[int]] = {}
        self.n_lookups = 0
        self.n_scans = 0

    def resolve(self, track_id: int) -> Optional[int]:
        self.n_lookups += 1
        if track_id in self._cache:
            return self._cache[track_id]

        self.n_scans += 1
        found: Optional[int] = None
        for i, p in enumerate(self.particles):
            if p.track_id == track_id:
                found = i
                break
        self._cache[track_id] = found
        return found

    @property
    def n_unresolved(self) -> int:
        return sum(1 for v in self._cache.values() if v is None)

    def __len__(self) -> int:
        return len(self._cache)


class TableTrackIdResolver:
    """
    id -> index table built once per event in O(particles).

    Gives the same answers as LinearTrackIdResolver, including for
    duplicated track ids (first occurrence wins).
    """

    def __init__(self, particles: Sequence[TruthParticle]):
        self.name = "table"
        self._table: Dict[int, int] = {}
        for i, p in enumerate(particles):
            self._table.setdefault(p.track_id, i)
        self.n_lookups = 0
        self._misses: set[int] = set()

    def resolve(self, track_id: int) -> Optional[int]:
        self.n_lookups += 1
        idx = self._table.get(track_id)
        if idx is None:
            self._misses.add(track_id)
        return idx

    @property
    def n_unresolved(self) -> int:
        return len(self._misses)

    def __len__(self) -> int:
        return len(self._table)


def make_resolver(strategy: str, particles: Sequence[TruthParticle]) -> TrackIdResolver:
    """
    Small factory used by pipelines.core; strategy is [run].resolver from TOML.
    """
    typ = (strategy or "linear").lower()
    if typ == "linear":
        return LinearTrackIdResolver(particles)
    if typ == "table":
        return TableTrackIdResolver(particles)
    raise ValueError(f"Unknown resolver strategy {strategy!r}")
