# src/mchitmatch/physics/deposits.py
from __future__ import annotations
from dataclasses import dataclass
from typing import List, Sequence

import numpy as np

@dataclass(slots=True, frozen=True)
class Deposit:
    """Energy [MeV] and ionization electrons left in one hit by one truth track."""
    track_id: int
    energy: float
    num_electrons: float


@dataclass
class DepositTable:
    """
    Per-hit deposits of one event in CSR form.

    hit_ptr : (N_hits+1,) int64, deposits of hit i are rows hit_ptr[i]:hit_ptr[i+1]
    track_id, energy, num_electrons : (K,) flat columns

    Row order within a hit is the order the simulation reported the
    deposits; the max-holder tie-break depends on it, so it is preserved.
    """
    hit_ptr: np.ndarray
    track_id: np.ndarray
    energy: np.ndarray
    num_electrons: np.ndarray

    def __post_init__(self) -> None:
        self.hit_ptr = np.asarray(self.hit_ptr, dtype=np.int64)
        self.track_id = np.asarray(self.track_id, dtype=np.int64)
        self.energy = np.asarray(self.energy, dtype=np.float64)
        self.num_electrons = np.asarray(self.num_electrons, dtype=np.float64)
        if self.hit_ptr.ndim != 1 or self.hit_ptr.size == 0 or self.hit_ptr[0] != 0:
            raise ValueError("hit_ptr must be a 1D CSR pointer starting at 0")
        if np.any(np.diff(self.hit_ptr) < 0):
            raise ValueError("hit_ptr must be non-decreasing")
        k = int(self.hit_ptr[-1])
        for name in ("track_id", "energy", "num_electrons"):
            if getattr(self, name).shape != (k,):
                raise ValueError(
                    f"DepositTable column {name!r} has shape {getattr(self, name).shape}, "
                    f"expected ({k},) from hit_ptr"
                )

    @property
    def n_hits(self) -> int:
        return int(self.hit_ptr.size - 1)

    def __len__(self) -> int:
        return int(self.hit_ptr[-1])

    def deposits_for(self, hit_index: int) -> List[Deposit]:
        """Return the ordered deposits of one hit (empty list if the hit has none)."""
        if hit_index < 0 or hit_index >= self.n_hits:
            return []
        lo, hi = int(self.hit_ptr[hit_index]), int(self.hit_ptr[hit_index + 1])
        return [
            Deposit(
                track_id=int(self.track_id[k]),
                energy=float(self.energy[k]),
                num_electrons=float(self.num_electrons[k]),
            )
            for k in range(lo, hi)
        ]

    @classmethod
    def empty(cls, n_hits: int = 0) -> "DepositTable":
        return cls(
            hit_ptr=np.zeros(n_hits + 1, dtype=np.int64),
            track_id=np.zeros(0, dtype=np.int64),
            energy=np.zeros(0, dtype=np.float64),
            num_electrons=np.zeros(0, dtype=np.float64),
        )

    @classmethod
    def from_lists(cls, per_hit: Sequence[Sequence[Deposit]]) -> "DepositTable":
        ptr = np.zeros(len(per_hit) + 1, dtype=np.int64)
        for i, deps in enumerate(per_hit):
            ptr[i + 1] = ptr[i] + len(deps)
        flat = [d for deps in per_hit for d in deps]
        return cls(
            hit_ptr=ptr,
            track_id=np.array([d.track_id for d in flat], dtype=np.int64),
            energy=np.array([d.energy for d in flat], dtype=np.float64),
            num_electrons=np.array([d.num_electrons for d in flat], dtype=np.float64),
        )
