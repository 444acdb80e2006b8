# src/mchitmatch/physics/events.py
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .hits import Hit
from .particles import TruthParticle
from .deposits import Deposit, DepositTable

@dataclass(slots=True)
class SimEvent:
    """
    One event as seen by the hit matcher.

    hits / particles are None when the labelled collection is absent from
    the input; matching treats that as fatal for simulated events.
    deposits holds the backtracked deposits, one CSR row-block per hit.
    """
    run: int = 0
    subrun: int = 0
    event: int = 0
    is_real_data: bool = False
    hits: Optional[List[Hit]] = None
    particles: Optional[List[TruthParticle]] = None
    deposits: DepositTable = field(default_factory=DepositTable.empty)
    meta: Dict[str, Any] = field(default_factory=dict)

    @property
    def n_hits(self) -> int:
        return len(self.hits) if self.hits is not None else 0

    def deposits_for(self, hit_index: int) -> List[Deposit]:
        return self.deposits.deposits_for(hit_index)

    def validate(self) -> None:
        """
        Raise ValueError if the deposit table does not line up with the hits.
        """
        if self.hits is None:
            return
        if self.deposits.n_hits not in (0, len(self.hits)):
            raise ValueError(
                f"SimEvent {self.run}:{self.subrun}:{self.event} has {len(self.hits)} hits "
                f"but deposits for {self.deposits.n_hits}"
            )
