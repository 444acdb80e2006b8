from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict

@dataclass(slots=True)
class TruthParticle:
    """
    Simulated truth particle.

    track_id: simulator-assigned id, unique within the event but not dense or ordered
    pdg: PDG code
    mother: track_id of the parent (0 for primaries)
    energy_GeV: initial total energy [GeV]
    """
    track_id: int
    pdg: int = 0
    mother: int = 0
    energy_GeV: float = 0.0
    process: str = "primary"

    extras: Dict[str, Any] = field(default_factory=dict)
