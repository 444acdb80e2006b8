from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict

@dataclass(slots=True)
class Hit:
    """
    Reconstructed detector hit.

    channel: readout channel number
    peak_time: hit peak time [ticks]
    integral: integrated charge [ADC]
    extras: arbitrary per-hit fields preserved from input (wire plane, rms, raw columns...)

    Matching never looks inside a hit; it is keyed by its position in the
    event's hit list.
    """
    channel: int = -1
    peak_time: float = 0.0
    integral: float = 0.0

    extras: Dict[str, Any] = field(default_factory=dict)
