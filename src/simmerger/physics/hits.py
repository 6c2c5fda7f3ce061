from __future__ import annotations
from dataclasses import dataclass
from typing import Iterable, List, Tuple

import numpy as np

from simmerger.geometry.detector import DetectorGeometry

@dataclass(frozen=True, slots=True)
class Hit:
    """
    Point-like simulated energy deposit (physics layer).

    x, y, z: position [cm]
    t: time [ns]
    energy: deposited energy (>= 0)
    track_id: id of the track the deposit was attributed to by the simulation

    Hits are never copied once created; nodes only hold references and pass
    them on when clusters are merged.
    """
    x: float
    y: float
    z: float
    t: float
    energy: float
    track_id: int

    @property
    def position(self) -> np.ndarray:
        return np.array([self.x, self.y, self.z], dtype=np.float64)


# (det_id, time, energy, track_id)
RawDeposit = Tuple[int, float, float, int]

def build_hits(raw: Iterable[RawDeposit], geometry: DetectorGeometry) -> List[Hit]:
    """
    Turn raw deposits into Hits, looking up each detector element's position.

    Raises KeyError for a det_id the geometry does not know.
    """
    hits: List[Hit] = []
    for det_id, t, energy, track_id in raw:
        x, y, z = geometry.position_of(int(det_id))
        hits.append(Hit(x=float(x), y=float(y), z=float(z), t=float(t),
                        energy=float(energy), track_id=int(track_id)))
    return hits
