from __future__ import annotations
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Mapping, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

_GEOMETRY_COLUMNS = ("det_id", "x", "y", "z")

@dataclass
class DetectorGeometry:
    """
    Lookup service mapping a detector-element id to its (x, y, z) position [cm].
    """
    positions: Dict[int, Tuple[float, float, float]] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, mapping: Optional[Mapping[int, Sequence[float]]] = None) -> "DetectorGeometry":
        positions = {}
        for det_id, xyz in (mapping or {}).items():
            x, y, z = (float(v) for v in xyz)
            positions[int(det_id)] = (x, y, z)
        return cls(positions=positions)

    @classmethod
    def from_table(cls, path: str | Path) -> "DetectorGeometry":
        """
        Read a det_id,x,y,z table (.csv or .parquet).
        """
        p = Path(path)
        if p.suffix.lower() in {".parquet", ".pq"}:
            df = pd.read_parquet(p)
        else:
            df = pd.read_csv(p)
        missing = [c for c in _GEOMETRY_COLUMNS if c not in df.columns]
        if missing:
            raise KeyError(f"Geometry table {p.name} is missing columns {missing}")
        ids = df["det_id"].to_numpy(dtype=np.int64)
        xyz = df[["x", "y", "z"]].to_numpy(dtype=np.float64)
        return cls(positions={int(i): (float(r[0]), float(r[1]), float(r[2])) for i, r in zip(ids, xyz)})

    def position_of(self, det_id: int) -> Tuple[float, float, float]:
        try:
            return self.positions[det_id]
        except KeyError:
            raise KeyError(f"Unknown detector element id {det_id}") from None

    def __len__(self) -> int:
        return len(self.positions)
