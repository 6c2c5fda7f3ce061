from __future__ import annotations
from typing import Sequence, TYPE_CHECKING

import numpy as np

from simmerger.physics.hits import Hit
from simmerger.tree.errors import StructureError

if TYPE_CHECKING:
    from simmerger.tree.node import Node

def hit_centroid(hits: Sequence[Hit]) -> np.ndarray:
    """
    Energy-weighted mean position of `hits`, shape (3,).

    A single hit returns its own position. If every hit carries zero energy the
    weights are undefined and the plain mean is returned instead.
    Raises StructureError for an empty sequence.
    """
    if len(hits) == 0:
        raise StructureError("Cannot compute hit centroid for 0 hits")
    if len(hits) == 1:
        return hits[0].position
    pos = np.array([[h.x, h.y, h.z] for h in hits], dtype=np.float64)
    e = np.array([h.energy for h in hits], dtype=np.float64)
    total = e.sum()
    if total <= 0:
        return pos.mean(axis=0)
    w = e / total
    return w @ pos

def distance(left: "Node", right: "Node") -> float:
    """Euclidean distance between the hit centroids of two nodes."""
    return float(np.linalg.norm(left.centroid - right.centroid))
