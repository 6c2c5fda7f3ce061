from __future__ import annotations
from typing import Iterable, List, Optional, Tuple

import numpy as np

from simmerger.physics.hits import Hit
from simmerger.physics.centroid import hit_centroid
from simmerger.tree.errors import StructureError

class Node:
    """
    One track in a TrackTree.

    Structure is stored as handles (track ids) resolved through the owning
    TrackTree: `parent_id` is None for the root and for detached nodes,
    `child_ids` keeps insertion order, which is also the sibling order.

    The hit centroid is computed from this node's own hits only, lazily on
    first access, and cached until the hit list changes.
    """

    __slots__ = ("track_id", "energy", "pdgid", "parent_id", "child_ids", "_hits", "_centroid")

    def __init__(self, track_id: int, energy: float = 0.0, pdgid: int = 0):
        self.track_id = int(track_id)
        self.energy = float(energy)
        self.pdgid = int(pdgid)
        self.parent_id: Optional[int] = None
        self.child_ids: List[int] = []
        self._hits: List[Hit] = []
        self._centroid: Optional[np.ndarray] = None

    # --- hits -----------------------------------------------------------

    @property
    def hits(self) -> Tuple[Hit, ...]:
        return tuple(self._hits)

    def add_hit(self, hit: Hit) -> None:
        self._hits.append(hit)
        self._centroid = None

    def add_hits(self, hits: Iterable[Hit]) -> None:
        self._hits.extend(hits)
        self._centroid = None

    def take_hits(self) -> List[Hit]:
        """Remove and return all hits; ownership passes to the caller."""
        hits, self._hits = self._hits, []
        self._centroid = None
        return hits

    @property
    def nhits(self) -> int:
        return len(self._hits)

    def has_hits(self) -> bool:
        return len(self._hits) > 0

    @property
    def hit_energy(self) -> float:
        return float(sum(h.energy for h in self._hits))

    # --- centroid -------------------------------------------------------

    @property
    def centroid_valid(self) -> bool:
        return self._centroid is not None

    @property
    def centroid(self) -> np.ndarray:
        if self._centroid is None:
            return self.recompute_centroid()
        return self._centroid

    def recompute_centroid(self) -> np.ndarray:
        try:
            self._centroid = hit_centroid(self._hits)
        except StructureError as exc:
            raise StructureError(f"Track {self.track_id}: {exc}", self.track_id) from None
        return self._centroid

    # --- structure ------------------------------------------------------

    def has_parent(self) -> bool:
        return self.parent_id is not None

    def has_children(self) -> bool:
        return len(self.child_ids) > 0

    def is_leaf(self) -> bool:
        return not self.child_ids

    def __repr__(self) -> str:
        return (f"Node(track_id={self.track_id}, E={self.energy:.3g}, pdgid={self.pdgid}, "
                f"nhits={self.nhits}, parent={self.parent_id}, children={self.child_ids})")
