# src/simmerger/physics/tracks.py
from __future__ import annotations
from dataclasses import dataclass

@dataclass(frozen=True, slots=True)
class TrackRecord:
    """
    One simulated track as handed over by the event-data store.

    The parent relation comes from the track's production vertex:
    no_parent=True marks a primary, otherwise parent_track_id names the
    track that produced the vertex.
    """
    track_id: int
    no_parent: bool
    parent_track_id: int
    energy: float
    pdgid: int
