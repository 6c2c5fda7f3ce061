from __future__ import annotations
import numpy as np
from typing import List, Tuple

from ..physics.hits import Hit
from ..physics.tracks import TrackRecord

PDG_PHOTON = 22
PDG_ELECTRON = 11
PDG_PION = 211

def synth_shower_event(
    rng: np.random.Generator | None = None,
    n_showers: int = 3,
    tracks_per_shower: int = 4,
    hits_per_track: int = 5,
    chain_length: int = 2,
    n_dead_ends: int = 2,
    shower_spread_cm: float = 2.0,
    shower_separation_cm: float = 50.0,
) -> Tuple[List[TrackRecord], List[Hit]]:
    """
    Generate one toy event shaped like a simulated particle history:

      root (primary, no hits)
        -> per shower: a chain of `chain_length` hit-less pass-through tracks
           -> `tracks_per_shower` leaf tracks, each depositing `hits_per_track`
              hits around the shower centre (Gaussian, sigma=shower_spread_cm)
        -> `n_dead_ends` hit-less leaf tracks (e.g. escaping neutrinos)

    Shower centres sit on a ring of radius `shower_separation_cm` so that
    showers stay apart while tracks within one shower are close.
    Track ids are 1..N in creation order.
    """
    rng = rng or np.random.default_rng()
    tracks: List[TrackRecord] = []
    hits: List[Hit] = []
    next_id = 1

    def new_track(parent: int | None, energy: float, pdgid: int) -> int:
        nonlocal next_id
        tid = next_id
        next_id += 1
        tracks.append(TrackRecord(
            track_id=tid,
            no_parent=parent is None,
            parent_track_id=0 if parent is None else parent,
            energy=float(energy),
            pdgid=pdgid,
        ))
        return tid

    root = new_track(None, 100.0, PDG_PION)

    for s in range(n_showers):
        phi = 2.0 * np.pi * s / max(n_showers, 1)
        centre = np.array([shower_separation_cm * np.cos(phi),
                           shower_separation_cm * np.sin(phi),
                           300.0 + rng.uniform(0.0, 20.0)])
        parent = root
        for _ in range(chain_length):
            parent = new_track(parent, rng.uniform(10.0, 50.0), PDG_PHOTON)
        for _ in range(tracks_per_shower):
            tid = new_track(parent, rng.uniform(0.1, 10.0), PDG_ELECTRON)
            for _ in range(hits_per_track):
                x, y, z = centre + rng.normal(0.0, shower_spread_cm, size=3)
                hits.append(Hit(x=float(x), y=float(y), z=float(z),
                                t=float(rng.uniform(1.0, 5.0)),
                                energy=float(rng.exponential(0.05)),
                                track_id=tid))

    for _ in range(n_dead_ends):
        new_track(root, rng.uniform(0.1, 5.0), 12)

    return tracks, hits
