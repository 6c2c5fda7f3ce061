from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence

import h5py
import numpy as np

from simmerger.tree.traversal import dfs
from simmerger.tree.tree import TrackTree

FORMAT_VERSION = "1.0"
SOFTWARE = "sim-merger 0.1.0"

# event status codes
STATUS_OK = 0
STATUS_FAILED = 1


@dataclass
class ClusterRow:
    track_id: int
    pdgid: int
    energy: float
    nhits: int
    hit_energy: float
    centroid: np.ndarray  # (3,), NaN for hit-less nodes
    depth: int


@dataclass
class EventResult:
    event_id: int
    status: int = STATUS_OK
    n_input_tracks: int = 0
    n_input_hits: int = 0
    clusters: List[ClusterRow] = field(default_factory=list)
    error: str = ""


def surviving_track_ids(tree: TrackTree) -> List[int]:
    """One integer per surviving track, in pre-order."""
    return [node.track_id for node, _ in dfs(tree)]


def flatten_tree(tree: TrackTree) -> List[ClusterRow]:
    """Per-node summary rows in pre-order."""
    rows: List[ClusterRow] = []
    for node, depth in dfs(tree):
        c = node.centroid if node.has_hits() else np.full(3, np.nan)
        rows.append(ClusterRow(
            track_id=node.track_id,
            pdgid=node.pdgid,
            energy=node.energy,
            nhits=node.nhits,
            hit_energy=node.hit_energy,
            centroid=np.asarray(c, dtype=np.float64),
            depth=depth,
        ))
    return rows


def _replace_or_create(grp: h5py.Group, name: str, data: np.ndarray, **kwargs) -> None:
    if name in grp:
        del grp[name]
    if data.size == 0:
        # empty datasets cannot be chunked
        kwargs.pop("compression", None)
    grp.create_dataset(name, data=data, **kwargs)


def write_init(path: str, config_text: str = "") -> h5py.File:
    f = h5py.File(path, "w")
    f.attrs["format_version"] = FORMAT_VERSION
    f.attrs["created_utc"] = datetime.now(timezone.utc).isoformat()
    f.attrs["software"] = SOFTWARE
    f.attrs["config_text"] = config_text
    return f


def write_clusters(f: h5py.File, results: Sequence[EventResult]) -> None:
    """
    Store per-event cluster rows as CSR-style ragged columns.

    Layout:

    /clusters/event_ptr     (N_events+1,) int64   pointers into the flat columns
    /clusters/track_id      (M,) int64
    /clusters/pdgid         (M,) int32
    /clusters/energy        (M,) float32          track energy
    /clusters/nhits         (M,) int32
    /clusters/hit_energy    (M,) float32          summed hit energy
    /clusters/centroid_xyz  (M, 3) float32        NaN for hit-less nodes
    /clusters/depth         (M,) int16

    /events/event_id        (N_events,) int64
    /events/status          (N_events,) uint8     0=ok, 1=failed
    /events/n_input_tracks  (N_events,) int32
    /events/n_input_hits    (N_events,) int32
    /events/error           (N_events,) str
    """
    n_events = len(results)
    ptr = np.zeros(n_events + 1, dtype=np.int64)
    for i, res in enumerate(results):
        ptr[i + 1] = ptr[i] + len(res.clusters)
    M = int(ptr[-1])

    track_id = np.empty(M, dtype=np.int64)
    pdgid = np.empty(M, dtype=np.int32)
    energy = np.empty(M, dtype=np.float32)
    nhits = np.empty(M, dtype=np.int32)
    hit_energy = np.empty(M, dtype=np.float32)
    centroid = np.empty((M, 3), dtype=np.float32)
    depth = np.empty(M, dtype=np.int16)

    w = 0
    for res in results:
        for row in res.clusters:
            track_id[w] = row.track_id
            pdgid[w] = row.pdgid
            energy[w] = row.energy
            nhits[w] = row.nhits
            hit_energy[w] = row.hit_energy
            centroid[w] = row.centroid
            depth[w] = row.depth
            w += 1

    g_cl = f.require_group("clusters")
    _replace_or_create(g_cl, "event_ptr", ptr)
    _replace_or_create(g_cl, "track_id", track_id, compression="gzip")
    _replace_or_create(g_cl, "pdgid", pdgid, compression="gzip")
    _replace_or_create(g_cl, "energy", energy, compression="gzip")
    _replace_or_create(g_cl, "nhits", nhits, compression="gzip")
    _replace_or_create(g_cl, "hit_energy", hit_energy, compression="gzip")
    _replace_or_create(g_cl, "centroid_xyz", centroid, compression="gzip")
    _replace_or_create(g_cl, "depth", depth, compression="gzip")

    g_ev = f.require_group("events")
    _replace_or_create(g_ev, "event_id", np.array([r.event_id for r in results], dtype=np.int64))
    _replace_or_create(g_ev, "status", np.array([r.status for r in results], dtype=np.uint8))
    _replace_or_create(g_ev, "n_input_tracks", np.array([r.n_input_tracks for r in results], dtype=np.int32))
    _replace_or_create(g_ev, "n_input_hits", np.array([r.n_input_hits for r in results], dtype=np.int32))
    _replace_or_create(g_ev, "error", np.array([r.error for r in results], dtype=object),
                       dtype=h5py.string_dtype())


def read_clusters(path: str) -> Dict[str, np.ndarray]:
    """Read everything written by write_clusters back as flat numpy arrays."""
    out: Dict[str, np.ndarray] = {}
    with h5py.File(str(path), "r") as f:
        for grp_name in ("clusters", "events"):
            grp = f[grp_name]
            for key in grp.keys():
                arr = grp[key]
                if key == "error":
                    out[f"{grp_name}/{key}"] = np.array(arr.asstr()[...], dtype=object)
                else:
                    out[f"{grp_name}/{key}"] = np.array(arr)
    return out


def clusters_for_event(data: Dict[str, np.ndarray], index: int, column: str = "track_id") -> np.ndarray:
    """Slice one event's rows out of a flat cluster column."""
    ptr = data["clusters/event_ptr"]
    return data[f"clusters/{column}"][ptr[index]:ptr[index + 1]]
