"""
simmerger.io.adapters

Readers that turn exported simulation truth (track/vertex tables and calorimeter
hit tables) into per-event TrackRecord and Hit lists for tree building.

Design goals
------------
- Keep I/O concerns isolated from the tree algorithms.
- Be tolerant to column-name variants by using small, explicit field maps.
- Group by event once; hand out plain Python objects per event.

Input tables
------------
tracks : event, track_id, no_parent, parent_track_id, energy, pdgid
hits   : event, track_id, time, energy and either x, y, z
         or det_id (resolved through a DetectorGeometry)

Config (example)
----------------
[io]
input_path   = "tracks.csv"
hits_path    = "hits.csv"
input_format = "csv"            # "csv" | "parquet" | "hdf5"

[io.adapter]
hdf_key_tracks = "tracks"      # HDF5 only
hdf_key_hits   = "hits"
"""
from __future__ import annotations
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterator, List, Literal, Optional

import numpy as np
import pandas as pd

from simmerger.geometry.detector import DetectorGeometry
from simmerger.physics.hits import Hit, build_hits
from simmerger.physics.tracks import TrackRecord

# canonical column -> accepted source names
_TRACK_KEYS = {
    "event": ("event", "evt", "event_id"),
    "track_id": ("track_id", "trackid", "trackId"),
    "no_parent": ("no_parent", "noParent"),
    "parent_track_id": ("parent_track_id", "parentTrackId", "parent_id"),
    "energy": ("energy", "E"),
    "pdgid": ("pdgid", "pdg_id", "type"),
}

_HIT_KEYS = {
    "event": ("event", "evt", "event_id"),
    "track_id": ("track_id", "trackid", "geantTrackId"),
    "time": ("time", "t", "t_ns"),
    "energy": ("energy", "E", "Edep"),
    "x": ("x", "x_cm"),
    "y": ("y", "y_cm"),
    "z": ("z", "z_cm"),
    "det_id": ("det_id", "detid", "id"),
}


def _canonicalize(df: pd.DataFrame, keys: Dict[str, tuple], required: List[str], what: str) -> pd.DataFrame:
    rename = {}
    for canon, names in keys.items():
        for name in names:
            if name in df.columns:
                rename[name] = canon
                break
    df = df.rename(columns=rename)
    missing = [c for c in required if c not in df.columns]
    if missing:
        raise KeyError(f"{what} table is missing columns {missing} (have {list(df.columns)})")
    return df


def read_table(path: str | Path, fmt: Literal["csv", "parquet", "hdf5"], hdf_key: Optional[str] = None) -> pd.DataFrame:
    p = Path(path)
    if fmt == "csv":
        return pd.read_csv(p)
    if fmt == "parquet":
        return pd.read_parquet(p)
    if fmt == "hdf5":
        return pd.read_hdf(p, key=hdf_key)
    raise ValueError(f"Unrecognized input format {fmt!r} for {p.name}")


@dataclass
class EventInput:
    event_id: int
    tracks: List[TrackRecord]
    hits: List[Hit] = field(default_factory=list)


class TableAdapter:
    """
    Pairs a tracks table with a hits table and yields one EventInput per event.

    Parameters
    ----------
    tracks : DataFrame with the track columns (see module docstring)
    hits : DataFrame with the hit columns
    geometry : DetectorGeometry, required when hits have det_id but no x,y,z
    """

    def __init__(self, tracks: pd.DataFrame, hits: pd.DataFrame, geometry: Optional[DetectorGeometry] = None):
        self.tracks = _canonicalize(tracks, _TRACK_KEYS, list(_TRACK_KEYS), "Tracks")
        self.hits = _canonicalize(hits, _HIT_KEYS, ["event", "track_id", "time", "energy"], "Hits")
        self.has_xyz = all(c in self.hits.columns for c in ("x", "y", "z"))
        if not self.has_xyz:
            if "det_id" not in self.hits.columns:
                raise KeyError("Hits table needs either x,y,z or det_id columns")
            if geometry is None:
                raise ValueError("Hits carry det_id only; a DetectorGeometry is required")
        self.geometry = geometry

    @classmethod
    def from_paths(
        cls,
        tracks_path: str | Path,
        hits_path: str | Path,
        fmt: Literal["csv", "parquet", "hdf5"] = "csv",
        geometry_path: Optional[str | Path] = None,
        hdf_key_tracks: str = "tracks",
        hdf_key_hits: str = "hits",
    ) -> "TableAdapter":
        tracks = read_table(tracks_path, fmt, hdf_key_tracks)
        hits = read_table(hits_path, fmt, hdf_key_hits)
        geometry = DetectorGeometry.from_table(geometry_path) if geometry_path else None
        return cls(tracks, hits, geometry=geometry)

    def event_ids(self) -> List[int]:
        return sorted(int(e) for e in self.tracks["event"].unique())

    def _tracks_of(self, df: pd.DataFrame) -> List[TrackRecord]:
        return [
            TrackRecord(
                track_id=int(r.track_id),
                no_parent=bool(r.no_parent),
                parent_track_id=int(r.parent_track_id),
                energy=float(r.energy),
                pdgid=int(r.pdgid),
            )
            for r in df.itertuples(index=False)
        ]

    def _hits_of(self, df: pd.DataFrame) -> List[Hit]:
        if df.empty:
            return []
        if self.has_xyz:
            xyz = df[["x", "y", "z"]].to_numpy(dtype=np.float64)
            t = df["time"].to_numpy(dtype=np.float64)
            e = df["energy"].to_numpy(dtype=np.float64)
            tid = df["track_id"].to_numpy(dtype=np.int64)
            return [
                Hit(x=float(xyz[i, 0]), y=float(xyz[i, 1]), z=float(xyz[i, 2]),
                    t=float(t[i]), energy=float(e[i]), track_id=int(tid[i]))
                for i in range(len(df))
            ]
        raw = zip(df["det_id"].astype(int), df["time"], df["energy"], df["track_id"].astype(int))
        return build_hits(raw, self.geometry)

    def iter_events(self, max_events: Optional[int] = None) -> Iterator[EventInput]:
        hits_by_event = {int(k): g for k, g in self.hits.groupby("event", sort=True)}
        for n, (ev, tracks) in enumerate(self.tracks.groupby("event", sort=True)):
            if max_events is not None and n >= max_events:
                return
            ev = int(ev)
            hits = hits_by_event.get(ev)
            yield EventInput(
                event_id=ev,
                tracks=self._tracks_of(tracks),
                hits=self._hits_of(hits) if hits is not None else [],
            )


def make_adapter(io_cfg: Any) -> TableAdapter:
    """
    Create an adapter from the [io] config section.

    Expected keys under [io.adapter] (all optional):
      hdf_key_tracks: str   (HDF5 only)
      hdf_key_hits: str     (HDF5 only)
    """
    opts: Dict[str, Any] = dict(io_cfg.adapter or {})
    return TableAdapter.from_paths(
        io_cfg.input_path,
        io_cfg.hits_path,
        fmt=io_cfg.input_format,
        geometry_path=io_cfg.geometry_path,
        hdf_key_tracks=opts.get("hdf_key_tracks", "tracks"),
        hdf_key_hits=opts.get("hdf_key_hits", "hits"),
    )
