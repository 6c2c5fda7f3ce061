from typing import Dict, List, Optional, Sequence, Tuple

import pytest

from simmerger.physics.hits import Hit
from simmerger.physics.tracks import TrackRecord
from simmerger.tree.tree import TrackTree


def _build(
    parents: Dict[int, Optional[int]],
    hits: Optional[Dict[int, Sequence[Tuple[float, ...]]]] = None,
    energies: Optional[Dict[int, float]] = None,
    pdgids: Optional[Dict[int, int]] = None,
) -> TrackTree:
    """
    parents: track_id -> parent track_id (None for the root), in creation order
    hits: track_id -> [(x, y, z) or (x, y, z, energy), ...]
    """
    hits = hits or {}
    energies = energies or {}
    pdgids = pdgids or {}
    tracks = [
        TrackRecord(
            track_id=tid,
            no_parent=parent is None,
            parent_track_id=-1 if parent is None else parent,
            energy=energies.get(tid, 1.0),
            pdgid=pdgids.get(tid, 11),
        )
        for tid, parent in parents.items()
    ]
    hit_list: List[Hit] = []
    for tid, points in hits.items():
        for p in points:
            e = p[3] if len(p) > 3 else 1.0
            hit_list.append(Hit(x=p[0], y=p[1], z=p[2], t=0.0, energy=e, track_id=tid))
    return TrackTree.from_records(tracks, hit_list)


def _check(tree: TrackTree) -> None:
    """Every attached non-root node is listed exactly once by its parent."""
    seen = set()
    for node in tree:
        assert node.track_id not in seen
        seen.add(node.track_id)
        if node.track_id == tree.root_id:
            assert node.parent_id is None
            continue
        siblings = tree.get(node.parent_id).child_ids
        assert siblings.count(node.track_id) == 1
        assert len(set(siblings)) == len(siblings)
    assert seen == set(tree.nodes)


@pytest.fixture
def build_tree():
    return _build


@pytest.fixture
def check_tree():
    return _check
