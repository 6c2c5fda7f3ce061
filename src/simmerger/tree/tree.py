"""
simmerger.tree.tree

TrackTree: the arena that owns every Node of one event, addressed by track id.

Structural primitives
---------------------
- detach(track_id): unlink a node from its parent. The node's `parent_id` is
  cleared; the node (and whatever it still lists as children) stays in the
  arena as a self-contained tree until `compact()` drops it.
- collapse_intermediate(track_id): splice a node out, promoting its children
  (in order) to the end of its former parent's children. The node is
  discarded from the arena.
- reparent(child_id, parent_id): append a parentless node to a new parent.
"""
from __future__ import annotations
from typing import Dict, Iterable, Iterator, List, Optional

from simmerger.diagnostics import LogFn, resolve_log
from simmerger.physics.hits import Hit
from simmerger.physics.tracks import TrackRecord
from simmerger.tree.errors import StructureError
from simmerger.tree.node import Node
from simmerger.tree.traversal import DownIterator, dfs, iter_up


class TrackTree:

    def __init__(self, nodes: Optional[Dict[int, Node]] = None, root_id: Optional[int] = None):
        self.nodes: Dict[int, Node] = dict(nodes or {})
        self.root_id = root_id

    # -----------------------------------------------------------------------
    # Construction
    # -----------------------------------------------------------------------

    @classmethod
    def from_records(
        cls,
        tracks: Iterable[TrackRecord],
        hits: Iterable[Hit] = (),
        log: Optional[LogFn] = None,
    ) -> "TrackTree":
        """
        Build the tree of one event.

        The first track without a parent becomes the root; further primaries
        are reported and dropped together with their descendants.
        """
        log = resolve_log(log)
        tracks = list(tracks)
        tree = cls()

        for tr in tracks:
            if tr.track_id in tree.nodes:
                raise StructureError(f"Track id {tr.track_id} appears more than once", tr.track_id)
            tree.nodes[tr.track_id] = Node(tr.track_id, tr.energy, tr.pdgid)

        for hit in hits:
            node = tree.nodes.get(hit.track_id)
            if node is None:
                raise StructureError(f"Hit refers to track id {hit.track_id} which is not in the map",
                                     hit.track_id)
            node.add_hit(hit)

        roots: List[int] = []
        for tr in tracks:
            if tr.no_parent:
                roots.append(tr.track_id)
                continue
            parent = tree.nodes.get(tr.parent_track_id)
            if parent is None:
                raise StructureError(f"Track id {tr.parent_track_id} is not in the map",
                                     tr.parent_track_id)
            tree.nodes[tr.track_id].parent_id = parent.track_id
            parent.child_ids.append(tr.track_id)

        if not roots:
            raise StructureError("No primary track (track without parent vertex) found")
        tree.root_id = roots[0]
        log(f"[build] found root: {tree.root_id}")
        if len(roots) > 1:
            log(f"[build] ignoring {len(roots) - 1} additional primaries: {roots[1:]}")
        dropped = tree.compact()
        if dropped:
            log(f"[build] dropped {dropped} tracks not connected to root {tree.root_id}")
        return tree

    # -----------------------------------------------------------------------
    # Access
    # -----------------------------------------------------------------------

    @property
    def root(self) -> Node:
        if self.root_id is None:
            raise StructureError("Tree has no root")
        return self.nodes[self.root_id]

    def get(self, track_id: int) -> Node:
        try:
            return self.nodes[track_id]
        except KeyError:
            raise KeyError(f"Track id {track_id} is not in the tree") from None

    def __contains__(self, track_id: object) -> bool:
        return track_id in self.nodes

    def __iter__(self) -> Iterator[Node]:
        return DownIterator(self)

    def __len__(self) -> int:
        return sum(1 for _ in DownIterator(self))

    def is_attached(self, track_id: int) -> bool:
        """True if the node is enumerable from the root."""
        if track_id not in self.nodes:
            return False
        return any(n.track_id == self.root_id for n in iter_up(self, track_id))

    def hits(self) -> List[Hit]:
        out: List[Hit] = []
        for node in self:
            out.extend(node.hits)
        return out

    def nhits(self) -> int:
        return sum(node.nhits for node in self)

    def max_depth(self) -> int:
        return max(depth for _, depth in dfs(self))

    def is_leaf_parent(self, track_id: int) -> bool:
        """A node with children, none of which has children itself."""
        node = self.get(track_id)
        if node.is_leaf():
            return False
        return all(self.nodes[c].is_leaf() for c in node.child_ids)

    def ancestor_ids(self, track_id: int) -> List[int]:
        return [n.track_id for n in iter_up(self, track_id)]

    # -----------------------------------------------------------------------
    # Mutation primitives
    # -----------------------------------------------------------------------

    def detach(self, track_id: int) -> None:
        node = self.get(track_id)
        if node.parent_id is None:
            raise StructureError(f"Cannot detach track {track_id}: it has no parent (root?)", track_id)
        siblings = self.nodes[node.parent_id].child_ids
        siblings[:] = [c for c in siblings if c != track_id]
        node.parent_id = None

    def reparent(self, child_id: int, parent_id: int) -> None:
        child = self.get(child_id)
        if child.parent_id is not None:
            raise StructureError(
                f"Track {child_id} still has parent {child.parent_id}; detach it first", child_id
            )
        self.get(parent_id).child_ids.append(child_id)
        child.parent_id = parent_id

    def collapse_intermediate(self, track_id: int) -> None:
        node = self.get(track_id)
        parent_id = node.parent_id
        if parent_id is None:
            raise StructureError(f"Cannot collapse track {track_id}: it has no parent", track_id)
        self.detach(track_id)
        children, node.child_ids = node.child_ids, []
        for cid in children:
            self.nodes[cid].parent_id = None
            self.reparent(cid, parent_id)
        del self.nodes[track_id]

    def compact(self) -> int:
        """Drop arena entries that are not reachable from the root; return how many."""
        if self.root_id is None:
            return 0
        reachable = {node.track_id for node, _ in dfs(self)}
        stale = [tid for tid in self.nodes if tid not in reachable]
        for tid in stale:
            del self.nodes[tid]
        return len(stale)

    # -----------------------------------------------------------------------
    # Dumps
    # -----------------------------------------------------------------------

    def stringrep(self) -> str:
        lines = []
        n_tracks = 0
        n_hits = 0
        it = DownIterator(self)
        for node in it:
            lines.append("--" * it.depth + f"Track {node.track_id} ({node.nhits} hits)")
            n_tracks += 1
            n_hits += node.nhits
        lines.append(f"In total {n_tracks} tracks with {n_hits} hits")
        return "\n".join(lines)

    def dfs_stringrep(self) -> str:
        return "\n".join(
            "--" * depth + f"Track {node.track_id} ({node.nhits} hits)" for node, depth in dfs(self)
        )

    def describe(self) -> str:
        return "\n".join(
            "__" * depth + f"{node.track_id} E={node.energy:.2f} pdg={node.pdgid} nhits={node.nhits}"
            for node, depth in dfs(self)
        )

    def __repr__(self) -> str:
        return f"TrackTree(root={self.root_id}, arena={len(self.nodes)} nodes)"
