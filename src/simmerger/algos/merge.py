# src/simmerger/algos/merge.py
"""
Greedy nearest-neighbour merging of sibling clusters.

For every leaf-parent (a node whose children are all leaves) the children,
plus the leaf-parent itself when it has hits and is not the root, form the
mergeable set. The closest pair of clusters (hit-centroid distance strictly
below `max_radius`) is merged repeatedly: the more energetic track survives
and takes over the hits and children of the other one. Afterwards a
non-root leaf-parent is replaced by the surviving clusters in its parent's
children. Passes over all leaf-parents are repeated until nothing changes,
which leaves a root whose children are well separated leaf clusters.

When several pairs share the minimal distance, the first pair found in
scan order (i < j over the mergeable list) is taken, so the resulting
clusters depend on sibling order in that case.
"""
from __future__ import annotations
from typing import List, Optional, Tuple

from simmerger.diagnostics import LogFn, resolve_log
from simmerger.physics.centroid import distance
from simmerger.tree.node import Node
from simmerger.tree.traversal import dfs
from simmerger.tree.tree import TrackTree


def find_closest_pair(mergeable: List[Node], max_radius: float) -> Optional[Tuple[Node, Node, float]]:
    """
    Return (survivor, absorbed, distance) for the closest pair strictly within
    `max_radius`, or None. Nodes without hits have no centroid and are never
    paired.
    """
    best: Optional[Tuple[Node, Node, float]] = None
    min_r = max_radius
    n = len(mergeable)
    for i in range(n):
        left = mergeable[i]
        if not left.has_hits():
            continue
        for j in range(i + 1, n):
            right = mergeable[j]
            if not right.has_hits():
                continue
            r = distance(left, right)
            if r < min_r:
                min_r = r
                # ties in energy go to the later node
                best = (left, right, r) if left.energy > right.energy else (right, left, r)
    return best


def _absorb(tree: TrackTree, survivor: Node, absorbed: Node) -> None:
    for cid in list(absorbed.child_ids):
        tree.detach(cid)
        tree.reparent(cid, survivor.track_id)
    survivor.add_hits(absorbed.take_hits())
    if absorbed.has_parent():
        tree.detach(absorbed.track_id)
    survivor.recompute_centroid()


def merge_leaf_parent(tree: TrackTree, leaf_parent_id: int, max_radius: float = 10.0,
                      log: Optional[LogFn] = None) -> bool:
    """
    Merge the clusters below one leaf-parent.

    Returns True if the tree changed: a merge happened or, for a non-root
    leaf-parent, the surviving clusters were moved up to its parent.
    """
    log = resolve_log(log)
    lp = tree.get(leaf_parent_id)
    log(f"[merge]   merging leaf-parent {lp.track_id}")
    parent_id = lp.parent_id
    lp_had_hits = lp.has_hits()

    # Children float free while the merge runs; re-linked below.
    mergeable: List[Node] = []
    for cid in list(lp.child_ids):
        tree.detach(cid)
        mergeable.append(tree.get(cid))
    if parent_id is not None and lp_had_hits:
        mergeable.append(lp)

    did_merge = False
    while True:
        pair = find_closest_pair(mergeable, max_radius)
        if pair is None:
            break
        survivor, absorbed, r = pair
        log(f"[merge]     merging {absorbed.track_id} into {survivor.track_id} (r={r:.3f})")
        _absorb(tree, survivor, absorbed)
        mergeable.remove(absorbed)
        del tree.nodes[absorbed.track_id]
        did_merge = True

    survivors = ", ".join(str(n.track_id) for n in mergeable)

    if parent_id is None:
        for node in mergeable:
            tree.reparent(node.track_id, lp.track_id)
        if did_merge:
            log(f"[merge]     root {lp.track_id} is set to have the following children: {survivors}")
        else:
            log(f"[merge]     root {lp.track_id}: no further merging possible")
        return did_merge

    if not lp_had_hits and len(mergeable) == 1 and mergeable[0].pdgid != lp.pdgid:
        log(f"[merge]     using leaf-parent pdgid {lp.pdgid} for track {mergeable[0].track_id} "
            f"(rather than {mergeable[0].pdgid}) since all clusters were merged into one")
        mergeable[0].pdgid = lp.pdgid

    log(f"[merge]     adding the following children to parent {parent_id}: {survivors}")
    if lp.has_parent():
        tree.detach(lp.track_id)
    if lp not in mergeable and lp.track_id in tree.nodes:
        del tree.nodes[lp.track_id]
    for node in mergeable:
        tree.reparent(node.track_id, parent_id)
    return True


def leaf_parents(tree: TrackTree) -> List[int]:
    return [node.track_id for node, _ in dfs(tree) if tree.is_leaf_parent(node.track_id)]


def run_merge_to_fixed_point(tree: TrackTree, max_radius: float = 10.0, log: Optional[LogFn] = None,
                             max_iterations: Optional[int] = None) -> int:
    """
    Merge bottom-up until a full pass over all leaf-parents changes nothing.

    Returns the number of passes that changed the tree.
    """
    log = resolve_log(log)
    iteration = 0
    while True:
        log(f"[merge] iteration {iteration}")
        changed = False
        for lp_id in leaf_parents(tree):
            if not tree.is_attached(lp_id):
                continue
            changed |= merge_leaf_parent(tree, lp_id, max_radius=max_radius, log=log)
        if not changed:
            break
        iteration += 1
        if max_iterations is not None and iteration > max_iterations:
            raise RuntimeError(f"Merging did not converge within {max_iterations} iterations")
    tree.compact()
    log(f"[merge] done after iteration {iteration}")
    return iteration
