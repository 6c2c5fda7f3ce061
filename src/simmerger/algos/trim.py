# src/simmerger/algos/trim.py
"""
Tree trimming.

Pass 1 removes every subtree that carries no hits at all: a node survives if
it has hits or is an ancestor of a node with hits (the "keep set"). The root
is always kept.

Pass 2 collapses hit-less pass-through nodes (one parent, exactly one child,
no hits) so that the child hangs directly from the grandparent. Pass 2 runs
once over a snapshot of the Pass 1 result and is not repeated; a node that
only becomes a pass-through because of an earlier collapse in the same pass
is left in place.
"""
from __future__ import annotations
from typing import Optional, Set

from simmerger.diagnostics import LogFn, resolve_log
from simmerger.tree.traversal import DownIterator, dfs, iter_up
from simmerger.tree.tree import TrackTree


def compute_keep_set(tree: TrackTree) -> Set[int]:
    """Ids of all nodes with hits plus all of their ancestors (and the root)."""
    keep: Set[int] = {tree.root_id}
    for node in DownIterator(tree):
        if not node.has_hits():
            continue
        for anc in iter_up(tree, node.track_id):
            if anc.track_id in keep and anc.track_id != node.track_id:
                # everything above is already in
                break
            keep.add(anc.track_id)
    return keep


def remove_hitless_subtrees(tree: TrackTree, log: Optional[LogFn] = None,
                            trace: Optional[LogFn] = None) -> int:
    """Pass 1. Returns the number of subtree roots detached."""
    log = resolve_log(log)
    keep = compute_keep_set(tree)
    n_removed = 0

    it = DownIterator(tree, log=trace)
    node = next(it, None)
    while node is not None:
        if node.track_id in keep:
            node = next(it, None)
            continue
        # Order matters: clear children so the iterator skips the subtree,
        # advance while the parent link is intact, then detach.
        node.child_ids.clear()
        following = next(it, None)
        log(f"[trim] removing track {node.track_id} (no hits in subtree)")
        tree.detach(node.track_id)
        n_removed += 1
        node = following
    return n_removed


def collapse_pass_through(tree: TrackTree, log: Optional[LogFn] = None) -> int:
    """Pass 2. Returns the number of nodes collapsed."""
    log = resolve_log(log)
    n_collapsed = 0
    for node, _depth in dfs(tree):
        if node.has_parent() and len(node.child_ids) == 1 and not node.has_hits():
            log(f"[trim] collapsing intermediate track {node.track_id} "
                f"(child {node.child_ids[0]} -> parent {node.parent_id})")
            tree.collapse_intermediate(node.track_id)
            n_collapsed += 1
    return n_collapsed


def trim_tree(tree: TrackTree, log: Optional[LogFn] = None, trace: Optional[LogFn] = None) -> TrackTree:
    """
    Run both trimming passes in place and return the same tree.

    `trace` receives the step-by-step messages of the Pass 1 traversal.
    """
    log = resolve_log(log)
    n_before = len(tree)
    n_removed = remove_hitless_subtrees(tree, log=log, trace=trace)
    tree.compact()
    n_collapsed = collapse_pass_through(tree, log=log)
    log(f"[trim] {n_before} -> {len(tree)} tracks "
        f"({n_removed} hit-less subtrees removed, {n_collapsed} intermediates collapsed)")
    return tree
