import pytest

from simmerger.diagnostics import LineRecorder
from simmerger.tree.errors import StructureError
from simmerger.tree.traversal import DownIterator, dfs, iter_up

#        1
#      / | \
#     2  5  6
#    / \     \
#   3   4     7
PARENTS = {1: None, 2: 1, 3: 2, 4: 2, 5: 1, 6: 1, 7: 6}


def test_down_iterator_preorder_and_depth(build_tree):
    tree = build_tree(PARENTS)
    it = DownIterator(tree)
    visited = [(node.track_id, it.depth) for node in it]
    assert visited == [(1, 0), (2, 1), (3, 2), (4, 2), (5, 1), (6, 1), (7, 2)]


def test_dfs_snapshot_matches_live_iterator(build_tree):
    tree = build_tree(PARENTS)
    it = DownIterator(tree)
    live = [(node.track_id, it.depth) for node in it]
    snap = [(node.track_id, depth) for node, depth in dfs(tree)]
    assert live == snap


def test_down_iterator_on_subtree_stops_at_start(build_tree):
    tree = build_tree(PARENTS)
    assert [n.track_id for n in DownIterator(tree, 2)] == [2, 3, 4]
    assert [n.track_id for n in DownIterator(tree, 5)] == [5]


def test_iter_up_reaches_root(build_tree):
    tree = build_tree(PARENTS)
    assert [n.track_id for n in iter_up(tree, 7)] == [7, 6, 1]
    assert [n.track_id for n in iter_up(tree, 1)] == [1]


def test_clearing_children_before_advancing_skips_subtree(build_tree):
    tree = build_tree(PARENTS)
    it = DownIterator(tree)
    seen = []
    for node in it:
        seen.append(node.track_id)
        if node.track_id == 2:
            node.child_ids.clear()
    assert seen == [1, 2, 5, 6, 7]


def test_detach_after_advancing_is_tolerated(build_tree):
    tree = build_tree(PARENTS)
    it = DownIterator(tree)
    seen = []
    node = next(it)
    while node is not None:
        seen.append(node.track_id)
        following = next(it, None)
        if node.track_id == 5:
            tree.detach(5)
        node = following
    assert seen == [1, 2, 3, 4, 5, 6, 7]
    assert tree.get(1).child_ids == [2, 6]


def test_detach_before_advancing_is_detected(build_tree):
    tree = build_tree(PARENTS)
    it = DownIterator(tree)
    for node in it:
        if node.track_id == 5:
            tree.detach(5)
            with pytest.raises(StructureError):
                next(it)
            break


def test_trace_messages(build_tree):
    tree = build_tree({1: None, 2: 1})
    rec = LineRecorder()
    list(DownIterator(tree, log=rec))
    assert rec.lines[0] == "[traverse] track 1: going to first child 2"
    assert rec.lines[-1] == "[traverse] back at the start node; stopping"


def test_stringrep_golden(build_tree):
    tree = build_tree(PARENTS, hits={3: [(0, 0, 0), (1, 0, 0)], 7: [(5, 5, 5)]})
    assert tree.stringrep() == "\n".join([
        "Track 1 (0 hits)",
        "--Track 2 (0 hits)",
        "----Track 3 (2 hits)",
        "----Track 4 (0 hits)",
        "--Track 5 (0 hits)",
        "--Track 6 (0 hits)",
        "----Track 7 (1 hits)",
        "In total 7 tracks with 3 hits",
    ])
    assert tree.dfs_stringrep() == "\n".join(tree.stringrep().splitlines()[:-1])
