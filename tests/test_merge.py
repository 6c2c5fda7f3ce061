from collections import Counter
from itertools import combinations

import numpy as np
import pytest

from simmerger.algos.merge import (
    find_closest_pair,
    leaf_parents,
    merge_leaf_parent,
    run_merge_to_fixed_point,
)
from simmerger.algos.trim import trim_tree
from simmerger.diagnostics import LineRecorder
from simmerger.physics.centroid import distance
from simmerger.sim.synth import synth_shower_event
from simmerger.tree.traversal import dfs
from simmerger.tree.tree import TrackTree


def _shape(tree):
    return [(node.track_id, depth) for node, depth in dfs(tree)]


def test_three_siblings_two_clusters(build_tree, check_tree):
    tree = build_tree({1: None, 2: 1, 3: 1, 4: 1},
                      hits={2: [(0, 0, 0)], 3: [(1, 0, 0)], 4: [(100, 0, 0)]})
    assert merge_leaf_parent(tree, 1, max_radius=10.0)
    check_tree(tree)
    children = tree.get(1).child_ids
    assert len(children) == 2
    assert 4 in children
    (merged_id,) = [c for c in children if c != 4]
    assert merged_id in (2, 3)
    merged = tree.get(merged_id)
    assert merged.nhits == 2
    np.testing.assert_allclose(merged.centroid, [0.5, 0.0, 0.0])
    assert tree.get(4).nhits == 1


def test_survivor_is_the_more_energetic_track(build_tree):
    tree = build_tree({1: None, 2: 1, 3: 1}, hits={2: [(0, 0, 0)], 3: [(1, 0, 0)]},
                      energies={2: 5.0, 3: 1.0})
    merge_leaf_parent(tree, 1, max_radius=10.0)
    assert tree.get(1).child_ids == [2]
    assert 3 not in tree.nodes


def test_distance_must_be_strictly_below_radius(build_tree):
    tree = build_tree({1: None, 2: 1, 3: 1}, hits={2: [(0, 0, 0)], 3: [(10, 0, 0)]})
    assert not merge_leaf_parent(tree, 1, max_radius=10.0)
    assert tree.get(1).child_ids == [2, 3]


def test_root_without_merges_reports_no_change(build_tree):
    rec = LineRecorder()
    tree = build_tree({1: None, 2: 1}, hits={2: [(0, 0, 0)]})
    assert not merge_leaf_parent(tree, 1, log=rec)
    assert rec.lines[-1] == "[merge]     root 1: no further merging possible"


def test_root_hits_are_never_merged(build_tree):
    tree = build_tree({1: None, 2: 1}, hits={1: [(0, 0, 0)], 2: [(0, 0, 0)]})
    assert not merge_leaf_parent(tree, 1)
    assert tree.get(1).nhits == 1
    assert tree.get(2).nhits == 1


def test_leaf_parent_with_hits_can_absorb_children(build_tree, check_tree):
    # 2 is a non-root leaf-parent with hits; it is mergeable itself
    tree = build_tree({1: None, 2: 1, 3: 2, 4: 2},
                      hits={2: [(0, 0, 0)], 3: [(1, 0, 0)], 4: [(50, 0, 0)]},
                      energies={2: 10.0, 3: 1.0, 4: 1.0})
    assert merge_leaf_parent(tree, 2)
    check_tree(tree)
    # 3 merged into 2; both survivors now hang from the root
    assert sorted(tree.get(1).child_ids) == [2, 4]
    assert tree.get(2).nhits == 2
    assert tree.get(2).is_leaf()


def test_leaf_parent_can_be_absorbed_by_a_child(build_tree, check_tree):
    tree = build_tree({1: None, 2: 1, 3: 2},
                      hits={2: [(0, 0, 0)], 3: [(1, 0, 0)]},
                      energies={2: 1.0, 3: 10.0})
    assert merge_leaf_parent(tree, 2)
    check_tree(tree)
    assert _shape(tree) == [(1, 0), (3, 1)]
    assert tree.get(3).nhits == 2
    assert 2 not in tree.nodes


def test_hitless_leaf_parent_passes_pdgid_to_single_survivor(build_tree):
    tree = build_tree({1: None, 2: 1, 3: 2, 4: 2},
                      hits={3: [(0, 0, 0)], 4: [(1, 0, 0)]},
                      pdgids={2: 22, 3: 11, 4: 11})
    rec = LineRecorder()
    assert merge_leaf_parent(tree, 2, log=rec)
    (survivor,) = tree.get(1).child_ids
    assert tree.get(survivor).pdgid == 22
    assert any("using leaf-parent pdgid 22" in line for line in rec.lines)


def test_pdgid_is_kept_when_more_than_one_cluster_survives(build_tree):
    tree = build_tree({1: None, 2: 1, 3: 2, 4: 2},
                      hits={3: [(0, 0, 0)], 4: [(100, 0, 0)]},
                      pdgids={2: 22, 3: 11, 4: 11})
    assert merge_leaf_parent(tree, 2)
    assert tree.get(1).child_ids == [3, 4]
    assert tree.get(3).pdgid == 11 and tree.get(4).pdgid == 11


def test_non_root_leaf_parent_is_replaced_by_survivors(build_tree, check_tree):
    tree = build_tree({1: None, 2: 1, 3: 2, 4: 2, 5: 1},
                      hits={3: [(0, 0, 0)], 4: [(100, 0, 0)], 5: [(500, 0, 0)]})
    assert merge_leaf_parent(tree, 2)
    check_tree(tree)
    assert tree.get(1).child_ids == [5, 3, 4]
    assert 2 not in tree.nodes


def test_hitless_nodes_are_never_paired(build_tree):
    tree = build_tree({1: None, 2: 1, 3: 1, 4: 1}, hits={2: [(0, 0, 0)], 3: [(1, 0, 0)]})
    mergeable = [tree.get(c) for c in (2, 3, 4)]
    survivor, absorbed, r = find_closest_pair(mergeable, 10.0)
    assert {survivor.track_id, absorbed.track_id} == {2, 3}
    assert r == pytest.approx(1.0)
    assert find_closest_pair([tree.get(4), tree.get(2)], 10.0) is None


def test_closest_pair_is_merged_first(build_tree):
    tree = build_tree({1: None, 2: 1, 3: 1, 4: 1},
                      hits={2: [(0, 0, 0)], 3: [(6, 0, 0)], 4: [(8, 0, 0)]},
                      energies={2: 3.0, 3: 2.0, 4: 1.0})
    merge_leaf_parent(tree, 1, max_radius=5.0)
    # 3 and 4 (r=2) merge; the merged centroid (7,0,0) is too far from 2
    assert tree.get(1).child_ids == [2, 3]
    np.testing.assert_allclose(tree.get(3).centroid, [7.0, 0.0, 0.0])


def _nested_tree(build_tree):
    #      1
    #    /   \
    #   2     6
    #  / \   / \
    # 3   4 7   8
    #     |
    #     5
    return build_tree(
        {1: None, 2: 1, 3: 2, 4: 2, 5: 4, 6: 1, 7: 6, 8: 6},
        hits={
            3: [(0, 0, 0)],
            4: [(2, 0, 0)],
            5: [(3, 0, 0)],
            7: [(100, 0, 0)],
            8: [(100, 3, 0)],
        },
        energies={3: 4.0, 4: 3.0, 5: 2.0, 7: 1.0, 8: 2.0},
    )


def test_fixed_point_flattens_to_separated_clusters(build_tree, check_tree):
    tree = _nested_tree(build_tree)
    run_merge_to_fixed_point(tree, max_radius=10.0)
    check_tree(tree)
    assert leaf_parents(tree) == [1]
    children = [tree.get(c) for c in tree.get(1).child_ids]
    assert sorted(c.track_id for c in children) == [3, 8]
    assert sorted(c.nhits for c in children) == [2, 3]
    for a, b in combinations(children, 2):
        assert distance(a, b) >= 10.0


def test_fixed_point_rerun_is_a_noop(build_tree):
    tree = _nested_tree(build_tree)
    run_merge_to_fixed_point(tree, max_radius=10.0)
    before = _shape(tree)
    assert run_merge_to_fixed_point(tree, max_radius=10.0) == 0
    assert _shape(tree) == before


def test_merge_conserves_hits(build_tree):
    tree = _nested_tree(build_tree)
    before = Counter(id(h) for h in tree.hits())
    run_merge_to_fixed_point(tree, max_radius=10.0)
    assert Counter(id(h) for h in tree.hits()) == before


def test_no_hit_is_shared_between_nodes(build_tree):
    tree = _nested_tree(build_tree)
    run_merge_to_fixed_point(tree, max_radius=10.0)
    owners = Counter(id(h) for node in tree for h in node.hits)
    assert all(n == 1 for n in owners.values())


def test_iteration_cap(build_tree):
    tree = _nested_tree(build_tree)
    with pytest.raises(RuntimeError):
        run_merge_to_fixed_point(tree, max_radius=10.0, max_iterations=0)


def test_synthetic_event_end_to_end(check_tree):
    rng = np.random.default_rng(12345)
    tracks, hits = synth_shower_event(rng, n_showers=3, tracks_per_shower=4, hits_per_track=5,
                                      shower_spread_cm=0.5)
    tree = TrackTree.from_records(tracks, hits)
    n_hits = tree.nhits()
    assert n_hits == 60

    trim_tree(tree)
    check_tree(tree)
    # dead ends gone, hit-less chains collapsed to the last photon of each shower
    assert tree.get(tree.root_id).child_ids == [3, 9, 15]

    run_merge_to_fixed_point(tree, max_radius=10.0)
    check_tree(tree)
    clusters = [tree.get(c) for c in tree.get(tree.root_id).child_ids]
    assert len(clusters) == 3
    assert all(c.is_leaf() for c in clusters)
    assert all(c.nhits == 20 for c in clusters)
    assert all(c.pdgid == 22 for c in clusters)
    assert tree.nhits() == n_hits
