import numpy as np
import pytest

from vinetree.nj import (
    diameter_leaves,
    distance_on_tree,
    fast_infer,
    infer_tree,
    jc_distance,
    jc_distance_matrix,
    repair_zero_branches,
    reset_q,
    tree_to_distances,
    update_d,
)
from vinetree.tree import TreeNode

NAMES5 = ["a", "b", "c", "d", "e"]


def leaf(name, length):
    return TreeNode(name=name, dparent=length)


def inner(left, right, length=0.0):
    node = TreeNode(dparent=length)
    node.add_child(left)
    node.add_child(right)
    return node


def five_taxon_tree():
    root = inner(
        inner(leaf("a", 0.1), leaf("b", 0.2), 0.3),
        inner(leaf("c", 0.4), inner(leaf("d", 0.5), leaf("e", 0.6), 0.7), 0.8),
    )
    root.reindex()
    return root


def four_taxon_tree():
    root = inner(
        inner(leaf("a", 0.1), leaf("b", 0.2), 0.5),
        inner(leaf("c", 0.3), leaf("d", 0.4), 0.5),
    )
    root.reindex()
    return root


def find(tree, name):
    return next(n for n in tree.preorder() if n.name == name)


def test_reset_q_picks_minimum():
    D = tree_to_distances(four_taxon_tree(), ["a", "b", "c", "d"])
    Q = np.zeros((4, 4))
    active = np.ones(4, dtype=bool)
    u, v, sums = reset_q(Q, D, active, 4)
    full = D + D.T
    assert np.allclose(sums, full.sum(axis=1))
    for i in range(4):
        for j in range(i + 1, 4):
            assert Q[u, v] <= Q[i, j]
    assert (u, v) in {(0, 1), (2, 3)}


def test_reset_q_needs_two_active():
    D = np.zeros((3, 3))
    active = np.array([True, False, False])
    with pytest.raises(ValueError):
        reset_q(np.zeros((3, 3)), D, active, 3)


def test_reset_q_dimension_mismatch():
    with pytest.raises(ValueError):
        reset_q(np.zeros((3, 3)), np.zeros((4, 4)), np.ones(4, dtype=bool), 4)


def test_update_d_order_checked():
    D = np.zeros((6, 6))
    active = np.array([True, True, True, True, False, False])
    with pytest.raises(ValueError):
        update_d(D, 1, 0, 4, active, np.zeros(6))


def test_update_d_too_few_active():
    D = np.zeros((4, 4))
    active = np.array([True, True, False, False])
    with pytest.raises(ValueError):
        update_d(D, 0, 1, 2, active, np.zeros(4))


def test_update_d_nonnegative():
    D = np.zeros((6, 6))
    D[0, 1], D[0, 2], D[0, 3] = 1.0, 0.1, 0.1
    D[1, 2], D[1, 3], D[2, 3] = 0.1, 0.1, 5.0
    active = np.array([True, True, True, True, False, False])
    _, _, sums = reset_q(np.zeros((6, 6)), D, active, 4)
    update_d(D, 0, 1, 4, active, sums)
    assert D[0, 4] >= 0 and D[1, 4] >= 0
    assert D[2, 4] >= 0 and D[3, 4] >= 0


@pytest.mark.parametrize("infer", [infer_tree, fast_infer])
def test_recovers_additive_distances(infer):
    D = tree_to_distances(five_taxon_tree(), NAMES5)
    result = infer(D, NAMES5)
    assert sorted(result.leaf_names()) == NAMES5
    assert result.nnodes == 2 * len(NAMES5) - 1
    assert result.id == result.nnodes - 1
    assert np.allclose(tree_to_distances(result, NAMES5), D)


@pytest.mark.parametrize("infer", [infer_tree, fast_infer])
def test_leaf_ids_follow_names(infer):
    D = tree_to_distances(five_taxon_tree(), NAMES5)
    result = infer(D, NAMES5)
    for i, name in enumerate(NAMES5):
        assert result.nodes[i].name == name


def test_input_not_altered():
    D = tree_to_distances(five_taxon_tree(), NAMES5)
    saved = D.copy()
    infer_tree(D, NAMES5)
    fast_infer(D, NAMES5)
    assert np.array_equal(D, saved)


def test_fast_matches_plain():
    rng = np.random.default_rng(7)
    n = 8
    names = [f"t{i}" for i in range(n)]
    D = np.triu(rng.uniform(0.5, 2.0, size=(n, n)), 1)
    slow = tree_to_distances(infer_tree(D, names), names)
    fast = tree_to_distances(fast_infer(D, names), names)
    assert np.allclose(slow, fast)


@pytest.mark.parametrize("infer", [infer_tree, fast_infer])
def test_bad_matrix_rejected(infer):
    with pytest.raises(ValueError):
        infer(np.zeros((2, 2)), ["a", "b"])
    with pytest.raises(ValueError):
        infer(np.zeros((3, 4)), ["a", "b", "c"])


def test_jc_identical_is_zero():
    assert jc_distance("ACGTACGT", "ACGTACGT") == 0.0


def test_jc_saturated():
    assert jc_distance("AAAA", "CCCC") == 3.0


def test_jc_skips_gaps_and_missing():
    assert jc_distance("ACG-", "ACGT") == 0.0
    assert jc_distance("ACGN", "ACGT") == 0.0


def test_jc_increases_with_differences():
    one = jc_distance("AAAAAAAA", "AAAAAAAC")
    two = jc_distance("AAAAAAAA", "AAAAAACC")
    assert 0 < one < two


def test_jc_no_comparable_positions():
    with pytest.raises(ValueError):
        jc_distance("--", "NN")


def test_jc_matrix_upper_triangular():
    seqs = ["ACGTACGT", "ACGTACGA", "TCGTACGA"]
    D = jc_distance_matrix(seqs)
    assert D.shape == (3, 3)
    assert np.all(np.tril(D) == 0)
    assert D[0, 2] == jc_distance(seqs[0], seqs[2])


def test_distance_on_tree_paths():
    tree = five_taxon_tree()
    a, b, c = find(tree, "a"), find(tree, "b"), find(tree, "c")
    assert distance_on_tree(tree, a, b) == pytest.approx(a.dparent + b.dparent)
    expected = a.dparent + a.parent.dparent + c.parent.dparent + c.dparent
    assert distance_on_tree(tree, a, c) == pytest.approx(expected)
    assert distance_on_tree(tree, a, a) == 0.0


def test_tree_to_distances_zero_lengths_defaulted():
    root = inner(inner(leaf("a", 0), leaf("b", 0)), leaf("c", 0))
    root.reindex()
    D = tree_to_distances(root, ["a", "b", "c"])
    assert all(n.dparent == 0.1 for n in root.nodes if n.parent is not None)
    assert D[0, 1] == pytest.approx(distance_on_tree(root, find(root, "a"), find(root, "b")))


def test_tree_to_distances_name_count_mismatch():
    with pytest.raises(ValueError):
        tree_to_distances(five_taxon_tree(), ["a", "b"])


def test_tree_to_distances_unknown_name():
    with pytest.raises(ValueError):
        tree_to_distances(five_taxon_tree(), ["a", "b", "c", "d", "z"])


def test_diameter_leaves():
    D = np.zeros((4, 4))
    D[0, 1], D[1, 3], D[2, 3] = 1.0, 4.0, 2.0
    assert diameter_leaves(D) == (1, 3)
    assert diameter_leaves(np.zeros((3, 3))) is None


def test_repair_zero_branches():
    root = inner(leaf("a", 0.0), leaf("b", -1.0))
    root.lchild.dparent = 0.0
    repair_zero_branches(root)
    assert root.lchild.dparent == 1e-3
    assert root.rchild.dparent == 1e-3
    assert root.dparent == 0.0