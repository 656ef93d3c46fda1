"""Neighbor joining and supporting distance computations."""

from __future__ import annotations

import heapq
import math
from itertools import combinations

import numpy as np

from vinetree.tree import TreeNode

GAP_CHAR = "-"
DEFAULT_MISSING = "N*"
_SATURATED_DISTANCE = 3.0
_MIN_BRANCH = 1e-3
_DEFAULT_BRANCH = 0.1


def _upper(D, i, j):
    return D[i, j] if i < j else D[j, i]


def reset_q(Q, D, active, maxidx):
    """Recompute the Q matrix over active nodes below ``maxidx``.

    ``Q`` and ``D`` are upper triangular; ``Q`` is updated in place.
    Returns ``(u, v, sums)``: the closest pair and the distance sum of each
    node to the other active nodes.
    """
    if D.shape[0] != D.shape[1] or D.shape != Q.shape:
        raise ValueError("dimension mismatch")
    idx = [i for i in range(maxidx) if active[i]]
    sums = np.zeros(len(active))
    for i, j in combinations(idx, 2):
        sums[i] += D[i, j]
        sums[j] += D[i, j]
    n = len(idx)
    best = math.inf
    u = v = 0
    for i, j in combinations(idx, 2):
        q = (n - 2) * D[i, j] - sums[i] - sums[j]
        Q[i, j] = q
        if q < best:
            best, u, v = q, i, j
    if best == math.inf:
        raise ValueError("fewer than two active taxa")
    return u, v, sums


def update_d(D, u, v, w, active, sums):
    """Add distances to new node ``w`` joining ``u`` and ``v`` (in place).

    Requires ``u < v < w`` and precomputed ``sums``.  Distances are kept
    non-negative.
    """
    n = int(np.count_nonzero(active))
    if D.shape[0] != D.shape[1]:
        raise ValueError("dimension mismatch")
    if v <= u or w <= v:
        raise ValueError("indices out of order")
    if n <= 2:
        raise ValueError("too few active nodes")
    D[u, w] = 0.5 * D[u, v] + 1.0 / (2.0 * (n - 2)) * (sums[u] - sums[v])
    D[v, w] = D[u, v] - D[u, w]
    if math.copysign(1.0, D[u, w]) < 0:
        D[u, w] = 0.0
    if math.copysign(1.0, D[v, w]) < 0:
        D[v, w] = 0.0
    for k in range(w):
        if active[k] and k != u and k != v:
            value = 0.5 * (_upper(D, u, k) + _upper(D, v, k) - D[u, v])
            D[k, w] = max(value, 0.0)


def _check_input(D, names):
    D = np.asarray(D, dtype=float)
    if D.ndim != 2 or D.shape[0] != D.shape[1] or D.shape[0] < 3:
        raise ValueError("bad distance matrix")
    if len(names) != D.shape[0]:
        raise ValueError("number of names must match distance matrix")
    return D, D.shape[0]


def _setup(initD, names, n):
    N = 2 * n - 2
    dist = np.zeros((N, N))
    active = np.zeros(N, dtype=bool)
    nodes = [TreeNode(i, str(name)) for i, name in enumerate(names)]
    active[:n] = True
    for i, j in combinations(range(n), 2):
        dist[i, j] = initD[i, j]
    return N, dist, active, nodes


def _join(nodes, dist, u, v, w):
    node_w = TreeNode(w)
    nodes.append(node_w)
    node_u, node_v = nodes[u], nodes[v]
    node_w.add_child(node_u)
    node_w.add_child(node_v)
    node_u.dparent = float(dist[u, w])
    node_v.dparent = float(dist[v, w])


def _finish(nodes, dist, active, N):
    remaining = [i for i in range(N) if active[i]]
    if len(remaining) != 2:
        raise ValueError("expected exactly two nodes left at root")
    u, v = remaining
    root = TreeNode(N)
    for idx in (u, v):
        root.add_child(nodes[idx])
        nodes[idx].dparent = float(dist[u, v] / 2)
    root.reindex()
    return root


def infer_tree(D, names):
    """Infer a tree by neighbor joining from an upper-triangular matrix.

    The input matrix is not altered.  Leaves get ids 0..n-1 in the order of
    ``names``; the root has the largest id.
    """
    initD, n = _check_input(D, names)
    N, dist, active, nodes = _setup(initD, names, n)
    Q = np.zeros((N, N))
    for w in range(n, N):
        u, v, sums = reset_q(Q, dist, active, w)
        update_d(dist, u, v, w, active, sums)
        _join(nodes, dist, u, v, w)
        active[u] = active[v] = False
        active[w] = True
    return _finish(nodes, dist, active, N)


def fast_infer(D, names):
    """Neighbor joining with a lazily updated heap of Q values."""
    initD, n = _check_input(D, names)
    N, dist, active, nodes = _setup(initD, names, n)
    sums = np.zeros(N)
    for i, j in combinations(range(n), 2):
        sums[i] += dist[i, j]
        sums[j] += dist[i, j]
    rev = [0] * N
    heap = []

    def push(i, j, nactive):
        q = (nactive - 2) * dist[i, j] - sums[i] - sums[j]
        heapq.heappush(heap, (q, i, j, rev[i], rev[j]))

    for i, j in combinations(range(n), 2):
        push(i, j, n)

    nactive = n
    for w in range(n, N):
        while True:
            _, u, v, rev_u, rev_v = heapq.heappop(heap)
            if not (active[u] and active[v]):
                continue
            if rev_u == rev[u] and rev_v == rev[v]:
                break
            push(u, v, nactive)

        update_d(dist, u, v, w, active, sums)
        _join(nodes, dist, u, v, w)

        sums[w] = 0.0
        for i in range(w):
            if active[i] and i != u and i != v:
                du = _upper(dist, u, i)
                dv = _upper(dist, v, i)
                sums[i] += dist[i, w] - du - dv
                sums[w] += dist[i, w]
            rev[i] += 1
        rev[w] += 1

        active[u] = active[v] = False
        active[w] = True
        nactive -= 1

        for i in range(w):
            if active[i]:
                push(i, w, nactive)

    return _finish(nodes, dist, active, N)


def jc_distance(seq1, seq2, missing=DEFAULT_MISSING):
    """Jukes-Cantor distance between two aligned DNA sequences.

    Gaps and missing-data characters are skipped.  Saturated pairs (at
    least three quarters different) get a fixed long distance.
    """
    if len(seq1) != len(seq2):
        raise ValueError("sequences must have equal length")
    compared = diff = 0
    for a, b in zip(seq1, seq2):
        if a == GAP_CHAR or b == GAP_CHAR or a in missing or b in missing:
            continue
        compared += 1
        if a != b:
            diff += 1
    if compared == 0:
        raise ValueError("no comparable positions")
    frac = diff / compared
    if frac >= 0.75:
        return _SATURATED_DISTANCE
    return -0.75 * math.log(1 - 4.0 / 3 * frac)


def jc_distance_matrix(seqs, missing=DEFAULT_MISSING):
    """Upper-triangular matrix of Jukes-Cantor distances."""
    n = len(seqs)
    D = np.zeros((n, n))
    for i, j in combinations(range(n), 2):
        D[i, j] = jc_distance(seqs[i], seqs[j], missing)
    return D


def distance_on_tree(root, n1, n2):
    """Path length between two nodes of the tree rooted at ``root``."""
    ancestors = {}
    total = 0.0
    node = n1
    ancestors[node] = 0.0
    while node.parent is not None:
        total += node.dparent
        node = node.parent
        ancestors[node] = total
    ancestors[root] = total

    total2 = 0.0
    node = n2
    while node not in ancestors and node.parent is not None:
        total2 += node.dparent
        node = node.parent
    if node not in ancestors:
        raise ValueError("reached the root without finding a common ancestor")
    return total2 + ancestors[node]


def _seq_index(leaves, names):
    positions = {name: i for i, name in enumerate(names)}
    index = {}
    for leaf in leaves:
        if leaf.name not in positions:
            raise ValueError(f"leaf '{leaf.name}' not found among names")
        index[leaf] = positions[leaf.name]
    return index


def tree_to_distances(tree, names):
    """Upper-triangular matrix of path lengths between named leaves.

    If no branch has positive length, every branch is first set to a small
    default length.
    """
    if tree.nodes is None:
        tree.reindex()
    nodes = tree.nodes
    leaves = [n for n in nodes if n.is_leaf()]
    if len(leaves) != len(names):
        raise ValueError("number of names must match number of leaves in tree")
    if not any(n.dparent > 0 for n in nodes):
        for node in nodes:
            if node.parent is not None:
                node.dparent = _DEFAULT_BRANCH
    index = _seq_index(leaves, names)
    D = np.zeros((len(names), len(names)))
    for a, b in combinations(leaves, 2):
        i, j = sorted((index[a], index[b]))
        D[i, j] = distance_on_tree(tree, a, b)
    return D


def diameter_leaves(D):
    """Indices ``(i, j)`` of the largest positive distance, or None."""
    D = np.asarray(D, dtype=float)
    best = 0.0
    pair = None
    for i, j in combinations(range(D.shape[0]), 2):
        if j < D.shape[1] and D[i, j] > best:
            best = D[i, j]
            pair = (i, j)
    return pair


def repair_zero_branches(tree):
    """Give every non-positive branch a small positive length."""
    for node in tree.preorder():
        if node.parent is not None and node.dparent <= 0:
            node.dparent = _MIN_BRANCH