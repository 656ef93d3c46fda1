"""Migration models on trees: likelihoods, ancestral states and reports.

Cells at the leaves of a tree carry discrete states (for example tissues
or sites) from a :class:`~vinetree.migtable.MigTable`.  Leaves are matched
to cells by name.  Node ids must number the nodes ``0..n-1``.  The root's
branch length is the length of a leading branch above the root.
"""

from __future__ import annotations

import math
import sys
from contextlib import contextmanager

import numpy as np

from vinetree.multidag import MultiDAG, MultiDAGSet

_SCALING_THRESHOLD = sys.float_info.min * 1.0e10
_LOG_SCALING_THRESHOLD = math.log(_SCALING_THRESHOLD)
_MAX_EXPONENT = 700.0
_MIN_EXPONENT = -745.0


def _nodes(tree):
    """Nodes of the tree indexed by id."""
    return tree.reindex()


def _leaf_states(nodes, table):
    cell_index = {name: i for i, name in enumerate(table.cellnames)}
    states = {}
    for node in nodes:
        if not node.is_leaf():
            continue
        cell = cell_index.get(node.name)
        if cell is None:
            raise ValueError(f"leaf '{node.name}' not found in migration table")
        state = table.states[cell]
        if not 0 <= state < table.nstates:
            raise ValueError(f"state {state} of leaf '{node.name}' out of range")
        states[node.id] = state
    return states


def _sibling(node):
    par = node.parent
    return par.rchild if node is par.lchild else par.lchild


def _inside(tree, Pt, leaf_states, nstates, nnodes, by_max):
    """Inside probabilities (by node, then state) and log scale factors."""
    pL = np.zeros((nnodes, nstates))
    lscale = np.zeros(nnodes)
    for node in tree.postorder():
        if node.lchild is None:
            pL[node.id, leaf_states[node.id]] = 1.0
            continue
        if node.rchild is None:
            raise ValueError("tree must be binary")
        left, right = node.lchild, node.rchild
        totl = Pt[left.id] @ pL[left.id]
        totr = Pt[right.id] @ pL[right.id]
        probs = totl * totr
        if by_max:
            top = float(probs.max())
            rescale = 0 < top < _SCALING_THRESHOLD
        else:
            rescale = bool(
                np.any((totl > 0) & (totr > 0) & (probs < _SCALING_THRESHOLD))
            )
        lscale[node.id] = lscale[left.id] + lscale[right.id]
        if rescale:
            lscale[node.id] += _LOG_SCALING_THRESHOLD
            probs = probs / _SCALING_THRESHOLD
        pL[node.id] = probs
    return pL, lscale


def transition_matrices(tree, table):
    """Transition matrix ``exp(Q t)`` for the branch above each node, by id."""
    return [table.transition_matrix(node.dparent) for node in _nodes(tree)]


def _log(value):
    with np.errstate(divide="ignore"):
        return float(np.log(value))


def compute_log_likelihood(tree, table, with_gradient=False):
    """Log likelihood of the leaf states given the tree and rate model.

    With ``with_gradient`` the result is ``(loglik, branchgrad)``, where
    ``branchgrad`` holds one derivative per non-root node by id (the branch
    right of the root is left at zero), and ``table.deriv_gtr`` receives the
    derivatives with respect to the rate parameters.  The root must then
    have the largest id.
    """
    nodes = _nodes(tree)
    nnodes = len(nodes)
    nstates = table.nstates
    if with_gradient and tree.id != nnodes - 1:
        raise ValueError("root must have the largest node id to compute gradients")

    Pt = transition_matrices(tree, table)
    leaf_states = _leaf_states(nodes, table)

    # the leading branch is modelled by conditioning the root distribution
    leading = Pt[tree.id]
    if table.primary_state is not None:
        root_eqfreqs = leading[table.primary_state].copy()
    else:
        root_eqfreqs = table.backgd_freqs @ leading

    pL, lscale = _inside(tree, Pt, leaf_states, nstates, nnodes, by_max=False)
    total_prob = float(np.sum(root_eqfreqs * pL[tree.id] * root_eqfreqs))
    ll = _log(total_prob) + lscale[tree.id]
    if not with_gradient:
        return ll

    pLbar = np.zeros((nnodes, nstates))
    lscale_o = np.zeros(nnodes)
    for node in tree.preorder():
        if node.parent is None:
            pLbar[node.id] = root_eqfreqs
            continue
        par = node.parent
        sib = _sibling(node)
        P = Pt[node.id]
        tmp = pLbar[par.id] * (Pt[sib.id] @ pL[sib.id])
        contrib = tmp[:, None] * P
        cum = np.cumsum(contrib, axis=0)
        rescale = bool(
            np.any((tmp[:, None] > 0) & (P > 0) & (cum < _SCALING_THRESHOLD))
        )
        outside = cum[-1].copy()
        lscale_o[node.id] = lscale_o[par.id] + lscale[sib.id]
        if rescale:
            lscale_o[node.id] += _LOG_SCALING_THRESHOLD
            outside /= _SCALING_THRESHOLD
        pLbar[node.id] = outside

    branchgrad = np.zeros(nnodes - 1)
    deriv_gtr = np.zeros(table.nparams)
    log_total = _log(total_prob)
    for node in nodes:
        par = node.parent
        if par is None:
            continue
        sib = _sibling(node)
        tmp = Pt[sib.id] @ pL[sib.id]
        weights = np.outer(tmp * pLbar[par.id], pL[node.id])
        expon = (
            -lscale[tree.id]
            + lscale[sib.id]
            + lscale_o[par.id]
            + lscale[node.id]
            - log_total
        )
        scale = math.exp(min(max(expon, _MIN_EXPONENT), _MAX_EXPONENT))

        if node is not tree.rchild:
            deriv = float(np.sum(weights * table.grad_dt(node.dparent))) * scale
            if not math.isfinite(deriv):
                raise ArithmeticError("non-finite branch derivative")
            branchgrad[node.id] += deriv

        for k, dP in enumerate(table.grad_dr(node.dparent)):
            deriv_gtr[k] += float(np.sum(weights * dP)) * scale

    table.deriv_gtr = deriv_gtr
    return ll, branchgrad


def _sample_state(probs, rng):
    """Index drawn in proportion to unnormalized ``probs``."""
    total = float(np.sum(probs))
    if not total > 0.0:
        raise ValueError("no state has positive probability")
    r = rng.random() * total
    idx = int(np.searchsorted(np.cumsum(probs), r, side="left"))
    return min(idx, len(probs) - 1)


def sample_states(tree, table, rng=None):
    """Sample a state for every node given the leaf states.

    Returns a list of state indices by node id; leaves keep their states
    from the table.  The leading branch starts in the first state.
    """
    rng = table.rng if rng is None else rng
    nodes = _nodes(tree)
    nnodes = len(nodes)
    Pt = transition_matrices(tree, table)
    leaf_states = _leaf_states(nodes, table)
    root_eqfreqs = Pt[tree.id][0]

    pL, _ = _inside(tree, Pt, leaf_states, table.nstates, nnodes, by_max=True)

    samples = [-1] * nnodes
    for node_id, state in leaf_states.items():
        samples[node_id] = state
    for node in tree.preorder():
        if node.parent is None:
            samples[node.id] = _sample_state(root_eqfreqs * pL[node.id], rng)
        elif node.lchild is None:
            continue
        else:
            parstate = samples[node.parent.id]
            dens = pL[node.id] * Pt[node.id][parstate]
            samples[node.id] = _sample_state(dens, rng)
    return samples


def _check_samples(nodes, table, state_samples):
    if len(state_samples) != len(nodes):
        raise ValueError("need one sampled state per node")
    for state in state_samples:
        if not 0 <= state < table.nstates:
            raise ValueError(f"state {state} out of range")


def get_graph(tree, table, state_samples):
    """Migration graph: one edge per branch whose end states differ.

    Edge times are node heights measured down from the root.
    """
    nodes = _nodes(tree)
    _check_samples(nodes, table, state_samples)
    heights = [0.0] * len(nodes)
    for node in tree.preorder():
        if node.parent is not None:
            heights[node.id] = heights[node.parent.id] + node.dparent
    graph = MultiDAG(table.statenames)
    for node in nodes:
        if node.parent is None:
            continue
        child_state = state_samples[node.id]
        par_state = state_samples[node.parent.id]
        if child_state != par_state:
            graph.add_edge(
                par_state, child_state, heights[node.parent.id], heights[node.id]
            )
    return graph


def sample_graph(tree, table, rng=None):
    """Sample node states and return the resulting migration graph."""
    return get_graph(tree, table, sample_states(tree, table, rng))


@contextmanager
def _state_labels(nodes, table, state_samples):
    """Temporarily append ``[&state=NAME]`` to every node name."""
    _check_samples(nodes, table, state_samples)
    saved = [(node, node.name) for node in nodes]
    try:
        for node in nodes:
            label = table.statenames[state_samples[node.id]]
            node.name = f"{node.name}[&state={label}]"
        yield
    finally:
        for node, name in saved:
            node.name = name


def _write_taxa(out, nodes):
    taxa = [node.name for node in nodes if node.is_leaf()]
    out.write("#NEXUS\n\n")
    out.write("BEGIN TAXA;\n")
    out.write(f"  DIMENSIONS NTAX={len(taxa)};\n")
    out.write("  TAXLABELS\n")
    for name in taxa:
        out.write(f"    {name or 'taxon'}\n")
    out.write("  ;\nEND;\n\n")


def write_labeled_nexus(tree, out, table, state_samples):
    """Write a NEXUS file with each node labelled by its sampled state."""
    nodes = _nodes(tree)
    _check_samples(nodes, table, state_samples)
    _write_taxa(out, nodes)
    out.write("BEGIN TREES;\n")
    with _state_labels(nodes, table, state_samples):
        newick = tree.to_newick(True)
    out.write(f"  TREE TREE1 = [&R] {newick}\n")
    out.write("END;\n\n")


def write_set_labeled_nexus(trees, out, table, state_samples_list):
    """Write one NEXUS file with a labelled TREE line per sample.

    Taxa are taken from the first tree.
    """
    trees = list(trees)
    state_samples_list = list(state_samples_list)
    if len(trees) != len(state_samples_list):
        raise ValueError("need one list of sampled states per tree")
    if not trees:
        raise ValueError("no trees to write")
    _write_taxa(out, _nodes(trees[0]))
    out.write("BEGIN TREES;\n")
    for number, (tree, samples) in enumerate(zip(trees, state_samples_list), 1):
        nodes = _nodes(tree)
        with _state_labels(nodes, table, samples):
            newick = tree.to_newick(True)
        out.write(f"  TREE sample_{number} = [&R] {newick}\n")
    out.write("END;\n\n")


def write_set_dot(trees, out, table, state_samples_list):
    """Write the migration graph of each tree as one line of dot."""
    trees = list(trees)
    state_samples_list = list(state_samples_list)
    if len(trees) != len(state_samples_list):
        raise ValueError("need one list of sampled states per tree")
    graphs = MultiDAGSet()
    for tree, samples in zip(trees, state_samples_list):
        graphs.add(get_graph(tree, table, samples))
    graphs.write_dot(out)