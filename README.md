# vinetree

Building blocks for phylogenetic inference, for Python 3.10 and later,
built on NumPy. It is a library: import the modules you need.

## Installation

```
pip install .
```

To run the test suite:

```
pip install ".[test]"
pytest
```

## What is inside

- `vinetree.tree`: `TreeNode`, a node of a rooted binary tree. It offers
  `add_child`, `is_leaf`, `preorder` and `postorder` traversals, `leaves`
  and `leaf_names`, and `to_newick`. `reindex` fills the root's `nodes`
  list (nodes by id) and `nnodes`.
- `vinetree.nj`: neighbor joining. `infer_tree` is the plain algorithm and
  `fast_infer` keeps Q values in a lazily updated heap. `reset_q` and
  `update_d` are the single steps. The module also has Jukes-Cantor
  distances (`jc_distance`, `jc_distance_matrix`) and tree-to-distance
  helpers: `tree_to_distances`, `distance_on_tree`, `diameter_leaves` and
  `repair_zero_branches`.
- `vinetree.robinson_foulds`: `robinson_foulds(t1, t2)` gives the symmetric
  Robinson-Foulds distance between two trees with the same leaf names.
- `vinetree.sparse`: `SparseVector` and `SparseMatrix`. They store only
  nonzero entries and are built for fast set and get. They support sorted,
  appending and lazy setters.
- `vinetree.planar_flow` and `vinetree.radial_flow`: the `PlanarFlow` and
  `RadialFlow` normalizing flows, applied pointwise to `npoints` points in
  `ndim` dimensions. `forward(x)` returns the transformed points and the
  summed log determinant. `backprop(x, grad)` returns the input gradient
  and stores the parameter gradients on the flow. `radial_flow` also
  provides `softplus` and `inv_softplus`.
- `vinetree.multidag`: `Edge`, `MultiDAG` and `MultiDAGSet`. These are
  multigraphs of timed migration events between labelled states, written
  out as one line of Graphviz dot per graph.
- `vinetree.migtable`: `MigTable`, which maps cells to discrete states.
  `MigTable.read` parses `cell,state` lines. The table holds a reversible
  rate matrix over the states and gives its transition matrix
  (`transition_matrix`) and derivatives (`grad_dt`, `grad_dr`).
- `vinetree.migration`: the migration model on a tree. It has the log
  likelihood, with optional gradients (`compute_log_likelihood`), the
  per-branch transition matrices (`transition_matrices`), and sampling of
  ancestral states and migration graphs (`sample_states`, `get_graph`,
  `sample_graph`). Output is NEXUS with state-labelled nodes
  (`write_labeled_nexus`, `write_set_labeled_nexus`) or dot
  (`write_set_dot`).

## Example

```python
import numpy as np
from vinetree.nj import infer_tree
from vinetree.robinson_foulds import robinson_foulds

D = np.array([
    [0.0, 5.0, 9.0, 9.0, 8.0],
    [0.0, 0.0, 10.0, 10.0, 9.0],
    [0.0, 0.0, 0.0, 8.0, 7.0],
    [0.0, 0.0, 0.0, 0.0, 3.0],
    [0.0, 0.0, 0.0, 0.0, 0.0],
])
names = ["a", "b", "c", "d", "e"]

tree = infer_tree(D, names)
print(tree.to_newick(True))
print(robinson_foulds(tree, tree))  # 0.0
```

Distance matrices are upper triangular: only entries with `i < j` are read.

## What it does not do

The package has no command-line program and no inference driver. It has
no multivariate normal embedding of trees and no optimisation loop. It
does not read alignments or tree files. Callers pass sequences as strings
and build trees from `TreeNode` objects or with `infer_tree` /
`fast_infer`.