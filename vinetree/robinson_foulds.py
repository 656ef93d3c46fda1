"""Robinson-Foulds distances between trees."""

from __future__ import annotations

from collections import Counter


def _canonical(mask, nbits):
    """Smaller side of a split, or None for trivial and leaf splits."""
    size = bin(mask).count("1")
    other = nbits - size
    if size <= 1 or other <= 1:
        return None
    if size <= other:
        return mask
    return ~mask & ((1 << nbits) - 1)


def _collect_splits(root, index, nbits):
    masks = {}
    splits = []
    for node in root.postorder():
        if node.is_leaf():
            if node.name not in index:
                raise ValueError(f"leaf '{node.name}' not in name list")
            masks[node] = 1 << index[node.name]
            continue
        mask = 0
        for child in (node.lchild, node.rchild):
            if child is None:
                continue
            child_mask = masks.pop(child)
            split = _canonical(child_mask, nbits)
            if split is not None:
                splits.append(split)
            mask |= child_mask
        masks[node] = mask
    return Counter(splits)


def robinson_foulds(t1, t2):
    """Symmetric Robinson-Foulds distance between two trees.

    Only topology is considered.  Both trees must have exactly the same
    leaf names.
    """
    names1 = sorted(t1.leaf_names())
    names2 = sorted(t2.leaf_names())
    if names1 != names2:
        raise ValueError("trees do not have matching leaf names")
    n = len(names1)
    if n < 3:
        return 0.0
    index = {name: i for i, name in enumerate(names1)}
    splits1 = _collect_splits(t1, index, n)
    splits2 = _collect_splits(t2, index, n)
    common = sum((splits1 & splits2).values())
    total = sum(splits1.values()) + sum(splits2.values())
    return float(total - 2 * common)