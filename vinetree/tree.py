"""Rooted binary trees with branch lengths."""

from __future__ import annotations


class TreeNode:
    """A node of a rooted binary tree.

    Each node knows its parent and its left and right children.  The root
    additionally holds ``nodes``, every node of the tree indexed by id, and
    ``nnodes``, their number; both are filled in by :meth:`reindex`.
    """

    def __init__(self, id=-1, name="", dparent=0.0):
        self.id = id
        self.name = name
        self.dparent = float(dparent)
        self.parent = None
        self.lchild = None
        self.rchild = None
        self.nodes = None
        self.nnodes = 1

    def __repr__(self):
        return f"TreeNode(id={self.id}, name={self.name!r}, dparent={self.dparent!r})"

    def _children(self):
        return [c for c in (self.lchild, self.rchild) if c is not None]

    def add_child(self, child):
        """Attach ``child`` as the left child, or the right if left is taken."""
        if self.lchild is None:
            self.lchild = child
        elif self.rchild is None:
            self.rchild = child
        else:
            raise ValueError("node already has two children")
        child.parent = self

    def is_leaf(self):
        """True if the node has no children."""
        return self.lchild is None and self.rchild is None

    def preorder(self):
        """Nodes of the subtree: each node before its children, left first."""
        out = []
        stack = [self]
        while stack:
            node = stack.pop()
            out.append(node)
            stack.extend(reversed(node._children()))
        return out

    def postorder(self):
        """Nodes of the subtree: children before their parent, left first."""
        out = []
        stack = [self]
        while stack:
            node = stack.pop()
            out.append(node)
            stack.extend(node._children())
        out.reverse()
        return out

    def reindex(self):
        """Refresh ``nodes`` and ``nnodes`` of the tree rooted here.

        Ids that already number the nodes 0..n-1 are kept; otherwise every
        node is renumbered in preorder.  Returns the list of nodes by id.
        """
        order = self.preorder()
        if sorted(n.id for n in order) != list(range(len(order))):
            for idx, node in enumerate(order):
                node.id = idx
        self.nodes = sorted(order, key=lambda n: n.id)
        self.nnodes = len(order)
        return self.nodes

    def leaves(self):
        """Leaves of the subtree, from left to right."""
        return [n for n in self.preorder() if n.is_leaf()]

    def leaf_names(self):
        """Names of the leaves, from left to right."""
        return [n.name for n in self.leaves()]

    def _newick(self, show_branch_lengths):
        text = ""
        if not self.is_leaf():
            inner = ",".join(c._newick(show_branch_lengths) for c in self._children())
            text = f"({inner})"
        text += self.name
        if show_branch_lengths and self.parent is not None:
            text += f":{self.dparent:g}"
        return text

    def to_newick(self, show_branch_lengths=True):
        """Newick text for the subtree, ending with ``;``."""
        return self._newick(show_branch_lengths) + ";"