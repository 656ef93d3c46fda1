import pytest

from vinetree.tree import TreeNode


def make_tree():
    root = TreeNode(name="r")
    x = TreeNode(name="x", dparent=0.3)
    a = TreeNode(name="a", dparent=0.1)
    b = TreeNode(name="b", dparent=0.2)
    c = TreeNode(name="c", dparent=0.4)
    x.add_child(a)
    x.add_child(b)
    root.add_child(x)
    root.add_child(c)
    return root


def test_preorder_order():
    assert [n.name for n in make_tree().preorder()] == ["r", "x", "a", "b", "c"]


def test_postorder_order():
    assert [n.name for n in make_tree().postorder()] == ["a", "b", "x", "c", "r"]


def test_leaves_and_names():
    tree = make_tree()
    assert tree.leaf_names() == ["a", "b", "c"]
    assert all(n.is_leaf() for n in tree.leaves())
    assert not tree.is_leaf()


def test_add_child_sets_parent():
    parent = TreeNode(name="p")
    child = TreeNode(name="q")
    parent.add_child(child)
    assert child.parent is parent
    assert parent.lchild is child


def test_third_child_rejected():
    node = TreeNode()
    node.add_child(TreeNode())
    node.add_child(TreeNode())
    with pytest.raises(ValueError):
        node.add_child(TreeNode())


def test_reindex_assigns_preorder_ids():
    tree = make_tree()
    nodes = tree.reindex()
    assert tree.nnodes == 5
    assert [n.id for n in nodes] == list(range(5))
    assert [n.name for n in nodes] == ["r", "x", "a", "b", "c"]


def test_reindex_keeps_valid_ids():
    root = TreeNode(id=2)
    left = TreeNode(id=0, name="l")
    right = TreeNode(id=1, name="m")
    root.add_child(left)
    root.add_child(right)
    nodes = root.reindex()
    assert nodes[2] is root
    assert nodes[0] is left
    assert nodes[1] is right


def test_newick_with_lengths():
    tree = make_tree()
    tree.name = ""
    tree.lchild.name = ""
    assert tree.to_newick(True) == "((a:0.1,b:0.2):0.3,c:0.4);"


def test_newick_without_lengths():
    tree = make_tree()
    assert tree.to_newick(False) == "((a,b)x,c)r;"