"""Reply forest assembly over plain rows."""
from types import SimpleNamespace

from blog_backend.services.comment_tree import (
    assemble_comment_tree,
    find_node,
    iter_forest,
    iter_subtree,
)


def _row(id, parent=None):
    return SimpleNamespace(id=id, parent_comment_id=parent)


def _shape(nodes):
    return [(n.id, _shape(n.children)) for n in nodes]


def test_nested_example():
    roots = assemble_comment_tree([_row(1), _row(2, 1), _row(3, 1), _row(4, 2)])
    assert _shape(roots) == [(1, [(2, [(4, [])]), (3, [])])]


def test_empty_input():
    assert assemble_comment_tree([]) == []


def test_orphans_are_promoted_to_roots():
    roots = assemble_comment_tree([_row(5), _row(6, 99), _row(7, 6)])
    assert _shape(roots) == [(5, []), (6, [(7, [])])]


def test_input_order_is_kept_for_roots_and_siblings():
    roots = assemble_comment_tree([_row(3), _row(1), _row(9, 3), _row(8, 3)])
    assert [r.id for r in roots] == [3, 1]
    assert [c.id for c in roots[0].children] == [9, 8]


def test_every_input_appears_exactly_once():
    flat = [_row(1), _row(2, 1), _row(3, 2), _row(4, 40), _row(5, 3), _row(6)]
    ids = [n.id for n in iter_forest(assemble_comment_tree(flat))]
    assert sorted(ids) == [1, 2, 3, 4, 5, 6]


def test_self_parent_becomes_root():
    roots = assemble_comment_tree([_row(1, 1)])
    assert _shape(roots) == [(1, [])]


def test_parent_cycle_is_broken():
    roots = assemble_comment_tree([_row(1, 2), _row(2, 1), _row(3)])
    assert _shape(roots) == [(3, []), (1, [(2, [])])]


def test_reply_hanging_off_a_cycle_stays_a_reply():
    roots = assemble_comment_tree([_row(4, 1), _row(1, 2), _row(2, 1), _row(3)])
    assert _shape(roots) == [(3, []), (1, [(4, []), (2, [])])]


def test_cycle_is_broken_at_its_earliest_member():
    roots = assemble_comment_tree([_row(5, 7), _row(6, 5), _row(7, 6), _row(8, 6)])
    assert _shape(roots) == [(5, [(6, [(7, []), (8, [])])])]


def test_deep_chain_does_not_recurse():
    flat = [_row(1)] + [_row(i, i - 1) for i in range(2, 5001)]
    roots = assemble_comment_tree(flat)
    assert len(list(iter_subtree(roots[0]))) == 5000


def test_find_node_and_subtree():
    roots = assemble_comment_tree([_row(1), _row(2, 1), _row(3, 1), _row(4, 2), _row(5)])
    node = find_node(roots, 2)
    assert [n.id for n in iter_subtree(node)] == [2, 4]
    assert find_node(roots, 42) is None
