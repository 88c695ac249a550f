"""
Flat comment rows -> reply forest.

The assembler only looks at ``id`` and ``parent_comment_id`` on each item,
so it works equally on ORM rows, plain dataclasses or test doubles.  It
never re-sorts: roots and siblings keep the order they arrived in, which is
``created_at ASC, id ASC`` when the rows come from the comment service.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Iterator


@dataclass(eq=False)
class CommentNode:
    comment: Any
    children: list[CommentNode] = field(default_factory=list)

    @property
    def id(self):
        return self.comment.id


def assemble_comment_tree(flat_comments: Iterable[Any]) -> list[CommentNode]:
    """
    Build the reply forest for *flat_comments*.

    A comment whose parent is null, or whose parent is not among the given
    rows, becomes a root.  Orphans are promoted rather than dropped so a
    filtered-out parent never hides its replies.
    """
    nodes: dict[Any, CommentNode] = {}
    for comment in flat_comments:
        nodes[comment.id] = CommentNode(comment)

    roots: list[CommentNode] = []
    for node in nodes.values():
        parent_id = node.comment.parent_comment_id
        parent = nodes.get(parent_id) if parent_id is not None else None
        if parent is None or parent is node:
            roots.append(node)
        else:
            parent.children.append(node)

    # A parent cycle leaves its members, and anything hanging off them,
    # unreachable from any root.  Break each cycle at its earliest member.
    order = {id(node): i for i, node in enumerate(nodes.values())}
    reachable = {id(n) for n in iter_forest(roots)}
    for node in nodes.values():
        if id(node) in reachable:
            continue
        head = _cycle_head(nodes, node, order)
        nodes[head.comment.parent_comment_id].children.remove(head)
        roots.append(head)
        reachable.update(id(n) for n in iter_subtree(head))
    return roots


def _cycle_head(nodes: dict[Any, CommentNode], start: CommentNode, order: dict[int, int]) -> CommentNode:
    """Earliest-seen member of the parent cycle above *start*."""
    seen: set[int] = set()
    current = start
    while id(current) not in seen:
        seen.add(id(current))
        current = nodes[current.comment.parent_comment_id]
    members = [current]
    walker = nodes[current.comment.parent_comment_id]
    while walker is not current:
        members.append(walker)
        walker = nodes[walker.comment.parent_comment_id]
    return min(members, key=lambda n: order[id(n)])


def find_node(roots: Iterable[CommentNode], comment_id) -> CommentNode | None:
    for node in iter_forest(roots):
        if node.id == comment_id:
            return node
    return None


def iter_subtree(node: CommentNode) -> Iterator[CommentNode]:
    """Yield *node* and every descendant, depth first, without recursion."""
    stack = [node]
    while stack:
        current = stack.pop()
        yield current
        stack.extend(reversed(current.children))


def iter_forest(roots: Iterable[CommentNode]) -> Iterator[CommentNode]:
    for root in roots:
        yield from iter_subtree(root)
