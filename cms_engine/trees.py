"""
Adjacency-list helpers for self-referencing entities.

Categories and threaded comments store only ``parent_id``. These helpers
work on flat rows keyed by id and never walk a live object graph.
"""
from dataclasses import dataclass, field


@dataclass
class TreeNode:
    item: object
    children: list = field(default_factory=list)


def parent_map(rows):
    """Build ``{id: parent_id}`` from ``(id, parent_id)`` pairs."""
    return {node_id: parent_id for node_id, parent_id in rows}


def ancestors(node_id, parents):
    """
    Return ancestor ids of ``node_id`` from nearest to root.

    Stops if a cycle is already present in ``parents``.
    """
    result = []
    seen = {node_id}
    current = parents.get(node_id)
    while current is not None and current not in seen:
        result.append(current)
        seen.add(current)
        current = parents.get(current)
    return result


def creates_cycle(node_id, new_parent_id, parents):
    """Check whether re-parenting ``node_id`` under ``new_parent_id`` forms a cycle."""
    if new_parent_id is None or node_id is None:
        return False
    if new_parent_id == node_id:
        return True
    return node_id in ancestors(new_parent_id, parents)


def descendants(node_id, parents):
    """Return ids of every node below ``node_id``."""
    children = {}
    for child_id, parent_id in parents.items():
        children.setdefault(parent_id, []).append(child_id)

    result = []
    stack = list(children.get(node_id, []))
    while stack:
        current = stack.pop()
        result.append(current)
        stack.extend(children.get(current, []))
    return result


def build_tree(items, key=lambda item: item.id, parent_key=lambda item: item.parent_id):
    """
    Arrange flat ``items`` into a list of root ``TreeNode`` objects.

    Items whose parent is not part of ``items`` become roots, so a filtered
    listing (e.g. only approved comments) never loses a branch. Input order
    is preserved among siblings.
    """
    nodes = {key(item): TreeNode(item) for item in items}
    roots = []
    for item in items:
        node = nodes[key(item)]
        parent = nodes.get(parent_key(item))
        if parent is None or parent is node:
            roots.append(node)
        else:
            parent.children.append(node)
    return roots


def flatten_tree(nodes, serialize, children_key="children"):
    """Render ``TreeNode`` objects to nested dicts with ``serialize(item)``."""
    rendered = []
    for node in nodes:
        data = dict(serialize(node.item))
        data[children_key] = flatten_tree(node.children, serialize, children_key)
        rendered.append(data)
    return rendered
