"""
Tree Utility Functions

Node-level traversal and rewriting primitives used by the genetic operators.
Parent links are not stored on nodes, so every rewrite goes through a
``NodeLocation`` that remembers where a node hangs in its tree.
"""

import numpy as np
from typing import List, NamedTuple, Optional, Callable, cast

from ..core.node import Node, BinaryOpNode, UnaryOpNode, ConstantNode, VariableNode
from ..expression import Expression


class NodeLocation(NamedTuple):
    """A node plus the parent slot it occupies (``parent is None`` for the root)"""
    node: Node
    parent: Optional[Node]
    slot: Optional[str]


def get_node_locations(root: Node) -> List[NodeLocation]:
    """Depth-first list of every node with its parent and slot name"""
    locations = []
    stack = [NodeLocation(root, None, None)]
    while stack:
        location = stack.pop()
        locations.append(location)
        node = location.node
        if isinstance(node, BinaryOpNode):
            stack.append(NodeLocation(node.right, node, 'right'))
            stack.append(NodeLocation(node.left, node, 'left'))
        elif isinstance(node, UnaryOpNode):
            stack.append(NodeLocation(node.operand, node, 'operand'))
    return locations


def random_node_location(expr: Expression, rng: np.random.Generator,
                         predicate: Optional[Callable[[Node], bool]] = None) -> Optional[NodeLocation]:
    """
    Pick a node uniformly at random.

    Args:
        expr: Tree to sample from
        rng: Random generator
        predicate: Optional filter on candidate nodes

    Returns:
        The chosen location, or None when no node passes the filter
    """
    locations = get_node_locations(expr.root)
    if predicate is not None:
        locations = [loc for loc in locations if predicate(loc.node)]
    if not locations:
        return None
    return locations[int(rng.integers(len(locations)))]


def replace_at(expr: Expression, location: NodeLocation, replacement: Node) -> None:
    """Put ``replacement`` where ``location.node`` currently sits"""
    if location.parent is None:
        expr.root = replacement
    else:
        setattr(location.parent, location.slot, replacement)


def count_operator_nestedness(node: Node, operator: str) -> int:
    """
    Largest number of ``operator`` nodes found along any root-to-leaf path.

    Args:
        node: Root of the subtree
        operator: Operator name to count

    Returns:
        Nesting count (0 when the operator does not occur)
    """
    here = 1 if isinstance(node, (BinaryOpNode, UnaryOpNode)) and node.operator == operator else 0
    if not node.children:
        return here
    return here + max(count_operator_nestedness(child, operator) for child in node.children)


def find_nodes_by_operator(node: Node, operator: str) -> List[Node]:
    """All operator nodes with the given operator"""
    return [loc.node for loc in get_node_locations(node)
            if isinstance(loc.node, (BinaryOpNode, UnaryOpNode)) and loc.node.operator == operator]


def get_constants(node: Node) -> List[ConstantNode]:
    """Get all constant nodes in the tree."""
    return cast(List[ConstantNode], [loc.node for loc in get_node_locations(node)
                                     if isinstance(loc.node, ConstantNode)])


def get_variables(node: Node) -> List[VariableNode]:
    """Get all variable nodes in the tree."""
    return cast(List[VariableNode], [loc.node for loc in get_node_locations(node)
                                     if isinstance(loc.node, VariableNode)])


def get_operator_nodes(node: Node) -> List[Node]:
    """Get all unary and binary operator nodes in the tree."""
    return [loc.node for loc in get_node_locations(node) if loc.node.degree > 0]
