"""Complexity measure and structural legality checks for candidate trees."""

from typing import Optional

from .expression_tree import Expression, Node, ConstantNode, VariableNode, BinaryOpNode, UnaryOpNode
from .expression_tree.utils.tree_utils import get_node_locations, count_operator_nestedness
from .options import Options


def _node_complexity(node: Node, options: Options) -> float:
    total = 0.0
    for location in get_node_locations(node):
        current = location.node
        if isinstance(current, ConstantNode):
            total += 1.0 if options.complexity_of_constants is None else options.complexity_of_constants
        elif isinstance(current, VariableNode):
            total += 1.0 if options.complexity_of_variables is None else options.complexity_of_variables
        else:
            total += options.complexity_of_operators.get(current.operator, 1.0)
    return total


def compute_complexity(tree, options: Options) -> int:
    """
    Complexity of a tree (or subtree).

    The node count unless custom per-operator/constant/variable complexities
    are configured, in which case their sum rounded to an integer.
    """
    node = tree.root if isinstance(tree, Expression) else tree
    if not options.uses_custom_complexity:
        return node.size()
    return int(round(_node_complexity(node, options)))


def _violates_argument_sizes(node: Node, options: Options) -> bool:
    limit = options.constraints.get(node.operator)
    if limit is None:
        return False
    if isinstance(node, UnaryOpNode):
        return limit != -1 and compute_complexity(node.operand, options) > limit
    left_limit, right_limit = limit
    if left_limit != -1 and compute_complexity(node.left, options) > left_limit:
        return True
    return right_limit != -1 and compute_complexity(node.right, options) > right_limit


def _violates_nesting(node: Node, options: Options) -> bool:
    inner_limits = options.nested_constraints.get(node.operator)
    if not inner_limits:
        return False
    for inner, max_nesting in inner_limits.items():
        nesting = max(count_operator_nestedness(child, inner) for child in node.children)
        if nesting > max_nesting:
            return True
    return False


def check_constraints(tree: Expression, options: Options, maxsize: Optional[int] = None) -> bool:
    """
    Whether ``tree`` is a legal population member.

    Args:
        tree: Candidate
        options: Search settings (maxdepth, constraints, nested_constraints)
        maxsize: Size limit to enforce, defaults to ``options.maxsize``
            (lower during the warm-up ramp)

    Returns:
        True when every limit holds
    """
    if maxsize is None:
        maxsize = options.maxsize
    if compute_complexity(tree, options) > maxsize:
        return False
    if tree.depth() > options.maxdepth:
        return False
    if not options.constraints and not options.nested_constraints:
        return True
    for location in get_node_locations(tree.root):
        node = location.node
        if not isinstance(node, (BinaryOpNode, UnaryOpNode)):
            continue
        if _violates_argument_sizes(node, options) or _violates_nesting(node, options):
            return False
    return True
