"""
Mutation Functions Module

Primitive tree rewrites used by the mutation engine. Each function works on a
tree the caller already copied and returns the rewritten tree (possibly with a
new root), or None when the rewrite does not apply to this tree.
"""

import numpy as np
from typing import Optional

from ..expression_tree import Expression, BinaryOpNode, UnaryOpNode, ConstantNode
from ..expression_tree.utils.simplifier import ExpressionSimplifier
from ..expression_tree.utils.tree_utils import random_node_location, replace_at
from ..generator import ExpressionGenerator
from ..options import Options


def mutate_constant(tree: Expression, temperature: float, options: Options,
                    rng: np.random.Generator) -> Optional[Expression]:
    """Multiply a random constant by a log-normal factor, occasionally flipping its sign"""
    location = random_node_location(tree, rng, lambda node: isinstance(node, ConstantNode))
    if location is None:
        return None
    sigma = np.log(options.perturbation_factor * temperature + 1.1)
    node = location.node
    node.value = float(node.value * np.exp(sigma * rng.standard_normal()))
    if rng.random() < options.probability_negate_constant:
        node.value = -node.value
    return tree


def mutate_operator(tree: Expression, options: Options, rng: np.random.Generator) -> Optional[Expression]:
    """Swap a random operator for another one of the same arity"""
    location = random_node_location(tree, rng, lambda node: node.degree > 0)
    if location is None:
        return None
    node = location.node
    choices = options.binary_operators if isinstance(node, BinaryOpNode) else options.unary_operators
    if len(choices) > 1:
        choices = [op for op in choices if op != node.operator]
    node.operator = choices[int(rng.integers(len(choices)))]
    return tree


def _wrap(child, generator: ExpressionGenerator):
    """New operator node with ``child`` as one argument and random leaves elsewhere"""
    wrapper = generator.random_operator_node()
    if isinstance(wrapper, BinaryOpNode):
        if generator.rng.random() < 0.5:
            wrapper.left = child
        else:
            wrapper.right = child
    else:
        wrapper.operand = child
    return wrapper


def add_node(tree: Expression, generator: ExpressionGenerator) -> Optional[Expression]:
    """Append an operator at a random leaf, or prepend one above the root"""
    if not generator.has_operators:
        return None
    if generator.rng.random() < 0.5:
        return generator.append_random_op(tree)
    tree.root = _wrap(tree.root, generator)
    return tree


def insert_random_op(tree: Expression, generator: ExpressionGenerator) -> Optional[Expression]:
    """Splice a random operator above a random node"""
    if not generator.has_operators:
        return None
    location = random_node_location(tree, generator.rng)
    replace_at(tree, location, _wrap(location.node, generator))
    return tree


def delete_random_op(tree: Expression, generator: ExpressionGenerator) -> Optional[Expression]:
    """Replace a random operator by one of its arguments (a leaf by a fresh leaf)"""
    if tree.size() == 1:
        return None
    location = random_node_location(tree, generator.rng)
    node = location.node
    if isinstance(node, BinaryOpNode):
        replacement = node.left if generator.rng.random() < 0.5 else node.right
    elif isinstance(node, UnaryOpNode):
        replacement = node.operand
    else:
        replacement = generator.random_leaf()
    replace_at(tree, location, replacement)
    return tree


def randomize_tree(curmaxsize: int, generator: ExpressionGenerator) -> Expression:
    """Brand new tree with a uniformly drawn size in ``[1, curmaxsize]``"""
    size = int(generator.rng.integers(1, curmaxsize + 1))
    return generator.random_tree_fixed_size(size)


def simplify_tree(tree: Expression) -> Expression:
    return ExpressionSimplifier.simplify_expression(tree)
