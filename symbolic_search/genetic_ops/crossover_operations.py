"""
Crossover Operations Module

Structural subtree exchange between two parent trees.
"""

import numpy as np
from typing import Tuple

from ..expression_tree import Expression
from ..expression_tree.utils.tree_utils import random_node_location, replace_at


def crossover_trees(parent1: Expression, parent2: Expression,
                    rng: np.random.Generator) -> Tuple[Expression, Expression]:
    """
    Swap a random subtree of each parent.

    Args:
        parent1: First parent (left untouched)
        parent2: Second parent (left untouched)
        rng: Random generator

    Returns:
        Two children that share no nodes with either parent
    """
    child1 = parent1.copy()
    child2 = parent2.copy()

    location1 = random_node_location(child1, rng)
    location2 = random_node_location(child2, rng)

    subtree1 = location1.node.copy()
    subtree2 = location2.node.copy()

    replace_at(child1, location1, subtree2)
    replace_at(child2, location2, subtree1)
    return child1, child2
