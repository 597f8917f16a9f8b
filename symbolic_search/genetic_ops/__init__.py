"""
Genetic Operations Module for Symbolic Search

Tree-level mutation primitives and subtree crossover used by the mutation
engine.
"""

from .mutation_functions import (
    mutate_constant,
    mutate_operator,
    add_node,
    insert_random_op,
    delete_random_op,
    randomize_tree,
    simplify_tree
)
from .crossover_operations import crossover_trees

__all__ = [
    'mutate_constant',
    'mutate_operator',
    'add_node',
    'insert_random_op',
    'delete_random_op',
    'randomize_tree',
    'simplify_tree',
    'crossover_trees'
]
