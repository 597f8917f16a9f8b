"""Utilities for expression trees."""

from .simplifier import ExpressionSimplifier
from .tree_utils import (
    NodeLocation, get_node_locations, random_node_location, replace_at,
    count_operator_nestedness, find_nodes_by_operator,
    get_constants, get_variables, get_operator_nodes
)

__all__ = [
    'ExpressionSimplifier',
    'NodeLocation', 'get_node_locations', 'random_node_location', 'replace_at',
    'count_operator_nestedness', 'find_nodes_by_operator',
    'get_constants', 'get_variables', 'get_operator_nodes'
]
