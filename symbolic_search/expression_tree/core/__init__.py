"""Core expression tree components."""

from .node import Node, VariableNode, ConstantNode, BinaryOpNode, UnaryOpNode
from .operators import (
    NodeType, BINARY_OPERATORS, UNARY_OPERATORS, MAX_DEGREE, canonical_operator,
    evaluate_variable, evaluate_constant, evaluate_binary_op, evaluate_unary_op,
    evaluate_unary_derivative
)

__all__ = [
    'Node', 'VariableNode', 'ConstantNode', 'BinaryOpNode', 'UnaryOpNode',
    'NodeType', 'BINARY_OPERATORS', 'UNARY_OPERATORS', 'MAX_DEGREE', 'canonical_operator',
    'evaluate_variable', 'evaluate_constant', 'evaluate_binary_op', 'evaluate_unary_op',
    'evaluate_unary_derivative'
]
