"""Expression Tree Module

Expression trees for symbolic regression: evaluation with a completion
flag, forward-mode gradients, simplification and node-level rewriting.
"""

from .expression import Expression
from .core.node import (
    Node,
    VariableNode,
    ConstantNode,
    BinaryOpNode,
    UnaryOpNode
)
from .core.operators import (
    NodeType,
    BINARY_OPERATORS,
    UNARY_OPERATORS,
    MAX_DEGREE,
    canonical_operator
)
from .utils import ExpressionSimplifier

__all__ = [
    "Expression",
    "Node", "VariableNode", "ConstantNode", "BinaryOpNode", "UnaryOpNode",
    "NodeType", "BINARY_OPERATORS", "UNARY_OPERATORS", "MAX_DEGREE",
    "canonical_operator",
    "ExpressionSimplifier"
]
