import numpy as np
from ..core.node import Node, ConstantNode, BinaryOpNode, UnaryOpNode
from ..core.operators import evaluate_binary_op, evaluate_unary_op
from ..expression import Expression

_COMMUTATIVE = ('+', '*')
_IDENTITY = {'+': 0.0, '-': 0.0, '*': 1.0, '/': 1.0}


class ExpressionSimplifier:
  """Semantics-preserving simplification that never grows a tree.

  Two passes, applied bottom-up: constant folding (any operator whose
  arguments are all constants becomes a constant, if the result is finite)
  and operator combination (nested commutative operators with constants are
  merged, identity elements and double negation are dropped).
  """

  @staticmethod
  def simplify_expression(expr: Expression) -> Expression:
    root = ExpressionSimplifier.fold_constants(expr.root.copy())
    root = ExpressionSimplifier.combine_operators(root)
    return Expression(root)

  @staticmethod
  def fold_constants(node: Node) -> Node:
    if isinstance(node, BinaryOpNode):
      node.left = ExpressionSimplifier.fold_constants(node.left)
      node.right = ExpressionSimplifier.fold_constants(node.right)
      if isinstance(node.left, ConstantNode) and isinstance(node.right, ConstantNode):
        with np.errstate(all='ignore'):
          result = evaluate_binary_op(np.array([node.left.value]), np.array([node.right.value]),
                                      node.operator)[0]
        if np.isfinite(result):
          return ConstantNode(result)
    elif isinstance(node, UnaryOpNode):
      node.operand = ExpressionSimplifier.fold_constants(node.operand)
      if isinstance(node.operand, ConstantNode):
        with np.errstate(all='ignore'):
          result = evaluate_unary_op(np.array([node.operand.value]), node.operator)[0]
        if np.isfinite(result):
          return ConstantNode(result)
    return node

  @staticmethod
  def combine_operators(node: Node) -> Node:
    if isinstance(node, UnaryOpNode):
      node.operand = ExpressionSimplifier.combine_operators(node.operand)
      # neg(neg(x)) = x
      if (node.operator == 'neg' and isinstance(node.operand, UnaryOpNode)
          and node.operand.operator == 'neg'):
        return node.operand.operand
      return node

    if not isinstance(node, BinaryOpNode):
      return node

    node.left = ExpressionSimplifier.combine_operators(node.left)
    node.right = ExpressionSimplifier.combine_operators(node.right)
    op = node.operator

    # x + 0, x - 0, x * 1, x / 1
    identity = _IDENTITY.get(op)
    if identity is not None and isinstance(node.right, ConstantNode) and node.right.value == identity:
      return node.left
    # 0 + x, 1 * x
    if (op in _COMMUTATIVE and isinstance(node.left, ConstantNode)
        and node.left.value == _IDENTITY[op]):
      return node.right

    # (c1 op (c2 op x)) -> ((c1 op c2) op x) for commutative op
    if op in _COMMUTATIVE:
      constant, other = ExpressionSimplifier._split_constant(node)
      if constant is not None and isinstance(other, BinaryOpNode) and other.operator == op:
        inner_constant, inner_other = ExpressionSimplifier._split_constant(other)
        if inner_constant is not None:
          with np.errstate(all='ignore'):
            merged = evaluate_binary_op(np.array([constant.value]),
                                        np.array([inner_constant.value]), op)[0]
          if np.isfinite(merged):
            return BinaryOpNode(op, ConstantNode(merged), inner_other)
    return node

  @staticmethod
  def _split_constant(node: BinaryOpNode):
    if isinstance(node.left, ConstantNode):
      return node.left, node.right
    if isinstance(node.right, ConstantNode):
      return node.right, node.left
    return None, None
