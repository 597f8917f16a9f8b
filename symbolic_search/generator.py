import numpy as np
from .expression_tree import Expression, Node, VariableNode, ConstantNode, BinaryOpNode, UnaryOpNode
from .expression_tree.utils.tree_utils import random_node_location, replace_at
from .options import Options


class ExpressionGenerator:
  """Random tree construction over the operators enabled in ``Options``.

  All randomness comes from the generator passed in, so a population seeded
  from a fixed ``SeedSequence`` grows the same trees on every run.
  """

  def __init__(self, options: Options, n_features: int, rng: np.random.Generator):
    self.options = options
    self.n_features = n_features
    self.rng = rng
    self.binary_ops = list(options.binary_operators)
    self.unary_ops = list(options.unary_operators)

  @property
  def has_operators(self) -> bool:
    return bool(self.binary_ops or self.unary_ops)

  def random_leaf(self) -> Node:
    """Constant ~ N(0, 1) or a uniformly chosen feature, with equal chance"""
    if self.rng.random() < 0.5:
      return ConstantNode(self.rng.standard_normal())
    return VariableNode(int(self.rng.integers(self.n_features)))

  def random_operator_node(self, unary_only: bool = False) -> Node:
    """Operator node with fresh random leaves as arguments.

    Binary and unary operators are chosen in proportion to how many of
    each are enabled.
    """
    n_binary = 0 if unary_only else len(self.binary_ops)
    n_unary = len(self.unary_ops)
    if self.rng.random() * (n_binary + n_unary) < n_binary:
      op = self.binary_ops[int(self.rng.integers(n_binary))]
      return BinaryOpNode(op, self.random_leaf(), self.random_leaf())
    op = self.unary_ops[int(self.rng.integers(n_unary))]
    return UnaryOpNode(op, self.random_leaf())

  def append_random_op(self, expr: Expression, unary_only: bool = False) -> Expression:
    """Replace a random leaf of ``expr`` (in place) with a new operator node"""
    location = random_node_location(expr, self.rng, lambda node: node.degree == 0)
    replace_at(expr, location, self.random_operator_node(unary_only))
    return expr

  def random_tree(self, nlength: int = 3) -> Expression:
    """Random leaf grown by ``nlength`` appended operators"""
    expr = Expression(self.random_leaf())
    if not self.has_operators:
      return expr
    for _ in range(nlength):
      self.append_random_op(expr)
    return expr

  def random_tree_fixed_size(self, node_count: int) -> Expression:
    """Grow a tree until it has ``node_count`` nodes (or the closest reachable size below)"""
    expr = Expression(self.random_leaf())
    while self.has_operators and expr.size() < node_count:
      remaining = node_count - expr.size()
      if remaining == 1 and not self.unary_ops:
        break
      self.append_random_op(expr, unary_only=(remaining == 1))
    return expr

  def generate_population(self, population_size: int, nlength: int = 3):
    return [self.random_tree(nlength) for _ in range(population_size)]
