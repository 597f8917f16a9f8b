import numpy as np
import sympy as sp
from typing import List, Optional, Sequence, Tuple
from .core.node import Node, ConstantNode, VariableNode


class Expression:
  """Owned expression tree.

  This is the unit the search engine stores in a population member. The root
  may be swapped by the genetic operators (e.g. when a new operator is
  prepended), so callers always go through ``expr.root``.
  """

  __slots__ = ('root',)

  def __init__(self, root: Node):
    self.root = root

  def evaluate(self, X: np.ndarray) -> Tuple[np.ndarray, bool]:
    """Evaluate on rows of ``X``; returns ``(values, completed)``"""
    with np.errstate(all='ignore'):
      return self.root.evaluate(X)

  def evaluate_with_gradient(self, X: np.ndarray,
                             variable: bool = False) -> Tuple[np.ndarray, np.ndarray, bool]:
    """Forward-mode derivative of the tree.

    Args:
        X: input matrix, shape (n_samples, n_features)
        variable: differentiate with respect to the input features if True,
            otherwise with respect to the constants (depth-first order, the
            same order as ``get_constants``)

    Returns:
        (values, gradient, completed) where gradient has shape
        (n_features or n_constants, n_samples)
    """
    n_params = X.shape[1] if variable else self.count_constants()
    with np.errstate(all='ignore'):
      return self.root.eval_grad(X, variable, n_params, [0])

  def to_string(self, variable_names: Optional[Sequence[str]] = None) -> str:
    return self.root.to_string(variable_names)

  def to_sympy(self, variable_names: Optional[Sequence[str]] = None,
               n_features: Optional[int] = None) -> sp.Expr:
    if variable_names is None:
      if n_features is None:
        n_features = 1 + max((n.index for n in self.nodes() if isinstance(n, VariableNode)),
                             default=-1)
      variable_names = [f"x{i}" for i in range(n_features)]
    symbols = [sp.Symbol(str(name)) for name in variable_names]
    return self.root.to_sympy(symbols)

  def copy(self) -> 'Expression':
    return Expression(self.root.copy())

  def size(self) -> int:
    return self.root.size()

  def depth(self) -> int:
    return self.root.depth()

  def nodes(self) -> List[Node]:
    """All nodes, depth-first"""
    stack = [self.root]
    found = []
    while stack:
      node = stack.pop()
      found.append(node)
      stack.extend(reversed(node.children))
    return found

  def count_constants(self) -> int:
    return sum(1 for node in self.nodes() if isinstance(node, ConstantNode))

  def get_constants(self) -> tuple:
    const_list: List[float] = []
    self.root.get_constants(const_list)
    return tuple(const_list)

  def set_constants(self, constants):
    if self.count_constants() != len(constants):
      raise ValueError("Number of constants does not match the tree")
    self.root.set_constants(list(constants))

  def __eq__(self, other) -> bool:
    if not isinstance(other, Expression):
      return False
    return self.root == other.root

  __hash__ = None

  def __repr__(self) -> str:
    return f"Expression({self.to_string()})"
