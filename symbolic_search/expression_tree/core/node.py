import numpy as np
import sympy as sp
from abc import ABC, abstractmethod
from typing import List, Optional, Sequence, Tuple
from .operators import (
  NodeType,
  evaluate_variable, evaluate_constant, evaluate_binary_op, evaluate_unary_op,
  evaluate_unary_derivative, all_finite
)

# (values, completed)
EvalResult = Tuple[np.ndarray, bool]
# (values, gradient rows, completed)
GradResult = Tuple[np.ndarray, np.ndarray, bool]


class Node(ABC):
  """Base node of an expression tree.

  Nodes are mutable: the genetic operators rewrite copies of trees in place.
  Evaluation never raises on numerical trouble; it reports ``completed=False``
  as soon as an intermediate result contains a non-finite value.
  """

  __slots__ = ()
  degree = 0
  node_type: NodeType

  @property
  def children(self) -> Tuple['Node', ...]:
    return ()

  @abstractmethod
  def evaluate(self, X: np.ndarray) -> EvalResult:
    pass

  @abstractmethod
  def eval_grad(self, X: np.ndarray, variable: bool, n_params: int,
                counter: List[int]) -> GradResult:
    pass

  @abstractmethod
  def to_string(self, variable_names: Optional[Sequence[str]] = None) -> str:
    pass

  @abstractmethod
  def copy(self) -> 'Node':
    pass

  @abstractmethod
  def to_sympy(self, symbols: Sequence[sp.Symbol]) -> sp.Expr:
    pass

  def get_constants(self, constant_list: List[float]):
    for child in self.children:
      child.get_constants(constant_list)

  def set_constants(self, constant_list: List[float]):
    for child in self.children:
      child.set_constants(constant_list)

  def size(self) -> int:
    """Node count"""
    return 1 + sum(child.size() for child in self.children)

  def depth(self) -> int:
    """Leaf nodes have depth 1"""
    if not self.children:
      return 1
    return 1 + max(child.depth() for child in self.children)

  def __repr__(self) -> str:
    return self.to_string()


class VariableNode(Node):
  __slots__ = ('index',)
  node_type = NodeType.VARIABLE

  def __init__(self, index: int):
    self.index = int(index)

  def evaluate(self, X: np.ndarray) -> EvalResult:
    values = evaluate_variable(X, self.index)
    return values, all_finite(values)

  def eval_grad(self, X, variable, n_params, counter):
    values = evaluate_variable(X, self.index)
    grad = np.zeros((n_params, X.shape[0]))
    if variable:
      grad[self.index] = 1.0
    return values, grad, all_finite(values)

  def to_string(self, variable_names=None) -> str:
    if variable_names is not None:
      return str(variable_names[self.index])
    return f"x{self.index}"

  def copy(self) -> 'VariableNode':
    return VariableNode(self.index)

  def to_sympy(self, symbols):
    return symbols[self.index]

  def __eq__(self, other) -> bool:
    return isinstance(other, VariableNode) and other.index == self.index


class ConstantNode(Node):
  __slots__ = ('value',)
  node_type = NodeType.CONSTANT

  def __init__(self, value: float):
    self.value = float(value)

  def evaluate(self, X: np.ndarray) -> EvalResult:
    return evaluate_constant(X.shape[0], self.value), bool(np.isfinite(self.value))

  def eval_grad(self, X, variable, n_params, counter):
    values = evaluate_constant(X.shape[0], self.value)
    grad = np.zeros((n_params, X.shape[0]))
    if not variable:
      grad[counter[0]] = 1.0
      counter[0] += 1
    return values, grad, bool(np.isfinite(self.value))

  def to_string(self, variable_names=None) -> str:
    return f"{self.value:.6g}"

  def copy(self) -> 'ConstantNode':
    return ConstantNode(self.value)

  def to_sympy(self, symbols):
    return sp.Float(self.value)

  def get_constants(self, constant_list):
    constant_list.append(self.value)

  def set_constants(self, constant_list):
    self.value = float(constant_list.pop(0))

  def __eq__(self, other) -> bool:
    # Compare bit patterns so nan constants still equal themselves
    return (isinstance(other, ConstantNode) and
            np.float64(other.value).tobytes() == np.float64(self.value).tobytes())


class BinaryOpNode(Node):
  __slots__ = ('operator', 'left', 'right')
  node_type = NodeType.BINARY_OP
  degree = 2

  def __init__(self, operator: str, left: Node, right: Node):
    self.operator = operator
    self.left = left
    self.right = right

  @property
  def children(self):
    return (self.left, self.right)

  def evaluate(self, X: np.ndarray) -> EvalResult:
    left_val, completed = self.left.evaluate(X)
    if not completed:
      return left_val, False
    right_val, completed = self.right.evaluate(X)
    if not completed:
      return right_val, False
    result = evaluate_binary_op(left_val, right_val, self.operator)
    return result, all_finite(result)

  def eval_grad(self, X, variable, n_params, counter):
    left_val, left_grad, completed = self.left.eval_grad(X, variable, n_params, counter)
    right_val, right_grad, right_completed = self.right.eval_grad(X, variable, n_params, counter)
    completed = completed and right_completed
    result = evaluate_binary_op(left_val, right_val, self.operator)

    if self.operator == '+':
      grad = left_grad + right_grad
    elif self.operator == '-':
      grad = left_grad - right_grad
    elif self.operator == '*':
      grad = left_grad * right_val + left_val * right_grad
    elif self.operator == '/':
      grad = (left_grad * right_val - left_val * right_grad) / (right_val * right_val)
    else:
      d_base = right_val * np.power(left_val, right_val - 1.0)
      d_exponent = np.where(right_grad != 0.0, result * np.log(left_val) * right_grad, 0.0)
      grad = d_base * left_grad + d_exponent

    completed = completed and all_finite(result) and bool(np.isfinite(grad).all())
    return result, grad, completed

  def to_string(self, variable_names=None) -> str:
    return (f"({self.left.to_string(variable_names)} {self.operator} "
            f"{self.right.to_string(variable_names)})")

  def copy(self) -> 'BinaryOpNode':
    return BinaryOpNode(self.operator, self.left.copy(), self.right.copy())

  def to_sympy(self, symbols):
    left = self.left.to_sympy(symbols)
    right = self.right.to_sympy(symbols)
    if self.operator == '+':
      return sp.Add(left, right)
    elif self.operator == '-':
      return sp.Add(left, sp.Mul(-1, right))
    elif self.operator == '*':
      return sp.Mul(left, right)
    elif self.operator == '/':
      return sp.Mul(left, sp.Pow(right, -1))
    elif self.operator == '^':
      return sp.Pow(left, right)
    raise ValueError(f"to_sympy reached unexpected binary operation: {self.operator}")

  def __eq__(self, other) -> bool:
    return (isinstance(other, BinaryOpNode) and other.operator == self.operator and
            self.left == other.left and self.right == other.right)


_SYMPY_UNARY = {
  'sqrt': sp.sqrt, 'exp': sp.exp, 'log': sp.log, 'abs': sp.Abs,
  'sin': sp.sin, 'cos': sp.cos, 'tan': sp.tan,
  'sinh': sp.sinh, 'cosh': sp.cosh, 'tanh': sp.tanh,
}


class UnaryOpNode(Node):
  __slots__ = ('operator', 'operand')
  node_type = NodeType.UNARY_OP
  degree = 1

  def __init__(self, operator: str, operand: Node):
    self.operator = operator
    self.operand = operand

  @property
  def children(self):
    return (self.operand,)

  def evaluate(self, X: np.ndarray) -> EvalResult:
    operand_val, completed = self.operand.evaluate(X)
    if not completed:
      return operand_val, False
    result = evaluate_unary_op(operand_val, self.operator)
    return result, all_finite(result)

  def eval_grad(self, X, variable, n_params, counter):
    operand_val, operand_grad, completed = self.operand.eval_grad(X, variable, n_params, counter)
    result = evaluate_unary_op(operand_val, self.operator)
    grad = operand_grad * evaluate_unary_derivative(operand_val, self.operator)
    completed = completed and all_finite(result) and bool(np.isfinite(grad).all())
    return result, grad, completed

  def to_string(self, variable_names=None) -> str:
    return f"{self.operator}({self.operand.to_string(variable_names)})"

  def copy(self) -> 'UnaryOpNode':
    return UnaryOpNode(self.operator, self.operand.copy())

  def to_sympy(self, symbols):
    operand = self.operand.to_sympy(symbols)
    if self.operator in _SYMPY_UNARY:
      return _SYMPY_UNARY[self.operator](operand)
    elif self.operator == 'neg':
      return -operand
    elif self.operator == 'square':
      return operand**2
    elif self.operator == 'cube':
      return operand**3
    elif self.operator == 'cbrt':
      return sp.sign(operand) * sp.Abs(operand)**sp.Rational(1, 3)
    elif self.operator == 'reciprocal':
      return sp.Pow(operand, -1)
    raise ValueError(f"to_sympy reached unexpected unary operation: {self.operator}")

  def __eq__(self, other) -> bool:
    return (isinstance(other, UnaryOpNode) and other.operator == self.operator and
            self.operand == other.operand)
