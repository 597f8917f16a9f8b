import numpy as np
import numba
from enum import IntEnum

class NodeType(IntEnum):
  VARIABLE = 0
  CONSTANT = 1
  BINARY_OP = 2
  UNARY_OP = 3

# Operators the tree library knows how to evaluate and differentiate.
# Options select a subset of these.
BINARY_OPERATORS = ('+', '-', '*', '/', '^')
UNARY_OPERATORS = (
    'neg', 'square', 'cube', 'sqrt', 'cbrt',
    'exp', 'log', 'abs',
    'sin', 'cos', 'tan',
    'sinh', 'cosh', 'tanh',
    'reciprocal',
)

# Aliases accepted when users spell operators the numpy way
OPERATOR_ALIASES = {
    'add': '+', 'plus': '+',
    'sub': '-', 'minus': '-',
    'mult': '*', 'mul': '*', 'times': '*',
    'div': '/', 'divide': '/',
    'pow': '^', 'power': '^', '**': '^',
    'negative': 'neg', 'inv': 'reciprocal',
}

MAX_DEGREE = 2


def canonical_operator(name: str) -> str:
  """Map an operator alias to the name used inside trees"""
  return OPERATOR_ALIASES.get(name, name)


@numba.njit(cache=True)
def evaluate_variable(X, index):
  # Element-wise copy: X may be a read-only dataset array
  n_samples = X.shape[0]
  out = np.empty(n_samples, dtype=np.float64)
  for i in range(n_samples):
    out[i] = X[i, index]
  return out

@numba.njit(cache=True)
def evaluate_constant(n_samples, value):
  return np.full(n_samples, value, dtype=np.float64)

@numba.njit(cache=True)
def all_finite(values):
  for i in range(values.shape[0]):
    if not np.isfinite(values[i]):
      return False
  return True

# No fastmath here: non-finite results must survive so callers can flag them.
@numba.njit(cache=True, error_model='numpy')
def evaluate_binary_op(left_val, right_val, operator):
  if operator == '+':
    return left_val + right_val
  elif operator == '-':
    return left_val - right_val
  elif operator == '*':
    return left_val * right_val
  elif operator == '/':
    return left_val / right_val
  elif operator == '^':
    return np.power(left_val, right_val)
  return np.full_like(left_val, np.nan)

@numba.njit(cache=True, error_model='numpy')
def evaluate_unary_op(operand_val, operator):
  if operator == 'neg':
    return -operand_val
  elif operator == 'square':
    return operand_val * operand_val
  elif operator == 'cube':
    return operand_val * operand_val * operand_val
  elif operator == 'sqrt':
    return np.sqrt(operand_val)
  elif operator == 'cbrt':
    return np.sign(operand_val) * np.power(np.abs(operand_val), 1.0 / 3.0)
  elif operator == 'exp':
    return np.exp(operand_val)
  elif operator == 'log':
    return np.log(operand_val)
  elif operator == 'abs':
    return np.abs(operand_val)
  elif operator == 'sin':
    return np.sin(operand_val)
  elif operator == 'cos':
    return np.cos(operand_val)
  elif operator == 'tan':
    return np.tan(operand_val)
  elif operator == 'sinh':
    return np.sinh(operand_val)
  elif operator == 'cosh':
    return np.cosh(operand_val)
  elif operator == 'tanh':
    return np.tanh(operand_val)
  elif operator == 'reciprocal':
    return 1.0 / operand_val
  return np.full_like(operand_val, np.nan)

@numba.njit(cache=True, error_model='numpy')
def evaluate_unary_derivative(operand_val, operator):
  """d op(x) / dx evaluated at operand_val"""
  if operator == 'neg':
    return -np.ones_like(operand_val)
  elif operator == 'square':
    return 2.0 * operand_val
  elif operator == 'cube':
    return 3.0 * operand_val * operand_val
  elif operator == 'sqrt':
    return 0.5 / np.sqrt(operand_val)
  elif operator == 'cbrt':
    root = np.power(np.abs(operand_val), 1.0 / 3.0)
    return 1.0 / (3.0 * root * root)
  elif operator == 'exp':
    return np.exp(operand_val)
  elif operator == 'log':
    return 1.0 / operand_val
  elif operator == 'abs':
    return np.sign(operand_val)
  elif operator == 'sin':
    return np.cos(operand_val)
  elif operator == 'cos':
    return -np.sin(operand_val)
  elif operator == 'tan':
    t = np.tan(operand_val)
    return 1.0 + t * t
  elif operator == 'sinh':
    return np.cosh(operand_val)
  elif operator == 'cosh':
    return np.sinh(operand_val)
  elif operator == 'tanh':
    t = np.tanh(operand_val)
    return 1.0 - t * t
  elif operator == 'reciprocal':
    return -1.0 / (operand_val * operand_val)
  return np.full_like(operand_val, np.nan)
