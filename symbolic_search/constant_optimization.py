import warnings
from typing import Optional, Tuple

import numpy as np
from scipy.optimize import minimize, OptimizeWarning

from .dataset import Dataset
from .errors import ConfigurationError
from .loss_functions import eval_loss, eval_fraction, score_func
from .options import Options
from .pop_member import PopMember

_GRADIENT_ALGORITHMS = ("BFGS", "L-BFGS-B", "CG")


class _ConstantObjective:
  """Loss as a function of a tree's constants (the tree is edited in place)"""

  def __init__(self, tree, dataset: Dataset, options: Options, idx: Optional[np.ndarray]):
    self.tree = tree
    self.dataset = dataset
    self.options = options
    self.idx = idx
    self.calls = 0

  def __call__(self, constants: np.ndarray) -> float:
    self.calls += 1
    self.tree.set_constants(constants)
    return eval_loss(self.tree, self.dataset, self.options, self.idx)

  def value_and_grad(self, constants: np.ndarray) -> Tuple[float, np.ndarray]:
    """L2 loss and its analytic gradient through ``evaluate_with_gradient``"""
    self.calls += 1
    self.tree.set_constants(constants)
    X = self.dataset.X if self.idx is None else self.dataset.X[self.idx]
    y = self.dataset.y if self.idx is None else self.dataset.y[self.idx]
    prediction, grad, completed = self.tree.evaluate_with_gradient(X)
    if not completed:
      return np.inf, np.zeros_like(constants)
    residual = prediction - y
    if self.dataset.weights is None:
      w = np.full(residual.shape[0], 1.0 / residual.shape[0])
    else:
      w = self.dataset.weights if self.idx is None else self.dataset.weights[self.idx]
      w = w / w.sum()
    loss = float(np.dot(w, residual * residual))
    gradient = 2.0 * grad @ (w * residual)
    if not np.isfinite(loss) or not np.isfinite(gradient).all():
      return np.inf, np.zeros_like(constants)
    return loss, gradient


def _uses_analytic_gradient(options: Options) -> bool:
  return (options.loss_function is None and options.elementwise_loss == "L2DistLoss"
          and options.optimizer_algorithm in _GRADIENT_ALGORITHMS)


def optimize_constants(dataset: Dataset, member: PopMember, options: Options,
                       rng: np.random.Generator,
                       idx: Optional[np.ndarray] = None) -> Tuple[PopMember, float]:
  """Fit the constants of ``member`` with scipy.optimize.minimize.

  Runs ``optimizer_algorithm`` from the current constants and from
  ``optimizer_nrestarts`` randomly perturbed starts, keeping the best.

  Args:
      dataset: Training data
      member: Member to improve (never modified)
      options: Search settings
      rng: Random generator for the restarts
      idx: Batch row indices, or None for the full dataset

  Returns:
      (member, num_evals): a new member when the loss improved, else the
      original one, and the evaluation cost spent
  """
  x0 = np.array(member.tree.get_constants(), dtype=np.float64)
  if x0.size == 0:
    return member, 0.0

  tree = member.tree.copy()
  objective = _ConstantObjective(tree, dataset, options, idx)
  analytic = _uses_analytic_gradient(options)
  minimize_options = {'maxiter': options.optimizer_iterations}

  best_x = x0
  best_loss = objective(x0)
  if not np.isfinite(best_loss):
    return member, objective.calls * eval_fraction(dataset, options)
  starts = [x0] + [x0 * (1.0 + 0.5 * rng.standard_normal(x0.size))
                   for _ in range(options.optimizer_nrestarts)]

  for start in starts:
    try:
      with warnings.catch_warnings():
        warnings.simplefilter("ignore", OptimizeWarning)
        warnings.simplefilter("ignore", RuntimeWarning)
        if analytic:
          result = minimize(objective.value_and_grad, start, jac=True,
                            method=options.optimizer_algorithm, options=minimize_options)
        else:
          result = minimize(objective, start, method=options.optimizer_algorithm,
                            options=minimize_options)
    except ConfigurationError:
      raise
    except (ValueError, ArithmeticError, np.linalg.LinAlgError):
      continue  # failed to optimize
    if np.isfinite(result.fun) and result.fun < best_loss and np.isfinite(result.x).all():
      best_x = result.x
      best_loss = float(result.fun)

  num_evals = objective.calls * eval_fraction(dataset, options)
  if best_x is x0:
    return member, num_evals

  tree.set_constants(best_x)
  score, loss = score_func(dataset, tree, options, member.complexity(options), idx)
  num_evals += eval_fraction(dataset, options)
  if not np.isfinite(loss):
    return member, num_evals
  return PopMember(tree, score, loss), num_evals
