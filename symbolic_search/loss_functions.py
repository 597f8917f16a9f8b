"""
Loss evaluation and loss-to-score conversion.

A failed evaluation (non-finite intermediate value, non-finite loss) maps to
``inf`` and never raises. A negative loss means the scoring assumptions are
broken, so it raises ``ConfigurationError``.
"""

from typing import Callable, Optional, Tuple

import numpy as np

from .dataset import Dataset
from .errors import ConfigurationError
from .expression_tree import Expression, ConstantNode
from .options import Options


def l2_dist_loss(prediction: np.ndarray, target: np.ndarray) -> np.ndarray:
    diff = prediction - target
    return diff * diff


def l1_dist_loss(prediction: np.ndarray, target: np.ndarray) -> np.ndarray:
    return np.abs(prediction - target)


def log_cosh_loss(prediction: np.ndarray, target: np.ndarray) -> np.ndarray:
    # log(cosh(d)) = |d| + log1p(exp(-2|d|)) - log(2), stable for large |d|
    d = np.abs(prediction - target)
    return d + np.log1p(np.exp(-2.0 * d)) - np.log(2.0)


_ELEMENTWISE = {
    "L2DistLoss": l2_dist_loss,
    "L1DistLoss": l1_dist_loss,
    "LogCoshLoss": log_cosh_loss,
}


def get_elementwise_loss(options: Options) -> Callable[[np.ndarray, np.ndarray], np.ndarray]:
    if callable(options.elementwise_loss):
        return options.elementwise_loss
    return _ELEMENTWISE[options.elementwise_loss]


def _check_loss(loss: float) -> float:
    if np.isnan(loss):
        return np.inf
    if loss < 0:
        raise ConfigurationError(
            f"Loss function returned a negative value ({loss}); losses must be non-negative")
    return loss


def eval_loss(tree: Expression, dataset: Dataset, options: Options,
              idx: Optional[np.ndarray] = None) -> float:
    """
    Loss of ``tree`` on the dataset (or on the rows ``idx`` when batching).

    Returns:
        Non-negative loss, ``inf`` when the tree cannot be evaluated
    """
    if options.loss_function is not None:
        return _check_loss(float(options.loss_function(tree, dataset, idx)))

    X = dataset.X if idx is None else dataset.X[idx]
    y = dataset.y if idx is None else dataset.y[idx]
    prediction, completed = tree.evaluate(X)
    if not completed:
        return np.inf

    with np.errstate(all='ignore'):
        elementwise = np.asarray(get_elementwise_loss(options)(prediction, y), dtype=np.float64)
        if dataset.weights is not None:
            w = dataset.weights if idx is None else dataset.weights[idx]
            total = w.sum()
            loss = float(np.dot(w, elementwise) / total) if total > 0 else np.inf
        else:
            loss = float(np.mean(elementwise))
    if not np.isfinite(loss):
        return np.inf
    return _check_loss(loss)


def batch_sample(dataset: Dataset, options: Options, rng: np.random.Generator) -> np.ndarray:
    """Row indices of a random batch (drawn with replacement)"""
    return rng.integers(0, dataset.n, size=options.batch_size)


def eval_fraction(dataset: Dataset, options: Options) -> float:
    """Evaluation cost of one loss call, in units of full-dataset evaluations"""
    if options.batching:
        return min(options.batch_size, dataset.n) / dataset.n
    return 1.0


def loss_to_score(loss: float, complexity: int, dataset: Dataset, options: Options) -> float:
    """Score = normalised loss + parsimony * complexity"""
    normalization = max(dataset.baseline_loss, 0.01) if dataset.use_baseline else 1.0
    return loss / normalization + complexity * options.parsimony


def score_func(dataset: Dataset, tree: Expression, options: Options, complexity: int,
               idx: Optional[np.ndarray] = None) -> Tuple[float, float]:
    """
    Evaluate ``tree`` and convert its loss to a score.

    Returns:
        (score, loss)
    """
    loss = eval_loss(tree, dataset, options, idx)
    return loss_to_score(loss, complexity, dataset, options), loss


def update_baseline_loss(dataset: Dataset, options: Options):
    """Loss of the constant predictor ``avg_y``; used to normalise scores"""
    baseline = eval_loss(Expression(ConstantNode(dataset.avg_y)), dataset, options)
    if np.isfinite(baseline):
        dataset.baseline_loss = baseline
        dataset.use_baseline = True
    else:
        dataset.baseline_loss = 1.0
        dataset.use_baseline = False
