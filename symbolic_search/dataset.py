"""
Dataset container for a single search output.

Arrays are validated with scikit-learn, converted to float64, stored
column-major (shape ``(n_samples, n_features)``) and frozen for the run.
"""

from typing import Dict, List, Mapping, Optional, Sequence

import numpy as np
from sklearn.utils import check_array

from .errors import ConfigurationError


def _freeze(array: np.ndarray) -> np.ndarray:
    array.setflags(write=False)
    return array


class Dataset:
    """
    Training data for one output column.

    Attributes:
        X: feature matrix, Fortran-ordered, shape (n, nfeatures)
        y: target vector, shape (n,)
        weights: optional per-sample weights, shape (n,)
        extra: named auxiliary arrays handed to custom loss functions
        variable_names: display names of the features
        avg_y: (weighted) mean of y
        baseline_loss: loss of the constant predictor ``avg_y``
        use_baseline: whether ``baseline_loss`` is usable for normalisation
    """

    def __init__(self, X, y, weights=None, extra: Optional[Mapping[str, np.ndarray]] = None,
                 variable_names: Optional[Sequence[str]] = None):
        try:
            X = check_array(X, dtype=np.float64, ensure_2d=True)
            y = check_array(y, dtype=np.float64, ensure_2d=False)
        except ValueError as e:
            raise ConfigurationError(f"Invalid training data: {e}") from e

        if y.ndim != 1:
            raise ConfigurationError(f"y must be one-dimensional for a single Dataset, got shape {y.shape}")
        if X.shape[0] != y.shape[0]:
            raise ConfigurationError(f"X has {X.shape[0]} rows but y has {y.shape[0]} entries")

        self.X = _freeze(np.asfortranarray(X))
        self.y = _freeze(np.ascontiguousarray(y))
        self.n, self.nfeatures = self.X.shape

        if weights is not None:
            try:
                weights = check_array(weights, dtype=np.float64, ensure_2d=False)
            except ValueError as e:
                raise ConfigurationError(f"Invalid weights: {e}") from e
            if weights.shape != self.y.shape:
                raise ConfigurationError(f"weights must have shape {self.y.shape}, got {weights.shape}")
            if np.any(weights < 0):
                raise ConfigurationError("weights must be non-negative")
            weights = _freeze(np.ascontiguousarray(weights))
        self.weights: Optional[np.ndarray] = weights

        self.extra: Dict[str, np.ndarray] = {}
        for key, value in (extra or {}).items():
            self.extra[key] = _freeze(np.array(value))

        if variable_names is None:
            variable_names = [f"x{i}" for i in range(self.nfeatures)]
        variable_names = [str(name) for name in variable_names]
        if len(variable_names) != self.nfeatures:
            raise ConfigurationError(
                f"Got {len(variable_names)} variable names for {self.nfeatures} features")
        self.variable_names: List[str] = variable_names

        if self.weights is not None and self.weights.sum() > 0:
            self.avg_y = float(np.average(self.y, weights=self.weights))
        else:
            self.avg_y = float(np.mean(self.y))

        # Filled in by loss_functions.update_baseline_loss before the search
        self.baseline_loss = 1.0
        self.use_baseline = False

    @property
    def weighted(self) -> bool:
        return self.weights is not None

    def __repr__(self) -> str:
        return (f"Dataset(n={self.n}, nfeatures={self.nfeatures}, weighted={self.weighted}, "
                f"extra={sorted(self.extra)})")
