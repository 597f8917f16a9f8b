import numpy as np
import pytest

from symbolic_search import Dataset, Options
from symbolic_search.logging_system import LogLevel, configure_logging
from symbolic_search.loss_functions import update_baseline_loss


@pytest.fixture(autouse=True)
def quiet_logging():
    configure_logging(LogLevel.SILENT)


@pytest.fixture
def rng():
    return np.random.default_rng(0)


@pytest.fixture
def small_options():
    return Options(
        binary_operators=('+', '-', '*', '/'),
        unary_operators=('cos',),
        maxsize=10,
        populations=2,
        population_size=20,
        tournament_selection_n=5,
        ncycles_per_iteration=10,
        parallelism="serial",
        seed=0,
        verbosity=0,
    )


@pytest.fixture
def quadratic_dataset(small_options):
    data_rng = np.random.default_rng(42)
    X = data_rng.uniform(-2, 2, size=(64, 2))
    y = X[:, 0] ** 2
    dataset = Dataset(X, y, variable_names=['a', 'b'])
    update_baseline_loss(dataset, small_options)
    return dataset
