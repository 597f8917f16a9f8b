"""
Search configuration.

``Options`` is an immutable dataclass validated at construction; it is
shared by reference between every population, worker and the Hall of Fame.
"""

from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Callable, Dict, Optional, Tuple, Union

import numpy as np

from .errors import ConfigurationError
from .expression_tree.core.operators import BINARY_OPERATORS, UNARY_OPERATORS, canonical_operator

ELEMENTWISE_LOSSES = ("L2DistLoss", "L1DistLoss", "LogCoshLoss")
PARALLELISM_MODES = ("serial", "multithreading", "multiprocessing")
OPTIMIZER_ALGORITHMS = ("BFGS", "L-BFGS-B", "Nelder-Mead", "Powell", "CG")


class MutationType(Enum):
    """Operators the mutation engine chooses between"""
    MUTATE_CONSTANT = "mutate_constant"
    MUTATE_OPERATOR = "mutate_operator"
    ADD_NODE = "add_node"
    INSERT_NODE = "insert_node"
    DELETE_NODE = "delete_node"
    SIMPLIFY = "simplify"
    RANDOMIZE = "randomize"
    DO_NOTHING = "do_nothing"
    OPTIMIZE = "optimize"


@dataclass
class MutationWeights:
    """Relative (unnormalised) probability of each mutation operator"""
    mutate_constant: float = 0.048
    mutate_operator: float = 0.47
    add_node: float = 0.79
    insert_node: float = 5.1
    delete_node: float = 1.7
    simplify: float = 0.0020
    randomize: float = 0.00023
    do_nothing: float = 0.21
    optimize: float = 0.0

    def __post_init__(self):
        for f in fields(self):
            value = getattr(self, f.name)
            if not np.isfinite(value) or value < 0:
                raise ConfigurationError(f"Mutation weight {f.name} must be a non-negative number, got {value}")

    def as_array(self) -> np.ndarray:
        """Weights in ``MutationType`` declaration order"""
        return np.array([getattr(self, m.value) for m in MutationType], dtype=np.float64)


def sample_mutation(weights: np.ndarray, rng: np.random.Generator) -> MutationType:
    """
    Draw a mutation type through the cumulative distribution of ``weights``.

    Args:
        weights: array aligned with ``MutationType`` order (may contain zeros)
        rng: random generator

    Returns:
        The sampled mutation type, ``DO_NOTHING`` when every weight is zero
    """
    cumulative = np.cumsum(weights)
    total = cumulative[-1]
    if total <= 0:
        return MutationType.DO_NOTHING
    index = int(np.searchsorted(cumulative, rng.random() * total, side='right'))
    members = list(MutationType)
    return members[min(index, len(members) - 1)]


@dataclass(frozen=True)
class Options:
    """
    Settings of an equation search.

    Operators are given by name (``'+'``, ``'sin'``, ...; numpy-style aliases
    such as ``'mult'`` are accepted). Exactly one of ``elementwise_loss`` and
    ``loss_function`` may be set; ``loss_function(tree, dataset, idx)`` must
    return a non-negative float and be safe to call concurrently.
    """
    binary_operators: Tuple[str, ...] = ('+', '-', '*', '/')
    unary_operators: Tuple[str, ...] = ()
    constraints: Optional[Dict[str, Union[int, Tuple[int, int]]]] = None
    nested_constraints: Optional[Dict[str, Dict[str, int]]] = None

    elementwise_loss: Union[str, Callable, None] = None
    loss_function: Optional[Callable] = None

    complexity_of_operators: Optional[Dict[str, float]] = None
    complexity_of_constants: Optional[float] = None
    complexity_of_variables: Optional[float] = None

    parsimony: float = 0.0032
    use_frequency: bool = True
    use_frequency_in_tournament: bool = True
    adaptive_parsimony_scaling: float = 20.0
    alpha: float = 0.1
    annealing: bool = False
    warmup_maxsize_by: float = 0.0

    maxsize: int = 20
    maxdepth: Optional[int] = None

    populations: int = 15
    population_size: int = 33
    ncycles_per_iteration: int = 550
    tournament_selection_n: int = 12
    tournament_selection_p: float = 0.86
    prob_pick_first: Optional[float] = None
    crossover_probability: float = 0.066
    mutation_weights: MutationWeights = field(default_factory=MutationWeights)
    perturbation_factor: float = 0.076
    probability_negate_constant: float = 0.01
    skip_mutation_failures: bool = True
    strict_mutations: bool = False

    migration: bool = True
    hof_migration: bool = True
    fraction_replaced: float = 0.00036
    fraction_replaced_hof: float = 0.035
    topn: int = 12

    should_simplify: Optional[bool] = None
    should_optimize_constants: bool = True
    optimizer_algorithm: str = "BFGS"
    optimizer_probability: float = 0.14
    optimizer_nrestarts: int = 2
    optimizer_iterations: int = 8

    batching: bool = False
    batch_size: int = 50

    timeout_in_seconds: Optional[float] = None
    max_evals: Optional[int] = None
    early_stop_condition: Union[None, float, Callable] = None

    parallelism: str = "multithreading"
    numprocs: Optional[int] = None
    deterministic: bool = False
    seed: Optional[int] = None

    verbosity: int = 1
    progress: bool = False

    def __post_init__(self):
        # Frozen dataclass: normalised values are written with object.__setattr__
        binary = tuple(canonical_operator(op) for op in self.binary_operators)
        unary = tuple(canonical_operator(op) for op in self.unary_operators)
        for op in binary:
            if op not in BINARY_OPERATORS:
                raise ConfigurationError(f"Unknown binary operator: {op!r} (known: {BINARY_OPERATORS})")
        for op in unary:
            if op not in UNARY_OPERATORS:
                raise ConfigurationError(f"Unknown unary operator: {op!r} (known: {UNARY_OPERATORS})")
        if len(set(binary)) != len(binary) or len(set(unary)) != len(unary):
            raise ConfigurationError("Operators must not be repeated")
        object.__setattr__(self, 'binary_operators', binary)
        object.__setattr__(self, 'unary_operators', unary)

        self._validate_loss()
        self._validate_sizes()
        self._validate_probabilities()

        object.__setattr__(self, 'constraints', self._normalize_constraints(self.constraints))
        object.__setattr__(self, 'nested_constraints',
                           self._normalize_nested_constraints(self.nested_constraints))
        object.__setattr__(self, 'complexity_of_operators',
                           self._normalize_operator_complexity(self.complexity_of_operators))

        if self.should_simplify is None:
            object.__setattr__(self, 'should_simplify', True)

        if self.parallelism not in PARALLELISM_MODES:
            raise ConfigurationError(f"parallelism must be one of {PARALLELISM_MODES}, got {self.parallelism!r}")
        if self.deterministic and (self.parallelism != "serial" or self.seed is None):
            raise ConfigurationError("deterministic=True requires parallelism='serial' and a seed")
        if self.numprocs is not None and self.numprocs < 1:
            raise ConfigurationError("numprocs must be positive")
        if not 0 <= self.verbosity <= 4:
            raise ConfigurationError(f"verbosity must be between 0 and 4, got {self.verbosity}")

        if (self.early_stop_condition is not None and not callable(self.early_stop_condition)
                and not isinstance(self.early_stop_condition, (int, float))):
            raise ConfigurationError("early_stop_condition must be a number or a callable (loss, complexity)")
        if self.timeout_in_seconds is not None and self.timeout_in_seconds <= 0:
            raise ConfigurationError("timeout_in_seconds must be positive")
        if self.max_evals is not None and self.max_evals <= 0:
            raise ConfigurationError("max_evals must be positive")

    def _validate_loss(self):
        if self.elementwise_loss is not None and self.loss_function is not None:
            raise ConfigurationError("Set either elementwise_loss or loss_function, not both")
        if self.loss_function is not None and not callable(self.loss_function):
            raise ConfigurationError("loss_function must be callable")
        if self.elementwise_loss is None and self.loss_function is None:
            object.__setattr__(self, 'elementwise_loss', "L2DistLoss")
        if isinstance(self.elementwise_loss, str) and self.elementwise_loss not in ELEMENTWISE_LOSSES:
            raise ConfigurationError(
                f"Unknown elementwise_loss {self.elementwise_loss!r} (known: {ELEMENTWISE_LOSSES})")

    def _validate_sizes(self):
        if self.maxsize < 3:
            raise ConfigurationError(f"maxsize must be at least 3, got {self.maxsize}")
        if self.maxdepth is None:
            object.__setattr__(self, 'maxdepth', self.maxsize)
        elif self.maxdepth < 1:
            raise ConfigurationError("maxdepth must be positive")
        if self.populations < 1:
            raise ConfigurationError("populations must be positive")
        if self.tournament_selection_n < 1:
            raise ConfigurationError("tournament_selection_n must be positive")
        if self.population_size < self.tournament_selection_n:
            raise ConfigurationError(
                f"population_size ({self.population_size}) must be at least "
                f"tournament_selection_n ({self.tournament_selection_n})")
        if self.ncycles_per_iteration < 1:
            raise ConfigurationError("ncycles_per_iteration must be positive")
        if self.topn < 1:
            raise ConfigurationError("topn must be positive")
        if self.batch_size < 1:
            raise ConfigurationError("batch_size must be positive")
        if self.optimizer_iterations < 1 or self.optimizer_nrestarts < 0:
            raise ConfigurationError("optimizer_iterations must be positive and optimizer_nrestarts non-negative")
        if self.optimizer_algorithm not in OPTIMIZER_ALGORITHMS:
            raise ConfigurationError(
                f"optimizer_algorithm must be one of {OPTIMIZER_ALGORITHMS}, got {self.optimizer_algorithm!r}")

    def _validate_probabilities(self):
        for name in ('fraction_replaced', 'fraction_replaced_hof', 'crossover_probability',
                     'optimizer_probability', 'probability_negate_constant', 'warmup_maxsize_by'):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ConfigurationError(f"{name} must lie in [0, 1], got {value}")
        if not 0.0 < self.tournament_selection_p <= 1.0:
            raise ConfigurationError(f"tournament_selection_p must lie in (0, 1], got {self.tournament_selection_p}")
        if self.prob_pick_first is not None and not 0.0 <= self.prob_pick_first <= 1.0:
            raise ConfigurationError(f"prob_pick_first must lie in [0, 1], got {self.prob_pick_first}")
        if self.parsimony < 0 or self.alpha <= 0:
            raise ConfigurationError("parsimony must be non-negative and alpha positive")
        if not isinstance(self.mutation_weights, MutationWeights):
            raise ConfigurationError("mutation_weights must be a MutationWeights instance")

    def _normalize_constraints(self, constraints):
        """Map operator -> max argument size (unary) or (left, right) max sizes (binary); -1 = unlimited"""
        if not constraints:
            return {}
        normalized = {}
        for op, limit in constraints.items():
            op = canonical_operator(op)
            if op in self.unary_operators:
                if not isinstance(limit, (int, np.integer)):
                    raise ConfigurationError(f"Constraint for unary operator {op!r} must be an int")
                normalized[op] = int(limit)
            elif op in self.binary_operators:
                if isinstance(limit, (int, np.integer)):
                    limit = (limit, limit)
                if len(limit) != 2:
                    raise ConfigurationError(f"Constraint for binary operator {op!r} must be a pair")
                normalized[op] = (int(limit[0]), int(limit[1]))
            else:
                raise ConfigurationError(f"Constraint given for operator {op!r} that is not in use")
        return normalized

    def _normalize_nested_constraints(self, nested):
        """Map outer operator -> {inner operator: max nesting count of inner inside outer}"""
        if not nested:
            return {}
        in_use = set(self.binary_operators) | set(self.unary_operators)
        normalized = {}
        for outer, inner_limits in nested.items():
            outer = canonical_operator(outer)
            if outer not in in_use:
                raise ConfigurationError(f"Nested constraint given for operator {outer!r} that is not in use")
            inner_normalized = {}
            for inner, limit in inner_limits.items():
                inner = canonical_operator(inner)
                if inner not in in_use:
                    raise ConfigurationError(f"Nested constraint refers to operator {inner!r} that is not in use")
                if limit < 0:
                    raise ConfigurationError("Nested constraint limits must be non-negative")
                inner_normalized[inner] = int(limit)
            normalized[outer] = inner_normalized
        return normalized

    def _normalize_operator_complexity(self, complexities):
        if not complexities:
            return {}
        in_use = set(self.binary_operators) | set(self.unary_operators)
        normalized = {}
        for op, value in complexities.items():
            op = canonical_operator(op)
            if op not in in_use:
                raise ConfigurationError(f"Complexity given for operator {op!r} that is not in use")
            normalized[op] = float(value)
        return normalized

    @property
    def uses_custom_complexity(self) -> bool:
        return bool(self.complexity_of_operators) or self.complexity_of_constants is not None \
            or self.complexity_of_variables is not None

    @property
    def operator_count(self) -> int:
        return len(self.binary_operators) + len(self.unary_operators)
