"""
Search driver.

Coordinates many populations per output column. Each population repeatedly
runs one iteration (``ncycles_per_iteration`` cycles plus the optimise and
simplify pass) on a private copy; when it returns, the coordinator merges its
best members into the shared Hall of Fame, updates the complexity statistics,
performs migration and resubmits it, until every population has finished
``niterations`` iterations or a global stop condition fires.
"""

import os
import time
from concurrent.futures import FIRST_COMPLETED, ProcessPoolExecutor, ThreadPoolExecutor, wait
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

import numpy as np
from sklearn.utils import check_array
from tqdm import tqdm

from .adaptive_parsimony import RunningSearchStatistics, get_cur_maxsize
from .dataset import Dataset
from .errors import ConfigurationError, EmptyResultError
from .evolution import s_r_cycle, optimize_and_simplify_population, rescore_best_seen
from .hall_of_fame import (
    HallOfFame, choose_best, format_hall_of_fame, frontier_rows, string_dominating_pareto_curve
)
from .logging_system import LogLevel, configure_logging, get_logger, level_from_verbosity
from .loss_functions import update_baseline_loss
from .migration import migration_step
from .options import Options
from .population import Population


def _run_iteration(dataset: Dataset, population: Population, stats: RunningSearchStatistics,
                   curmaxsize: int, options: Options, rng: np.random.Generator):
    """
    Worker task: one iteration of one population.

    Returns:
        (population, best_seen, num_evals, rng). The generator is returned so
        that process workers hand back its advanced state.
    """
    population, best_seen, num_evals = s_r_cycle(dataset, population, options.ncycles_per_iteration,
                                                 curmaxsize, options, rng, stats)
    population, evals = optimize_and_simplify_population(dataset, population, options, rng)
    num_evals += evals
    if options.batching:
        num_evals += rescore_best_seen(dataset, best_seen, options)
    best_seen.update_from_population(population)
    return population, best_seen, num_evals, rng


class SearchResult:
    """
    Outcome of ``equation_search``: one Hall of Fame per output column.

    Attributes:
        hall_of_fames: Hall of Fame per output
        options: Settings the search ran with
        variable_names: Feature names used when rendering equations
        baseline_losses: Constant-predictor loss per output (None if unusable)
        num_evals: Evaluation count per output, in full-dataset units
        stop_reason: Why the search ended
    """

    def __init__(self, hall_of_fames: List[HallOfFame], options: Options, variable_names: List[str],
                 baseline_losses: List[Optional[float]], num_evals: List[float], stop_reason: str):
        self.hall_of_fames = hall_of_fames
        self.options = options
        self.variable_names = variable_names
        self.baseline_losses = baseline_losses
        self.num_evals = num_evals
        self.stop_reason = stop_reason

    @property
    def nout(self) -> int:
        return len(self.hall_of_fames)

    def table(self, output: int = 0) -> Dict[str, list]:
        """Pareto frontier of one output as parallel lists"""
        return format_hall_of_fame(self.hall_of_fames[output], self.options,
                                   self.variable_names, self.baseline_losses[output])

    def equations(self, output: int = 0) -> List[Dict[str, Any]]:
        """Frontier rows (complexity, loss, score, equation, tree, sympy_format)"""
        rows = frontier_rows(self.table(output))
        for row in rows:
            row['sympy_format'] = row['tree'].to_sympy(self.variable_names)
        return rows

    def best_index(self, output: int = 0,
                   criterion: Union[str, Callable, None] = None) -> Optional[int]:
        """Index into ``equations(output)`` of the preferred entry; None when there is none"""
        return choose_best(self.table(output), criterion)

    def best(self, output: int = 0, criterion: Union[str, Callable, None] = None) -> Optional[Dict[str, Any]]:
        index = self.best_index(output, criterion)
        if index is None:
            return None
        return self.equations(output)[index]

    def predict(self, X, index: Optional[int] = None, output: Optional[int] = None) -> np.ndarray:
        """
        Evaluate a frontier equation on new data.

        Args:
            X: Feature matrix (n_samples, n_features)
            index: Frontier index, defaults to ``best_index``
            output: Output column; None predicts every output (a 1-D result
                for single-output searches, shape (n_samples, nout) otherwise)

        Returns:
            Predictions

        Raises:
            EmptyResultError: if the Hall of Fame of a requested output is empty
            ConfigurationError: if X does not have the fitted number of features
        """
        X = np.asfortranarray(check_array(X, dtype=np.float64))
        if X.shape[1] != len(self.variable_names):
            raise ConfigurationError(
                f"X has {X.shape[1]} features but the search was fitted on {len(self.variable_names)} "
                f"({', '.join(self.variable_names)})")
        if output is None:
            columns = [self.predict(X, index, j) for j in range(self.nout)]
            return columns[0] if self.nout == 1 else np.column_stack(columns)

        table = self.table(output)
        if index is None:
            index = choose_best(table)
        if index is None:
            raise EmptyResultError(
                f"Evaluation failed either due to every candidate equation of output {output} "
                f"producing non-finite losses or to the search being stopped before any was evaluated")
        values, completed = table['trees'][index].evaluate(X)
        if not completed:
            get_logger().warning(
                f"Equation {table['strings'][index]} produced non-finite values on the given data")
        return values

    def __repr__(self) -> str:
        return f"SearchResult(nout={self.nout}, stop_reason={self.stop_reason!r})"


def _as_outputs(y, weights):
    y = np.asarray(y, dtype=np.float64)
    if y.ndim == 1:
        y = y[:, None]
    elif y.ndim != 2:
        raise ConfigurationError(f"y must be 1-D or 2-D, got shape {y.shape}")
    nout = y.shape[1]
    if weights is None:
        return y, [None] * nout
    weights = np.asarray(weights, dtype=np.float64)
    if weights.ndim == 1:
        return y, [weights] * nout
    if weights.shape != y.shape:
        raise ConfigurationError(f"weights must have shape {y.shape[:1]} or {y.shape}, got {weights.shape}")
    return y, [weights[:, j] for j in range(nout)]


def early_stop_satisfied(hall_of_fame: HallOfFame, options: Options) -> bool:
    """True when any archived member, dominated or not, meets ``early_stop_condition``"""
    condition = options.early_stop_condition
    for member in hall_of_fame.entries():
        if callable(condition):
            if condition(member.loss, member.complexity(options)):
                return True
        elif member.loss <= condition:
            return True
    return False


class _SearchState:
    """Coordinator-side bookkeeping of a running search"""

    def __init__(self, datasets: List[Dataset], options: Options, niterations: int):
        self.datasets = datasets
        self.options = options
        self.niterations = niterations
        self.nout = len(datasets)
        npops = options.populations

        seeds = np.random.SeedSequence(options.seed).spawn(self.nout * npops)
        self.rngs = [[np.random.default_rng(seeds[j * npops + i]) for i in range(npops)]
                     for j in range(self.nout)]
        self.populations = [[Population.random(datasets[j], options, self.rngs[j][i]) for i in range(npops)]
                            for j in range(self.nout)]
        self.best_sub_pops = [[pop.best_sub_pop(options.topn) for pop in pops] for pops in self.populations]
        self.hall_of_fames = [HallOfFame(options) for _ in range(self.nout)]
        self.stats = [RunningSearchStatistics(options) for _ in range(self.nout)]
        self.num_evals = [float(npops * options.population_size) for _ in range(self.nout)]
        self.iterations_done = [[0] * npops for _ in range(self.nout)]

        self.total_cycles = npops * niterations
        self.cycles_remaining = [self.total_cycles] * self.nout
        self.curmaxsize = [get_cur_maxsize(options, self.total_cycles, self.total_cycles)] * self.nout

        for j in range(self.nout):
            for pop in self.populations[j]:
                self.hall_of_fames[j].update_from_population(pop)

    def task_args(self, j: int, i: int):
        return (self.datasets[j], self.populations[j][i].copy(), self.stats[j].copy(),
                self.curmaxsize[j], self.options, self.rngs[j][i])

    def absorb(self, j: int, i: int, result):
        """Merge a returned iteration into the shared state and migrate"""
        population, best_seen, num_evals, rng = result
        options = self.options
        self.rngs[j][i] = rng
        self.num_evals[j] += num_evals
        self.iterations_done[j][i] += 1

        self.best_sub_pops[j][i] = population.best_sub_pop(options.topn)
        for member in population.members:
            self.stats[j].update_frequencies(member.complexity(options))
        self.hall_of_fames[j].merge(best_seen)

        migration_step(population, i, self.best_sub_pops[j], self.hall_of_fames[j], options, rng)
        self.populations[j][i] = population

        self.cycles_remaining[j] -= 1
        self.curmaxsize[j] = get_cur_maxsize(options, self.total_cycles, self.cycles_remaining[j])
        self.stats[j].move_window()
        self.stats[j].normalize()

    def finished(self, j: int, i: int) -> bool:
        return self.iterations_done[j][i] >= self.niterations

    def best_loss(self, j: int) -> float:
        losses = [member.loss for member in self.hall_of_fames[j].entries()]
        return min(losses) if losses else np.inf

    def stop_reason(self, start_time: float) -> Optional[str]:
        options = self.options
        if options.timeout_in_seconds is not None and time.time() - start_time > options.timeout_in_seconds:
            return "timeout"
        if options.max_evals is not None and sum(self.num_evals) >= options.max_evals:
            return "max_evals"
        if options.early_stop_condition is not None and all(
                early_stop_satisfied(hof, options) for hof in self.hall_of_fames):
            return "early_stop_condition"
        return None


def _executor(options: Options):
    if options.parallelism == "multiprocessing":
        return ProcessPoolExecutor(max_workers=options.numprocs)
    max_workers = options.numprocs or min(32, (os.cpu_count() or 1) + 4)
    return ThreadPoolExecutor(max_workers=max_workers)


def equation_search(X, y, niterations: int = 10, options: Optional[Options] = None,
                    weights=None, variable_names: Optional[Sequence[str]] = None,
                    extra: Optional[Dict[str, np.ndarray]] = None) -> SearchResult:
    """
    Evolve populations of equations that fit ``y`` from ``X``.

    Args:
        X: Feature matrix, shape (n_samples, n_features)
        y: Targets, shape (n_samples,) or (n_samples, nout); each output is
            searched independently
        niterations: Iterations per population
        options: Search settings (defaults to ``Options()``)
        weights: Sample weights, shape (n_samples,) or matching ``y``
        variable_names: Feature names for printed equations
        extra: Named auxiliary arrays passed to a custom ``loss_function``

    Returns:
        SearchResult holding one Hall of Fame per output

    Raises:
        ConfigurationError: on invalid settings or data
    """
    if options is None:
        options = Options()
    if niterations < 1:
        raise ConfigurationError("niterations must be positive")
    if extra and options.loss_function is None:
        raise ConfigurationError("extra data is only available to a custom loss_function")

    logger = configure_logging(level_from_verbosity(options.verbosity))
    y, output_weights = _as_outputs(y, weights)
    datasets = [Dataset(X, y[:, j], output_weights[j], extra, variable_names) for j in range(y.shape[1])]
    for dataset in datasets:
        update_baseline_loss(dataset, options)
    variable_names = datasets[0].variable_names

    start_time = time.time()
    state = _SearchState(datasets, options, niterations)
    logger.milestone(f"Started search: {state.nout} output(s), {options.populations} populations "
                     f"of {options.population_size}, {niterations} iterations, parallelism={options.parallelism}")

    total_tasks = state.nout * options.populations * niterations
    with tqdm(total=total_tasks, disable=not options.progress, desc="Evolving") as progress_bar:
        if options.parallelism == "serial":
            stop_reason = _search_serial(state, start_time, progress_bar, logger)
        else:
            stop_reason = _search_concurrent(state, start_time, progress_bar, logger)

    baselines = [d.baseline_loss if d.use_baseline else None for d in datasets]
    logger.milestone(f"Search finished ({stop_reason}) after {time.time() - start_time:.1f}s, "
                     f"{sum(state.num_evals):.3e} evaluations")
    for j, hall_of_fame in enumerate(state.hall_of_fames):
        if hall_of_fame.is_empty():
            logger.warning(f"Output {j}: no equation could be evaluated successfully")
            continue
        logger.hall_of_fame(string_dominating_pareto_curve(hall_of_fame, options, variable_names, baselines[j]),
                            LogLevel.MINIMAL)

    return SearchResult(state.hall_of_fames, options, variable_names, baselines, state.num_evals, stop_reason)


def _after_iteration(state: _SearchState, j: int, i: int, progress_bar, logger):
    options = state.options
    progress_bar.update(1)
    logger.iteration_step(j, i, state.iterations_done[j][i], state.niterations,
                          state.best_loss(j), state.num_evals[j])
    logger.progress(f"Output {j}: best loss {state.best_loss(j):.6e}, "
                    f"{sum(state.num_evals):.3e} evaluations")
    if logger.enabled(LogLevel.DETAILED) and i == options.populations - 1:
        baseline = state.datasets[j].baseline_loss if state.datasets[j].use_baseline else None
        logger.hall_of_fame(string_dominating_pareto_curve(state.hall_of_fames[j], options,
                                                           state.datasets[0].variable_names, baseline))


def _search_serial(state: _SearchState, start_time: float, progress_bar, logger) -> str:
    for _ in range(state.niterations):
        for j in range(state.nout):
            for i in range(state.options.populations):
                state.absorb(j, i, _run_iteration(*state.task_args(j, i)))
                _after_iteration(state, j, i, progress_bar, logger)
                reason = state.stop_reason(start_time)
                if reason is not None:
                    return reason
    return "niterations"


def _search_concurrent(state: _SearchState, start_time: float, progress_bar, logger) -> str:
    options = state.options
    executor = _executor(options)
    futures = {}
    reason = None
    try:
        for j in range(state.nout):
            for i in range(options.populations):
                futures[executor.submit(_run_iteration, *state.task_args(j, i))] = (j, i)

        while futures and reason is None:
            timeout = None
            if options.timeout_in_seconds is not None:
                timeout = max(0.0, options.timeout_in_seconds - (time.time() - start_time))
            done, _ = wait(futures, timeout=timeout, return_when=FIRST_COMPLETED)
            if not done:
                reason = state.stop_reason(start_time) or "timeout"
                break
            for future in done:
                j, i = futures.pop(future)
                state.absorb(j, i, future.result())
                _after_iteration(state, j, i, progress_bar, logger)
                reason = state.stop_reason(start_time)
                if reason is not None:
                    break
                if not state.finished(j, i):
                    futures[executor.submit(_run_iteration, *state.task_args(j, i))] = (j, i)
    finally:
        for future in futures:
            future.cancel()
        executor.shutdown(wait=True)
    if reason is not None:
        logger.debug(f"Stopping early ({reason}); discarding {len(futures)} pending iteration(s)")
        return reason
    return "niterations"
