"""
Evolution of a single population between two migrations.

``s_r_cycle`` runs the regularized evolution cycles and records the best
member seen per complexity; ``optimize_and_simplify_population`` is the
end-of-iteration pass that simplifies trees, optimises constants of a random
subset of members and re-scores everyone on the full dataset.
"""

from typing import Optional, Tuple

import numpy as np

from .adaptive_parsimony import RunningSearchStatistics
from .check_constraints import compute_complexity
from .constant_optimization import optimize_constants
from .dataset import Dataset
from .expression_tree.utils.simplifier import ExpressionSimplifier
from .hall_of_fame import HallOfFame
from .loss_functions import score_func
from .options import Options
from .pop_member import PopMember
from .population import Population
from .regularized_evolution import reg_evol_cycle


def s_r_cycle(dataset: Dataset, population: Population, ncycles: int, curmaxsize: int,
              options: Options, rng: np.random.Generator,
              stats: Optional[RunningSearchStatistics] = None) -> Tuple[Population, HallOfFame, float]:
    """
    Run ``ncycles`` evolution cycles on one population.

    With ``annealing`` the temperature falls linearly from 1 to 0 across the
    cycles, otherwise it stays at 1.

    Args:
        dataset: Training data
        population: Population to evolve (modified in place)
        ncycles: Number of cycles
        curmaxsize: Size limit currently in force
        options: Search settings
        rng: Random generator of the population
        stats: Complexity frequencies used by selection and acceptance

    Returns:
        (population, best_seen, num_evals), where ``best_seen`` holds the best
        member seen per complexity during these cycles
    """
    max_temp = 1.0
    min_temp = 0.0 if options.annealing else 1.0
    temperatures = np.linspace(max_temp, min_temp, ncycles) if ncycles > 1 else np.array([max_temp])

    best_seen = HallOfFame(options)
    num_evals = 0.0
    for temperature in temperatures:
        population, evals = reg_evol_cycle(dataset, population, float(temperature), curmaxsize,
                                           options, rng, stats)
        num_evals += evals
        best_seen.update_from_population(population)

    return population, best_seen, num_evals


def optimize_and_simplify_population(dataset: Dataset, population: Population, options: Options,
                                     rng: np.random.Generator) -> Tuple[Population, float]:
    """
    Simplify every member, optimise constants of each member with
    probability ``optimizer_probability``, then re-score all members on the
    full dataset.

    Returns:
        (population, num_evals)
    """
    num_evals = 0.0
    members = []
    for member in population.members:
        tree = member.tree
        if options.should_simplify:
            tree = ExpressionSimplifier.simplify_expression(tree)
        score, loss = score_func(dataset, tree, options, compute_complexity(tree, options))
        num_evals += 1.0
        member = PopMember(tree, score, loss, member.birth)
        if options.should_optimize_constants and rng.random() < options.optimizer_probability:
            member, evals = optimize_constants(dataset, member, options, rng)
            num_evals += evals
        members.append(member)
    population.members = members
    return population, num_evals


def rescore_best_seen(dataset: Dataset, best_seen: HallOfFame, options: Options) -> float:
    """Re-evaluate batch-scored entries on the full dataset; returns num_evals"""
    num_evals = 0.0
    for member in best_seen.entries():
        member.score, member.loss = score_func(dataset, member.tree, options, member.complexity(options))
        num_evals += 1.0
    return num_evals
