"""Regularized evolution: tournament parent, mutated child, tournament replacement."""

from typing import Optional, Tuple

import numpy as np

from .adaptive_parsimony import RunningSearchStatistics
from .dataset import Dataset
from .loss_functions import batch_sample
from .mutate import next_generation, crossover_generation
from .options import Options
from .population import Population
from .selection import select_parent, select_replacement


def reg_evol_cycle(dataset: Dataset, population: Population, temperature: float, curmaxsize: int,
                   options: Options, rng: np.random.Generator,
                   stats: Optional[RunningSearchStatistics] = None) -> Tuple[Population, float]:
    """
    One cycle of ``ceil(n / tournament_selection_n)`` reproduction steps.

    Each step either mutates one tournament winner or, with probability
    ``crossover_probability``, crosses two winners. Children overwrite the
    weakest members of independently drawn tournaments, so the population
    size never changes.

    Returns:
        (population, num_evals); the population is modified in place
    """
    num_evals = 0.0
    n_steps = int(np.ceil(population.n / options.tournament_selection_n))

    for _ in range(n_steps):
        idx = batch_sample(dataset, options, rng) if options.batching else None

        if rng.random() >= options.crossover_probability:
            parent = population.members[select_parent(population, options, rng, stats)]
            child, accepted, evals = next_generation(dataset, parent, temperature, curmaxsize,
                                                     options, rng, stats, idx)
            num_evals += evals
            if not accepted and options.skip_mutation_failures:
                continue
            population.members[select_replacement(population, options, rng, stats)] = child
        else:
            parent1 = population.members[select_parent(population, options, rng, stats)]
            parent2 = population.members[select_parent(population, options, rng, stats)]
            child1, child2, accepted, evals = crossover_generation(parent1, parent2, dataset, curmaxsize,
                                                                   options, rng, idx)
            num_evals += evals
            if not accepted and options.skip_mutation_failures:
                continue
            slot1 = select_replacement(population, options, rng, stats)
            population.members[slot1] = child1
            population.members[select_replacement(population, options, rng, stats, exclude=slot1)] = child2

    return population, num_evals
