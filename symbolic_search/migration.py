"""
Migration between populations and from the Hall of Fame.

Migrants are always deep-copied into the destination, so the source
population (or Hall of Fame) is never touched and no tree is shared.
"""

from typing import List, Sequence

import numpy as np

from .hall_of_fame import HallOfFame
from .logging_system import log_debug
from .options import Options
from .pop_member import PopMember
from .population import Population


def number_to_replace(population_size: int, fraction: float, rng: np.random.Generator) -> int:
    """``fraction * population_size`` with stochastic rounding of the fractional part"""
    mean_replaced = population_size * fraction
    whole = int(np.floor(mean_replaced))
    if rng.random() < mean_replaced - whole:
        whole += 1
    return min(whole, population_size)


def migrate(migrants: Sequence[PopMember], population: Population, fraction: float,
            rng: np.random.Generator) -> int:
    """
    Overwrite the weakest members of ``population`` with copies of migrants.

    Args:
        migrants: Candidate members, sampled with replacement
        population: Destination (modified in place, size preserved)
        fraction: Expected fraction of the destination to replace
        rng: Random generator of the destination

    Returns:
        Number of members replaced
    """
    num_replace = number_to_replace(population.n, fraction, rng)
    if num_replace == 0 or not migrants:
        return 0
    scores = np.array([member.score for member in population.members])
    weakest = np.argsort(scores, kind='stable')[population.n - num_replace:]
    chosen = rng.integers(0, len(migrants), size=num_replace)
    for slot, which in zip(weakest, chosen):
        source = migrants[which]
        population.members[slot] = PopMember(source.tree.copy(), source.score, source.loss)
    return num_replace


def population_migrants(best_sub_pops: Sequence[Population], exclude: int) -> List[PopMember]:
    """Members of every other population's best sub-population"""
    return [member for j, sub_pop in enumerate(best_sub_pops) if j != exclude and sub_pop is not None
            for member in sub_pop.members]


def hall_of_fame_migrants(hall_of_fame: HallOfFame, topn: int) -> List[PopMember]:
    """The ``topn`` Pareto-frontier entries with the lowest score"""
    frontier = hall_of_fame.pareto_frontier()
    frontier.sort(key=lambda member: member.score)
    return frontier[:topn]


def migration_step(population: Population, index: int, best_sub_pops: Sequence[Population],
                   hall_of_fame: HallOfFame, options: Options, rng: np.random.Generator) -> int:
    """
    Apply the enabled migrations to the population that just returned.

    Returns:
        Total number of members replaced
    """
    replaced = 0
    if options.migration:
        replaced += migrate(population_migrants(best_sub_pops, index), population,
                            options.fraction_replaced, rng)
    if options.hof_migration:
        replaced += migrate(hall_of_fame_migrants(hall_of_fame, options.topn), population,
                            options.fraction_replaced_hof, rng)
    if replaced:
        log_debug(f"Population {index}: {replaced} member(s) replaced by migrants")
    return replaced
