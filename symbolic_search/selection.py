# selection.py
import numpy as np
from typing import Optional
from .adaptive_parsimony import RunningSearchStatistics
from .options import Options
from .population import Population


def adjusted_scores(population: Population, indices: np.ndarray, options: Options,
                    stats: Optional[RunningSearchStatistics]) -> np.ndarray:
  """Scores of the sampled members, penalised by how common their complexity is"""
  scores = np.array([population.members[i].score for i in indices], dtype=np.float64)
  if options.use_frequency_in_tournament and stats is not None:
    freqs = np.array([stats.frequency_of(population.members[i].complexity(options)) for i in indices])
    scores = scores * np.exp(options.adaptive_parsimony_scaling * freqs)
  return scores


def _tournament(population: Population, options: Options, rng: np.random.Generator,
                stats: Optional[RunningSearchStatistics], exclude: Optional[int] = None):
  if exclude is None or population.n < 2:
    indices = rng.integers(0, population.n, size=options.tournament_selection_n)
  else:
    # Draw from the other n - 1 slots
    indices = rng.integers(0, population.n - 1, size=options.tournament_selection_n)
    indices[indices >= exclude] += 1
  order = np.argsort(adjusted_scores(population, indices, options, stats), kind='stable')
  return indices[order]


def select_parent(population: Population, options: Options, rng: np.random.Generator,
                  stats: Optional[RunningSearchStatistics] = None) -> int:
  """Tournament selection; returns the index of the chosen member.

  The tournament (drawn with replacement) is ranked by adjusted score and
  the i-th best wins with probability proportional to p*(1-p)^i. With
  ``prob_pick_first`` set, the best is taken outright with that probability.
  """
  ranked = _tournament(population, options, rng, stats)
  if options.prob_pick_first is not None and rng.random() < options.prob_pick_first:
    return int(ranked[0])
  p = options.tournament_selection_p
  weights = p * (1.0 - p) ** np.arange(len(ranked))
  chosen = rng.choice(len(ranked), p=weights / weights.sum())
  return int(ranked[chosen])


def select_replacement(population: Population, options: Options, rng: np.random.Generator,
                       stats: Optional[RunningSearchStatistics] = None, exclude: Optional[int] = None) -> int:
  """Index of the weakest member of an independently drawn tournament, never ``exclude``"""
  ranked = _tournament(population, options, rng, stats, exclude)
  return int(ranked[-1])
