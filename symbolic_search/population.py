"""
Population of scored trees.

A population keeps a fixed number of members for its whole life: children
overwrite existing slots and migrants replace existing members, so ``n``
never changes after construction.
"""

from typing import List, Optional

import numpy as np

from .dataset import Dataset
from .errors import ConfigurationError
from .generator import ExpressionGenerator
from .loss_functions import score_func
from .options import Options
from .pop_member import PopMember


class Population:
    """Fixed-size list of ``PopMember``"""

    def __init__(self, members: List[PopMember]):
        self.members = members

    @classmethod
    def random(cls, dataset: Dataset, options: Options, rng: np.random.Generator,
               population_size: Optional[int] = None, nlength: int = 3) -> 'Population':
        """
        Population of random trees, each scored on the full dataset.

        Args:
            dataset: Training data
            options: Search settings
            rng: Random generator owned by this population
            population_size: Defaults to ``options.population_size``
            nlength: Number of operators appended to each starting leaf

        Returns:
            New population

        Raises:
            ConfigurationError: if the population is smaller than a tournament
        """
        if population_size is None:
            population_size = options.population_size
        if population_size < options.tournament_selection_n:
            raise ConfigurationError(
                f"Population size {population_size} is smaller than the tournament "
                f"size {options.tournament_selection_n}")
        generator = ExpressionGenerator(options, dataset.nfeatures, rng)
        members = [PopMember.from_tree(tree, dataset, options)
                   for tree in generator.generate_population(population_size, nlength)]
        return cls(members)

    @property
    def n(self) -> int:
        return len(self.members)

    def __len__(self) -> int:
        return len(self.members)

    def __iter__(self):
        return iter(self.members)

    def __getitem__(self, index: int) -> PopMember:
        return self.members[index]

    def copy(self) -> 'Population':
        """Deep copy: no member or tree is shared with the original"""
        return Population([member.copy() for member in self.members])

    def best_sub_pop(self, topn: int) -> 'Population':
        """Copies of the ``topn`` lowest-score members"""
        scores = np.array([member.score for member in self.members])
        best = np.argsort(scores, kind='stable')[:topn]
        return Population([self.members[i].copy() for i in best])

    def best_member(self) -> PopMember:
        return min(self.members, key=lambda member: member.loss)

    def rescore(self, dataset: Dataset, options: Options):
        """Re-evaluate every member on the full dataset (used after batched cycles)"""
        for member in self.members:
            member.score, member.loss = score_func(dataset, member.tree, options, member.complexity(options))

    def __repr__(self) -> str:
        return f"Population(n={self.n})"
