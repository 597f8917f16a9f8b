"""Population member: one tree with its cached loss and score."""

import itertools
from typing import Optional

import numpy as np

from .check_constraints import compute_complexity
from .dataset import Dataset
from .expression_tree import Expression
from .loss_functions import score_func
from .options import Options

_birth_counter = itertools.count()


def get_birth_order() -> int:
    """Monotonic stamp for newly created members"""
    return next(_birth_counter)


class PopMember:
    """
    A scored tree.

    Genetic operators never edit a member's tree in place: they work on
    ``tree.copy()`` and build a new member around the result.
    """

    __slots__ = ('tree', 'score', 'loss', 'birth')

    def __init__(self, tree: Expression, score: float, loss: float, birth: Optional[int] = None):
        self.tree = tree
        self.score = float(score)
        self.loss = float(loss)
        self.birth = get_birth_order() if birth is None else birth

    @classmethod
    def from_tree(cls, tree: Expression, dataset: Dataset, options: Options,
                  idx: Optional[np.ndarray] = None) -> 'PopMember':
        """Build a member and evaluate its loss and score"""
        score, loss = score_func(dataset, tree, options, compute_complexity(tree, options), idx)
        return cls(tree, score, loss)

    def complexity(self, options: Options) -> int:
        return compute_complexity(self.tree, options)

    def copy(self) -> 'PopMember':
        """Deep copy (the tree included), keeping the birth stamp"""
        return PopMember(self.tree.copy(), self.score, self.loss, self.birth)

    def __repr__(self) -> str:
        return f"PopMember({self.tree.to_string()}, loss={self.loss:.6g}, score={self.score:.6g})"
